from agreement_case_service.app.config import settings
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader, ConsoleMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME as ResourceAttributesServiceName
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from pythonjsonlogger import jsonlogger


logger = logging.getLogger("agreement_case_service")

def setup_json_logging():
    root_logger = logging.getLogger()
    if any(isinstance(h.formatter, jsonlogger.JsonFormatter) for h in root_logger.handlers):
        return
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s %(lineno)d %(message)s",
        rename_fields={"levelname": "level", "name": "logger_name", "asctime": "timestamp"},
    )
    logHandler.setFormatter(formatter)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(logHandler)
    log_level = settings.LOG_LEVEL.upper()
    root_logger.setLevel(log_level)
    logger.setLevel(log_level)
    logger.info(f"JSON logging configured at level {log_level}.")

def setup_opentelemetry(service_name: str):
    resource = Resource(attributes={
        ResourceAttributesServiceName: service_name,
    })
    tracer_provider = TracerProvider(resource=resource)
    if settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT:
        logger.info(f"Configuring OTLP Span Exporter. Endpoint: {settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT}")
        otlp_span_exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
    else:
        logger.info("OTLP Span Exporter not configured. Using Console for spans.")
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tracer_provider)
    logger.info(f"OpenTelemetry TracerProvider configured for service: {service_name}.")

    metric_readers = []
    if settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT:
        logger.info(f"Configuring OTLP Metric Exporter. Endpoint: {settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT}")
        otlp_metric_exporter = OTLPMetricExporter(endpoint=settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT, insecure=True)
        metric_readers.append(PeriodicExportingMetricReader(otlp_metric_exporter, export_interval_millis=5000))
    else:
        logger.info("OTLP Metric Exporter not configured. Using Console for metrics.")
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter(), export_interval_millis=5000))
    meter_provider = MeterProvider(resource=resource, metric_readers=metric_readers)
    metrics.set_meter_provider(meter_provider)
    logger.info(f"OpenTelemetry MeterProvider configured for service: {service_name}.")

# Call at module load time
setup_json_logging()

# --- Tracer and Meter instances ---
tracer = trace.get_tracer("agreement_case_service.tracer")
meter = metrics.get_meter("agreement_case_service.meter")

# --- Custom Metrics Definitions ---
case_commands_processed_counter = meter.create_counter(
    name="agreement_case.commands.processed.total",
    description="Counts case commands that committed a state change, partitioned by command name.",
    unit="1"
)

workflow_transitions_counter = meter.create_counter(
    name="agreement_case.workflow.transitions.total",
    description="Counts workflow status transitions and full-lock changes, partitioned by transition.",
    unit="1"
)

case_concurrency_retries_counter = meter.create_counter(
    name="agreement_case.concurrency.retries.total",
    description="Counts compare-and-swap conflicts that caused a case command to be retried.",
    unit="1"
)

notifications_enqueued_counter = meter.create_counter(
    name="agreement_case.notifications.enqueued.total",
    description="Counts notification events written to the outbox, partitioned by trigger.",
    unit="1"
)
logger.info("Custom metrics (Counters) defined in observability.py.")
