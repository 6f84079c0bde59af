import pytest
from unittest.mock import MagicMock
import logging

from agreement_case_service.app import observability
from agreement_case_service.app.config import settings

@pytest.fixture(autouse=True)
def preserve_original_settings():
    original_log_level = settings.LOG_LEVEL
    original_otel_traces_endpoint = settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT
    original_otel_metrics_endpoint = settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT
    yield
    settings.LOG_LEVEL = original_log_level
    settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = original_otel_traces_endpoint
    settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = original_otel_metrics_endpoint

@pytest.fixture
def mock_logger_dependencies(mocker):
    mock_logging = mocker.patch('agreement_case_service.app.observability.logging')
    mock_jsonlogger = mocker.patch('agreement_case_service.app.observability.jsonlogger')
    mock_root_logger = MagicMock(spec=logging.Logger)
    mock_root_logger.handlers = []
    mock_logging.getLogger.return_value = mock_root_logger
    mocker.patch.object(observability, "logger", MagicMock(spec=logging.Logger))
    return mock_logging, mock_jsonlogger, mock_root_logger

def test_setup_json_logging_configures_correctly(mock_logger_dependencies):
    mock_logging, mock_jsonlogger, mock_root_logger = mock_logger_dependencies
    settings.LOG_LEVEL = "debug"

    observability.setup_json_logging()

    mock_jsonlogger.JsonFormatter.assert_called_once_with(
        fmt="%(asctime)s %(levelname)s %(name)s %(module)s %(funcName)s %(lineno)d %(message)s",
        rename_fields={"levelname": "level", "name": "logger_name", "asctime": "timestamp"},
    )
    log_handler_instance = mock_logging.StreamHandler.return_value
    log_handler_instance.setFormatter.assert_called_once_with(mock_jsonlogger.JsonFormatter.return_value)
    mock_root_logger.addHandler.assert_called_once_with(log_handler_instance)
    mock_root_logger.setLevel.assert_called_once_with("DEBUG")
    observability.logger.setLevel.assert_called_once_with("DEBUG")

def test_setup_json_logging_is_idempotent(mock_logger_dependencies):
    mock_logging, mock_jsonlogger, mock_root_logger = mock_logger_dependencies
    class FakeJsonFormatter(logging.Formatter):
        pass
    mock_jsonlogger.JsonFormatter = FakeJsonFormatter
    existing_handler = MagicMock()
    existing_handler.formatter = FakeJsonFormatter()
    mock_root_logger.handlers = [existing_handler]

    observability.setup_json_logging()

    mock_root_logger.addHandler.assert_not_called()

@pytest.fixture
def mock_otel_sdk(mocker):
    return {
        "resource": mocker.patch('agreement_case_service.app.observability.Resource'),
        "tracer_provider": mocker.patch('agreement_case_service.app.observability.TracerProvider'),
        "meter_provider": mocker.patch('agreement_case_service.app.observability.MeterProvider'),
        "batch_processor": mocker.patch('agreement_case_service.app.observability.BatchSpanProcessor'),
        "reader": mocker.patch('agreement_case_service.app.observability.PeriodicExportingMetricReader'),
        "console_span": mocker.patch('agreement_case_service.app.observability.ConsoleSpanExporter'),
        "console_metric": mocker.patch('agreement_case_service.app.observability.ConsoleMetricExporter'),
        "otlp_span": mocker.patch('agreement_case_service.app.observability.OTLPSpanExporter'),
        "otlp_metric": mocker.patch('agreement_case_service.app.observability.OTLPMetricExporter'),
        "trace": mocker.patch('agreement_case_service.app.observability.trace'),
        "metrics": mocker.patch('agreement_case_service.app.observability.metrics'),
    }

def test_setup_opentelemetry_uses_console_exporters_by_default(mock_otel_sdk):
    settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = None
    settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = None

    observability.setup_opentelemetry("agreement-test")

    mock_otel_sdk["console_span"].assert_called_once()
    mock_otel_sdk["console_metric"].assert_called_once()
    mock_otel_sdk["otlp_span"].assert_not_called()
    mock_otel_sdk["otlp_metric"].assert_not_called()
    mock_otel_sdk["trace"].set_tracer_provider.assert_called_once_with(mock_otel_sdk["tracer_provider"].return_value)
    mock_otel_sdk["metrics"].set_meter_provider.assert_called_once_with(mock_otel_sdk["meter_provider"].return_value)

def test_setup_opentelemetry_uses_otlp_when_configured(mock_otel_sdk):
    settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT = "http://collector:4317"
    settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT = "http://collector:4317"

    observability.setup_opentelemetry("agreement-test")

    mock_otel_sdk["otlp_span"].assert_called_once_with(endpoint="http://collector:4317", insecure=True)
    mock_otel_sdk["otlp_metric"].assert_called_once_with(endpoint="http://collector:4317", insecure=True)
    mock_otel_sdk["console_span"].assert_not_called()
