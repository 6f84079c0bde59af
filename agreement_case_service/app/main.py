# FastAPI Application Entry Point
from fastapi import FastAPI

# Configuration and Observability
from agreement_case_service.app.config import settings
from agreement_case_service.app.observability import setup_opentelemetry, logger

# Initialize OpenTelemetry
setup_opentelemetry(service_name=settings.SERVICE_NAME_API)

# Import instrumentors after OTel SDK is initialized
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor

from agreement_case_service.infrastructure.database import connection
from agreement_case_service.infrastructure.kafka.producer import (
    get_kafka_producer, startup_kafka_producer, shutdown_kafka_producer,
)
from agreement_case_service.app.service.notification_dispatcher import (
    relay_pending_notifications, start_outbox_relay, stop_outbox_relay, wait_for_deliveries,
)

# API Routers
from agreement_case_service.app.api.v1.endpoints import health as health_router
from agreement_case_service.app.api.v1.endpoints import cases as cases_router

app = FastAPI(
    title="Agreement Case Service",
    description="Runs the agreement case workflow: steps, full lock, pre-questionnaires, lawyer selection and approvals.",
    version="1.0.0"
)

@app.on_event("startup")
async def startup_event():
    logger.info("FastAPI application startup...")
    try:
        await connection.connect_to_mongo()
        await connection.ensure_indexes(connection.db)
        PymongoInstrumentor().instrument()
        logger.info("MongoDB connected and PyMongo instrumentation complete.")

        await startup_kafka_producer()
        logger.info("Kafka Producer polling started.")

        relayed = await relay_pending_notifications(connection.db, get_kafka_producer())
        logger.info(f"Relayed {relayed} pending notification(s) from the outbox.")
        start_outbox_relay(connection.db, get_kafka_producer())
    except Exception as e:
        logger.error(f"Failed during startup: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("FastAPI application shutdown...")
    await stop_outbox_relay()
    await shutdown_kafka_producer()
    await wait_for_deliveries()
    connection.close_mongo_connection()

FastAPIInstrumentor.instrument_app(app)
logger.info("FastAPI instrumentation complete.")

app.include_router(health_router.router)
app.include_router(cases_router.router, prefix="/api/v1")

logger.info("API routers included. Application setup complete.")

# To run: uvicorn agreement_case_service.app.main:app --reload --port 8000
