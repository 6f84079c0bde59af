# Application Configuration using Pydantic BaseSettings
from pydantic_settings import BaseSettings
from typing import List, Optional

class AppSettings(BaseSettings):
    # MongoDB
    MONGO_DETAILS: str = "mongodb://mongo:27017"
    DB_NAME: str = "agreement_cases_db"

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:29092"
    NOTIFICATION_KAFKA_TOPIC: str = "agreement_notification_events"
    OUTBOX_RELAY_INTERVAL_SECONDS: float = 30.0

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: Optional[str] = None
    SERVICE_NAME_API: str = "agreement-case-api"

    # Workflow
    APP_SERVER_URL: str = "http://localhost:3000"
    INVITE_TOKEN_EXPIRY_HOURS: int = 72
    CASE_UPDATE_MAX_RETRIES: int = 3
    # Comma separated fallback list, used when no case_manager user exists in the directory
    CASE_MANAGERS_EMAILS: Optional[str] = None
    NOTIFICATION_BRAND_NAME: str = "LetsPrenup"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def case_manager_fallback_emails(self) -> List[str]:
        if not self.CASE_MANAGERS_EMAILS:
            return []
        return [e.strip() for e in self.CASE_MANAGERS_EMAILS.split(",") if e.strip()]

# Instantiate settings to be imported by other modules
settings = AppSettings()

import logging
logger = logging.getLogger(__name__)
logger.info("Application settings module initialized.")
