import os
import yaml

from src.domain.errors import ConfigurationError

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./flight_billing.db")
    REDIS_URL = data.get("REDIS_URL", "redis://localhost:6379/0")
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")

    # Flight ingestion
    INGESTION_BATCH_SIZE = data.get("INGESTION_BATCH_SIZE", 10)
    INGESTION_MAX_WORKERS = data.get("INGESTION_MAX_WORKERS", 5)
    INGESTION_POLL_INTERVAL_SECONDS = data.get("INGESTION_POLL_INTERVAL_SECONDS", 30)
    INGESTION_TOTAL_SCAN_LIMIT = data.get("INGESTION_TOTAL_SCAN_LIMIT", None)  # None = unlimited
    INGESTION_SERVICE_NAME = data.get("INGESTION_SERVICE_NAME", "automated-ingestion")

    # External collaborators
    FLIGHT_SOURCE_URL = data.get("FLIGHT_SOURCE_URL", "")  # Broker base URL, e.g. http://localhost:8099
    FLIGHT_SOURCE_TABLE = data.get("FLIGHT_SOURCE_TABLE", "tracked_flights")
    COMPUTE_ENGINE_URL = data.get("COMPUTE_ENGINE_URL", "")
    HTTP_TIMEOUT_SECONDS = data.get("HTTP_TIMEOUT_SECONDS", 120.0)

    # Invoicing
    INVOICE_PAYMENT_TERMS_DAYS = data.get("INVOICE_PAYMENT_TERMS_DAYS", 10)
    INVOICE_DEDUPLICATION_ENABLED = bool(data.get("INVOICE_DEDUPLICATION_ENABLED", True))
    AUDIT_TRAIL_DIR = data.get("AUDIT_TRAIL_DIR", os.path.join(ROOT_PATH, "processed-results"))

    # Overdue marking job
    OVERDUE_CRON_SCHEDULE = data.get("OVERDUE_CRON_SCHEDULE", "0 * * * *")  # Hourly
    OVERDUE_LOCK_TIMEOUT_MS = data.get("OVERDUE_LOCK_TIMEOUT_MS", 5000)

    # Consolidated invoice job
    CONSOLIDATION_ENABLED = bool(data.get("CONSOLIDATION_ENABLED", True))
    CONSOLIDATION_CRON_SCHEDULE = data.get("CONSOLIDATION_CRON_SCHEDULE", "0 1 * * *")  # Daily 01:00
    CONSOLIDATION_LOCK_TIMEOUT_MS = data.get("CONSOLIDATION_LOCK_TIMEOUT_MS", 60000)
    CONSOLIDATION_PAYMENT_TERMS_DAYS = data.get("CONSOLIDATION_PAYMENT_TERMS_DAYS", 30)
    CONSOLIDATION_INVOICE_NUMBER_PREFIX = data.get("CONSOLIDATION_INVOICE_NUMBER_PREFIX", "CONS")

    @classmethod
    def validate_required(cls, *keys: str) -> None:
        """
        Ensure required connection parameters are set

        Raises:
            ConfigurationError: if any key is missing or empty
        """
        missing = [key for key in keys if not getattr(cls, key, None)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
