import os

# Get settings from environment variables.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./order_management.db")

RABBITMQ_HOST = os.getenv("RABBITMQ_HOST", "rabbitmq")
EVENTS_EXCHANGE = os.getenv("EVENTS_EXCHANGE", "events")
EVENTS_ENABLED = os.getenv("EVENTS_ENABLED", "0").strip() in {"1", "true", "True", "YES", "yes"}

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "CNY")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
