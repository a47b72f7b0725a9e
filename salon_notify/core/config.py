import os

# PostgreSQL settings
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "salon")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Database retry settings
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "1.0"))
DB_RETRY_BACKOFF_FACTOR = float(os.getenv("DB_RETRY_BACKOFF_FACTOR", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Salon Notification API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
API_V1_PREFIX = os.getenv("API_V1_PREFIX", "/api/v1")
DEFAULT_TENANT_ID = os.getenv("DEFAULT_TENANT_ID", "default-tenant")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:4003,http://localhost:5173"
    ).split(",")
    if origin.strip()
]

# Real-time notifications
NOTIFICATION_SWEEP_INTERVAL_SECONDS = float(
    os.getenv("NOTIFICATION_SWEEP_INTERVAL_SECONDS", "30")
)
NOTIFICATION_INACTIVITY_TIMEOUT_SECONDS = float(
    os.getenv("NOTIFICATION_INACTIVITY_TIMEOUT_SECONDS", "300")
)
UNREAD_CATCHUP_LIMIT = int(os.getenv("UNREAD_CATCHUP_LIMIT", "50"))

# Push notifications (urgent escalation)
PUSH_WEBHOOK_URL = os.getenv("PUSH_WEBHOOK_URL")
PUSH_WEBHOOK_TOKEN = os.getenv("PUSH_WEBHOOK_TOKEN")
PUSH_RETRY_ATTEMPTS = int(os.getenv("PUSH_RETRY_ATTEMPTS", "3"))
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))


def validate_config():
    """Validate critical settings at startup"""
    errors = []

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if NOTIFICATION_SWEEP_INTERVAL_SECONDS <= 0:
        errors.append("NOTIFICATION_SWEEP_INTERVAL_SECONDS must be > 0")

    if NOTIFICATION_INACTIVITY_TIMEOUT_SECONDS <= 0:
        errors.append("NOTIFICATION_INACTIVITY_TIMEOUT_SECONDS must be > 0")

    if UNREAD_CATCHUP_LIMIT < 1:
        errors.append("UNREAD_CATCHUP_LIMIT must be >= 1")

    if PUSH_RETRY_ATTEMPTS < 1:
        errors.append("PUSH_RETRY_ATTEMPTS must be >= 1")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")
