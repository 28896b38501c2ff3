import os
import sys
from pathlib import Path
from dotenv import load_dotenv
import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("SECRET_KEY", os.environ.get("DJANGO_SECRET_KEY", "changeme"))
DEBUG = os.getenv("DEBUG", os.getenv("DJANGO_DEBUG", "True")) == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# Test-mode flag. Include Django's manage.py test invocation.
TESTING = (
    "PYTEST_CURRENT_TEST" in os.environ
    or "pytest" in sys.argv
    or "test" in sys.argv
)

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "catalog.apps.CatalogConfig",
    "events.apps.EventsConfig",
]

# =============================================================================
# Database Configuration
# =============================================================================
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

if DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3":
    # Take the write lock when a transaction starts, so concurrent ingests
    # queue on the busy timeout instead of failing the lock upgrade.
    DATABASES["default"].setdefault("OPTIONS", {}).update({
        "transaction_mode": "IMMEDIATE",
        "timeout": int(os.getenv("SQLITE_BUSY_TIMEOUT", "20")),
    })
    # Writers on the shared-cache in-memory test database fail at once
    # instead of waiting for the lock; tests that ingest from threads need a file.
    DATABASES["default"]["TEST"] = {"NAME": str(BASE_DIR / "test_db.sqlite3")}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "UNAUTHENTICATED_USER": None,
}

# =============================================================================
# Event Catalog Configuration
# =============================================================================
# Path to the YAML catalog (event types, parameters, claims).
# When unset, BEBOP_EVENT_CONFIG is used; an empty config means free-form
# event names with no declared parameters.
BEBOP_CONFIG_PATH = os.getenv("BEBOP_CONFIG_PATH", "")
BEBOP_EVENT_CONFIG = {}

# =============================================================================
# Change Feed Configuration
# =============================================================================
BEBOP_FEED_BATCH_SIZE = int(os.getenv("BEBOP_FEED_BATCH_SIZE", "100"))
BEBOP_FEED_POLL_INTERVAL = float(os.getenv("BEBOP_FEED_POLL_INTERVAL", "1.0"))

# =============================================================================
# Structured Logging Configuration
# =============================================================================
from ops.logging_config import get_logging_config
LOGGING = get_logging_config(DEBUG)

# Application version (set via CI/CD)
VERSION = os.getenv("APP_VERSION", "dev")
