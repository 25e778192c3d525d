import os
import sys
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

from .logging_config import get_logging_config

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("SECRET_KEY", "django-insecure-change-me")
DEBUG = os.getenv("DEBUG", "False") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# Running under pytest or "manage.py test"
TESTING = "PYTEST_CURRENT_TEST" in os.environ or "pytest" in sys.modules or "test" in sys.argv

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "ledger_core.apps.LedgerCoreConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    # Must run after AuthenticationMiddleware: needs request.user
    "ledger_core.middleware.CurrentOrganizationMiddleware",
]

ROOT_URLCONF = "ledger_project.urls"

DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

# ---------------------------------------------------------------------------
# Celery
# ---------------------------------------------------------------------------
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
# Tests run tasks inline, no broker required
CELERY_TASK_ALWAYS_EAGER = TESTING or os.getenv("CELERY_TASK_ALWAYS_EAGER", "False") == "True"
CELERY_TASK_EAGER_PROPAGATES = True

# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------
# Fallback account codes per posting role, used when an organization
# has no PostingAccount row for the role
LEDGER_DEFAULT_ACCOUNT_CODES = {
    "receivable": "1200",
    "revenue": "4000",
    "sales_tax": "2200",
    "payable": "2000",
    "retained_earnings": "3100",
}
# Discount percentage is stored on lines but not deducted unless enabled
LEDGER_APPLY_LINE_DISCOUNT = os.getenv("LEDGER_APPLY_LINE_DISCOUNT", "False") == "True"
# Reject duplicate invoice numbers within one organization
LEDGER_UNIQUE_INVOICE_NUMBERS = os.getenv("LEDGER_UNIQUE_INVOICE_NUMBERS", "False") == "True"
# (upper bound of bracket or None for the top bracket, rate)
LEDGER_INCOME_TAX_BRACKETS = [
    ("50000", "0.20"),
    ("100000", "0.25"),
    (None, "0.30"),
]

LOGGING = get_logging_config(DEBUG)
