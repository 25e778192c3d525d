import os
from celery import Celery

# Set default Django settings for the 'celery' program
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ledger_project.settings")

celery_app = Celery("ledger_project")

# Read CELERY_* keys from Django settings
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# Pick up tasks.py from every installed app
celery_app.autodiscover_tasks()
