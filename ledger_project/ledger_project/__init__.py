# Load the Celery app whenever Django starts so @shared_task binds to it
from .celery import celery_app

__all__ = ("celery_app",)

""" Workers are started with "celery -A ledger_project worker -l info",
    which imports this package and finds celery_app. """
