import datetime
import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def mark_overdue_documents(organization_id, today=None):
    """Flag sent invoices and approved bills past their due date as overdue."""
    # import lazily to avoid circular imports at module import time
    from .models import Organization
    from .services.update import mark_overdue_documents as sweep

    organization = Organization.objects.get(pk=organization_id)
    # Task arguments travel as JSON, so dates arrive as ISO strings
    if isinstance(today, str):
        today = datetime.date.fromisoformat(today)
    today = today or timezone.localdate()

    invoices, bills = sweep(organization, today)
    logger.info(
        "Overdue sweep finished",
        extra={"organization_id": organization_id, "invoices": invoices, "bills": bills},
    )
    return {"invoices": invoices, "bills": bills}
