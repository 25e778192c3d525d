from django.core.exceptions import ValidationError
from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .models import (Bill, BillStatus, ExpenseClaim, ExpenseClaimLine,
                     ExpenseClaimStatus, Invoice, InvoiceStatus, JournalEntry)

""" Only drafts may be physically deleted; issued documents are
    cancelled instead. Also covers queryset.delete() calls that bypass
    the services. """


# pre_delete signal fires just before Django deletes an Invoice
@receiver(pre_delete, sender=Invoice)
def remove_invoice_journal(sender, instance, using, **kwargs):
    if instance.status != InvoiceStatus.DRAFT:
        raise ValidationError("Cannot delete an invoice once it has been issued.")
    # The accrual entry points at the invoice by reference, not by FK
    JournalEntry.objects.db_manager(using).filter(
        organization_id=instance.organization_id,
        reference_type="invoice",
        reference_id=instance.pk,
    ).delete()


@receiver(pre_delete, sender=Bill)
def prevent_delete_issued_bill(sender, instance, **kwargs):
    if instance.status != BillStatus.DRAFT:
        raise ValidationError("Cannot delete a bill once it has been approved.")


@receiver(pre_delete, sender=ExpenseClaim)
def prevent_delete_submitted_claim(sender, instance, **kwargs):
    if instance.status != ExpenseClaimStatus.DRAFT:
        raise ValidationError("Cannot delete an expense claim once it has been submitted.")


"""
    Recalculate the claim total when a line is added/updated/removed.
"""


@receiver((post_save, post_delete), sender=ExpenseClaimLine)
def expense_claim_line_changed(sender, instance, using, **kwargs):
    try:
        claim = ExpenseClaim.objects.db_manager(using).get(pk=instance.claim_id)
    except ExpenseClaim.DoesNotExist:
        return
    claim.recalc_total()
    # save only the changed fields to reduce churn
    claim.save(using=using, update_fields=["total_amount", "updated_at"])
