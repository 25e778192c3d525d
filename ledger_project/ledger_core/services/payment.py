import logging

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction

from ..exceptions import ConflictError, PersistenceError
from ..models import (BankAccount, Contact, Invoice, InvoiceStatus, Payment,
                      PaymentAllocation)
from .update import transition
from .validation import ZERO, money, to_date, to_decimal

logger = logging.getLogger(__name__)

# Only issued, unsettled invoices can take money
PAYABLE_INVOICE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


# ----------------------------
# Payment-related workflows
# ----------------------------
def record_payment(organization, amount, payment_date, contact_id=None,
                   bank_account_id=None, reference="", notes="", allocations=None,
                   using=DEFAULT_DB_ALIAS):
    """
    Record money received and optionally spread it over invoices.

    `allocations` is a list of {"invoice_id": ..., "amount": ...}.
    The payment and all its allocations commit together.
    """
    amount = money(to_decimal(amount, "amount"))
    if amount <= 0:
        raise ValidationError({"amount": "Payment amount must be positive."})
    payment_date = to_date(payment_date, "payment_date")

    try:
        with transaction.atomic(using=using):
            contact = (
                Contact.objects.db_manager(using).get_for_organization(organization, contact_id)
                if contact_id
                else None
            )
            bank_account = (
                BankAccount.objects.db_manager(using).get_for_organization(organization, bank_account_id)
                if bank_account_id
                else None
            )
            payment = Payment.objects.db_manager(using).create(
                organization=organization,
                contact=contact,
                bank_account=bank_account,
                payment_date=payment_date,
                amount=amount,
                reference=reference or "",
                notes=notes or "",
            )
            for alloc in allocations or []:
                _allocate(organization, payment, alloc.get("invoice_id"), alloc.get("amount"), using)
    except DatabaseError as exc:
        logger.warning(
            "Payment rolled back",
            extra={"organization_id": organization.pk, "error": str(exc)},
        )
        raise PersistenceError("Could not save payment") from exc

    logger.info(
        "Payment recorded",
        extra={"organization_id": organization.pk, "payment_id": payment.pk, "amount": str(amount)},
    )
    return payment


def allocate_payment(organization, payment_id, invoice_id, amount, using=DEFAULT_DB_ALIAS):
    """Apply part (or all) of an existing payment to an invoice."""
    try:
        with transaction.atomic(using=using):
            payment = Payment.objects.db_manager(using).get_for_organization(
                organization, payment_id, for_update=True
            )
            allocation = _allocate(organization, payment, invoice_id, amount, using)
    except DatabaseError as exc:
        logger.warning(
            "Payment allocation rolled back",
            extra={"organization_id": organization.pk, "payment_id": payment_id, "error": str(exc)},
        )
        raise PersistenceError("Could not allocate payment") from exc
    return allocation


def _allocate(organization, payment, invoice_id, amount, using):
    # Lock the invoice row until the transaction finishes
    invoice = Invoice.objects.db_manager(using).get_for_organization(
        organization, invoice_id, for_update=True
    )
    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise ConflictError(
            f"Invoice {invoice.pk} cannot take payments while {invoice.status}"
        )

    amount = money(to_decimal(amount, "amount"))
    if amount <= 0:
        raise ValidationError({"amount": "Allocated amount must be positive."})

    # Validation: prevent over-allocation on either side
    due = invoice.amount_due()
    if amount > due:
        raise ValidationError(
            {"amount": f"Allocation {amount} exceeds amount due {due} on invoice {invoice.invoice_number}."}
        )
    if payment.allocated_total() + amount > payment.amount:
        raise ValidationError({"amount": "Allocations exceed the payment amount."})

    allocation = PaymentAllocation.objects.db_manager(using).create(
        payment=payment, invoice=invoice, amount=amount
    )

    # Fully settled invoices move to paid through the state machine
    if invoice.amount_due() <= ZERO:
        transition(Invoice, organization, invoice.pk, InvoiceStatus.PAID, using=using)

    logger.info(
        "Payment allocated",
        extra={
            "organization_id": organization.pk,
            "payment_id": payment.pk,
            "invoice_id": invoice.pk,
            "amount": str(amount),
        },
    )
    return allocation
