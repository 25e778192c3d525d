import logging

from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils import timezone

from ..exceptions import ConflictError
from ..models import (Bill, BillStatus, ExpenseClaim, ExpenseClaimStatus,
                      Invoice, InvoiceStatus)

logger = logging.getLogger(__name__)


class StatusMachine:
    """
    Allowed status moves for one document type.

    Moves only go forward: nothing returns to draft, and terminal
    states (paid, cancelled, approved, rejected) have no exits.
    """

    def __init__(self, model, transitions):
        self.model = model
        self.transitions = {
            src: frozenset(dests) for src, dests in transitions.items()
        }

    def allowed(self, current):
        return self.transitions.get(current, frozenset())

    def can_transition(self, current, target):
        return target in self.allowed(current)

    def check(self, current, target):
        """Raise ConflictError unless current -> target is a legal move."""
        if not self.can_transition(current, target):
            raise ConflictError(
                f"{self.model.__name__} cannot go from {current} to {target}"
            )


INVOICE_MACHINE = StatusMachine(
    Invoice,
    {
        InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
        InvoiceStatus.SENT: [InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED],
        InvoiceStatus.OVERDUE: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
    },
)

BILL_MACHINE = StatusMachine(
    Bill,
    {
        BillStatus.DRAFT: [BillStatus.APPROVED, BillStatus.CANCELLED],
        BillStatus.APPROVED: [BillStatus.PAID, BillStatus.OVERDUE, BillStatus.CANCELLED],
        BillStatus.OVERDUE: [BillStatus.PAID, BillStatus.CANCELLED],
    },
)

EXPENSE_CLAIM_MACHINE = StatusMachine(
    ExpenseClaim,
    {
        ExpenseClaimStatus.DRAFT: [ExpenseClaimStatus.SUBMITTED],
        ExpenseClaimStatus.SUBMITTED: [ExpenseClaimStatus.APPROVED, ExpenseClaimStatus.REJECTED],
    },
)

MACHINES = {
    Invoice: INVOICE_MACHINE,
    Bill: BILL_MACHINE,
    ExpenseClaim: EXPENSE_CLAIM_MACHINE,
}


def transition(model, organization, pk, target, expected=None, using=DEFAULT_DB_ALIAS):
    """
    Move one document to `target` status.

    1. Resolve the row inside the organization (NotFoundError otherwise).
    2. Check the move against the state machine (ConflictError).
    3. Apply it with UPDATE ... WHERE status = <current>; if another
       writer changed the status in between, zero rows match and the
       call fails with ConflictError instead of silently doing nothing.

    `expected` narrows the accepted current status further.
    """
    machine = MACHINES[model]
    manager = model.objects.db_manager(using)
    obj = manager.get_for_organization(organization, pk)
    current = obj.status

    if expected is not None and current != expected:
        raise ConflictError(
            f"{model.__name__} {pk} not found or not in expected state"
        )
    machine.check(current, target)

    updated = (
        manager.for_organization(organization)
        .filter(pk=pk, status=current)
        .update(status=target, **_touch(model))
    )
    if updated == 0:
        raise ConflictError(
            f"{model.__name__} {pk} not found or not in expected state"
        )

    logger.info(
        "Status changed",
        extra={
            "organization_id": organization.pk,
            "model": model.__name__,
            "object_id": pk,
            "from_status": current,
            "to_status": target,
        },
    )
    obj.status = target
    return obj


def _touch(model):
    # queryset.update() skips auto_now, so bump updated_at by hand
    field_names = {f.name for f in model._meta.get_fields()}
    return {"updated_at": timezone.now()} if "updated_at" in field_names else {}


# ----------------------------------------------
# Invoice status update workflows
# ----------------------------------------------
""" Issue a draft invoice to the customer """
def send_invoice(organization, invoice_id, using=DEFAULT_DB_ALIAS):
    return transition(Invoice, organization, invoice_id, InvoiceStatus.SENT,
                      expected=InvoiceStatus.DRAFT, using=using)


def cancel_invoice(organization, invoice_id, using=DEFAULT_DB_ALIAS):
    return transition(Invoice, organization, invoice_id, InvoiceStatus.CANCELLED, using=using)


def mark_invoice_overdue(organization, invoice_id, using=DEFAULT_DB_ALIAS):
    return transition(Invoice, organization, invoice_id, InvoiceStatus.OVERDUE,
                      expected=InvoiceStatus.SENT, using=using)


def delete_draft_invoice(organization, invoice_id, using=DEFAULT_DB_ALIAS):
    """Physically remove a draft invoice together with its journal entry."""
    with transaction.atomic(using=using):
        invoice = Invoice.objects.db_manager(using).get_for_organization(
            organization, invoice_id, for_update=True
        )
        if invoice.status != InvoiceStatus.DRAFT:
            raise ConflictError(
                f"Invoice {invoice_id} not found or not in expected state"
            )
        # pre_delete receiver removes the invoice's journal entry
        invoice.delete(using=using)


# ------------------------------------
# Bill status update workflows
# ------------------------------------
def approve_bill(organization, bill_id, using=DEFAULT_DB_ALIAS):
    return transition(Bill, organization, bill_id, BillStatus.APPROVED,
                      expected=BillStatus.DRAFT, using=using)


""" Bills are settled outside the ledger; this only records the fact """
def mark_bill_paid(organization, bill_id, using=DEFAULT_DB_ALIAS):
    return transition(Bill, organization, bill_id, BillStatus.PAID, using=using)


def cancel_bill(organization, bill_id, using=DEFAULT_DB_ALIAS):
    return transition(Bill, organization, bill_id, BillStatus.CANCELLED, using=using)


def delete_draft_bill(organization, bill_id, using=DEFAULT_DB_ALIAS):
    with transaction.atomic(using=using):
        bill = Bill.objects.db_manager(using).get_for_organization(
            organization, bill_id, for_update=True
        )
        if bill.status != BillStatus.DRAFT:
            raise ConflictError(f"Bill {bill_id} not found or not in expected state")
        bill.delete(using=using)


# ------------------------------------
# Overdue sweep
# ------------------------------------
def mark_overdue_documents(organization, today, using=DEFAULT_DB_ALIAS):
    """Flag sent invoices and approved bills whose due date has passed.

    Returns (invoices flagged, bills flagged). Documents whose status
    changes concurrently are skipped.
    """
    invoice_ids = list(
        Invoice.objects.db_manager(using)
        .for_organization(organization)
        .filter(status=InvoiceStatus.SENT, due_date__lt=today)
        .values_list("pk", flat=True)
    )
    bill_ids = list(
        Bill.objects.db_manager(using)
        .for_organization(organization)
        .filter(status=BillStatus.APPROVED, due_date__lt=today)
        .values_list("pk", flat=True)
    )

    flagged_invoices = 0
    for pk in invoice_ids:
        try:
            transition(Invoice, organization, pk, InvoiceStatus.OVERDUE,
                       expected=InvoiceStatus.SENT, using=using)
            flagged_invoices += 1
        except ConflictError:
            logger.info("Invoice changed status during overdue sweep", extra={"invoice_id": pk})

    flagged_bills = 0
    for pk in bill_ids:
        try:
            transition(Bill, organization, pk, BillStatus.OVERDUE,
                       expected=BillStatus.APPROVED, using=using)
            flagged_bills += 1
        except ConflictError:
            logger.info("Bill changed status during overdue sweep", extra={"bill_id": pk})

    return flagged_invoices, flagged_bills
