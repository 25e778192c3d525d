import logging

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, transaction

from ..exceptions import ConflictError
from ..models import (Account, ExpenseClaim, ExpenseClaimLine,
                      ExpenseClaimStatus, Organization)
from .posting import next_document_number
from .update import transition
from .validation import money, to_date, to_decimal

logger = logging.getLogger(__name__)


def _clean_claim_lines(organization, lines, using):
    if not lines:
        raise ValidationError({"lines": "At least one expense line is required."})
    cleaned = []
    for i, raw in enumerate(lines):
        amount = money(to_decimal(raw.get("amount"), f"lines[{i}].amount"))
        if amount < 0:
            raise ValidationError({f"lines[{i}].amount": "Cannot be negative."})
        description = str(raw.get("description") or "").strip()
        if not description:
            raise ValidationError({f"lines[{i}].description": "This field is required."})
        account_id = raw.get("account_id")
        cleaned.append(
            {
                "date": to_date(raw.get("date"), f"lines[{i}].date"),
                "description": description,
                "amount": amount,
                "account": (
                    Account.objects.db_manager(using).get_for_organization(organization, account_id)
                    if account_id
                    else None
                ),
                "receipt_url": raw.get("receipt_url") or "",
                "line_order": i + 1,
            }
        )
    return cleaned


def _write_lines(claim, cleaned, using):
    for line in cleaned:
        ExpenseClaimLine.objects.db_manager(using).create(claim=claim, **line)
    # total_amount is kept in sync by the line signal receivers
    claim.refresh_from_db(using=using, fields=["total_amount"])


def create_expense_claim(organization, user, date, lines, notes="", using=DEFAULT_DB_ALIAS):
    """New draft claim numbered EXP-<year>-NNNN within the organization."""
    date = to_date(date, "date")
    with transaction.atomic(using=using):
        cleaned = _clean_claim_lines(organization, lines, using)
        # Serialize numbering per organization
        Organization.objects.db_manager(using).select_for_update().get(pk=organization.pk)
        claims = ExpenseClaim.objects.db_manager(using).for_organization(organization)
        claim = ExpenseClaim.objects.db_manager(using).create(
            organization=organization,
            claim_number=next_document_number(claims, "claim_number", f"EXP-{date.year}"),
            user=user,
            date=date,
            notes=notes or "",
        )
        _write_lines(claim, cleaned, using)

    logger.info(
        "Expense claim created",
        extra={"organization_id": organization.pk, "claim_id": claim.pk, "total": str(claim.total_amount)},
    )
    return claim


def _get_draft_claim(organization, claim_id, using):
    claim = ExpenseClaim.objects.db_manager(using).get_for_organization(
        organization, claim_id, for_update=True
    )
    if claim.status != ExpenseClaimStatus.DRAFT:
        raise ConflictError(f"Expense claim {claim_id} not found or not in expected state")
    return claim


def update_expense_claim(organization, claim_id, date=None, lines=None, notes=None,
                         using=DEFAULT_DB_ALIAS):
    """Edit a draft claim; passing `lines` replaces all of them."""
    with transaction.atomic(using=using):
        claim = _get_draft_claim(organization, claim_id, using)
        if date is not None:
            claim.date = to_date(date, "date")
        if notes is not None:
            claim.notes = notes
        claim.save(using=using)
        if lines is not None:
            cleaned = _clean_claim_lines(organization, lines, using)
            claim.lines.all().delete()
            _write_lines(claim, cleaned, using)
    return claim


def delete_expense_claim(organization, claim_id, using=DEFAULT_DB_ALIAS):
    with transaction.atomic(using=using):
        claim = _get_draft_claim(organization, claim_id, using)
        claim.delete(using=using)


def submit_expense_claim(organization, claim_id, using=DEFAULT_DB_ALIAS):
    return transition(ExpenseClaim, organization, claim_id, ExpenseClaimStatus.SUBMITTED,
                      expected=ExpenseClaimStatus.DRAFT, using=using)


def approve_expense_claim(organization, claim_id, using=DEFAULT_DB_ALIAS):
    return transition(ExpenseClaim, organization, claim_id, ExpenseClaimStatus.APPROVED,
                      expected=ExpenseClaimStatus.SUBMITTED, using=using)


def reject_expense_claim(organization, claim_id, using=DEFAULT_DB_ALIAS):
    return transition(ExpenseClaim, organization, claim_id, ExpenseClaimStatus.REJECTED,
                      expected=ExpenseClaimStatus.SUBMITTED, using=using)
