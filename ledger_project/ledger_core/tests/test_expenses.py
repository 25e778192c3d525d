import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import ConflictError
from ledger_core.models import ExpenseClaim, ExpenseClaimStatus
from ledger_core.services import (approve_expense_claim, create_expense_claim,
                                  delete_expense_claim, reject_expense_claim,
                                  submit_expense_claim, update_expense_claim)

from .base import LedgerFixtureMixin


class ExpenseClaimTests(LedgerFixtureMixin, TestCase):
    def lines(self):
        return [
            {"date": "2025-03-02", "description": "Taxi", "amount": "25.50",
             "account_id": self.account("6300").pk},
            {"date": "2025-03-03", "description": "Lunch", "amount": "14.50"},
        ]

    def test_create_numbers_by_year_and_totals_lines(self):
        claim = create_expense_claim(self.org, self.user, datetime.date(2025, 3, 4), self.lines())
        second = create_expense_claim(self.org, self.user, "2025-04-01", self.lines()[:1])

        self.assertEqual(claim.claim_number, "EXP-2025-0001")
        self.assertEqual(second.claim_number, "EXP-2025-0002")
        self.assertEqual(claim.total_amount, Decimal("40.00"))
        self.assertEqual(claim.status, ExpenseClaimStatus.DRAFT)
        self.assertEqual(list(claim.lines.order_by("line_order").values_list("description", flat=True)),
                         ["Taxi", "Lunch"])

    def test_lines_required(self):
        with self.assertRaises(ValidationError):
            create_expense_claim(self.org, self.user, "2025-03-04", [])
        self.assertFalse(ExpenseClaim.objects.exists())

    def test_update_replaces_lines_and_total(self):
        claim = create_expense_claim(self.org, self.user, "2025-03-04", self.lines())
        claim = update_expense_claim(
            self.org, claim.pk, lines=[{"date": "2025-03-05", "description": "Hotel", "amount": "120"}]
        )
        self.assertEqual(claim.lines.count(), 1)
        self.assertEqual(ExpenseClaim.objects.get(pk=claim.pk).total_amount, Decimal("120.00"))

    def test_submit_approve_and_lock(self):
        claim = create_expense_claim(self.org, self.user, "2025-03-04", self.lines())
        submit_expense_claim(self.org, claim.pk)
        with self.assertRaises(ConflictError):
            update_expense_claim(self.org, claim.pk, notes="late edit")
        with self.assertRaises(ConflictError):
            delete_expense_claim(self.org, claim.pk)

        approve_expense_claim(self.org, claim.pk)
        with self.assertRaises(ConflictError):
            reject_expense_claim(self.org, claim.pk)
        self.assertEqual(ExpenseClaim.objects.get(pk=claim.pk).status, ExpenseClaimStatus.APPROVED)

    def test_draft_cannot_be_approved_directly(self):
        claim = create_expense_claim(self.org, self.user, "2025-03-04", self.lines())
        with self.assertRaises(ConflictError):
            approve_expense_claim(self.org, claim.pk)

    def test_delete_draft(self):
        claim = create_expense_claim(self.org, self.user, "2025-03-04", self.lines())
        delete_expense_claim(self.org, claim.pk)
        self.assertFalse(ExpenseClaim.objects.exists())
