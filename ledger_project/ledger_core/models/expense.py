from decimal import Decimal

from django.conf import settings
from django.db import models

from ..managers import OrganizationManager
from .account import Account
from .organization import Organization

ZERO = Decimal("0.00")


class ExpenseClaimStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class ExpenseClaim(models.Model):  # Out-of-pocket spend an employee wants back
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    claim_number = models.CharField(max_length=32)  # "EXP-2025-0001"
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="expense_claims"
    )
    date = models.DateField()
    total_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    status = models.CharField(
        max_length=10,
        choices=ExpenseClaimStatus.choices,
        default=ExpenseClaimStatus.DRAFT,
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrganizationManager()

    class Meta:
        indexes = [models.Index(fields=["organization", "status"], name="ix_expense_claim_org_status")]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "claim_number"], name="uq_expense_claim_org_number"
            )
        ]

    def __str__(self):
        return self.claim_number

    def recalc_total(self):
        agg = self.lines.aggregate(total=models.Sum("amount"))
        self.total_amount = agg["total"] or ZERO


class ExpenseClaimLine(models.Model):
    claim = models.ForeignKey(ExpenseClaim, on_delete=models.CASCADE, related_name="lines")
    date = models.DateField()
    description = models.CharField(max_length=500)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    account = models.ForeignKey(
        Account, null=True, blank=True, on_delete=models.PROTECT, related_name="expense_claim_lines"
    )
    receipt_url = models.URLField(max_length=500, blank=True, default="")
    line_order = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0), name="ck_expense_line_amount_non_negative"
            )
        ]

    def __str__(self):
        return f"{self.description} {self.amount}"
