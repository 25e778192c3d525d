from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationManager
from .account import Account
from .organization import Organization

ZERO = Decimal("0.00")


# ---------- Journal (Header) & JournalEntryLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    transaction_date = models.DateField()
    description = models.CharField(max_length=500, blank=True, default="")
    # Business document the entry was derived from (e.g. "invoice", 42)
    reference_type = models.CharField(max_length=32, blank=True, default="")
    reference_id = models.BigIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = OrganizationManager()

    class Meta:
        verbose_name_plural = "journal entries"
        indexes = [
            models.Index(fields=["organization", "transaction_date"], name="ix_je_org_date"),
            models.Index(
                fields=["organization", "reference_type", "reference_id"],
                name="ix_je_org_reference",
            ),
        ]

    def __str__(self):
        return f"JE {self.pk} {self.transaction_date}"

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (aggs["total_debit"] or ZERO, aggs["total_credit"] or ZERO)

    # True if double-entry rule holds: total debits = total credits
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit


class JournalEntryLine(models.Model):  # One debit or credit against an account
    journal_entry = models.ForeignKey(
        JournalEntry, on_delete=models.CASCADE, related_name="lines"
    )
    # Historical ledger must never lose its account
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    description = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="ck_journal_line_non_negative",
            ),
            # One side only
            models.CheckConstraint(
                condition=~(models.Q(debit__gt=0) & models.Q(credit__gt=0)),
                name="ck_journal_line_one_side",
            ),
        ]

    def __str__(self):
        return f"{self.account_id} Dr {self.debit} Cr {self.credit}"

    def clean(self):
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit amounts must be non-negative.")
        if self.debit > 0 and self.credit > 0:
            raise ValidationError("A journal line cannot carry both a debit and a credit.")
        if self.account.organization_id != self.journal_entry.organization_id:
            raise ValidationError("Account must belong to the journal entry's organization.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
