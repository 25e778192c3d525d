from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationManager
from .account import Account
from .contact import Contact
from .organization import Organization

ZERO = Decimal("0.00")


class BankAccount(models.Model):  # Cash account held at a bank
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # Asset account representing this bank in the chart of accounts
    ledger_account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="bank_accounts"
    )
    name = models.CharField(max_length=200)
    bank_name = models.CharField(max_length=200, blank=True, default="")
    account_number_masked = models.CharField(max_length=64, blank=True, default="")
    currency_code = models.CharField(max_length=3, default="USD")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = OrganizationManager()

    def __str__(self):
        return self.name

    def balance(self, as_of=None):
        """Credits minus debits, optionally up to and including `as_of`."""
        qs = self.transactions.all()
        if as_of is not None:
            qs = qs.filter(date__lte=as_of)
        agg = qs.aggregate(
            credits=models.Sum("amount", filter=models.Q(type=BankTransactionType.CREDIT)),
            debits=models.Sum("amount", filter=models.Q(type=BankTransactionType.DEBIT)),
        )
        return (agg["credits"] or ZERO) - (agg["debits"] or ZERO)

    def running_balances(self):
        """Replay transactions oldest first; yields (transaction, balance after it)."""
        balance = ZERO
        for tx in self.transactions.order_by("date", "id"):
            balance += tx.signed_amount
            yield tx, balance

    def delete(self, *args, **kwargs):
        if self.transactions.exists():
            raise ValidationError("Cannot delete bank account with transactions.")
        return super().delete(*args, **kwargs)


class BankTransactionType(models.TextChoices):
    CREDIT = "credit", "Credit"  # money in
    DEBIT = "debit", "Debit"  # money out


class BankTransaction(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    bank_account = models.ForeignKey(
        BankAccount, on_delete=models.CASCADE, related_name="transactions"
    )
    date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    type = models.CharField(max_length=6, choices=BankTransactionType.choices)
    description = models.CharField(max_length=500, blank=True, default="")
    reference = models.CharField(max_length=100, blank=True, default="")
    payee = models.CharField(max_length=200, blank=True, default="")
    contact = models.ForeignKey(
        Contact, null=True, blank=True, on_delete=models.SET_NULL
    )
    is_reconciled = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = OrganizationManager()

    class Meta:
        indexes = [
            models.Index(fields=["organization", "date"], name="ix_bank_tx_org_date"),
            models.Index(fields=["bank_account", "date"], name="ix_bank_tx_account_date"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0), name="ck_bank_tx_amount_non_negative"
            )
        ]

    def __str__(self):
        return f"{self.date} {self.type} {self.amount}"

    @property
    def signed_amount(self):
        return self.amount if self.type == BankTransactionType.CREDIT else -self.amount

    def clean(self):
        if self.amount is not None and self.amount < 0:
            raise ValidationError({"amount": "Amount cannot be negative."})
        if self.bank_account_id and self.bank_account.organization_id != self.organization_id:
            raise ValidationError("Bank account must belong to the same organization.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
