from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationManager
from .organization import Organization


class AccountType(models.TextChoices):
    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"
    COST_OF_GOODS_SOLD = "cost_of_goods_sold", "Cost of Goods Sold"
    OTHER_INCOME = "other_income", "Other Income"
    OTHER_EXPENSE = "other_expense", "Other Expense"


# Account types reported on each side of the profit & loss statement
REVENUE_TYPES = (AccountType.REVENUE, AccountType.OTHER_INCOME)
EXPENSE_TYPES = (
    AccountType.EXPENSE,
    AccountType.COST_OF_GOODS_SOLD,
    AccountType.OTHER_EXPENSE,
)


class Account(models.Model):
    """
    Chart of accounts entry.
    - code is unique per organization
    - code is frozen once any journal line points at the account
    """

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    code = models.CharField(max_length=20)  # e.g. "1200"
    name = models.CharField(max_length=200)  # e.g. "Accounts Receivable"
    type = models.CharField(max_length=20, choices=AccountType.choices)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = OrganizationManager()

    class Meta:
        indexes = [models.Index(fields=["organization", "type"], name="ix_account_org_type")]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "code"], name="uq_account_org_code"
            )
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def is_referenced(self):
        return self.journal_lines.exists()

    def is_in_use(self):
        """True while any row keeps this account from being deleted."""
        return (
            self.is_referenced()
            or self.invoice_line_items.exists()
            or self.bill_line_items.exists()
            or self.expense_claim_lines.exists()
            or self.bank_accounts.exists()
            or self.postingaccount_set.exists()
        )

    def clean(self):
        # Identity is immutable once the ledger refers to the account
        if self.pk:
            orig = Account.objects.filter(pk=self.pk).values("code").first()
            if orig and orig["code"] != self.code and self.is_referenced():
                raise ValidationError(
                    {"code": "Cannot change the code of an account used in journal lines."}
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_in_use():
            raise ValidationError(
                "Cannot delete account used by journal lines, documents, bank accounts or posting roles."
            )
        return super().delete(*args, **kwargs)


class AccountRole(models.TextChoices):
    """Semantic slots the posting rule and reports write to or read from."""

    RECEIVABLE = "receivable", "Accounts Receivable"
    REVENUE = "revenue", "Revenue"
    SALES_TAX = "sales_tax", "Sales Tax Payable"
    PAYABLE = "payable", "Accounts Payable"
    RETAINED_EARNINGS = "retained_earnings", "Retained Earnings"


class PostingAccount(models.Model):
    """Per-organization override of which account fills a role."""

    organization = models.ForeignKey(
        Organization, on_delete=models.CASCADE, related_name="posting_accounts"
    )
    role = models.CharField(max_length=20, choices=AccountRole.choices)
    account = models.ForeignKey(Account, on_delete=models.PROTECT)

    objects = OrganizationManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "role"], name="uq_posting_account_org_role"
            )
        ]

    def __str__(self):
        return f"{self.role} -> {self.account_id}"

    def clean(self):
        if self.account_id and self.account.organization_id != self.organization_id:
            raise ValidationError("Account must belong to the same organization.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
