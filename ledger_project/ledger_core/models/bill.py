from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationManager
from .account import Account
from .contact import Contact
from .item import Item
from .organization import Organization
from .tax import TaxRate

ZERO = Decimal("0.00")


class BillStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    APPROVED = "approved", "Approved"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class Bill(models.Model):  # Supplier invoice the organization has to pay
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    contact = models.ForeignKey(Contact, on_delete=models.PROTECT, related_name="bills")
    bill_number = models.CharField(max_length=64)
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    # Supplier's own reference for the document
    reference = models.CharField(max_length=100, blank=True, default="")

    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    tax_total = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    status = models.CharField(
        max_length=10, choices=BillStatus.choices, default=BillStatus.DRAFT
    )
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrganizationManager()

    class Meta:
        indexes = [
            models.Index(fields=["organization", "bill_number"], name="ix_bill_org_number"),
            models.Index(fields=["organization", "status"], name="ix_bill_org_status"),
            models.Index(fields=["organization", "issue_date"], name="ix_bill_org_date"),
        ]

    def __str__(self):
        return f"Bill {self.bill_number or self.pk}"

    # Bills are settled outside the payment allocation flow,
    # so everything is due until the bill is marked paid
    def amount_due(self):
        return self.total

    def clean(self):
        if self.total != self.subtotal + self.tax_total:
            raise ValidationError("Bill total must equal subtotal plus tax total.")
        if self.contact_id and self.contact.organization_id != self.organization_id:
            raise ValidationError("Contact must belong to the same organization.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class BillLineItem(models.Model):
    bill = models.ForeignKey(Bill, on_delete=models.CASCADE, related_name="line_items")
    item = models.ForeignKey(Item, null=True, blank=True, on_delete=models.SET_NULL)
    # Expense account the cost is booked to
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bill_line_items",
    )
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)
    discount_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    tax_rate = models.ForeignKey(
        TaxRate,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bill_line_items",
    )
    line_total = models.DecimalField(max_digits=18, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=18, decimal_places=2)
    line_order = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.description} x {self.quantity}"

    def clean(self):
        if self.quantity is not None and self.quantity < 0:
            raise ValidationError({"quantity": "Quantity cannot be negative."})
        if self.unit_price is not None and self.unit_price < 0:
            raise ValidationError({"unit_price": "Unit price cannot be negative."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
