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


class InvoiceStatus(models.TextChoices):
    """ Workflow:
        draft = not yet issued
        sent = issued, awaiting payment
        overdue = past due date and still unpaid
        paid = fully settled
        cancelled = voided """

    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class Invoice(models.Model):  # Represents a customer invoice
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    # prevent deleting a contact who has an invoice
    contact = models.ForeignKey(
        Contact, on_delete=models.PROTECT, related_name="invoices"
    )
    # human-readable (e.g. "INV-0001"); uniqueness is a settings toggle
    invoice_number = models.CharField(max_length=64)
    invoice_date = models.DateField()  # issue date
    due_date = models.DateField()

    # Stored totals, always the sums of the line items
    subtotal = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    tax_total = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)

    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT
    )
    notes = models.TextField(blank=True, default="")
    terms = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = OrganizationManager()

    class Meta:
        indexes = [
            models.Index(fields=["organization", "invoice_number"], name="ix_invoice_org_number"),
            models.Index(fields=["organization", "status"], name="ix_invoice_org_status"),
            models.Index(fields=["organization", "invoice_date"], name="ix_invoice_org_date"),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    def amount_paid(self):
        """Sum of payment allocations applied to this invoice."""
        if not self.pk:
            return ZERO
        agg = self.allocations.aggregate(total=models.Sum("amount"))
        return agg["total"] or ZERO

    def amount_due(self):
        return self.total - self.amount_paid()

    def clean(self):
        if self.total != self.subtotal + self.tax_total:
            raise ValidationError("Invoice total must equal subtotal plus tax total.")
        # Contact chosen must belong to the same organization
        if self.contact_id and self.contact.organization_id != self.organization_id:
            raise ValidationError("Contact must belong to the same organization.")

    def save(self, *args, **kwargs):
        self.full_clean()  # will trigger clean()
        super().save(*args, **kwargs)


class InvoiceLineItem(models.Model):  # One product/service sold on the invoice
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="line_items"
    )
    item = models.ForeignKey(Item, null=True, blank=True, on_delete=models.SET_NULL)
    # Revenue account the line is reported under
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoice_line_items",
    )
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(max_digits=18, decimal_places=4)
    # Recorded for reference; only deducted when LEDGER_APPLY_LINE_DISCOUNT is on
    discount_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    tax_rate = models.ForeignKey(
        TaxRate,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoice_line_items",
    )
    line_total = models.DecimalField(max_digits=18, decimal_places=2)  # qty * price
    tax_amount = models.DecimalField(max_digits=18, decimal_places=2, default=ZERO)
    total = models.DecimalField(max_digits=18, decimal_places=2)  # line + tax
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
