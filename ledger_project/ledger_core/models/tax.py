from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationManager
from .organization import Organization


class TaxRateType(models.TextChoices):
    SALES = "sales", "Sales"
    PURCHASE = "purchase", "Purchase"
    BOTH = "both", "Sales & Purchase"


class TaxRate(models.Model):
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    name = models.CharField(max_length=100)  # e.g. "VAT 10%"
    # Percentage, e.g. 10.0000 for 10%
    rate = models.DecimalField(max_digits=7, decimal_places=4)
    type = models.CharField(
        max_length=10, choices=TaxRateType.choices, default=TaxRateType.BOTH
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = OrganizationManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(rate__gte=0), name="ck_tax_rate_non_negative"
            )
        ]

    def __str__(self):
        return f"{self.name} ({self.rate}%)"

    def is_referenced(self):
        return self.invoice_line_items.exists() or self.bill_line_items.exists()

    def clean(self):
        if self.rate is not None and self.rate < Decimal("0"):
            raise ValidationError({"rate": "Tax rate cannot be negative."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if self.is_referenced():
            raise ValidationError("Cannot delete tax rate used by invoice or bill lines.")
        return super().delete(*args, **kwargs)
