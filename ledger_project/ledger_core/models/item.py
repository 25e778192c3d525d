from decimal import Decimal

from django.db import models

from ..managers import OrganizationManager
from .organization import Organization


class Item(models.Model):  # Product or service that can appear on a line
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    code = models.CharField(max_length=64, blank=True, default="")
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    # Suggested price; lines may override it
    unit_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.0000")
    )
    is_active = models.BooleanField(default=True)

    objects = OrganizationManager()

    class Meta:
        indexes = [models.Index(fields=["organization", "code"], name="ix_item_org_code")]

    def __str__(self):
        return self.name
