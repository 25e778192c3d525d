from django.core.exceptions import ValidationError
from django.db import models

from ..managers import OrganizationManager
from .organization import Organization


class ContactType(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    SUPPLIER = "supplier", "Supplier"
    BOTH = "both", "Customer & Supplier"


class Contact(models.Model):  # Customer and/or supplier of an organization
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    name = models.CharField(max_length=200)
    type = models.CharField(
        max_length=10, choices=ContactType.choices, default=ContactType.CUSTOMER
    )
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    address = models.TextField(blank=True, default="")
    tax_number = models.CharField(max_length=50, blank=True, default="")
    contact_person = models.CharField(max_length=200, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrganizationManager()

    class Meta:
        indexes = [models.Index(fields=["organization", "name"], name="ix_contact_org_name")]

    def __str__(self):
        return self.name

    def is_referenced(self):
        return self.invoices.exists() or self.bills.exists() or self.payments.exists()

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    """ A contact with invoices, bills or payments stays on file """

    def delete(self, *args, **kwargs):
        if self.is_referenced():
            raise ValidationError("Cannot delete contact with existing invoices, bills or payments.")
        return super().delete(*args, **kwargs)
