from decimal import Decimal

from django.db import models

from ..managers import OrganizationManager
from .banking import BankAccount
from .contact import Contact
from .invoice import Invoice
from .organization import Organization

ZERO = Decimal("0.00")


class Payment(models.Model):  # Money received from a customer
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE)
    contact = models.ForeignKey(
        Contact, null=True, blank=True, on_delete=models.PROTECT, related_name="payments"
    )
    # Account the money landed in, when known
    bank_account = models.ForeignKey(
        BankAccount, null=True, blank=True, on_delete=models.SET_NULL
    )
    payment_date = models.DateField()
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    reference = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = OrganizationManager()

    class Meta:
        indexes = [models.Index(fields=["organization", "payment_date"], name="ix_payment_org_date")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_payment_amount_positive"
            )
        ]

    def __str__(self):
        return f"Payment {self.pk} {self.amount}"

    def allocated_total(self):
        agg = self.allocations.aggregate(total=models.Sum("amount"))
        return agg["total"] or ZERO

    def unallocated(self):
        return self.amount - self.allocated_total()


class PaymentAllocation(models.Model):
    """ Amount X of this payment settles this invoice """

    payment = models.ForeignKey(
        Payment, on_delete=models.CASCADE, related_name="allocations"
    )
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="allocations"
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0), name="ck_allocation_amount_positive"
            )
        ]

    def __str__(self):
        return f"{self.amount} of payment {self.payment_id} -> invoice {self.invoice_id}"
