from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import ConflictError, NotFoundError
from ledger_core.models import InvoiceStatus, Payment, PaymentAllocation
from ledger_core.services import (allocate_payment, cancel_invoice,
                                  create_invoice, record_payment, send_invoice)

from .base import LedgerFixtureMixin


class PaymentAllocationTests(LedgerFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        # total 1100.00
        self.invoice = create_invoice(
            self.org, self.customer.pk, [self.consulting_line()],
            invoice_date="2025-06-01", due_date="2025-06-30",
        )

    def test_draft_invoice_cannot_take_payment(self):
        with self.assertRaises(ConflictError):
            record_payment(
                self.org, "100", "2025-06-05", contact_id=self.customer.pk,
                allocations=[{"invoice_id": self.invoice.pk, "amount": "100"}],
            )
        # payment row rolled back with the failed allocation
        self.assertFalse(Payment.objects.exists())

    def test_partial_then_full_payment_marks_paid(self):
        send_invoice(self.org, self.invoice.pk)
        record_payment(
            self.org, "600", "2025-06-05", contact_id=self.customer.pk,
            allocations=[{"invoice_id": self.invoice.pk, "amount": "600"}],
        )
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.SENT)
        self.assertEqual(self.invoice.amount_due(), Decimal("500.00"))

        payment = record_payment(self.org, "500", "2025-06-20")
        allocate_payment(self.org, payment.pk, self.invoice.pk, "500")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)
        self.assertEqual(self.invoice.amount_due(), Decimal("0.00"))
        self.assertEqual(payment.unallocated(), Decimal("0.00"))

    def test_over_allocation_against_invoice_rejected(self):
        send_invoice(self.org, self.invoice.pk)
        payment = record_payment(self.org, "2000", "2025-06-05")
        with self.assertRaises(ValidationError):
            allocate_payment(self.org, payment.pk, self.invoice.pk, "1100.01")
        self.assertFalse(PaymentAllocation.objects.exists())

    def test_allocations_cannot_exceed_payment(self):
        send_invoice(self.org, self.invoice.pk)
        payment = record_payment(self.org, "100", "2025-06-05")
        with self.assertRaises(ValidationError):
            allocate_payment(self.org, payment.pk, self.invoice.pk, "150")

    def test_cancelled_invoice_rejects_allocation(self):
        send_invoice(self.org, self.invoice.pk)
        cancel_invoice(self.org, self.invoice.pk)
        payment = record_payment(self.org, "100", "2025-06-05")
        with self.assertRaises(ConflictError):
            allocate_payment(self.org, payment.pk, self.invoice.pk, "100")

    def test_non_positive_amounts_rejected(self):
        with self.assertRaises(ValidationError):
            record_payment(self.org, "0", "2025-06-05")
        send_invoice(self.org, self.invoice.pk)
        payment = record_payment(self.org, "100", "2025-06-05")
        with self.assertRaises(ValidationError):
            allocate_payment(self.org, payment.pk, self.invoice.pk, "-5")

    def test_payment_of_other_organization_not_found(self):
        other = self.make_organization("Other Co")
        foreign_payment = record_payment(other, "100", "2025-06-05")
        send_invoice(self.org, self.invoice.pk)
        with self.assertRaises(NotFoundError):
            allocate_payment(self.org, foreign_payment.pk, self.invoice.pk, "100")
