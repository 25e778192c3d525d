import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from ledger_core.exceptions import ConflictError
from ledger_core.managers import OrganizationQuerySet
from ledger_core.models import (Bill, BillStatus, Invoice, InvoiceStatus,
                                JournalEntry)
from ledger_core.services import (approve_bill, cancel_bill, cancel_invoice,
                                  create_bill, create_invoice,
                                  delete_draft_bill, delete_draft_invoice,
                                  mark_bill_paid, mark_invoice_overdue,
                                  mark_overdue_documents, send_invoice)
from ledger_core.services.update import BILL_MACHINE, INVOICE_MACHINE
from ledger_core.tasks import mark_overdue_documents as overdue_task

from .base import LedgerFixtureMixin


class InvoiceWorkflowTests(LedgerFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.invoice = create_invoice(
            self.org, self.customer.pk, [self.consulting_line()],
            invoice_date="2025-06-01", due_date="2025-06-15",
        )

    def status(self):
        self.invoice.refresh_from_db()
        return self.invoice.status

    def test_send_then_cancel(self):
        send_invoice(self.org, self.invoice.pk)
        self.assertEqual(self.status(), InvoiceStatus.SENT)
        cancel_invoice(self.org, self.invoice.pk)
        self.assertEqual(self.status(), InvoiceStatus.CANCELLED)

    def test_send_twice_conflicts(self):
        send_invoice(self.org, self.invoice.pk)
        with self.assertRaises(ConflictError):
            send_invoice(self.org, self.invoice.pk)

    def test_overdue_requires_sent(self):
        # draft -> overdue is not a legal move
        with self.assertRaises(ConflictError):
            mark_invoice_overdue(self.org, self.invoice.pk)
        self.assertEqual(self.status(), InvoiceStatus.DRAFT)

    def test_cancelled_is_terminal(self):
        cancel_invoice(self.org, self.invoice.pk)
        with self.assertRaises(ConflictError):
            send_invoice(self.org, self.invoice.pk)
        with self.assertRaises(ConflictError):
            cancel_invoice(self.org, self.invoice.pk)

    def test_concurrent_status_change_is_detected(self):
        stale = Invoice.objects.get(pk=self.invoice.pk)
        # Someone else cancels between our read and our write
        Invoice.objects.filter(pk=self.invoice.pk).update(status=InvoiceStatus.CANCELLED)

        with mock.patch.object(OrganizationQuerySet, "get_for_organization", return_value=stale):
            with self.assertRaisesMessage(ConflictError, "not found or not in expected state"):
                send_invoice(self.org, self.invoice.pk)
        self.assertEqual(self.status(), InvoiceStatus.CANCELLED)

    def test_delete_draft_removes_journal(self):
        delete_draft_invoice(self.org, self.invoice.pk)
        self.assertFalse(Invoice.objects.exists())
        self.assertFalse(JournalEntry.objects.exists())

    def test_issued_invoice_cannot_be_deleted(self):
        send_invoice(self.org, self.invoice.pk)
        with self.assertRaises(ConflictError):
            delete_draft_invoice(self.org, self.invoice.pk)
        # ORM deletes are blocked too
        with self.assertRaises(ValidationError):
            with transaction.atomic():
                Invoice.objects.get(pk=self.invoice.pk).delete()
        self.assertTrue(JournalEntry.objects.exists())

    def test_overdue_sweep(self):
        send_invoice(self.org, self.invoice.pk)
        invoices, bills = mark_overdue_documents(self.org, datetime.date(2025, 6, 16))
        self.assertEqual((invoices, bills), (1, 0))
        self.assertEqual(self.status(), InvoiceStatus.OVERDUE)

        # Nothing left to flag on a second run
        self.assertEqual(mark_overdue_documents(self.org, datetime.date(2025, 6, 17)), (0, 0))

    def test_overdue_sweep_ignores_documents_not_yet_due(self):
        send_invoice(self.org, self.invoice.pk)
        self.assertEqual(mark_overdue_documents(self.org, datetime.date(2025, 6, 15)), (0, 0))

    def test_overdue_task_accepts_iso_date(self):
        send_invoice(self.org, self.invoice.pk)
        result = overdue_task.apply(args=[self.org.pk, "2025-07-01"]).get()
        self.assertEqual(result, {"invoices": 1, "bills": 0})
        self.assertEqual(self.status(), InvoiceStatus.OVERDUE)


class BillWorkflowTests(LedgerFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.bill = create_bill(
            self.org, self.supplier.pk,
            [{"description": "Rent", "quantity": 1, "unit_price": "800",
              "account_id": self.account("6000").pk}],
            issue_date="2025-06-01", due_date="2025-06-10",
        )

    def status(self):
        self.bill.refresh_from_db()
        return self.bill.status

    def test_approve_then_pay(self):
        approve_bill(self.org, self.bill.pk)
        mark_bill_paid(self.org, self.bill.pk)
        self.assertEqual(self.status(), BillStatus.PAID)

    def test_draft_bill_cannot_be_paid(self):
        with self.assertRaises(ConflictError):
            mark_bill_paid(self.org, self.bill.pk)

    def test_paid_bill_cannot_be_cancelled(self):
        approve_bill(self.org, self.bill.pk)
        mark_bill_paid(self.org, self.bill.pk)
        with self.assertRaises(ConflictError):
            cancel_bill(self.org, self.bill.pk)

    def test_overdue_sweep_flags_approved_bills(self):
        approve_bill(self.org, self.bill.pk)
        self.assertEqual(mark_overdue_documents(self.org, datetime.date(2025, 6, 11)), (0, 1))
        self.assertEqual(self.status(), BillStatus.OVERDUE)

    def test_delete_only_drafts(self):
        other = create_bill(
            self.org, self.supplier.pk, [{"description": "Ink", "quantity": 1, "unit_price": 5}],
            issue_date="2025-06-01",
        )
        delete_draft_bill(self.org, other.pk)
        approve_bill(self.org, self.bill.pk)
        with self.assertRaises(ConflictError):
            delete_draft_bill(self.org, self.bill.pk)
        self.assertEqual(list(Bill.objects.values_list("pk", flat=True)), [self.bill.pk])
        self.assertEqual(self.bill.total, Decimal("800.00"))


def test_state_machines_only_move_forward():
    assert INVOICE_MACHINE.can_transition(InvoiceStatus.DRAFT, InvoiceStatus.SENT)
    assert not INVOICE_MACHINE.can_transition(InvoiceStatus.SENT, InvoiceStatus.DRAFT)
    assert not INVOICE_MACHINE.can_transition(InvoiceStatus.DRAFT, InvoiceStatus.PAID)
    assert INVOICE_MACHINE.allowed(InvoiceStatus.PAID) == frozenset()
    assert BILL_MACHINE.allowed(BillStatus.CANCELLED) == frozenset()
    assert BILL_MACHINE.can_transition(BillStatus.OVERDUE, BillStatus.PAID)
