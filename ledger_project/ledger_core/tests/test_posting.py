import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase, override_settings

from ledger_core.exceptions import ConflictError, NotFoundError, PersistenceError
from ledger_core.models import (AccountRole, Contact, Invoice, InvoiceLineItem,
                                InvoiceStatus, JournalEntry)
from ledger_core.services import (approve_bill, assign_role_account,
                                  create_bill, create_invoice, send_invoice,
                                  update_draft_bill, update_draft_invoice)
from ledger_core.services.posting import next_document_number
from ledger_core.services.validation import compute_line

from .base import LedgerFixtureMixin


class InvoicePostingTests(LedgerFixtureMixin, TestCase):
    def create(self, items, **kwargs):
        return create_invoice(
            self.org,
            contact_id=kwargs.pop("contact_id", self.customer.pk),
            items=items,
            invoice_date=datetime.date(2025, 6, 1),
            due_date=datetime.date(2025, 7, 1),
            user=self.user,
            **kwargs,
        )

    def journal_for(self, invoice):
        return JournalEntry.objects.get(
            organization=self.org, reference_type="invoice", reference_id=invoice.pk
        )

    def test_taxed_invoice_posts_balanced_three_line_journal(self):
        invoice = self.create([self.consulting_line()])

        self.assertEqual(invoice.status, InvoiceStatus.DRAFT)
        self.assertEqual(invoice.invoice_number, "INV-0001")
        self.assertEqual(invoice.subtotal, Decimal("1000.00"))
        self.assertEqual(invoice.tax_total, Decimal("100.00"))
        self.assertEqual(invoice.total, Decimal("1100.00"))

        journal = self.journal_for(invoice)
        lines = list(journal.lines.order_by("id"))
        self.assertEqual(len(lines), 3)

        # Dr receivable 1100 / Cr revenue 1000 / Cr sales tax 100
        self.assertEqual(lines[0].account, self.account("1200"))
        self.assertEqual(lines[0].debit, Decimal("1100.00"))
        self.assertEqual(lines[1].account, self.account("4000"))
        self.assertEqual(lines[1].credit, Decimal("1000.00"))
        self.assertEqual(lines[2].account, self.account("2200"))
        self.assertEqual(lines[2].credit, Decimal("100.00"))
        self.assertEqual(lines[0].description, "Invoice INV-0001 - Globex")
        self.assertTrue(journal.is_balanced())

    def test_untaxed_invoice_posts_two_lines(self):
        invoice = self.create(
            [{"description": "Widget", "quantity": 2, "unit_price": "50", "tax_rate": 0}]
        )
        self.assertEqual(invoice.total, Decimal("100.00"))
        journal = self.journal_for(invoice)
        self.assertEqual(journal.lines.count(), 2)
        self.assertEqual(journal.compute_totals(), (Decimal("100.00"), Decimal("100.00")))

    def test_line_rows_carry_computed_amounts(self):
        invoice = self.create([self.consulting_line(), self.consulting_line(quantity=1)])
        rows = list(invoice.line_items.order_by("line_order"))
        self.assertEqual([r.line_order for r in rows], [1, 2])
        self.assertEqual(rows[1].line_total, Decimal("100.00"))
        self.assertEqual(rows[1].tax_amount, Decimal("10.00"))
        self.assertEqual(rows[1].total, Decimal("110.00"))
        # Lines default to the revenue role account
        self.assertEqual(rows[0].account, self.account("4000"))

    def test_numbers_increase_per_organization(self):
        first = self.create([self.consulting_line()])
        second = self.create([self.consulting_line()])
        self.assertEqual((first.invoice_number, second.invoice_number), ("INV-0001", "INV-0002"))

        other = self.make_organization("Other Co")
        contact = Contact.objects.create(organization=other, name="Soylent")
        inv = create_invoice(other, contact.pk, [{"description": "x", "quantity": 1, "unit_price": 5}],
                             "2025-06-01", "2025-06-30")
        self.assertEqual(inv.invoice_number, "INV-0001")

    def test_empty_items_rejected_without_writing(self):
        with self.assertRaises(ValidationError):
            self.create([])
        self.assertFalse(Invoice.objects.exists())
        self.assertFalse(JournalEntry.objects.exists())

    def test_negative_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            self.create([self.consulting_line(quantity=-1)])

    def test_contact_of_other_organization_is_not_found(self):
        other = self.make_organization("Other Co")
        foreign = Contact.objects.create(organization=other, name="Foreign")
        with self.assertRaises(NotFoundError):
            self.create([self.consulting_line()], contact_id=foreign.pk)
        self.assertFalse(Invoice.objects.exists())

    def test_failure_mid_write_rolls_back_everything(self):
        original_save = InvoiceLineItem.save
        calls = {"n": 0}

        def flaky_save(instance, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise DatabaseError("disk full")
            return original_save(instance, *args, **kwargs)

        with mock.patch.object(InvoiceLineItem, "save", flaky_save):
            with self.assertRaises(PersistenceError):
                self.create([self.consulting_line(), self.consulting_line()])

        self.assertFalse(Invoice.objects.exists())
        self.assertFalse(InvoiceLineItem.objects.exists())
        self.assertFalse(JournalEntry.objects.exists())

    def test_role_mapping_overrides_default_revenue_account(self):
        assign_role_account(self.org, AccountRole.REVENUE, self.account("4100").pk)
        invoice = self.create([self.consulting_line()])
        credited = self.journal_for(invoice).lines.filter(credit__gt=0).values_list("account__code", flat=True)
        self.assertEqual(sorted(credited), ["2200", "4100"])

    def test_missing_role_account_aborts(self):
        self.account("2200").delete()
        with self.assertRaises(NotFoundError):
            self.create([self.consulting_line()])
        self.assertFalse(Invoice.objects.exists())

    def test_discount_is_ignored_by_default(self):
        invoice = self.create([self.consulting_line(discount=10)])
        self.assertEqual(invoice.subtotal, Decimal("1000.00"))
        self.assertEqual(invoice.line_items.get().discount_percentage, Decimal("10.00"))

    @override_settings(LEDGER_APPLY_LINE_DISCOUNT=True)
    def test_discount_applied_when_enabled(self):
        invoice = self.create([self.consulting_line(discount=10)])
        self.assertEqual(invoice.subtotal, Decimal("900.00"))
        self.assertEqual(invoice.tax_total, Decimal("90.00"))

    def test_duplicate_numbers_allowed_by_default(self):
        self.create([self.consulting_line()], invoice_number="X-1")
        self.create([self.consulting_line()], invoice_number="X-1")
        self.assertEqual(Invoice.objects.filter(invoice_number="X-1").count(), 2)

    @override_settings(LEDGER_UNIQUE_INVOICE_NUMBERS=True)
    def test_duplicate_numbers_rejected_when_enabled(self):
        self.create([self.consulting_line()], invoice_number="X-1")
        with self.assertRaises(ValidationError):
            self.create([self.consulting_line()], invoice_number="X-1")

    def test_rate_taken_from_tax_rate_when_percentage_omitted(self):
        line = self.consulting_line()
        del line["tax_rate"]
        invoice = self.create([line])
        self.assertEqual(invoice.tax_total, Decimal("100.00"))
        self.assertEqual(invoice.total, Decimal("1100.00"))
        self.assertEqual(self.journal_for(invoice).lines.count(), 3)

    def test_explicit_percentage_overrides_tax_rate(self):
        invoice = self.create([self.consulting_line(tax_rate="0")])
        self.assertEqual(invoice.tax_total, Decimal("0.00"))


class DraftInvoiceEditTests(LedgerFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.invoice = create_invoice(
            self.org, self.customer.pk, [self.consulting_line()],
            invoice_date="2025-06-01", due_date="2025-06-30",
        )

    def journal(self):
        return JournalEntry.objects.get(reference_type="invoice", reference_id=self.invoice.pk)

    def test_replacing_lines_reposts_journal(self):
        update_draft_invoice(
            self.org, self.invoice.pk,
            items=[{"description": "Audit", "quantity": 1, "unit_price": "500"}],
            invoice_date="2025-06-05", notes="Revised",
        )
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.subtotal, Decimal("500.00"))
        self.assertEqual(self.invoice.tax_total, Decimal("0.00"))
        self.assertEqual(self.invoice.total, Decimal("500.00"))
        self.assertEqual(self.invoice.notes, "Revised")
        self.assertEqual(list(self.invoice.line_items.values_list("description", flat=True)), ["Audit"])

        journal = self.journal()
        self.assertEqual(journal.transaction_date, datetime.date(2025, 6, 5))
        self.assertEqual(journal.lines.count(), 2)
        self.assertEqual(journal.compute_totals(), (Decimal("500.00"), Decimal("500.00")))
        self.assertEqual(JournalEntry.objects.count(), 1)

    def test_header_only_edit_keeps_lines(self):
        other = Contact.objects.create(organization=self.org, name="Hooli")
        update_draft_invoice(self.org, self.invoice.pk, contact_id=other.pk, terms="Net 30")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.contact, other)
        self.assertEqual(self.invoice.terms, "Net 30")
        self.assertEqual(self.invoice.total, Decimal("1100.00"))
        self.assertEqual(self.invoice.line_items.count(), 1)
        self.assertEqual(
            self.journal().lines.order_by("id").first().description, "Invoice INV-0001 - Hooli"
        )

    def test_issued_invoice_cannot_be_edited(self):
        send_invoice(self.org, self.invoice.pk)
        with self.assertRaises(ConflictError):
            update_draft_invoice(self.org, self.invoice.pk, notes="late change")
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.notes, "")

    def test_bad_lines_leave_invoice_untouched(self):
        with self.assertRaises(NotFoundError):
            update_draft_invoice(
                self.org, self.invoice.pk,
                items=[{"description": "Widget", "quantity": 1, "unit_price": "5",
                        "tax_rate_id": 999999}],
            )
        self.assertEqual(self.invoice.line_items.count(), 1)
        self.assertEqual(self.journal().lines.count(), 3)

    def test_other_organization_invoice_is_not_found(self):
        other = self.make_organization("Rival")
        with self.assertRaises(NotFoundError):
            update_draft_invoice(other, self.invoice.pk, notes="x")


class BillRecordingTests(LedgerFixtureMixin, TestCase):
    def test_bill_is_numbered_and_not_journaled(self):
        bill = create_bill(
            self.org,
            contact_id=self.supplier.pk,
            items=[{"description": "Paper", "quantity": 2, "unit_price": "50",
                    "account_id": self.account("6200").pk}],
            issue_date="2025-06-02",
        )
        self.assertEqual(bill.bill_number, "BILL-0001")
        self.assertEqual(bill.total, Decimal("100.00"))
        self.assertIsNone(bill.due_date)
        self.assertFalse(JournalEntry.objects.exists())

    def test_draft_bill_edit_replaces_lines(self):
        bill = create_bill(
            self.org, self.supplier.pk,
            [{"description": "Paper", "quantity": 2, "unit_price": "50",
              "account_id": self.account("6200").pk}],
            issue_date="2025-06-02",
        )
        update_draft_bill(
            self.org, bill.pk,
            items=[{"description": "Toner", "quantity": 1, "unit_price": "200",
                    "tax_rate_id": self.vat.pk, "account_id": self.account("6200").pk}],
            due_date="2025-06-30", reference="PO-9",
        )
        bill.refresh_from_db()
        self.assertEqual(bill.total, Decimal("220.00"))
        self.assertEqual(bill.tax_total, Decimal("20.00"))
        self.assertEqual(bill.due_date, datetime.date(2025, 6, 30))
        self.assertEqual(bill.reference, "PO-9")
        self.assertEqual(bill.line_items.get().description, "Toner")
        self.assertFalse(JournalEntry.objects.exists())

    def test_approved_bill_cannot_be_edited(self):
        bill = create_bill(
            self.org, self.supplier.pk,
            [{"description": "Paper", "quantity": 1, "unit_price": "50"}],
            issue_date="2025-06-02",
        )
        approve_bill(self.org, bill.pk)
        with self.assertRaises(ConflictError):
            update_draft_bill(self.org, bill.pk, notes="changed")


def test_next_document_number_skips_hand_typed_numbers():
    class FakeQuerySet:
        def filter(self, **kwargs):
            return self

        def values_list(self, field, flat):
            return ["INV-0007", "INV-custom", "INV-0002"]

    assert next_document_number(FakeQuerySet(), "invoice_number", "INV") == "INV-0008"


def test_compute_line_rounds_each_amount_half_up():
    line_total, tax, total = compute_line(Decimal("3"), Decimal("0.335"), Decimal("10"))
    assert line_total == Decimal("1.01")  # 1.005 rounds up
    assert tax == Decimal("0.10")
    assert total == Decimal("1.11")
