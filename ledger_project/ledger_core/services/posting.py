import logging
import re

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction

from ..conf import ledger_setting
from ..exceptions import ConflictError, PersistenceError, UnbalancedJournalError
from ..models import (Account, AccountRole, Bill, BillLineItem, BillStatus,
                      Contact, Invoice, InvoiceLineItem, InvoiceStatus, Item,
                      JournalEntry, JournalEntryLine, Organization, TaxRate)
from .chart import role_account
from .validation import ZERO, clean_lines, compute_line, to_date

logger = logging.getLogger(__name__)


def next_document_number(queryset, field, prefix, width=4):
    """Next "<prefix>-0001" style number after the highest one in use.

    Numbers typed by hand that don't follow the pattern are ignored.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    for number in queryset.filter(**{f"{field}__startswith": f"{prefix}-"}).values_list(field, flat=True):
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:0{width}d}"


class DocumentWriter:
    """
    Shared plumbing for writing invoices and bills.

    The organization and database alias are fixed at construction;
    every lookup goes through them, so a row from another organization
    is indistinguishable from a missing one (NotFoundError).
    """

    def __init__(self, organization, using=DEFAULT_DB_ALIAS):
        self.organization = organization
        self.using = using

    def _get(self, model, pk):
        return model.objects.db_manager(self.using).get_for_organization(
            self.organization, pk
        )

    def _lock_organization(self):
        # Serializes number generation within one organization
        Organization.objects.db_manager(self.using).select_for_update().get(
            pk=self.organization.pk
        )

    def _build_lines(self, cleaned_lines, default_account=None):
        """Resolve references and compute amounts for each cleaned line.

        Returns (line kwargs list, subtotal, tax_total).
        """
        built = []
        subtotal = ZERO
        tax_total = ZERO
        for order, line in enumerate(cleaned_lines, start=1):
            item = self._get(Item, line["item_id"]) if line["item_id"] else None
            tax_rate_obj = (
                self._get(TaxRate, line["tax_rate_id"]) if line["tax_rate_id"] else None
            )
            account = (
                self._get(Account, line["account_id"]) if line["account_id"] else default_account
            )

            description = line["description"] or (item.name if item else "")
            if not description:
                raise ValidationError({f"items[{order - 1}].description": "This field is required."})

            # An explicit percentage wins over the referenced rate
            rate = line["tax_rate"]
            if rate is None:
                rate = tax_rate_obj.rate if tax_rate_obj else ZERO
            line_total, tax_amount, total = compute_line(
                line["quantity"], line["unit_price"], rate, line["discount"]
            )
            subtotal += line_total
            tax_total += tax_amount
            built.append(
                {
                    "item": item,
                    "account": account,
                    "description": description,
                    "quantity": line["quantity"],
                    "unit_price": line["unit_price"],
                    "discount_percentage": line["discount"],
                    "tax_rate": tax_rate_obj,
                    "line_total": line_total,
                    "tax_amount": tax_amount,
                    "total": total,
                    "line_order": order,
                }
            )
        return built, subtotal, tax_total


class InvoicePoster(DocumentWriter):
    """
    Create an invoice and its accrual journal entry as one unit.

    Journal produced (always in this order):
      Debit  receivable = invoice.total
      Credit revenue    = invoice.subtotal
      Credit sales tax  = invoice.tax_total (only when tax_total > 0)
    """

    def create(self, contact_id, items, invoice_date, due_date, invoice_number=None,
               notes="", terms="", user=None):
        # Validate input before touching the database
        if not contact_id:
            raise ValidationError({"contact_id": "This field is required."})
        invoice_date = to_date(invoice_date, "invoice_date")
        due_date = to_date(due_date, "due_date")
        cleaned = clean_lines(items)

        try:
            with transaction.atomic(using=self.using):
                invoice, journal = self._write(
                    contact_id, cleaned, invoice_date, due_date,
                    (invoice_number or "").strip(), notes or "", terms or "", user,
                )
        except DatabaseError as exc:
            # atomic() has already rolled everything back
            logger.warning(
                "Invoice creation rolled back",
                extra={"organization_id": self.organization.pk, "error": str(exc)},
            )
            raise PersistenceError("Could not save invoice") from exc

        logger.info(
            "Invoice created",
            extra={
                "organization_id": self.organization.pk,
                "invoice_id": invoice.pk,
                "invoice_number": invoice.invoice_number,
                "journal_entry_id": journal.pk,
                "total": str(invoice.total),
            },
        )
        return invoice

    def update(self, invoice_id, contact_id=None, items=None, invoice_date=None,
               due_date=None, notes=None, terms=None, user=None):
        """Edit a draft invoice.

        Fields left as None keep their value. Passing items replaces every
        line, and the accrual journal is rebuilt from the new totals.
        """
        invoice_date = to_date(invoice_date, "invoice_date") if invoice_date else None
        due_date = to_date(due_date, "due_date") if due_date else None
        cleaned = clean_lines(items) if items is not None else None

        try:
            with transaction.atomic(using=self.using):
                invoice = Invoice.objects.db_manager(self.using).get_for_organization(
                    self.organization, invoice_id, for_update=True
                )
                if invoice.status != InvoiceStatus.DRAFT:
                    raise ConflictError("Only draft invoices can be edited.")

                if contact_id:
                    invoice.contact = self._get(Contact, contact_id)
                if invoice_date:
                    invoice.invoice_date = invoice_date
                if due_date:
                    invoice.due_date = due_date
                if notes is not None:
                    invoice.notes = notes
                if terms is not None:
                    invoice.terms = terms

                revenue = role_account(self.organization, AccountRole.REVENUE, self.using)
                if cleaned is not None:
                    lines, subtotal, tax_total = self._build_lines(cleaned, default_account=revenue)
                    invoice.line_items.all().delete()
                    invoice.subtotal = subtotal
                    invoice.tax_total = tax_total
                    invoice.total = subtotal + tax_total
                invoice.save(using=self.using)
                if cleaned is not None:
                    for line in lines:
                        InvoiceLineItem(invoice=invoice, **line).save(using=self.using)

                # Dates, contact and amounts all feed the journal, so rebuild it
                JournalEntry.objects.db_manager(self.using).filter(
                    organization=self.organization,
                    reference_type="invoice",
                    reference_id=invoice.pk,
                ).delete()
                receivable = role_account(self.organization, AccountRole.RECEIVABLE, self.using)
                sales_tax = (
                    role_account(self.organization, AccountRole.SALES_TAX, self.using)
                    if invoice.tax_total > 0
                    else None
                )
                journal = self._post_journal(
                    invoice, invoice.contact, receivable, revenue, sales_tax, user
                )
        except DatabaseError as exc:
            logger.warning(
                "Invoice update rolled back",
                extra={"organization_id": self.organization.pk, "invoice_id": invoice_id,
                       "error": str(exc)},
            )
            raise PersistenceError("Could not update invoice") from exc

        logger.info(
            "Invoice updated",
            extra={
                "organization_id": self.organization.pk,
                "invoice_id": invoice.pk,
                "journal_entry_id": journal.pk,
                "total": str(invoice.total),
            },
        )
        return invoice

    def _write(self, contact_id, cleaned, invoice_date, due_date, invoice_number,
               notes, terms, user):
        contact = self._get(Contact, contact_id)
        receivable = role_account(self.organization, AccountRole.RECEIVABLE, self.using)
        revenue = role_account(self.organization, AccountRole.REVENUE, self.using)

        lines, subtotal, tax_total = self._build_lines(cleaned, default_account=revenue)
        sales_tax = (
            role_account(self.organization, AccountRole.SALES_TAX, self.using)
            if tax_total > 0
            else None
        )

        invoices = Invoice.objects.db_manager(self.using).for_organization(self.organization)
        if not invoice_number:
            self._lock_organization()
            invoice_number = next_document_number(invoices, "invoice_number", "INV")
        elif ledger_setting("LEDGER_UNIQUE_INVOICE_NUMBERS"):
            self._lock_organization()
            if invoices.filter(invoice_number=invoice_number).exists():
                raise ValidationError(
                    {"invoice_number": f"Invoice number {invoice_number} is already in use."}
                )

        invoice = Invoice(
            organization=self.organization,
            contact=contact,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            due_date=due_date,
            subtotal=subtotal,
            tax_total=tax_total,
            total=subtotal + tax_total,
            notes=notes,
            terms=terms,
            created_by=user,
        )
        invoice.save(using=self.using)  # always created as draft

        # One insert per line; any failure aborts the whole invoice
        for line in lines:
            InvoiceLineItem(invoice=invoice, **line).save(using=self.using)

        journal = self._post_journal(invoice, contact, receivable, revenue, sales_tax, user)
        return invoice, journal

    def _post_journal(self, invoice, contact, receivable, revenue, sales_tax, user):
        number = invoice.invoice_number
        journal = JournalEntry(
            organization=self.organization,
            transaction_date=invoice.invoice_date,
            description=f"Invoice {number}",
            reference_type="invoice",
            reference_id=invoice.pk,
            created_by=user,
        )
        journal.save(using=self.using)

        postings = [
            (receivable, invoice.total, ZERO, f"Invoice {number} - {contact.name or 'Customer'}"),
            (revenue, ZERO, invoice.subtotal, f"Revenue from Invoice {number}"),
        ]
        if invoice.tax_total > 0:
            postings.append((sales_tax, ZERO, invoice.tax_total, f"Sales tax for Invoice {number}"))

        for account, debit, credit, description in postings:
            JournalEntryLine(
                journal_entry=journal,
                account=account,
                debit=debit,
                credit=credit,
                description=description,
            ).save(using=self.using)

        # Enforce double-entry rule before the transaction commits
        debit, credit = journal.compute_totals()
        if debit != credit:
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={debit}, credits={credit}"
            )
        return journal


class BillRecorder(DocumentWriter):
    """Record a supplier bill. Bills are not posted to the journal."""

    def create(self, contact_id, items, issue_date, due_date=None, bill_number=None,
               reference="", notes="", user=None):
        if not contact_id:
            raise ValidationError({"contact_id": "This field is required."})
        issue_date = to_date(issue_date, "issue_date")
        due_date = to_date(due_date, "due_date") if due_date else None
        cleaned = clean_lines(items)

        try:
            with transaction.atomic(using=self.using):
                contact = self._get(Contact, contact_id)
                lines, subtotal, tax_total = self._build_lines(cleaned)

                bill_number = (bill_number or "").strip()
                if not bill_number:
                    self._lock_organization()
                    bills = Bill.objects.db_manager(self.using).for_organization(self.organization)
                    bill_number = next_document_number(bills, "bill_number", "BILL")

                bill = Bill(
                    organization=self.organization,
                    contact=contact,
                    bill_number=bill_number,
                    issue_date=issue_date,
                    due_date=due_date,
                    reference=reference or "",
                    subtotal=subtotal,
                    tax_total=tax_total,
                    total=subtotal + tax_total,
                    notes=notes or "",
                    created_by=user,
                )
                bill.save(using=self.using)
                for line in lines:
                    BillLineItem(bill=bill, **line).save(using=self.using)
        except DatabaseError as exc:
            logger.warning(
                "Bill creation rolled back",
                extra={"organization_id": self.organization.pk, "error": str(exc)},
            )
            raise PersistenceError("Could not save bill") from exc

        logger.info(
            "Bill created",
            extra={
                "organization_id": self.organization.pk,
                "bill_id": bill.pk,
                "bill_number": bill.bill_number,
                "total": str(bill.total),
            },
        )
        return bill

    def update(self, bill_id, contact_id=None, items=None, issue_date=None,
               due_date=None, reference=None, notes=None):
        issue_date = to_date(issue_date, "issue_date") if issue_date else None
        due_date = to_date(due_date, "due_date") if due_date else None
        cleaned = clean_lines(items) if items is not None else None

        try:
            with transaction.atomic(using=self.using):
                bill = Bill.objects.db_manager(self.using).get_for_organization(
                    self.organization, bill_id, for_update=True
                )
                if bill.status != BillStatus.DRAFT:
                    raise ConflictError("Only draft bills can be edited.")

                if contact_id:
                    bill.contact = self._get(Contact, contact_id)
                if issue_date:
                    bill.issue_date = issue_date
                if due_date:
                    bill.due_date = due_date
                if reference is not None:
                    bill.reference = reference
                if notes is not None:
                    bill.notes = notes

                if cleaned is not None:
                    lines, subtotal, tax_total = self._build_lines(cleaned)
                    bill.line_items.all().delete()
                    bill.subtotal = subtotal
                    bill.tax_total = tax_total
                    bill.total = subtotal + tax_total
                bill.save(using=self.using)
                if cleaned is not None:
                    for line in lines:
                        BillLineItem(bill=bill, **line).save(using=self.using)
        except DatabaseError as exc:
            logger.warning(
                "Bill update rolled back",
                extra={"organization_id": self.organization.pk, "bill_id": bill_id,
                       "error": str(exc)},
            )
            raise PersistenceError("Could not update bill") from exc

        logger.info(
            "Bill updated",
            extra={
                "organization_id": self.organization.pk,
                "bill_id": bill.pk,
                "total": str(bill.total),
            },
        )
        return bill


def create_invoice(organization, contact_id, items, invoice_date, due_date,
                   invoice_number=None, notes="", terms="", user=None,
                   using=DEFAULT_DB_ALIAS):
    return InvoicePoster(organization, using=using).create(
        contact_id, items, invoice_date, due_date,
        invoice_number=invoice_number, notes=notes, terms=terms, user=user,
    )


def create_bill(organization, contact_id, items, issue_date, due_date=None,
                bill_number=None, reference="", notes="", user=None,
                using=DEFAULT_DB_ALIAS):
    return BillRecorder(organization, using=using).create(
        contact_id, items, issue_date, due_date=due_date, bill_number=bill_number,
        reference=reference, notes=notes, user=user,
    )


def update_draft_invoice(organization, invoice_id, contact_id=None, items=None,
                         invoice_date=None, due_date=None, notes=None, terms=None,
                         user=None, using=DEFAULT_DB_ALIAS):
    return InvoicePoster(organization, using=using).update(
        invoice_id, contact_id=contact_id, items=items, invoice_date=invoice_date,
        due_date=due_date, notes=notes, terms=terms, user=user,
    )


def update_draft_bill(organization, bill_id, contact_id=None, items=None,
                      issue_date=None, due_date=None, reference=None, notes=None,
                      using=DEFAULT_DB_ALIAS):
    return BillRecorder(organization, using=using).update(
        bill_id, contact_id=contact_id, items=items, issue_date=issue_date,
        due_date=due_date, reference=reference, notes=notes,
    )
