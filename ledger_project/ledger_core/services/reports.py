"""
Read-only financial reports for one organization.

Every method is a pure function of (organization, dates) over the
stored rows: it never writes, orders every list explicitly and works in
Decimal throughout, so running it twice against unchanged data returns
equal output.
"""
import calendar
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..conf import ledger_setting
from ..exceptions import NotFoundError
from ..models import (EXPENSE_TYPES, REVENUE_TYPES, Account, AccountRole,
                      AccountType, BankAccount, BankTransaction,
                      Bill, BillLineItem, BillStatus,
                      Invoice, InvoiceLineItem, InvoiceStatus, TaxRateType)
from .chart import role_account
from .validation import ZERO, money, to_date

HUNDRED = Decimal("100")

# Aging buckets: (key, lowest days overdue, highest days overdue)
AGING_BUCKETS = [
    ("current", None, 0),
    ("days_1_30", 1, 30),
    ("days_31_60", 31, 60),
    ("days_61_90", 61, 90),
    ("over_90", 91, None),
]

# Bank transaction description keywords -> cash flow section.
# Checked in order; anything unmatched is operating.
CASH_FLOW_KEYWORDS = [
    ("operating", ("invoice", "payment")),
    ("financing", ("loan", "investment")),
    ("investing", ("equipment", "asset")),
]

SALES_RATE_TYPES = (TaxRateType.SALES, TaxRateType.BOTH)
PURCHASE_RATE_TYPES = (TaxRateType.PURCHASE, TaxRateType.BOTH)
# Invoices that were never issued, or were voided, owe nothing on any date
UNISSUED_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)
OUTSTANDING_BILL_STATUSES = (BillStatus.APPROVED, BillStatus.OVERDUE)


def percentage(part, whole):
    """part / whole * 100 rounded to 2 places; 0 when whole <= 0."""
    if whole <= 0:
        return ZERO
    return money(part / whole * HUNDRED)


def aging_bucket(days_overdue):
    for key, low, high in AGING_BUCKETS:
        if (low is None or days_overdue >= low) and (high is None or days_overdue <= high):
            return key
    raise ValueError(days_overdue)  # unreachable: buckets cover every integer


def progressive_tax(taxable_income, brackets=None):
    """Tax owed under marginal brackets [(upper bound or None, rate), ...]."""
    if brackets is None:
        brackets = ledger_setting("LEDGER_INCOME_TAX_BRACKETS")
    if taxable_income <= 0:
        return ZERO
    tax = ZERO
    lower = ZERO
    for upper, rate in brackets:
        upper = Decimal(upper) if upper is not None else None
        if upper is None or taxable_income <= upper:
            tax += (taxable_income - lower) * Decimal(rate)
            break
        tax += (upper - lower) * Decimal(rate)
        lower = upper
    return money(tax)


def _date_range(start, end):
    start = to_date(start, "start_date")
    end = to_date(end, "end_date")
    if start > end:
        raise ValidationError({"start_date": "start_date must not be after end_date."})
    return start, end


_DEC = DecimalField(max_digits=30, decimal_places=4)
# quantity * unit_price before tax
_GROSS = ExpressionWrapper(F("quantity") * F("unit_price"), output_field=_DEC)


def _sum(qs, expr):
    return money(qs.aggregate(total=Coalesce(Sum(expr), ZERO, output_field=_DEC))["total"])


class ReportEngine:
    def __init__(self, organization, using=DEFAULT_DB_ALIAS):
        self.organization = organization
        self.using = using

    # ----------------------------
    # Base querysets
    # ----------------------------
    def _invoice_lines(self):
        return InvoiceLineItem.objects.using(self.using).filter(
            invoice__organization=self.organization
        )

    def _bill_lines(self):
        return BillLineItem.objects.using(self.using).filter(bill__organization=self.organization)

    def _role_account(self, role):
        # Reports degrade gracefully when a role has no account
        try:
            return role_account(self.organization, role, self.using)
        except NotFoundError:
            return None

    # ----------------------------
    # Profit & loss
    # ----------------------------
    def profit_and_loss(self, start, end):
        start, end = _date_range(start, end)

        revenue_rows = self._grouped_by_account(
            self._invoice_lines()
            .exclude(invoice__status=InvoiceStatus.DRAFT)
            .filter(
                invoice__invoice_date__range=(start, end),
                account__type__in=REVENUE_TYPES,
            )
        )
        expense_rows = self._grouped_by_account(
            self._bill_lines()
            .exclude(bill__status=BillStatus.DRAFT)
            .filter(
                bill__issue_date__range=(start, end),
                account__type__in=EXPENSE_TYPES,
            )
        )

        revenue_total = sum((r["amount"] for r in revenue_rows), ZERO)
        expense_total = sum((r["amount"] for r in expense_rows), ZERO)
        net_profit = revenue_total - expense_total
        return {
            "start_date": start,
            "end_date": end,
            "revenue": {"accounts": revenue_rows, "total": revenue_total},
            "expenses": {"accounts": expense_rows, "total": expense_total},
            "net_profit": net_profit,
            "profit_margin": percentage(net_profit, revenue_total),
        }

    @staticmethod
    def _grouped_by_account(lines):
        # Line amount includes its tax
        rows = (
            lines.values("account_id", "account__code", "account__name", "account__type")
            .annotate(amount=Sum("total"))
            .order_by("account__code", "account_id")
        )
        return [
            {
                "account_id": row["account_id"],
                "code": row["account__code"],
                "name": row["account__name"],
                "type": row["account__type"],
                "amount": money(row["amount"] or ZERO),
            }
            for row in rows
        ]

    # ----------------------------
    # Balance sheet
    # ----------------------------
    def balance_sheet(self, as_of=None):
        as_of = to_date(as_of, "as_of") if as_of else timezone.localdate()
        receivable = self._role_account(AccountRole.RECEIVABLE)
        payable = self._role_account(AccountRole.PAYABLE)
        retained = self._role_account(AccountRole.RETAINED_EARNINGS)

        # Bank balances by ledger account
        bank_balances = {}
        bank_accounts = (
            BankAccount.objects.using(self.using)
            .for_organization(self.organization)
            .order_by("id")
        )
        for bank in bank_accounts:
            bank_balances[bank.ledger_account_id] = (
                bank_balances.get(bank.ledger_account_id, ZERO) + bank.balance(as_of)
            )

        accounts = (
            Account.objects.using(self.using)
            .active(self.organization)
            .filter(type__in=(AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY))
            .order_by("code", "id")
        )
        sections = {AccountType.ASSET: [], AccountType.LIABILITY: [], AccountType.EQUITY: []}
        for account in accounts:
            sections[account.type].append(account)

        asset_rows = []
        for account in sections[AccountType.ASSET]:
            if account.pk in bank_balances:
                balance = bank_balances[account.pk]
            elif receivable is not None and account.pk == receivable.pk:
                balance = self._receivables_balance(as_of)
            else:
                balance = ZERO
            asset_rows.append(self._row(account, balance))
        total_assets = sum((r["balance"] for r in asset_rows), ZERO)

        liability_rows = []
        for account in sections[AccountType.LIABILITY]:
            if payable is not None and account.pk == payable.pk:
                balance = self._payables_balance(as_of)
            else:
                balance = ZERO
            liability_rows.append(self._row(account, balance))
        total_liabilities = sum((r["balance"] for r in liability_rows), ZERO)

        # Retained earnings absorbs the difference
        equity_rows = []
        for account in sections[AccountType.EQUITY]:
            if retained is not None and account.pk == retained.pk:
                balance = total_assets - total_liabilities
            else:
                balance = ZERO
            equity_rows.append(self._row(account, balance))
        total_equity = sum((r["balance"] for r in equity_rows), ZERO)

        return {
            "as_of_date": as_of,
            "assets": {"accounts": asset_rows, "total": total_assets},
            "liabilities": {"accounts": liability_rows, "total": total_liabilities},
            "equity": {"accounts": equity_rows, "total": total_equity},
            "total_liabilities_and_equity": total_liabilities + total_equity,
        }

    @staticmethod
    def _row(account, balance):
        return {
            "account_id": account.pk,
            "code": account.code,
            "name": account.name,
            "balance": money(balance),
        }

    def _receivables_balance(self, as_of):
        invoices = self._outstanding_invoices(as_of)
        return sum((inv.total - inv.paid for inv in invoices), ZERO)

    def _payables_balance(self, as_of):
        bills = (
            Bill.objects.using(self.using)
            .for_organization(self.organization)
            .filter(status__in=OUTSTANDING_BILL_STATUSES, issue_date__lte=as_of)
        )
        return _sum(bills, "total")

    def _outstanding_invoices(self, as_of):
        """Issued invoices with money still owed on `as_of`.

        Only payments dated on or before `as_of` count, so an invoice
        settled later still shows as owed; `paid` is annotated per row.
        """
        paid_by_then = Q(allocations__payment__payment_date__lte=as_of)
        return (
            Invoice.objects.using(self.using)
            .for_organization(self.organization)
            .exclude(status__in=UNISSUED_INVOICE_STATUSES)
            .filter(invoice_date__lte=as_of)
            .annotate(
                paid=Coalesce(Sum("allocations__amount", filter=paid_by_then), ZERO, output_field=_DEC)
            )
            .filter(total__gt=F("paid"))
            .select_related("contact")
        )

    # ----------------------------
    # Cash flow
    # ----------------------------
    def cash_flow(self, start, end):
        start, end = _date_range(start, end)
        sections = {"operating": [], "investing": [], "financing": []}
        transactions = (
            BankTransaction.objects.using(self.using)
            .for_organization(self.organization)
            .filter(date__range=(start, end))
            .select_related("contact")
            .order_by("-date", "-id")
        )
        for tx in transactions:
            sections[self.classify_cash_flow(tx.description)].append(
                {
                    "id": tx.pk,
                    "date": tx.date,
                    "description": tx.description,
                    "type": tx.type,
                    "amount": tx.amount,
                    "signed_amount": tx.signed_amount,
                    "contact_name": tx.contact.name if tx.contact else None,
                }
            )

        result = {"start_date": start, "end_date": end}
        net = ZERO
        for key in ("operating", "investing", "financing"):
            total = sum((t["signed_amount"] for t in sections[key]), ZERO)
            result[f"{key}_activities"] = {"transactions": sections[key], "total": total}
            net += total
        result["net_cash_flow"] = net
        return result

    @staticmethod
    def classify_cash_flow(description):
        text = (description or "").lower()
        for section, keywords in CASH_FLOW_KEYWORDS:
            if any(word in text for word in keywords):
                return section
        return "operating"

    # ----------------------------
    # Aging
    # ----------------------------
    def aged_receivables(self, as_of=None):
        as_of = to_date(as_of, "as_of") if as_of else timezone.localdate()
        documents = [
            {
                "id": inv.pk,
                "number": inv.invoice_number,
                "contact_id": inv.contact_id,
                "contact_name": inv.contact.name,
                "issue_date": inv.invoice_date,
                "due_date": inv.due_date,
                "days_overdue": (as_of - inv.due_date).days,
                "amount_due": money(inv.total - inv.paid),
            }
            for inv in self._outstanding_invoices(as_of).order_by("due_date", "id")
        ]
        return self._age(as_of, documents, "invoices")

    def aged_payables(self, as_of=None):
        as_of = to_date(as_of, "as_of") if as_of else timezone.localdate()
        bills = (
            Bill.objects.using(self.using)
            .for_organization(self.organization)
            .filter(status__in=OUTSTANDING_BILL_STATUSES, issue_date__lte=as_of)
            .select_related("contact")
            .order_by("due_date", "issue_date", "id")
        )
        documents = [
            {
                "id": bill.pk,
                "number": bill.bill_number,
                "contact_id": bill.contact_id,
                "contact_name": bill.contact.name,
                "issue_date": bill.issue_date,
                "due_date": bill.due_date,
                # Bills without a due date age from their issue date
                "days_overdue": (as_of - (bill.due_date or bill.issue_date)).days,
                "amount_due": money(bill.amount_due()),
            }
            for bill in bills
        ]
        return self._age(as_of, documents, "bills")

    @staticmethod
    def _age(as_of, documents, label):
        """Place each document with a positive balance into exactly one bucket."""
        buckets = {key: {label: [], "total": ZERO} for key, _, _ in AGING_BUCKETS}
        by_contact = {}
        for doc in documents:
            if doc["amount_due"] <= 0:
                continue
            key = aging_bucket(doc["days_overdue"])
            buckets[key][label].append(doc)
            buckets[key]["total"] += doc["amount_due"]

            row = by_contact.setdefault(
                doc["contact_id"],
                {
                    "contact_id": doc["contact_id"],
                    "contact_name": doc["contact_name"],
                    **{k: ZERO for k, _, _ in AGING_BUCKETS},
                    "total": ZERO,
                },
            )
            row[key] += doc["amount_due"]
            row["total"] += doc["amount_due"]

        result = {"as_of_date": as_of}
        result.update(buckets)
        result["contacts"] = sorted(
            by_contact.values(), key=lambda r: (r["contact_name"], r["contact_id"])
        )
        result["total_outstanding"] = sum((b["total"] for b in buckets.values()), ZERO)
        return result

    # ----------------------------
    # Tax
    # ----------------------------
    def sales_tax(self, start, end):
        start, end = _date_range(start, end)
        collected = self._tax_by_rate(
            self._invoice_lines()
            .exclude(invoice__status=InvoiceStatus.DRAFT)
            .filter(invoice__invoice_date__range=(start, end), tax_rate__type__in=SALES_RATE_TYPES),
            "invoice",
        )
        paid = self._tax_by_rate(
            self._bill_lines()
            .exclude(bill__status=BillStatus.DRAFT)
            .filter(bill__issue_date__range=(start, end), tax_rate__type__in=PURCHASE_RATE_TYPES),
            "bill",
        )
        total_collected = sum((r["tax_amount"] for r in collected), ZERO)
        total_paid = sum((r["tax_amount"] for r in paid), ZERO)
        return {
            "period": {"start_date": start, "end_date": end},
            "sales_tax": {"items": collected, "total": total_collected},
            "purchase_tax": {"items": paid, "total": total_paid},
            "summary": {
                "tax_collected": total_collected,
                "tax_paid": total_paid,
                "net_liability": total_collected - total_paid,
            },
        }

    @staticmethod
    def _tax_by_rate(lines, parent):
        rows = (
            lines.values("tax_rate_id", "tax_rate__name", "tax_rate__rate")
            .annotate(tax_amount=Sum("tax_amount"), document_count=Count(parent, distinct=True))
            .order_by("-tax_rate__rate", "tax_rate__name", "tax_rate_id")
        )
        return [
            {
                "tax_rate_id": row["tax_rate_id"],
                "tax_name": row["tax_rate__name"],
                "tax_rate": row["tax_rate__rate"],
                "tax_amount": money(row["tax_amount"] or ZERO),
                "document_count": row["document_count"],
            }
            for row in rows
        ]

    def income_tax(self, start, end):
        start, end = _date_range(start, end)
        invoice_lines = self._invoice_lines().exclude(invoice__status=InvoiceStatus.DRAFT).filter(
            invoice__invoice_date__range=(start, end)
        )
        bill_lines = self._bill_lines().exclude(bill__status=BillStatus.DRAFT).filter(
            bill__issue_date__range=(start, end)
        )
        gross_revenue = _sum(invoice_lines, _GROSS)
        total_expenses = _sum(bill_lines, _GROSS)
        taxable_income = gross_revenue - total_expenses
        estimated_tax = progressive_tax(taxable_income)
        return {
            "period": {"start_date": start, "end_date": end},
            "revenue": {
                "gross_revenue": gross_revenue,
                "sales_tax": _sum(invoice_lines, "tax_amount"),
            },
            "expenses": {
                "total_expenses": total_expenses,
                "purchase_tax": _sum(bill_lines, "tax_amount"),
            },
            "income_calculation": {
                "gross_revenue": gross_revenue,
                "deductible_expenses": total_expenses,
                "taxable_income": taxable_income,
                "estimated_income_tax": estimated_tax,
                "effective_tax_rate": percentage(estimated_tax, taxable_income),
            },
        }

    def tax_liability(self, today=None):
        """Sales tax owed for the month containing `today`, net of purchase tax."""
        today = to_date(today, "today") if today else timezone.localdate()
        first = today.replace(day=1)
        last = today.replace(day=calendar.monthrange(today.year, today.month)[1])

        collected = _sum(
            self._invoice_lines()
            .exclude(invoice__status=InvoiceStatus.DRAFT)
            .filter(invoice__invoice_date__range=(first, last), tax_rate__type__in=SALES_RATE_TYPES),
            "tax_amount",
        )
        paid = _sum(
            self._bill_lines()
            .exclude(bill__status=BillStatus.DRAFT)
            .filter(bill__issue_date__range=(first, last), tax_rate__type__in=PURCHASE_RATE_TYPES),
            "tax_amount",
        )
        liabilities = [
            {"tax_type": "Sales Tax", "amount": collected, "frequency": "Monthly", "due_date": last},
            {"tax_type": "Purchase Tax Credit", "amount": -paid, "frequency": "Monthly", "due_date": last},
        ]
        return {
            "current_period": today.strftime("%Y-%m"),
            "liabilities": liabilities,
            "total_liability": collected - paid,
            "next_filing_date": last,
        }

    def tax_audit_trail(self, start=None, end=None):
        """Every taxed invoice and bill line, newest first.

        Either bound may be left out for an open-ended range.
        """
        invoice_lines = self._invoice_lines().filter(tax_rate__type__in=SALES_RATE_TYPES)
        bill_lines = self._bill_lines().filter(tax_rate__type__in=PURCHASE_RATE_TYPES)
        period = None
        if start and end:
            start, end = _date_range(start, end)
        else:
            start = to_date(start, "start_date") if start else None
            end = to_date(end, "end_date") if end else None
        if start:
            invoice_lines = invoice_lines.filter(invoice__invoice_date__gte=start)
            bill_lines = bill_lines.filter(bill__issue_date__gte=start)
        if end:
            invoice_lines = invoice_lines.filter(invoice__invoice_date__lte=end)
            bill_lines = bill_lines.filter(bill__issue_date__lte=end)
        if start or end:
            period = {"start_date": start, "end_date": end}

        trail = [
            {
                "transaction_type": "invoice",
                "transaction_id": line.invoice_id,
                "line_id": line.pk,
                "reference": line.invoice.invoice_number,
                "date": line.invoice.invoice_date,
                "contact_name": line.invoice.contact.name,
                "tax_name": line.tax_rate.name,
                "tax_rate": line.tax_rate.rate,
                "tax_amount": line.tax_amount,
                "status": line.invoice.status,
            }
            for line in invoice_lines.select_related("invoice__contact", "tax_rate")
        ] + [
            {
                "transaction_type": "bill",
                "transaction_id": line.bill_id,
                "line_id": line.pk,
                "reference": line.bill.bill_number,
                "date": line.bill.issue_date,
                "contact_name": line.bill.contact.name,
                "tax_name": line.tax_rate.name,
                "tax_rate": line.tax_rate.rate,
                "tax_amount": line.tax_amount,
                "status": line.bill.status,
            }
            for line in bill_lines.select_related("bill__contact", "tax_rate")
        ]
        # Newest first; ties broken by type and ids so order is stable
        trail.sort(
            key=lambda r: (r["date"], r["transaction_type"], r["transaction_id"], r["line_id"]),
            reverse=True,
        )
        return {"period": period, "total_transactions": len(trail), "transactions": trail}
