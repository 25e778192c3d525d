import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

from ..conf import ledger_setting

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def money(value) -> Decimal:
    """Round to cents, half away from zero."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value, field, default=None) -> Decimal:
    """Coerce numeric input (int, str, Decimal) to Decimal.

    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None or value == "":
        if default is not None:
            return Decimal(default)
        raise ValidationError({field: "This field is required."})
    if isinstance(value, bool):
        raise ValidationError({field: "Must be a number."})
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: "Must be a number."}) from None
    if not result.is_finite():
        raise ValidationError({field: "Must be a finite number."})
    return result


def to_date(value, field) -> datetime.date:
    """Accept a date or an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not value:
        raise ValidationError({field: "This field is required."})
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError({field: "Enter a valid date (YYYY-MM-DD)."}) from None


# ------------------------------------
# Line arithmetic shared by invoices and bills
# ------------------------------------
def compute_line(quantity, unit_price, tax_rate=ZERO, discount=ZERO):
    """Return (line_total, tax_amount, total) for one line.

    line_total = quantity * unit_price
    tax_amount = line_total * tax_rate / 100
    total      = line_total + tax_amount

    Each amount is rounded to cents here, so document totals built by
    summing lines always add up exactly.
    """
    gross = quantity * unit_price
    # Discount is stored on the line but only deducted when switched on
    if ledger_setting("LEDGER_APPLY_LINE_DISCOUNT") and discount:
        gross = gross * (HUNDRED - discount) / HUNDRED
    line_total = money(gross)
    tax_amount = money(line_total * tax_rate / HUNDRED)
    return line_total, tax_amount, line_total + tax_amount


def clean_line_input(raw, index):
    """Validate one submitted line mapping; returns a normalized dict."""
    if not isinstance(raw, dict):
        raise ValidationError({"items": f"Line {index + 1} must be an object."})

    prefix = f"items[{index}]"
    quantity = to_decimal(raw.get("quantity"), f"{prefix}.quantity")
    unit_price = to_decimal(raw.get("unit_price"), f"{prefix}.unit_price")
    # Left as None when omitted so a referenced TaxRate can supply it
    tax_rate = (
        None
        if raw.get("tax_rate") in (None, "")
        else to_decimal(raw.get("tax_rate"), f"{prefix}.tax_rate")
    )
    discount = to_decimal(raw.get("discount"), f"{prefix}.discount", default=ZERO)

    if quantity < 0:
        raise ValidationError({f"{prefix}.quantity": "Cannot be negative."})
    if unit_price < 0:
        raise ValidationError({f"{prefix}.unit_price": "Cannot be negative."})
    if tax_rate is not None and tax_rate < 0:
        raise ValidationError({f"{prefix}.tax_rate": "Cannot be negative."})
    if not ZERO <= discount <= HUNDRED:
        raise ValidationError({f"{prefix}.discount": "Must be between 0 and 100."})

    return {
        "description": str(raw.get("description") or "").strip(),
        "quantity": quantity,
        "unit_price": unit_price,
        "tax_rate": tax_rate,
        "discount": discount,
        "item_id": raw.get("item_id"),
        "tax_rate_id": raw.get("tax_rate_id"),
        "account_id": raw.get("account_id"),
    }


def clean_lines(items):
    if not items or not isinstance(items, (list, tuple)):
        raise ValidationError({"items": "At least one line item is required."})
    return [clean_line_input(raw, i) for i, raw in enumerate(items)]
