from django.conf import settings

# Values used when the project settings leave a LEDGER_* key out
DEFAULTS = {
    "LEDGER_DEFAULT_ACCOUNT_CODES": {
        "receivable": "1200",
        "revenue": "4000",
        "sales_tax": "2200",
        "payable": "2000",
        "retained_earnings": "3100",
    },
    "LEDGER_APPLY_LINE_DISCOUNT": False,
    "LEDGER_UNIQUE_INVOICE_NUMBERS": False,
    "LEDGER_INCOME_TAX_BRACKETS": [
        ("50000", "0.20"),
        ("100000", "0.25"),
        (None, "0.30"),
    ],
}


def ledger_setting(name):
    """Read a LEDGER_* setting, falling back to the app default."""
    return getattr(settings, name, DEFAULTS[name])
