import logging

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, transaction

from ..conf import ledger_setting
from ..exceptions import NotFoundError
from ..models import Account, AccountRole, AccountType, PostingAccount

logger = logging.getLogger(__name__)

# Starter chart of accounts for a new organization: (code, name, type)
DEFAULT_CHART = [
    ("1000", "Cash", AccountType.ASSET),
    ("1100", "Bank", AccountType.ASSET),
    ("1200", "Accounts Receivable", AccountType.ASSET),
    ("1500", "Equipment", AccountType.ASSET),
    ("2000", "Accounts Payable", AccountType.LIABILITY),
    ("2200", "Sales Tax Payable", AccountType.LIABILITY),
    ("2500", "Loans Payable", AccountType.LIABILITY),
    ("3000", "Owner's Equity", AccountType.EQUITY),
    ("3100", "Retained Earnings", AccountType.EQUITY),
    ("4000", "Sales Revenue", AccountType.REVENUE),
    ("4100", "Service Revenue", AccountType.REVENUE),
    ("4900", "Other Income", AccountType.OTHER_INCOME),
    ("5000", "Cost of Goods Sold", AccountType.COST_OF_GOODS_SOLD),
    ("6000", "Rent Expense", AccountType.EXPENSE),
    ("6100", "Utilities Expense", AccountType.EXPENSE),
    ("6200", "Office Supplies", AccountType.EXPENSE),
    ("6300", "Travel Expense", AccountType.EXPENSE),
    ("7000", "Other Expenses", AccountType.OTHER_EXPENSE),
]


def seed_chart_of_accounts(organization, using=DEFAULT_DB_ALIAS):
    """Create any missing default accounts; returns the number created."""
    created = 0
    with transaction.atomic(using=using):
        for code, name, ac_type in DEFAULT_CHART:
            _, was_created = Account.objects.db_manager(using).get_or_create(
                organization=organization,
                code=code,
                defaults={"name": name, "type": ac_type},
            )
            created += int(was_created)
    logger.info(
        "Seeded chart of accounts",
        extra={"organization_id": organization.pk, "accounts_created": created},
    )
    return created


def role_account(organization, role, using=DEFAULT_DB_ALIAS):
    """Resolve the account that fills `role` for this organization.

    An explicit PostingAccount row wins; otherwise the account whose code
    matches LEDGER_DEFAULT_ACCOUNT_CODES[role] is used.
    """
    mapping = (
        PostingAccount.objects.db_manager(using)
        .select_related("account")
        .filter(organization=organization, role=role)
        .first()
    )
    if mapping is not None:
        return mapping.account

    code = ledger_setting("LEDGER_DEFAULT_ACCOUNT_CODES").get(role)
    account = (
        Account.objects.db_manager(using)
        .filter(organization=organization, code=code)
        .first()
        if code
        else None
    )
    if account is None:
        raise NotFoundError(f"No account configured for role '{role}'")
    return account


def assign_role_account(organization, role, account_id, using=DEFAULT_DB_ALIAS):
    """Point `role` at another account of the same organization."""
    if role not in AccountRole.values:
        raise ValidationError({"role": f"Unknown posting role '{role}'."})
    account = Account.objects.db_manager(using).get_for_organization(organization, account_id)
    mapping, _ = PostingAccount.objects.db_manager(using).update_or_create(
        organization=organization, role=role, defaults={"account": account}
    )
    return mapping
