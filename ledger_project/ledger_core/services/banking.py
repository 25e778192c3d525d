import logging

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, transaction

from ..models import (Account, AccountType, BankAccount, BankTransaction,
                      BankTransactionType, Contact)
from .records import _apply
from .validation import ZERO, money, to_date, to_decimal

logger = logging.getLogger(__name__)

BANK_ACCOUNT_FIELDS = ("name", "bank_name", "account_number_masked", "is_active")
BANK_TRANSACTION_FIELDS = (
    "date", "amount", "type", "description", "reference", "payee", "contact_id", "is_reconciled",
)


def _check_type(type):
    if type not in BankTransactionType.values:
        raise ValidationError({"type": "Must be 'credit' or 'debit'."})


def _clean_amount(amount):
    amount = money(to_decimal(amount, "amount"))
    if amount < 0:
        raise ValidationError({"amount": "Amount cannot be negative; use the type for direction."})
    return amount


def create_bank_account(organization, name, code, opening_balance=ZERO, opening_date=None,
                        bank_name="", account_number_masked="", currency_code=None,
                        using=DEFAULT_DB_ALIAS):
    """
    Open a bank account together with its asset account in the chart.

    A non-zero opening balance is written as a first, already reconciled
    transaction: credit when positive, debit when negative.
    """
    opening_balance = money(to_decimal(opening_balance, "opening_balance", default=ZERO))
    if opening_balance != ZERO:
        opening_date = to_date(opening_date, "opening_date")

    with transaction.atomic(using=using):
        ledger_account = Account(
            organization=organization,
            code=code,
            name=name,
            type=AccountType.ASSET,
            description=f"Bank account: {bank_name or name}",
        )
        ledger_account.save(using=using)

        bank_account = BankAccount.objects.db_manager(using).create(
            organization=organization,
            ledger_account=ledger_account,
            name=name,
            bank_name=bank_name or "",
            account_number_masked=account_number_masked or "",
            currency_code=currency_code or organization.currency_code,
        )

        if opening_balance != ZERO:
            BankTransaction(
                organization=organization,
                bank_account=bank_account,
                date=opening_date,
                amount=abs(opening_balance),
                type=(
                    BankTransactionType.CREDIT
                    if opening_balance > 0
                    else BankTransactionType.DEBIT
                ),
                description="Opening balance",
                is_reconciled=True,
            ).save(using=using)

    logger.info(
        "Bank account opened",
        extra={"organization_id": organization.pk, "bank_account_id": bank_account.pk},
    )
    return bank_account


def record_bank_transaction(organization, bank_account_id, date, amount, type,
                            description="", reference="", payee="", contact_id=None,
                            using=DEFAULT_DB_ALIAS):
    _check_type(type)
    amount = _clean_amount(amount)

    bank_account = BankAccount.objects.db_manager(using).get_for_organization(organization, bank_account_id)
    contact = (
        Contact.objects.db_manager(using).get_for_organization(organization, contact_id)
        if contact_id
        else None
    )
    tx = BankTransaction(
        organization=organization,
        bank_account=bank_account,
        date=to_date(date, "date"),
        amount=amount,
        type=type,
        description=description or "",
        reference=reference or "",
        payee=payee or "",
        contact=contact,
    )
    tx.save(using=using)
    return tx


def reconcile_transactions(organization, transaction_ids, reconciled=True, using=DEFAULT_DB_ALIAS):
    """Flag many transactions at once; ids from other organizations are ignored."""
    if not transaction_ids:
        raise ValidationError({"transaction_ids": "Provide at least one transaction id."})
    updated = (
        BankTransaction.objects.db_manager(using)
        .for_organization(organization)
        .filter(pk__in=transaction_ids)
        .update(is_reconciled=reconciled)
    )
    logger.info(
        "Bank transactions reconciled",
        extra={"organization_id": organization.pk, "updated": updated, "reconciled": reconciled},
    )
    return updated


def delete_bank_account(organization, bank_account_id, using=DEFAULT_DB_ALIAS):
    """Hard delete; refused once the account has transactions."""
    with transaction.atomic(using=using):
        bank_account = BankAccount.objects.db_manager(using).get_for_organization(
            organization, bank_account_id, for_update=True
        )
        ledger_account = bank_account.ledger_account
        bank_account.delete(using=using)
        # The asset account goes too unless the ledger already uses it
        if not ledger_account.is_in_use():
            ledger_account.delete(using=using)


def update_bank_account(organization, bank_account_id, using=DEFAULT_DB_ALIAS, **data):
    """Rename or deactivate; the linked asset account keeps the same name."""
    if "name" in data and not (data["name"] or "").strip():
        raise ValidationError({"name": "This field is required."})

    with transaction.atomic(using=using):
        bank_account = BankAccount.objects.db_manager(using).get_for_organization(
            organization, bank_account_id, for_update=True
        )
        _apply(bank_account, BANK_ACCOUNT_FIELDS, data)
        bank_account.save(using=using)
        if "name" in data:
            ledger_account = bank_account.ledger_account
            ledger_account.name = bank_account.name
            ledger_account.save(using=using)
    return bank_account


def update_bank_transaction(organization, transaction_id, using=DEFAULT_DB_ALIAS, **data):
    if "type" in data:
        _check_type(data["type"])
    if "amount" in data:
        data["amount"] = _clean_amount(data["amount"])
    if "date" in data:
        data["date"] = to_date(data["date"], "date")

    with transaction.atomic(using=using):
        tx = BankTransaction.objects.db_manager(using).get_for_organization(
            organization, transaction_id, for_update=True
        )
        if data.get("contact_id"):
            # Resolved only to prove the contact is ours
            Contact.objects.db_manager(using).get_for_organization(organization, data["contact_id"])
        _apply(tx, BANK_TRANSACTION_FIELDS, data)
        tx.save(using=using)
    return tx


def delete_bank_transaction(organization, transaction_id, using=DEFAULT_DB_ALIAS):
    tx = BankTransaction.objects.db_manager(using).get_for_organization(organization, transaction_id)
    tx.delete(using=using)
    logger.info(
        "Bank transaction deleted",
        extra={"organization_id": organization.pk, "transaction_id": transaction_id},
    )
