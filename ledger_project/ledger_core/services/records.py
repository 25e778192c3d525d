import logging

from django.core.exceptions import ValidationError
from django.db import DEFAULT_DB_ALIAS, transaction

from ..models import Account, Contact, ContactType, TaxRate, TaxRateType
from .validation import to_decimal

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("name", "type", "email", "phone", "address", "tax_number", "contact_person", "is_active")
TAX_RATE_FIELDS = ("name", "rate", "type", "is_active")
ACCOUNT_FIELDS = ("code", "name", "type", "description", "is_active")


def _apply(obj, fields, data):
    unknown = set(data) - set(fields)
    if unknown:
        raise ValidationError({name: "Unknown field." for name in sorted(unknown)})
    for name, value in data.items():
        setattr(obj, name, value)


# ----------------------------
# Contacts
# ----------------------------
def create_contact(organization, using=DEFAULT_DB_ALIAS, **data):
    if not (data.get("name") or "").strip():
        raise ValidationError({"name": "This field is required."})
    data.setdefault("type", ContactType.CUSTOMER)
    contact = Contact(organization=organization)
    _apply(contact, CONTACT_FIELDS, data)
    contact.save(using=using)
    return contact


def update_contact(organization, contact_id, using=DEFAULT_DB_ALIAS, **data):
    contact = Contact.objects.db_manager(using).get_for_organization(organization, contact_id)
    _apply(contact, CONTACT_FIELDS, data)
    contact.save(using=using)
    return contact


def delete_contact(organization, contact_id, using=DEFAULT_DB_ALIAS):
    """Hard delete; refused while invoices, bills or payments reference the contact."""
    with transaction.atomic(using=using):
        contact = Contact.objects.db_manager(using).get_for_organization(
            organization, contact_id, for_update=True
        )
        contact.delete(using=using)
    logger.info("Contact deleted", extra={"organization_id": organization.pk, "contact_id": contact_id})


# ----------------------------
# Tax rates
# ----------------------------
def create_tax_rate(organization, name, rate, type=TaxRateType.BOTH, is_active=True,
                    using=DEFAULT_DB_ALIAS):
    tax_rate = TaxRate(
        organization=organization,
        name=name,
        rate=to_decimal(rate, "rate"),
        type=type,
        is_active=is_active,
    )
    tax_rate.save(using=using)
    return tax_rate


def update_tax_rate(organization, tax_rate_id, using=DEFAULT_DB_ALIAS, **data):
    tax_rate = TaxRate.objects.db_manager(using).get_for_organization(organization, tax_rate_id)
    if "rate" in data:
        data["rate"] = to_decimal(data["rate"], "rate")
    _apply(tax_rate, TAX_RATE_FIELDS, data)
    tax_rate.save(using=using)
    return tax_rate


def delete_tax_rate(organization, tax_rate_id, using=DEFAULT_DB_ALIAS):
    """Hard delete; refused while any invoice or bill line uses the rate."""
    with transaction.atomic(using=using):
        tax_rate = TaxRate.objects.db_manager(using).get_for_organization(
            organization, tax_rate_id, for_update=True
        )
        tax_rate.delete(using=using)


# ----------------------------
# Chart of accounts
# ----------------------------
def create_account(organization, code, name, type, description="", using=DEFAULT_DB_ALIAS):
    account = Account(
        organization=organization, code=code, name=name, type=type, description=description
    )
    account.save(using=using)  # full_clean() rejects a duplicate code
    return account


def update_account(organization, account_id, using=DEFAULT_DB_ALIAS, **data):
    account = Account.objects.db_manager(using).get_for_organization(organization, account_id)
    _apply(account, ACCOUNT_FIELDS, data)
    account.save(using=using)  # code is frozen once journal lines exist
    return account


def delete_account(organization, account_id, using=DEFAULT_DB_ALIAS):
    with transaction.atomic(using=using):
        account = Account.objects.db_manager(using).get_for_organization(
            organization, account_id, for_update=True
        )
        account.delete(using=using)
