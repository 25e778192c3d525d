import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from ledger_core.models import Contact, ContactType, Membership, MembershipRole, Organization
from ledger_core.services import (create_bank_account, create_invoice,
                                  create_tax_rate, seed_chart_of_accounts,
                                  send_invoice)

User = get_user_model()


class Command(BaseCommand):
    help = "Create a demo organization, user, and sample ledger data for testing."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--organization-name",
            default="Demo Company",
            help="Name of the demo organization to create.",
        )
        parser.add_argument("--username", default="demo", help="Username for the demo user.")
        parser.add_argument("--password", default="demo123", help="Password for the demo user.")

    @transaction.atomic
    def handle(self, *args, **options):
        name = options["organization_name"]
        username = options["username"]
        password = options["password"]

        # 1. Organization (slug is generated and de-duplicated on save)
        organization = Organization.objects.create(name=name)
        self.stdout.write(self.style.SUCCESS(f"Created organization: {organization} ({organization.slug})"))

        # 2. User + membership
        user, created = User.objects.get_or_create(
            username=username, defaults={"email": f"{username}@example.com"}
        )
        if created:
            user.set_password(password)
            user.save()
        Membership.objects.create(
            user=user,
            organization=organization,
            role=MembershipRole.OWNER,
            # first organization of this user becomes the default
            is_default=not Membership.objects.filter(user=user, is_default=True).exists(),
        )
        self.stdout.write(self.style.SUCCESS(f"Created user: {user.username} (pw={password})"))

        # 3. Chart of accounts
        count = seed_chart_of_accounts(organization)
        self.stdout.write(self.style.SUCCESS(f"Created {count} accounts"))

        # 4. Customer, tax rate and an issued invoice
        customer = Contact.objects.create(
            organization=organization,
            name=f"{name} Customer",
            type=ContactType.CUSTOMER,
            email="customer@example.com",
        )
        vat = create_tax_rate(organization, "Standard VAT", Decimal("10"))
        today = datetime.date.today()
        invoice = create_invoice(
            organization,
            contact_id=customer.pk,
            items=[
                {
                    "description": "Consulting",
                    "quantity": Decimal("10"),
                    "unit_price": Decimal("100"),
                    "tax_rate": vat.rate,
                    "tax_rate_id": vat.pk,
                }
            ],
            invoice_date=today,
            due_date=today + datetime.timedelta(days=30),
            user=user,
        )
        send_invoice(organization, invoice.pk)
        self.stdout.write(self.style.SUCCESS(f"Created invoice: {invoice.invoice_number} total={invoice.total}"))

        # 5. Bank account with an opening balance
        bank = create_bank_account(
            organization,
            name="Operating Account",
            code="1110",
            opening_balance=Decimal("5000.00"),
            opening_date=today,
            bank_name="Demo Bank",
        )
        self.stdout.write(self.style.SUCCESS(f"Created bank account: {bank} balance={bank.balance()}"))
