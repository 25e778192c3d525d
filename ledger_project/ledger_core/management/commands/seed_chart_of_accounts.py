from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Organization
from ledger_core.services import seed_chart_of_accounts


class Command(BaseCommand):
    help = "Create the default chart of accounts for an organization (skips existing codes)."

    def add_arguments(self, parser):
        parser.add_argument("--organization", required=True, help="Organization slug.")

    def handle(self, *args, **options):
        slug = options["organization"]
        try:
            organization = Organization.objects.get(slug=slug)
        except Organization.DoesNotExist:
            raise CommandError(f"Organization '{slug}' does not exist") from None

        created = seed_chart_of_accounts(organization)
        self.stdout.write(self.style.SUCCESS(f"Created {created} accounts for {organization}"))
