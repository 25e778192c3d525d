import datetime
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ObjectDoesNotExist
from django.core.management import call_command
from django.test import RequestFactory, TestCase

from ledger_core.exceptions import NotFoundError
from ledger_core.middleware import SESSION_KEY, CurrentOrganizationMiddleware
from ledger_core.models import (Contact, Invoice, InvoiceStatus, Membership,
                                Organization)
from ledger_core.services import (ReportEngine, create_invoice,
                                  send_invoice)

from .base import LedgerFixtureMixin


class TenantIsolationTests(LedgerFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.other = self.make_organization("Other Co")
        self.inv_a = create_invoice(self.org, self.customer.pk, [self.consulting_line()],
                                    "2025-06-01", "2025-06-30")
        other_contact = Contact.objects.create(organization=self.other, name="Soylent")
        self.inv_b = create_invoice(
            self.other, other_contact.pk,
            [{"description": "Audit", "quantity": 1, "unit_price": "200"}],
            "2025-06-01", "2025-06-30",
        )

    def test_for_organization_returns_only_own_rows(self):
        self.assertListEqual(
            list(Invoice.objects.for_organization(self.org).values_list("pk", flat=True)),
            [self.inv_a.pk],
        )

    def test_other_organization_row_reads_as_missing(self):
        with self.assertRaises(NotFoundError):
            Invoice.objects.get_for_organization(self.other, self.inv_a.pk)
        with self.assertRaises(NotFoundError):
            Invoice.objects.get_for_organization(self.other, 999999)
        # Malformed ids read as missing too
        with self.assertRaises(ObjectDoesNotExist):
            Invoice.objects.get_for_organization(self.other, "abc")

    def test_cannot_transition_another_organizations_invoice(self):
        with self.assertRaises(NotFoundError):
            send_invoice(self.other, self.inv_a.pk)
        self.inv_a.refresh_from_db()
        self.assertEqual(self.inv_a.status, InvoiceStatus.DRAFT)

    def test_reports_only_see_own_documents(self):
        send_invoice(self.org, self.inv_a.pk)
        send_invoice(self.other, self.inv_b.pk)
        report = ReportEngine(self.other).profit_and_loss("2025-06-01", "2025-06-30")
        self.assertEqual(report["revenue"]["total"], Decimal("200.00"))
        aging = ReportEngine(self.other).aged_receivables("2025-06-30")
        self.assertEqual(aging["total_outstanding"], Decimal("200.00"))


class CurrentOrganizationMiddlewareTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.user = get_user_model().objects.create_user(username="alice", password="pw")
        self.org_a = Organization.objects.create(name="Alpha")
        self.org_b = Organization.objects.create(name="Beta")
        self.org_c = Organization.objects.create(name="Gamma")
        Membership.objects.create(user=self.user, organization=self.org_a)
        Membership.objects.create(user=self.user, organization=self.org_b, is_default=True)

    def run_middleware(self, user, session=None):
        request = self.factory.get("/")
        request.user = user
        request.session = session if session is not None else {}
        CurrentOrganizationMiddleware(lambda r: None).process_request(request)
        return request.organization

    def test_default_membership_used(self):
        self.assertEqual(self.run_middleware(self.user), self.org_b)

    def test_session_choice_wins(self):
        self.assertEqual(self.run_middleware(self.user, {SESSION_KEY: self.org_a.pk}), self.org_a)

    def test_session_pointing_at_foreign_organization_gives_none(self):
        self.assertIsNone(self.run_middleware(self.user, {SESSION_KEY: self.org_c.pk}))

    def test_inactive_membership_ignored(self):
        Membership.objects.filter(organization=self.org_b).update(is_active=False)
        self.assertEqual(self.run_middleware(self.user), self.org_a)

    def test_anonymous_user_has_no_organization(self):
        self.assertIsNone(self.run_middleware(AnonymousUser()))


@pytest.mark.django_db
def test_seed_chart_command_reports_created_accounts(capsys):
    organization = Organization.objects.create(name="Fresh Co")
    call_command("seed_chart_of_accounts", organization=organization.slug)
    assert "Created 18 accounts" in capsys.readouterr().out
    assert organization.account_set.count() == 18


@pytest.mark.django_db
def test_create_demo_tenant_command():
    call_command("create_demo_tenant", organization_name="Demo Co", username="demo")
    organization = Organization.objects.get(slug="demo-co")
    invoice = Invoice.objects.get(organization=organization)
    assert invoice.status == InvoiceStatus.SENT
    assert invoice.total == Decimal("1100.00")
    assert organization.memberships.get().user.username == "demo"
    assert invoice.invoice_date == datetime.date.today()
