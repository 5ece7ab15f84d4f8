# deals/tests.py

from datetime import date, datetime, timezone as dt_timezone
from unittest import mock

from django.contrib.auth.models import Group, User
from django.core.exceptions import PermissionDenied
from django.http import Http404
from django.test import TestCase, override_settings
from django.urls import reverse

from core.models import AuditLog, CompanyProfile

from .models import Deal
from .permissions import can_access_deal, check_deal_access
from .services import QuotationService

JAN_15 = datetime(2024, 1, 15, 3, 0, tzinfo=dt_timezone.utc)


def allow_everyone(user, deal):
    return True


class BaseDealTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", password="pass")
        self.teammate = User.objects.create_user(username="teammate", password="pass")
        self.stranger = User.objects.create_user(username="stranger", password="pass")

        self.deal = Deal.objects.create(title="Office windows", owner=self.owner)
        self.deal.team_members.add(self.teammate)


class DealAccessTests(BaseDealTestCase):
    def test_owner_and_team_member_have_access(self):
        self.assertTrue(can_access_deal(self.owner, self.deal))
        self.assertTrue(can_access_deal(self.teammate, self.deal))

    def test_stranger_has_no_access(self):
        self.assertFalse(can_access_deal(self.stranger, self.deal))
        with self.assertRaises(PermissionDenied):
            check_deal_access(self.stranger, self.deal)

    def test_admins_have_access(self):
        group = Group.objects.create(name="admin")
        self.stranger.groups.add(group)
        self.assertTrue(can_access_deal(self.stranger, self.deal))

        root = User.objects.create_superuser(username="root", password="pass")
        self.assertTrue(can_access_deal(root, self.deal))

    def test_missing_user_has_no_access(self):
        self.assertFalse(can_access_deal(None, self.deal))

    @override_settings(DEAL_ACCESS_PREDICATE="deals.tests.allow_everyone")
    def test_predicate_is_configurable(self):
        check_deal_access(self.stranger, self.deal)


class DealModelTests(BaseDealTestCase):
    def test_effective_credit_term_defaults_to_setting(self):
        self.assertEqual(self.deal.effective_credit_term, 30)
        self.deal.credit_term = 45
        self.assertEqual(self.deal.effective_credit_term, 45)

    def test_zero_credit_term_falls_back_to_setting(self):
        self.deal.credit_term = 0
        self.assertEqual(self.deal.effective_credit_term, 30)

        self.deal.quotation_date = date(2024, 1, 10)
        self.assertEqual(self.deal.quotation_due_date(), date(2024, 2, 9))

    def test_quotation_due_date(self):
        self.assertIsNone(self.deal.quotation_due_date())

        self.deal.quotation_date = date(2024, 1, 10)
        self.deal.credit_term = 15
        self.assertEqual(self.deal.quotation_due_date(), date(2024, 1, 25))


class QuotationServiceTests(BaseDealTestCase):
    def test_generate_quotation_numbers_and_defaults(self):
        company = CompanyProfile.get_solo()
        company.quotation_terms = "50% deposit, balance on delivery."
        company.save()

        with mock.patch("django.utils.timezone.now", return_value=JAN_15):
            deal = QuotationService.generate_quotation(self.deal.pk, actor=self.owner)

        deal.refresh_from_db()
        self.assertEqual(deal.quotation_number, "QT-202401-0001")
        self.assertEqual(deal.quotation_date, date(2024, 1, 15))
        self.assertEqual(deal.valid_until, date(2024, 2, 14))
        self.assertEqual(deal.credit_term, 30)
        self.assertEqual(deal.quotation_terms, "50% deposit, balance on delivery.")

        self.assertTrue(
            AuditLog.objects.filter(action=AuditLog.Action.CREATE, actor=self.owner).exists()
        )

    def test_generate_quotation_is_idempotent(self):
        first = QuotationService.generate_quotation(self.deal.pk, actor=self.owner)
        second = QuotationService.generate_quotation(self.deal.pk, actor=self.teammate)

        self.assertEqual(first.quotation_number, second.quotation_number)
        self.assertEqual(first.quotation_date, second.quotation_date)

    def test_second_deal_gets_next_number(self):
        other = Deal.objects.create(title="Sliding doors", owner=self.owner)

        with mock.patch("django.utils.timezone.now", return_value=JAN_15):
            QuotationService.generate_quotation(self.deal.pk, actor=self.owner)
            other = QuotationService.generate_quotation(other.pk, actor=self.owner)

        self.assertEqual(other.quotation_number, "QT-202401-0002")

    def test_stranger_is_denied(self):
        with self.assertRaises(PermissionDenied):
            QuotationService.generate_quotation(self.deal.pk, actor=self.stranger)

        self.deal.refresh_from_db()
        self.assertIsNone(self.deal.quotation_number)

    def test_missing_deal(self):
        with self.assertRaises(Http404):
            QuotationService.generate_quotation(999999, actor=self.owner)


class QuotationApiTests(BaseDealTestCase):
    def test_post_generates_quotation(self):
        self.client.force_login(self.owner)
        url = reverse("deals:deal_quotation", args=[self.deal.pk])

        response = self.client.post(url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["id"], self.deal.pk)
        self.assertTrue(data["quotation_number"].startswith("QT-"))
        self.assertEqual(data["quotation_vat_rate"], "7.00")

    def test_status_codes(self):
        url = reverse("deals:deal_quotation", args=[self.deal.pk])

        self.assertEqual(self.client.post(url).status_code, 401)

        self.client.force_login(self.stranger)
        self.assertEqual(self.client.post(url).status_code, 403)

        missing = reverse("deals:deal_quotation", args=[999999])
        self.assertEqual(self.client.post(missing).status_code, 404)

        self.assertEqual(self.client.get(url).status_code, 405)
