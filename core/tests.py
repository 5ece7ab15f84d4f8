# core/tests.py

from datetime import datetime, timezone as dt_timezone
from unittest import mock

from django.contrib.auth.models import AnonymousUser, User
from django.contrib.contenttypes.models import ContentType
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError
from django.http import Http404, JsonResponse
from django.test import RequestFactory, TestCase

from billing.models import Invoice
from deals.models import Deal

from core.http import json_api, read_json_body
from core.models import AuditLog, CompanyProfile, NumberSequence
from core.services.audit import log_event
from core.services.numbering import (
    DocumentType,
    NumberAllocationError,
    allocate,
    format_number,
    get_period,
    save_with_number,
)

JAN_15 = datetime(2024, 1, 15, 10, 0, tzinfo=dt_timezone.utc)


class NumberFormatTests(TestCase):
    def test_format_number_pads_to_four_digits(self):
        self.assertEqual(format_number("IV", "202401", 7), "IV-202401-0007")
        self.assertEqual(format_number("RE", "202412", 1234), "RE-202412-1234")

    def test_period_uses_local_calendar_month(self):
        """
        20:00 UTC on Jan 31 is already Feb 1 in Asia/Bangkok.
        """
        late_utc = datetime(2024, 1, 31, 20, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(get_period(late_utc), "202402")
        self.assertEqual(get_period(JAN_15), "202401")


class AllocateTests(TestCase):
    def test_sequential_numbers_within_a_month(self):
        self.assertEqual(allocate(DocumentType.INVOICE, at=JAN_15), "IV-202401-0001")
        self.assertEqual(allocate(DocumentType.INVOICE, at=JAN_15), "IV-202401-0002")

        seq = NumberSequence.objects.get(key="IV", period="202401")
        self.assertEqual(seq.last_value, 2)

    def test_document_types_have_independent_counters(self):
        self.assertEqual(allocate(DocumentType.INVOICE, at=JAN_15), "IV-202401-0001")
        self.assertEqual(allocate(DocumentType.RECEIPT, at=JAN_15), "RE-202401-0001")
        self.assertEqual(allocate(DocumentType.QUOTATION, at=JAN_15), "QT-202401-0001")

    def test_counter_resets_every_month(self):
        allocate(DocumentType.INVOICE, at=JAN_15)
        allocate(DocumentType.INVOICE, at=JAN_15)

        feb = datetime(2024, 2, 1, 3, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(allocate(DocumentType.INVOICE, at=feb), "IV-202402-0001")

    def test_stale_counter_is_floored_by_existing_numbers(self):
        NumberSequence.objects.create(key="IV", period="202401", last_value=0)
        Invoice.objects.create(invoice_number="IV-202401-0007")

        self.assertEqual(allocate(DocumentType.INVOICE, at=JAN_15), "IV-202401-0008")

    def test_unparsable_existing_number_counts_as_zero(self):
        Invoice.objects.create(invoice_number="IV-202401-X")

        self.assertEqual(allocate(DocumentType.INVOICE, at=JAN_15), "IV-202401-0001")

    def test_unknown_document_type_is_rejected(self):
        with self.assertRaises(ValueError):
            allocate("XX", at=JAN_15)


class SaveWithNumberTests(TestCase):
    def test_assigns_number_and_saves(self):
        invoice = save_with_number(Invoice(), DocumentType.INVOICE, at=JAN_15)

        invoice.refresh_from_db()
        self.assertEqual(invoice.invoice_number, "IV-202401-0001")

    def test_colliding_number_is_retried(self):
        """
        The counter row hands out a number another writer already stored:
        the save is retried with the next number instead of failing.
        """
        Invoice.objects.create(invoice_number="IV-202401-0001")

        with mock.patch(
            "core.services.numbering._last_issued_value",
            side_effect=[0, 1],
        ):
            invoice = save_with_number(Invoice(), DocumentType.INVOICE, at=JAN_15)

        self.assertEqual(invoice.invoice_number, "IV-202401-0002")
        self.assertEqual(Invoice.objects.count(), 2)

    def test_exhausted_retries_fail_loudly(self):
        for seq in (1, 2, 3):
            Invoice.objects.create(invoice_number=format_number("IV", "202401", seq))

        with mock.patch("core.services.numbering._last_issued_value", return_value=0):
            with self.assertRaises(NumberAllocationError):
                save_with_number(Invoice(), DocumentType.INVOICE, at=JAN_15, max_attempts=3)

        self.assertEqual(Invoice.objects.count(), 3)

    def test_other_integrity_errors_are_reraised(self):
        deal = Deal.objects.create(title="Windows")
        Invoice.objects.create(invoice_number="IV-202312-0001", deal=deal)

        with self.assertRaises(IntegrityError):
            save_with_number(Invoice(deal=deal), DocumentType.INVOICE, at=JAN_15)

    def test_update_fields_for_existing_rows(self):
        deal = Deal.objects.create(title="Doors")
        deal.notes = "not saved"

        save_with_number(deal, DocumentType.QUOTATION, at=JAN_15, update_fields=["updated_at"])

        deal.refresh_from_db()
        self.assertEqual(deal.quotation_number, "QT-202401-0001")
        self.assertEqual(deal.notes, "")


class CompanyProfileTests(TestCase):
    def test_get_solo_creates_single_row(self):
        first = CompanyProfile.get_solo()
        second = CompanyProfile.get_solo()

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(CompanyProfile.objects.count(), 1)

    def test_as_snapshot(self):
        company = CompanyProfile.get_solo()
        company.name = "Siam Glass Co."
        company.tax_id = "0105551234567"
        company.save()

        snapshot = company.as_snapshot()
        self.assertEqual(snapshot["company_name"], "Siam Glass Co.")
        self.assertEqual(snapshot["company_tax_id"], "0105551234567")
        self.assertEqual(snapshot["company_address"], "")


class AuditLogTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="auditor", password="x")
        self.deal = Deal.objects.create(title="Audit me")

    def test_log_event_stores_actor_and_target(self):
        entry = log_event(
            action=AuditLog.Action.CREATE,
            message="created",
            actor=self.user,
            target=self.deal,
            extra={"k": "v"},
        )

        self.assertEqual(entry.action, "create")
        self.assertEqual(entry.actor, self.user)
        self.assertEqual(entry.target_content_type, ContentType.objects.get_for_model(Deal))
        self.assertEqual(entry.target_object_id, str(self.deal.pk))
        self.assertEqual(entry.target, self.deal)
        self.assertEqual(entry.extra, {"k": "v"})

    def test_anonymous_actor_is_not_stored(self):
        entry = log_event(action="update", actor=AnonymousUser())
        self.assertIsNone(entry.actor)

    def test_invalid_action_raises(self):
        with self.assertRaises(ValueError):
            log_event(action="explode")


class JsonApiTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.user = User.objects.create_user(username="api", password="x")

    def _call(self, view, user=None):
        request = self.factory.post("/api/test")
        request.user = user or self.user
        return json_api(view)(request)

    def test_anonymous_request_gets_401(self):
        response = self._call(lambda request: JsonResponse({}), user=AnonymousUser())
        self.assertEqual(response.status_code, 401)

    def test_http404_becomes_404(self):
        def view(request):
            raise Http404("No Invoice matches the given query.")

        response = self._call(view)
        self.assertEqual(response.status_code, 404)

    def test_permission_denied_becomes_403(self):
        def view(request):
            raise PermissionDenied("nope")

        response = self._call(view)
        self.assertEqual(response.status_code, 403)
        self.assertJSONEqual(response.content, {"error": "nope"})

    def test_validation_error_payload_is_merged(self):
        def view(request):
            exc = ValidationError("Invoice already exists for this deal.")
            exc.payload = {"invoice_id": 5}
            raise exc

        response = self._call(view)
        self.assertEqual(response.status_code, 400)
        self.assertJSONEqual(
            response.content,
            {"error": "Invoice already exists for this deal.", "invoice_id": 5},
        )

    def test_read_json_body(self):
        request = self.factory.put("/x", data='{"notes": "hi"}', content_type="application/json")
        self.assertEqual(read_json_body(request), {"notes": "hi"})

        request = self.factory.put("/x", data="", content_type="application/json")
        self.assertEqual(read_json_body(request), {})

        for body in ("{broken", "[1, 2]"):
            request = self.factory.put("/x", data=body, content_type="application/json")
            with self.assertRaises(ValidationError):
                read_json_body(request)
