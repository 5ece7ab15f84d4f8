# billing/tests.py

import json
import threading
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

from django.contrib.auth.models import User
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError, connection
from django.http import Http404
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from django.urls import reverse
from django.utils import timezone

from contacts.models import Contact
from core.models import AuditLog, CompanyProfile
from deals.models import Deal, DealItem, Product

from .calculation import LineItem, compute_totals
from .exceptions import DocumentConflict, DocumentLocked, PreconditionFailed
from .models import Invoice, Receipt
from .services import InvoiceService, ReceiptService
from .snapshots import derive_customer_snapshot, describe_deal_item
from .sync import materialize_draft, sync_invoice


def _item_values(invoice):
    return list(
        invoice.items.values_list(
            "position", "sku", "name", "description", "quantity", "unit_price", "discount", "amount"
        )
    )


# ============================================================
# Pure helpers
# ============================================================

class TotalsCalculationTests(SimpleTestCase):
    def test_scenario_a(self):
        totals = compute_totals(
            [LineItem(quantity=2, unit_price=Decimal("1000"))],
            global_discount=Decimal("100"),
            vat_rate=Decimal("7"),
            wht_rate=Decimal("3"),
        )

        self.assertEqual(totals.subtotal, Decimal("2000"))
        self.assertEqual(totals.item_discount, Decimal("0"))
        self.assertEqual(totals.global_discount, Decimal("100"))
        self.assertEqual(totals.total_discount, Decimal("100"))
        self.assertEqual(totals.after_discount, Decimal("1900"))
        self.assertEqual(totals.vat_amount, Decimal("133"))
        self.assertEqual(totals.grand_total, Decimal("2033"))
        self.assertEqual(totals.wht_amount, Decimal("57"))
        self.assertEqual(totals.net_total, Decimal("1976"))

    def test_item_discounts_are_summed(self):
        totals = compute_totals(
            [
                LineItem(quantity=1, unit_price=Decimal("500"), line_discount=Decimal("50")),
                LineItem(quantity=3, unit_price=Decimal("100"), line_discount=Decimal("25")),
            ],
            global_discount=Decimal("25"),
            vat_rate=Decimal("0"),
        )

        self.assertEqual(totals.subtotal, Decimal("800"))
        self.assertEqual(totals.item_discount, Decimal("75"))
        self.assertEqual(totals.total_discount, Decimal("100"))
        self.assertEqual(totals.after_discount, Decimal("700"))

    def test_manual_subtotal_when_no_items(self):
        totals = compute_totals([], vat_rate=7, manual_subtotal=Decimal("50000"))

        self.assertEqual(totals.subtotal, Decimal("50000"))
        self.assertEqual(totals.item_discount, Decimal("0"))
        self.assertEqual(totals.grand_total, Decimal("53500"))

    def test_manual_subtotal_ignored_when_items_exist(self):
        totals = compute_totals(
            [LineItem(quantity=1, unit_price=Decimal("10"))],
            vat_rate=0,
            manual_subtotal=Decimal("50000"),
        )
        self.assertEqual(totals.subtotal, Decimal("10"))

    def test_no_items_and_no_manual_value(self):
        totals = compute_totals([])
        self.assertEqual(totals.subtotal, Decimal("0"))
        self.assertEqual(totals.net_total, Decimal("0"))

    def test_discount_larger_than_subtotal_gives_negative_totals(self):
        totals = compute_totals(
            [LineItem(quantity=1, unit_price=Decimal("100"))],
            global_discount=Decimal("500"),
            vat_rate=Decimal("7"),
        )

        self.assertEqual(totals.after_discount, Decimal("-400"))
        self.assertEqual(totals.vat_amount, Decimal("-28"))
        self.assertEqual(totals.grand_total, Decimal("-428"))
        self.assertEqual(totals.net_total, Decimal("-428"))

    def test_rounding_is_half_up_to_two_places(self):
        self.assertEqual(LineItem(quantity=3, unit_price=Decimal("0.335")).gross, Decimal("1.01"))

        totals = compute_totals(
            [LineItem(quantity=1, unit_price=Decimal("0.50"))],
            vat_rate=Decimal("7"),
        )
        # 0.035 → 0.04
        self.assertEqual(totals.vat_amount, Decimal("0.04"))

    def test_float_and_string_inputs_are_coerced(self):
        totals = compute_totals(
            [LineItem(quantity=1, unit_price=0.1)],
            global_discount="0",
            vat_rate=0,
        )
        self.assertEqual(totals.subtotal, Decimal("0.10"))

    def test_derivation_equations_hold(self):
        cases = [
            ([LineItem(7, Decimal("13.33"), Decimal("1.11"))], "2.22", "7", "3"),
            ([LineItem(1, Decimal("999.99"))], "0", "10", "5"),
            ([], "10", "7", "1", ),
        ]
        for items, discount, vat, wht in cases:
            totals = compute_totals(
                items,
                global_discount=discount,
                vat_rate=vat,
                wht_rate=wht,
                manual_subtotal=Decimal("123.45"),
            )
            self.assertEqual(totals.grand_total, totals.after_discount + totals.vat_amount)
            self.assertEqual(totals.net_total, totals.grand_total - totals.wht_amount)
            self.assertEqual(totals.total_discount, totals.item_discount + totals.global_discount)


class CustomerSnapshotTests(SimpleTestCase):
    def setUp(self):
        self.contact = Contact(
            kind=Contact.ContactKind.COMPANY,
            first_name="Somchai",
            last_name="Jaidee",
            company_name="Acme Co.",
            address="1 Sukhumvit Rd",
            tax_number="0105551234567",
            phone="02-000-0000",
            email="acme@example.com",
        )

    def test_quotation_overrides_win(self):
        deal = Deal(
            quotation_customer_name="Acme Holdings",
            quotation_customer_address="99 Silom Rd",
        )

        snapshot = derive_customer_snapshot(deal, self.contact)

        self.assertEqual(snapshot.name, "Acme Holdings")
        self.assertEqual(snapshot.address, "99 Silom Rd")
        # no override: contact value
        self.assertEqual(snapshot.tax_id, "0105551234567")
        self.assertEqual(snapshot.phone, "02-000-0000")
        self.assertEqual(snapshot.email, "acme@example.com")

    def test_contact_company_name_then_full_name(self):
        deal = Deal()
        self.assertEqual(derive_customer_snapshot(deal, self.contact).name, "Acme Co.")

        self.contact.company_name = ""
        self.assertEqual(derive_customer_snapshot(deal, self.contact).name, "Somchai Jaidee")

    def test_defaults_without_contact(self):
        snapshot = derive_customer_snapshot(Deal(), None)

        self.assertEqual(snapshot.name, "N/A")
        self.assertEqual(snapshot.address, "")
        self.assertEqual(snapshot.email, "")

    def test_as_model_fields(self):
        fields = derive_customer_snapshot(Deal(), self.contact).as_model_fields()
        self.assertEqual(fields["customer_name"], "Acme Co.")
        self.assertEqual(fields["customer_tax_id"], "0105551234567")


class ItemDescriptionTests(SimpleTestCase):
    def setUp(self):
        self.product = Product(sku="WIN-01", name="Casement window", description="Aluminium frame")

    def test_item_values_win_over_product(self):
        item = DealItem(product=self.product, name="Custom window", description="Bronze finish")
        description = describe_deal_item(item)

        self.assertEqual(description.sku, "WIN-01")
        self.assertEqual(description.name, "Custom window")
        self.assertEqual(description.product_description, "Bronze finish")

    def test_product_values_as_fallback(self):
        description = describe_deal_item(DealItem(product=self.product))

        self.assertEqual(description.name, "Casement window")
        self.assertEqual(description.product_description, "Aluminium frame")

    def test_item_without_product_or_name(self):
        description = describe_deal_item(DealItem())

        self.assertEqual(description.sku, "")
        self.assertEqual(description.name, "Unknown Item")
        self.assertEqual(description.product_description, "")


# ============================================================
# Lifecycle
# ============================================================

class BaseBillingTestCase(TestCase):
    def setUp(self):
        self.owner = User.objects.create_user(username="owner", password="pass")
        self.stranger = User.objects.create_user(username="stranger", password="pass")

        company = CompanyProfile.get_solo()
        company.name = "Siam Glass Co."
        company.address = "Bangkok"
        company.tax_id = "0105550000001"
        company.phone = "02-111-1111"
        company.save()

        self.contact = Contact.objects.create(
            kind=Contact.ContactKind.COMPANY,
            company_name="Acme Co.",
            address="1 Sukhumvit Rd",
            tax_number="0105551234567",
            phone="02-000-0000",
            email="acme@example.com",
        )
        self.product = Product.objects.create(
            sku="WIN-01",
            name="Casement window",
            description="Aluminium frame",
            price=Decimal("1000"),
        )
        self.deal = Deal.objects.create(
            title="Office windows",
            owner=self.owner,
            contact=self.contact,
            notes="Deliver to site office.",
            quotation_discount=Decimal("100"),
            quotation_vat_rate=Decimal("7"),
            quotation_wht_rate=Decimal("3"),
        )
        self.deal_item = DealItem.objects.create(
            deal=self.deal,
            product=self.product,
            quantity=2,
            price=Decimal("1000"),
        )

    def generate_invoice(self, deal=None):
        return InvoiceService.generate_invoice((deal or self.deal).pk, actor=self.owner)

    def confirmed_invoice(self):
        invoice = self.generate_invoice()
        return InvoiceService.confirm_invoice(invoice.pk, actor=self.owner)


class InvoiceGenerationTests(BaseBillingTestCase):
    def test_scenario_a_totals(self):
        invoice = self.generate_invoice()
        invoice.refresh_from_db()

        self.assertEqual(invoice.status, Invoice.Status.DRAFT)
        self.assertEqual(invoice.subtotal, Decimal("2000"))
        self.assertEqual(invoice.item_discount, Decimal("0"))
        self.assertEqual(invoice.total_discount, Decimal("100"))
        self.assertEqual(invoice.after_discount, Decimal("1900"))
        self.assertEqual(invoice.vat_amount, Decimal("133"))
        self.assertEqual(invoice.grand_total, Decimal("2033"))
        self.assertEqual(invoice.wht_amount, Decimal("57"))
        self.assertEqual(invoice.net_total, Decimal("1976"))

    def test_snapshots_items_and_defaults(self):
        invoice = self.generate_invoice()

        self.assertRegex(invoice.invoice_number, r"^IV-\d{6}-0001$")
        self.assertEqual(invoice.deal, self.deal)
        self.assertEqual(invoice.company_name, "Siam Glass Co.")
        self.assertEqual(invoice.customer_name, "Acme Co.")
        self.assertEqual(invoice.customer_tax_id, "0105551234567")
        self.assertEqual(invoice.notes, "Deliver to site office.")
        self.assertEqual(invoice.due_date, timezone.localdate() + timedelta(days=30))
        self.assertEqual(invoice.created_by, self.owner)

        item = invoice.items.get()
        self.assertEqual(
            item.description_snapshot,
            {"sku": "WIN-01", "name": "Casement window", "product_description": "Aluminium frame"},
        )
        self.assertEqual(item.quantity, 2)
        self.assertEqual(item.amount, Decimal("2000"))

        self.assertTrue(
            AuditLog.objects.filter(action=AuditLog.Action.CREATE, actor=self.owner).exists()
        )

    def test_quotation_terms_and_credit_term(self):
        self.deal.quotation_terms = "Payment within 15 days."
        self.deal.credit_term = 15
        self.deal.save()

        invoice = self.generate_invoice()

        self.assertEqual(invoice.notes, "Payment within 15 days.")
        self.assertEqual(invoice.due_date, timezone.localdate() + timedelta(days=15))

    def test_manual_deal_value_without_items(self):
        self.deal_item.delete()
        self.deal.value = Decimal("50000")
        self.deal.quotation_discount = Decimal("0")
        self.deal.quotation_wht_rate = Decimal("0")
        self.deal.save()

        invoice = self.generate_invoice()

        self.assertEqual(invoice.items.count(), 0)
        self.assertEqual(invoice.subtotal, Decimal("50000"))
        self.assertEqual(invoice.grand_total, Decimal("53500"))

    def test_scenario_c_second_invoice_is_rejected(self):
        first = self.generate_invoice()

        with self.assertRaises(DocumentConflict) as ctx:
            self.generate_invoice()

        self.assertEqual(ctx.exception.payload, {"invoice_id": first.pk})
        self.assertEqual(Invoice.objects.count(), 1)

    def test_access_is_checked(self):
        with self.assertRaises(PermissionDenied):
            InvoiceService.generate_invoice(self.deal.pk, actor=self.stranger)
        self.assertFalse(Invoice.objects.exists())

    def test_missing_deal(self):
        with self.assertRaises(Http404):
            InvoiceService.generate_invoice(999999, actor=self.owner)

    def test_scenario_d_numbers_reset_each_month(self):
        other = Deal.objects.create(title="Sliding doors", owner=self.owner)
        third = Deal.objects.create(title="Shopfront", owner=self.owner)

        jan_31 = datetime(2024, 1, 31, 10, 0, tzinfo=dt_timezone.utc)
        feb_1 = datetime(2024, 2, 1, 10, 0, tzinfo=dt_timezone.utc)

        with mock.patch("django.utils.timezone.now", return_value=jan_31):
            january = self.generate_invoice()
            january_2 = self.generate_invoice(other)
        with mock.patch("django.utils.timezone.now", return_value=feb_1):
            february = self.generate_invoice(third)

        self.assertEqual(january.invoice_number, "IV-202401-0001")
        self.assertEqual(january_2.invoice_number, "IV-202401-0002")
        self.assertEqual(february.invoice_number, "IV-202402-0001")
        self.assertEqual(january.date, date(2024, 1, 31))
        self.assertEqual(february.date, date(2024, 2, 1))


class ConcurrentInvoiceGenerationTests(TransactionTestCase):
    """
    Runs against the configured backend, SQLite included: every worker gets
    its own connection to the shared test database.
    """

    WORKERS = 8

    def setUp(self):
        self.admin = User.objects.create_superuser(username="root", password="pass")
        CompanyProfile.get_solo()
        self.deals = [
            Deal.objects.create(title=f"Deal {n}", value=Decimal("1000"))
            for n in range(self.WORKERS)
        ]

    def test_parallel_generation_yields_sequential_numbers(self):
        numbers = []
        errors = []
        start = threading.Barrier(self.WORKERS)

        def worker(deal_id):
            try:
                start.wait()
                invoice = InvoiceService.generate_invoice(deal_id, actor=self.admin)
                numbers.append(invoice.invoice_number)
            except Exception as exc:
                errors.append(f"{type(exc).__name__}: {exc}")
            finally:
                connection.close()

        jan_15 = datetime(2024, 1, 15, 10, 0, tzinfo=dt_timezone.utc)
        threads = [threading.Thread(target=worker, args=(deal.pk,)) for deal in self.deals]
        with mock.patch("django.utils.timezone.now", return_value=jan_15):
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(
            sorted(numbers),
            [f"IV-202401-{seq:04d}" for seq in range(1, self.WORKERS + 1)],
        )
        self.assertEqual(Invoice.objects.count(), self.WORKERS)


class MaterializeDraftTests(BaseBillingTestCase):
    def test_read_refreshes_items_and_totals(self):
        invoice = self.generate_invoice()

        self.deal_item.quantity = 3
        self.deal_item.save()
        self.product.name = "Casement window (tinted)"
        self.product.save()

        invoice = InvoiceService.get_invoice(invoice.pk)

        self.assertEqual(invoice.subtotal, Decimal("3000"))
        item = invoice.items.get()
        self.assertEqual(item.quantity, 3)
        self.assertEqual(item.name, "Casement window (tinted)")

    def test_read_does_not_touch_customer_fields(self):
        invoice = self.generate_invoice()
        self.deal.quotation_customer_name = "Acme Holdings"
        self.deal.save()

        invoice = InvoiceService.get_invoice(invoice.pk)

        self.assertEqual(invoice.customer_name, "Acme Co.")

    def test_confirmed_invoice_is_frozen(self):
        invoice = self.confirmed_invoice()

        self.deal_item.quantity = 10
        self.deal_item.save()
        self.product.name = "Renamed"
        self.product.save()

        invoice = InvoiceService.get_invoice(invoice.pk)

        self.assertEqual(invoice.subtotal, Decimal("2000"))
        self.assertEqual(invoice.items.get().name, "Casement window")

    def test_materialize_is_idempotent(self):
        invoice = self.generate_invoice()

        first = materialize_draft(invoice.pk)
        first_items = _item_values(first)
        first_totals = first.totals

        second = materialize_draft(invoice.pk)
        second.refresh_from_db()

        self.assertEqual(_item_values(second), first_items)
        self.assertEqual(second.totals, first_totals)

    def test_generate_get_sync_get_round_trip(self):
        invoice = self.generate_invoice()
        invoice.refresh_from_db()
        generated = (_item_values(invoice), invoice.totals)

        fetched = InvoiceService.get_invoice(invoice.pk)
        synced = sync_invoice(invoice.pk, actor=self.owner)
        fetched_again = InvoiceService.get_invoice(invoice.pk)

        for current in (fetched, synced, fetched_again):
            current.refresh_from_db()
            self.assertEqual((_item_values(current), current.totals), generated)

    def test_invoice_without_deal_is_left_alone(self):
        invoice = self.generate_invoice()
        self.deal.delete()

        invoice = materialize_draft(invoice.pk)

        self.assertIsNone(invoice.deal_id)
        self.assertEqual(invoice.items.count(), 1)
        self.assertEqual(invoice.grand_total, Decimal("2033"))


class SyncInvoiceTests(BaseBillingTestCase):
    def test_sync_refreshes_customer_and_due_date(self):
        invoice = self.generate_invoice()

        self.deal.quotation_customer_name = "Acme Holdings"
        self.deal.quotation_customer_email = "billing@acme.example"
        self.deal.quotation_date = date(2024, 1, 10)
        self.deal.credit_term = 15
        self.deal.quotation_vat_rate = Decimal("0")
        self.deal.save()

        invoice = sync_invoice(invoice.pk, actor=self.owner)

        self.assertEqual(invoice.customer_name, "Acme Holdings")
        self.assertEqual(invoice.customer_email, "billing@acme.example")
        # no quotation override: current value kept
        self.assertEqual(invoice.customer_phone, "02-000-0000")
        self.assertEqual(invoice.due_date, date(2024, 1, 25))
        self.assertEqual(invoice.vat_amount, Decimal("0"))
        self.assertEqual(invoice.grand_total, Decimal("1900"))
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.Action.SYNC).exists())

    def test_sync_without_quotation_date_keeps_due_date(self):
        invoice = self.generate_invoice()
        due_date = invoice.due_date

        invoice = sync_invoice(invoice.pk)

        self.assertEqual(invoice.due_date, due_date)

    def test_sync_requires_draft(self):
        invoice = self.confirmed_invoice()

        with self.assertRaises(PreconditionFailed):
            sync_invoice(invoice.pk)

    def test_sync_requires_deal(self):
        invoice = self.generate_invoice()
        self.deal.delete()

        with self.assertRaises(PreconditionFailed):
            sync_invoice(invoice.pk)

    def test_sync_missing_invoice(self):
        with self.assertRaises(Http404):
            sync_invoice(999999)


class ConfirmInvoiceTests(BaseBillingTestCase):
    def test_confirm_sets_sent_and_confirmed_at(self):
        invoice = self.confirmed_invoice()

        self.assertEqual(invoice.status, Invoice.Status.SENT)
        self.assertIsNotNone(invoice.confirmed_at)

    def test_confirm_is_idempotent(self):
        invoice = self.confirmed_invoice()
        confirmed_at = invoice.confirmed_at

        again = InvoiceService.confirm_invoice(invoice.pk, actor=self.owner)

        self.assertEqual(again.status, Invoice.Status.SENT)
        self.assertEqual(again.confirmed_at, confirmed_at)
        self.assertEqual(
            AuditLog.objects.filter(action=AuditLog.Action.STATUS_CHANGE).count(), 1
        )

    def test_confirm_materializes_the_draft_first(self):
        invoice = self.generate_invoice()
        self.deal_item.quantity = 5
        self.deal_item.save()

        invoice = InvoiceService.confirm_invoice(invoice.pk, actor=self.owner)

        self.assertEqual(invoice.subtotal, Decimal("5000"))
        self.assertEqual(invoice.items.get().quantity, 5)

    def test_confirm_keeps_paid_status(self):
        invoice = self.generate_invoice()
        Invoice.objects.filter(pk=invoice.pk).update(status=Invoice.Status.PAID)

        invoice = InvoiceService.confirm_invoice(invoice.pk)

        self.assertEqual(invoice.status, Invoice.Status.PAID)
        self.assertIsNotNone(invoice.confirmed_at)


class UpdateInvoiceTests(BaseBillingTestCase):
    def test_draft_accepts_manual_overrides(self):
        invoice = self.generate_invoice()

        invoice = InvoiceService.update_invoice(
            invoice.pk,
            {"customer_name": "Manual Name", "grand_total": "9999.99", "due_date": "2024-03-01"},
            actor=self.owner,
        )

        self.assertEqual(invoice.customer_name, "Manual Name")
        self.assertEqual(invoice.grand_total, Decimal("9999.99"))
        self.assertEqual(invoice.due_date, date(2024, 3, 1))

        # the next read re-materializes totals but keeps the customer block
        invoice = InvoiceService.get_invoice(invoice.pk)
        self.assertEqual(invoice.grand_total, Decimal("2033"))
        self.assertEqual(invoice.customer_name, "Manual Name")

    def test_confirmed_invoice_is_edit_locked(self):
        invoice = self.confirmed_invoice()

        with self.assertRaises(DocumentLocked):
            InvoiceService.update_invoice(invoice.pk, {"notes": "changed"})

        invoice.refresh_from_db()
        self.assertEqual(invoice.notes, "Deliver to site office.")

    def test_revert_to_draft_unlocks(self):
        invoice = self.confirmed_invoice()

        invoice = InvoiceService.update_invoice(
            invoice.pk, {"status": "DRAFT", "notes": "changed"}, actor=self.owner
        )

        self.assertEqual(invoice.status, Invoice.Status.DRAFT)
        self.assertIsNone(invoice.confirmed_at)
        self.assertEqual(invoice.notes, "changed")

        invoice = InvoiceService.update_invoice(invoice.pk, {"notes": "again"})
        self.assertEqual(invoice.notes, "again")

    def test_status_rules(self):
        invoice = self.generate_invoice()

        with self.assertRaises(ValidationError):
            InvoiceService.update_invoice(invoice.pk, {"status": "ARCHIVED"})
        with self.assertRaises(PreconditionFailed):
            InvoiceService.update_invoice(invoice.pk, {"status": "PAID"})
        with self.assertRaises(PreconditionFailed):
            InvoiceService.update_invoice(invoice.pk, {"status": "SENT"})

    def test_invalid_values_are_rejected(self):
        invoice = self.generate_invoice()

        with self.assertRaises(ValidationError):
            InvoiceService.update_invoice(invoice.pk, {"vat_amount": "lots"})
        with self.assertRaises(ValidationError):
            InvoiceService.update_invoice(invoice.pk, {"due_date": "next week"})

        # money columns hold 14 digits, rate columns 5
        with self.assertRaises(ValidationError):
            InvoiceService.update_invoice(invoice.pk, {"grand_total": "1e15"})
        with self.assertRaises(ValidationError):
            InvoiceService.update_invoice(invoice.pk, {"vat_rate": "1000"})

        invoice.refresh_from_db()
        self.assertEqual(invoice.grand_total, Decimal("2033"))
        self.assertEqual(invoice.vat_rate, Decimal("7"))

    def test_revert_refused_while_receipt_issued(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk, actor=self.owner)
        ReceiptService.confirm_receipt(receipt.pk, actor=self.owner)

        with self.assertRaises(PreconditionFailed):
            InvoiceService.update_invoice(invoice.pk, {"status": "DRAFT"})

        invoice.refresh_from_db()
        self.assertEqual(invoice.status, Invoice.Status.PAID)


class ReceiptLifecycleTests(BaseBillingTestCase):
    def test_scenario_b(self):
        invoice = self.generate_invoice()

        with self.assertRaises(PreconditionFailed) as ctx:
            ReceiptService.generate_receipt(invoice.pk, actor=self.owner)
        self.assertIn("confirm the invoice first", ctx.exception.messages[0])

        InvoiceService.confirm_invoice(invoice.pk, actor=self.owner)
        receipt = ReceiptService.generate_receipt(invoice.pk, actor=self.owner)

        self.assertEqual(receipt.status, Receipt.Status.DRAFT)
        self.assertRegex(receipt.receipt_number, r"^RE-\d{6}-0001$")
        self.assertEqual(receipt.grand_total, Decimal("2033"))
        self.assertEqual(receipt.wht_amount, Decimal("57"))
        self.assertEqual(receipt.net_total, Decimal("1976"))
        self.assertEqual(receipt.customer_name, "Acme Co.")
        self.assertEqual(receipt.company_name, "Siam Glass Co.")
        self.assertEqual(receipt.notes, "Deliver to site office.")

        ReceiptService.confirm_receipt(receipt.pk, actor=self.owner)

        receipt.refresh_from_db()
        invoice.refresh_from_db()
        self.assertEqual(receipt.status, Receipt.Status.ISSUED)
        self.assertIsNotNone(receipt.confirmed_at)
        self.assertEqual(invoice.status, Invoice.Status.PAID)

    def test_second_receipt_is_rejected(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)

        with self.assertRaises(DocumentConflict) as ctx:
            ReceiptService.generate_receipt(invoice.pk)

        self.assertEqual(ctx.exception.payload, {"receipt_id": receipt.pk})

    def test_confirm_receipt_is_idempotent(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)

        first = ReceiptService.confirm_receipt(receipt.pk)
        second = ReceiptService.confirm_receipt(receipt.pk)

        self.assertEqual(first.confirmed_at, second.confirmed_at)
        self.assertEqual(second.status, Receipt.Status.ISSUED)

    def test_cascade_is_atomic(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)

        with mock.patch.object(Invoice, "save", side_effect=DatabaseError("boom")):
            with self.assertRaises(DatabaseError):
                ReceiptService.confirm_receipt(receipt.pk)

        receipt.refresh_from_db()
        invoice.refresh_from_db()
        self.assertEqual(receipt.status, Receipt.Status.DRAFT)
        self.assertIsNone(receipt.confirmed_at)
        self.assertEqual(invoice.status, Invoice.Status.SENT)

    def test_confirm_refused_when_invoice_back_in_draft(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)
        InvoiceService.update_invoice(invoice.pk, {"status": "DRAFT"})

        with self.assertRaises(PreconditionFailed):
            ReceiptService.confirm_receipt(receipt.pk)

    def test_draft_receipt_follows_reconfirmed_invoice_totals(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)
        InvoiceService.update_invoice(invoice.pk, {"status": "DRAFT"})

        self.deal_item.quantity = 5
        self.deal_item.save()
        invoice = InvoiceService.confirm_invoice(invoice.pk, actor=self.owner)

        receipt.refresh_from_db()
        self.assertEqual(invoice.grand_total, Decimal("5243"))
        self.assertEqual(receipt.grand_total, invoice.grand_total)
        self.assertEqual(receipt.wht_amount, invoice.wht_amount)
        self.assertEqual(receipt.net_total, invoice.net_total)

        receipt = ReceiptService.confirm_receipt(receipt.pk)
        self.assertEqual(receipt.net_total, invoice.net_total)

    def test_issued_receipt_is_edit_locked(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)
        ReceiptService.confirm_receipt(receipt.pk)

        with self.assertRaises(DocumentLocked):
            ReceiptService.update_receipt(receipt.pk, {"payment_method": "Cash"})

    def test_draft_receipt_update(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)

        receipt = ReceiptService.update_receipt(
            receipt.pk,
            {
                "payment_method": "Bank transfer",
                "payment_date": "2024-02-05",
                "net_total": "1976.50",
            },
            actor=self.owner,
        )

        self.assertEqual(receipt.payment_method, "Bank transfer")
        self.assertEqual(receipt.payment_date, date(2024, 2, 5))
        self.assertEqual(receipt.net_total, Decimal("1976.50"))

        with self.assertRaises(ValidationError):
            ReceiptService.update_receipt(receipt.pk, {"date": None})
        with self.assertRaises(PreconditionFailed):
            ReceiptService.update_receipt(receipt.pk, {"status": "ISSUED"})

    def test_reverting_receipt_moves_invoice_back_to_sent(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)
        ReceiptService.confirm_receipt(receipt.pk)

        receipt = ReceiptService.update_receipt(receipt.pk, {"status": "DRAFT"}, actor=self.owner)

        invoice.refresh_from_db()
        self.assertEqual(receipt.status, Receipt.Status.DRAFT)
        self.assertIsNone(receipt.confirmed_at)
        self.assertEqual(invoice.status, Invoice.Status.SENT)


# ============================================================
# HTTP API
# ============================================================

class BillingApiTests(BaseBillingTestCase):
    def setUp(self):
        super().setUp()
        self.client.force_login(self.owner)

    def _put(self, url, payload):
        return self.client.put(url, data=json.dumps(payload), content_type="application/json")

    def test_full_flow(self):
        response = self.client.post(reverse("billing:deal_invoice_create", args=[self.deal.pk]))
        self.assertEqual(response.status_code, 201)
        invoice = response.json()
        self.assertEqual(invoice["status"], "DRAFT")
        self.assertEqual(invoice["totals"]["grand_total"], "2033.00")
        self.assertEqual(invoice["items"][0]["description"]["sku"], "WIN-01")
        self.assertIsNone(invoice["receipt"])

        receipt_url = reverse("billing:invoice_receipt_create", args=[invoice["id"]])
        response = self.client.post(receipt_url)
        self.assertEqual(response.status_code, 400)
        self.assertIn("confirm the invoice first", response.json()["error"])

        response = self.client.post(reverse("billing:invoice_confirm", args=[invoice["id"]]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "SENT")

        response = self.client.post(receipt_url)
        self.assertEqual(response.status_code, 201)
        receipt = response.json()
        self.assertEqual(receipt["status"], "DRAFT")
        self.assertEqual(receipt["totals"]["net_total"], "1976.00")

        response = self.client.post(reverse("billing:receipt_confirm", args=[receipt["id"]]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ISSUED")
        self.assertEqual(response.json()["invoice"]["status"], "PAID")

        response = self.client.get(reverse("billing:invoice_detail", args=[invoice["id"]]))
        self.assertEqual(response.json()["receipt"]["status"], "ISSUED")

    def test_duplicate_invoice_returns_existing_id(self):
        url = reverse("billing:deal_invoice_create", args=[self.deal.pk])
        first = self.client.post(url).json()

        response = self.client.post(url)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["invoice_id"], first["id"])

    def test_duplicate_receipt_returns_existing_id(self):
        invoice = self.confirmed_invoice()
        url = reverse("billing:invoice_receipt_create", args=[invoice.pk])
        first = self.client.post(url).json()

        response = self.client.post(url)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["receipt_id"], first["id"])

    def test_confirm_twice_returns_identical_body(self):
        invoice = self.generate_invoice()
        url = reverse("billing:invoice_confirm", args=[invoice.pk])

        first = self.client.post(url)
        second = self.client.post(url)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json(), second.json())

    def test_put_edit_lock_and_revert(self):
        invoice = self.confirmed_invoice()
        url = reverse("billing:invoice_detail", args=[invoice.pk])

        response = self._put(url, {"notes": "changed"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["error"],
            "Cannot edit a confirmed invoice. Revert to draft first.",
        )

        response = self._put(url, {"status": "DRAFT", "customer_name": "Manual"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "DRAFT")
        self.assertEqual(response.json()["customer"]["name"], "Manual")
        self.assertIsNone(response.json()["confirmed_at"])

    def test_put_manual_totals_are_returned_as_given(self):
        invoice = self.generate_invoice()
        url = reverse("billing:invoice_detail", args=[invoice.pk])

        response = self._put(url, {"grand_total": "1234.5", "wht_amount": 0})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["totals"]["grand_total"], "1234.50")
        self.assertEqual(response.json()["totals"]["wht_amount"], "0.00")

    def test_put_out_of_range_total_is_rejected(self):
        invoice = self.generate_invoice()
        url = reverse("billing:invoice_detail", args=[invoice.pk])

        response = self._put(url, {"grand_total": "1e15"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("grand_total", response.json()["error"])

    def test_malformed_json_is_rejected(self):
        invoice = self.generate_invoice()
        url = reverse("billing:invoice_detail", args=[invoice.pk])

        response = self.client.put(url, data="{oops", content_type="application/json")

        self.assertEqual(response.status_code, 400)

    def test_sync_endpoint(self):
        invoice = self.generate_invoice()
        self.deal.quotation_customer_name = "Acme Holdings"
        self.deal.save()

        response = self.client.post(reverse("billing:invoice_sync_items", args=[invoice.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["customer"]["name"], "Acme Holdings")

        InvoiceService.confirm_invoice(invoice.pk)
        response = self.client.post(reverse("billing:invoice_sync_items", args=[invoice.pk]))
        self.assertEqual(response.status_code, 400)

    def test_receipt_detail_and_edit_lock(self):
        invoice = self.confirmed_invoice()
        receipt = ReceiptService.generate_receipt(invoice.pk)
        url = reverse("billing:receipt_detail", args=[receipt.pk])

        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["invoice"]["id"], invoice.pk)

        response = self._put(url, {"payment_method": "Cheque"})
        self.assertEqual(response.json()["payment_method"], "Cheque")

        self.client.post(reverse("billing:receipt_confirm", args=[receipt.pk]))
        response = self._put(url, {"payment_method": "Cash"})
        self.assertEqual(response.status_code, 400)

    def test_status_codes(self):
        self.assertEqual(
            self.client.get(reverse("billing:invoice_detail", args=[999999])).status_code, 404
        )
        self.assertEqual(
            self.client.get(reverse("billing:receipt_detail", args=[999999])).status_code, 404
        )
        self.assertEqual(
            self.client.post(reverse("billing:invoice_confirm", args=[999999])).status_code, 404
        )

        self.client.force_login(self.stranger)
        response = self.client.post(reverse("billing:deal_invoice_create", args=[self.deal.pk]))
        self.assertEqual(response.status_code, 403)

        self.client.logout()
        response = self.client.post(reverse("billing:deal_invoice_create", args=[self.deal.pk]))
        self.assertEqual(response.status_code, 401)
