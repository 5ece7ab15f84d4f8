# billing/services.py
import logging
from datetime import timedelta
from decimal import InvalidOperation
from typing import Any, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.utils.translation import gettext as _

from core.models import AuditLog, CompanyProfile
from core.services.audit import log_event
from core.services.numbering import DocumentType, save_with_number
from deals.models import Deal
from deals.permissions import check_deal_access

from .calculation import money
from .exceptions import DocumentConflict, DocumentLocked, PreconditionFailed
from .models import Invoice, Receipt
from .snapshots import derive_customer_snapshot
from .sync import (
    build_invoice_items,
    compute_deal_totals,
    materialize_draft,
    replace_invoice_items,
)

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = (
    "customer_name",
    "customer_address",
    "customer_tax_id",
    "customer_phone",
    "customer_email",
)


# ============================================================
# Request field cleaning
# ============================================================

def clean_document_fields(
    model,
    data: Mapping[str, Any],
    *,
    text_fields=(),
    date_fields=(),
    decimal_fields=(),
) -> dict:
    """
    Pick the editable fields present in ``data`` and coerce them.

    Decimals are rounded to 2 places and must fit their column. Dates must
    be ISO "YYYY-MM-DD" (null is accepted for nullable date columns).
    Raises ValidationError listing every field that does not pass.
    """
    cleaned = {}
    errors = []

    for name in text_fields:
        if name in data:
            value = data[name]
            cleaned[name] = "" if value is None else str(value)

    for name in date_fields:
        if name not in data:
            continue
        value = data[name]
        if value in (None, ""):
            if model._meta.get_field(name).null:
                cleaned[name] = None
            else:
                errors.append(_("%(field)s is required.") % {"field": name})
            continue
        try:
            parsed = parse_date(str(value))
        except ValueError:
            parsed = None
        if parsed is None:
            errors.append(_("%(field)s is not a valid date.") % {"field": name})
        else:
            cleaned[name] = parsed

    for name in decimal_fields:
        if name not in data:
            continue
        value = data[name]
        if value is None or isinstance(value, bool):
            errors.append(_("%(field)s is not a valid number.") % {"field": name})
            continue
        try:
            value = money(value)
        except (InvalidOperation, TypeError, ValueError):
            errors.append(_("%(field)s is not a valid number.") % {"field": name})
            continue
        # column limits (max_digits)
        try:
            cleaned[name] = model._meta.get_field(name).clean(value, None)
        except ValidationError as exc:
            errors.extend(f"{name}: {message}" for message in exc.messages)

    if errors:
        raise ValidationError(errors)
    return cleaned


# ============================================================
# Invoices
# ============================================================

class InvoiceService:
    """
    Invoice lifecycle: DRAFT → SENT (confirm) → PAID (receipt confirmed).
    """

    TEXT_FIELDS = (*CUSTOMER_FIELDS, "notes")
    DATE_FIELDS = ("due_date",)
    DECIMAL_FIELDS = Invoice.TOTALS_FIELDS

    @staticmethod
    @transaction.atomic
    def generate_invoice(deal_id, *, actor=None) -> Invoice:
        """
        Create the DRAFT invoice for a deal.

        Rules:
        - 404 if the deal does not exist, 403 if the actor may not access it.
        - A deal has at most one invoice (DocumentConflict carries its id).
        """
        deal = get_object_or_404(Deal.objects.select_for_update(), pk=deal_id)
        check_deal_access(actor, deal)

        existing_id = Invoice.objects.filter(deal=deal).values_list("pk", flat=True).first()
        if existing_id is not None:
            raise DocumentConflict(
                _("Invoice already exists for this deal."),
                payload={"invoice_id": existing_id},
            )

        items = build_invoice_items(deal)
        totals = compute_deal_totals(deal, items)
        customer = derive_customer_snapshot(deal, deal.contact)
        company = CompanyProfile.get_solo()
        today = timezone.localdate()

        invoice = Invoice(
            deal=deal,
            date=today,
            due_date=today + timedelta(days=deal.effective_credit_term),
            status=Invoice.Status.DRAFT,
            notes=deal.quotation_terms or deal.notes,
            **company.as_snapshot(),
            **customer.as_model_fields(),
        )
        invoice.apply_totals(totals)
        invoice.stamp_user(actor, created=True)

        try:
            save_with_number(invoice, DocumentType.INVOICE)
        except IntegrityError:
            existing_id = Invoice.objects.filter(deal=deal).values_list("pk", flat=True).first()
            if existing_id is None:
                raise
            raise DocumentConflict(
                _("Invoice already exists for this deal."),
                payload={"invoice_id": existing_id},
            )

        replace_invoice_items(invoice, items)

        logger.info("Invoice %s generated for deal %s", invoice.invoice_number, deal.pk)
        log_invoice_action(
            user=actor,
            invoice=invoice,
            action=AuditLog.Action.CREATE,
            message=_("Invoice %(number)s generated.") % {"number": invoice.invoice_number},
            extra={"deal_id": deal.pk, "grand_total": str(invoice.grand_total)},
        )
        return invoice

    @staticmethod
    def get_invoice(invoice_id) -> Invoice:
        """
        Fetch an invoice; a DRAFT is re-materialized from its deal first.
        """
        return materialize_draft(invoice_id)

    @staticmethod
    def _resolve_status(invoice: Invoice, requested) -> str:
        if requested not in Invoice.Status.values:
            raise ValidationError(_("Unknown invoice status: %(status)s.") % {"status": requested})

        if requested == invoice.status:
            return requested

        if requested == Invoice.Status.PAID:
            raise PreconditionFailed(
                _("An invoice is marked paid by confirming its receipt.")
            )
        if requested == Invoice.Status.SENT:
            raise PreconditionFailed(
                _("Use confirm to send a draft invoice.")
            )

        # requested DRAFT from SENT / PAID
        if Receipt.objects.filter(invoice=invoice, status=Receipt.Status.ISSUED).exists():
            raise PreconditionFailed(
                _("Revert the receipt to draft before reverting its invoice.")
            )
        return requested

    @staticmethod
    @transaction.atomic
    def update_invoice(invoice_id, data: Mapping[str, Any], *, actor=None) -> Invoice:
        """
        Partial update. Totals sent here are stored as given (manual override).

        A confirmed invoice is edit-locked unless the request carries a
        status; "status": "DRAFT" reverts it and clears confirmed_at.
        """
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
        requested_status = data.get("status")

        if not invoice.is_draft and not requested_status:
            raise DocumentLocked(_("Cannot edit a confirmed invoice. Revert to draft first."))

        changes = clean_document_fields(
            Invoice,
            data,
            text_fields=InvoiceService.TEXT_FIELDS,
            date_fields=InvoiceService.DATE_FIELDS,
            decimal_fields=InvoiceService.DECIMAL_FIELDS,
        )

        previous_status = invoice.status
        if requested_status:
            new_status = InvoiceService._resolve_status(invoice, requested_status)
            if new_status != previous_status:
                changes["status"] = new_status
                changes["confirmed_at"] = None

        for name, value in changes.items():
            setattr(invoice, name, value)
        invoice.stamp_user(actor)
        invoice.save(update_fields=[*changes, "updated_by", "updated_at"])

        if invoice.status != previous_status:
            logger.info(
                "Invoice %s reverted %s -> %s",
                invoice.invoice_number,
                previous_status,
                invoice.status,
            )
            action = AuditLog.Action.STATUS_CHANGE
            message = _("Invoice %(number)s reverted to draft.") % {"number": invoice.invoice_number}
        else:
            action = AuditLog.Action.UPDATE
            message = _("Invoice %(number)s updated.") % {"number": invoice.invoice_number}

        log_invoice_action(
            user=actor,
            invoice=invoice,
            action=action,
            message=message,
            extra={"fields": sorted(changes), "status": invoice.status},
        )
        return invoice

    @staticmethod
    @transaction.atomic
    def confirm_invoice(invoice_id, *, actor=None) -> Invoice:
        """
        Freeze the invoice and mark it SENT (a PAID invoice stays PAID).

        Idempotent: an invoice already confirmed is returned unchanged.
        """
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)

        confirmed_states = (Invoice.Status.SENT, Invoice.Status.PAID)
        if invoice.status in confirmed_states and invoice.confirmed_at:
            return invoice

        if invoice.is_draft:
            invoice = materialize_draft(invoice.pk)

        previous_status = invoice.status
        if invoice.status != Invoice.Status.PAID:
            invoice.status = Invoice.Status.SENT
        invoice.confirmed_at = timezone.now()
        invoice.stamp_user(actor)
        invoice.save(update_fields=["status", "confirmed_at", "updated_by", "updated_at"])

        # A draft receipt follows the totals of the re-confirmed invoice.
        receipt = (
            Receipt.objects.select_for_update()
            .filter(invoice=invoice, status=Receipt.Status.DRAFT)
            .first()
        )
        if receipt is not None:
            receipt.grand_total = invoice.grand_total
            receipt.wht_amount = invoice.wht_amount
            receipt.net_total = invoice.net_total
            receipt.stamp_user(actor)
            receipt.save(
                update_fields=["grand_total", "wht_amount", "net_total", "updated_by", "updated_at"]
            )
            logger.debug("Receipt %s totals refreshed from invoice", receipt.receipt_number)

        logger.info(
            "Invoice %s confirmed (%s -> %s)",
            invoice.invoice_number,
            previous_status,
            invoice.status,
        )
        log_invoice_action(
            user=actor,
            invoice=invoice,
            action=AuditLog.Action.STATUS_CHANGE,
            message=_("Invoice %(number)s confirmed.") % {"number": invoice.invoice_number},
            extra={"from": previous_status, "to": invoice.status},
        )
        return invoice


# ============================================================
# Receipts
# ============================================================

class ReceiptService:
    """
    Receipt lifecycle: DRAFT → ISSUED. Issuing a receipt pays its invoice.
    """

    TEXT_FIELDS = (*CUSTOMER_FIELDS, "notes", "payment_method")
    DATE_FIELDS = ("date", "payment_date")
    DECIMAL_FIELDS = ("grand_total", "wht_amount", "net_total")

    @staticmethod
    @transaction.atomic
    def generate_receipt(invoice_id, *, actor=None) -> Receipt:
        """
        Create the DRAFT receipt for a confirmed invoice.

        Rules:
        - The invoice must have been confirmed (not DRAFT).
        - An invoice has at most one receipt (DocumentConflict carries its id).
        """
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)

        if invoice.is_draft:
            raise PreconditionFailed(
                _("Please confirm the invoice first before creating a receipt.")
            )

        existing_id = Receipt.objects.filter(invoice=invoice).values_list("pk", flat=True).first()
        if existing_id is not None:
            raise DocumentConflict(
                _("Receipt already exists for this invoice."),
                payload={"receipt_id": existing_id},
            )

        receipt = Receipt(
            invoice=invoice,
            date=timezone.localdate(),
            status=Receipt.Status.DRAFT,
            grand_total=invoice.grand_total,
            wht_amount=invoice.wht_amount,
            net_total=invoice.net_total,
            **invoice.snapshot_values(),
        )
        receipt.stamp_user(actor, created=True)
        save_with_number(receipt, DocumentType.RECEIPT)

        logger.info(
            "Receipt %s generated for invoice %s",
            receipt.receipt_number,
            invoice.invoice_number,
        )
        log_receipt_action(
            user=actor,
            receipt=receipt,
            action=AuditLog.Action.CREATE,
            message=_("Receipt %(number)s generated.") % {"number": receipt.receipt_number},
            extra={"invoice_id": invoice.pk, "net_total": str(receipt.net_total)},
        )
        return receipt

    @staticmethod
    def get_receipt(receipt_id) -> Receipt:
        return get_object_or_404(Receipt.objects.select_related("invoice"), pk=receipt_id)

    @staticmethod
    def _resolve_status(receipt: Receipt, requested) -> str:
        if requested not in Receipt.Status.values:
            raise ValidationError(_("Unknown receipt status: %(status)s.") % {"status": requested})

        if requested == receipt.status:
            return requested

        if requested == Receipt.Status.ISSUED:
            raise PreconditionFailed(
                _("Use confirm to issue a draft receipt.")
            )
        return requested

    @staticmethod
    @transaction.atomic
    def update_receipt(receipt_id, data: Mapping[str, Any], *, actor=None) -> Receipt:
        """
        Partial update with the same edit lock as invoices.

        Reverting an ISSUED receipt to DRAFT moves its invoice from PAID
        back to SENT.
        """
        receipt = get_object_or_404(Receipt.objects.select_for_update(), pk=receipt_id)
        requested_status = data.get("status")

        if not receipt.is_draft and not requested_status:
            raise DocumentLocked(_("Cannot edit an issued receipt. Revert to draft first."))

        changes = clean_document_fields(
            Receipt,
            data,
            text_fields=ReceiptService.TEXT_FIELDS,
            date_fields=ReceiptService.DATE_FIELDS,
            decimal_fields=ReceiptService.DECIMAL_FIELDS,
        )

        previous_status = receipt.status
        if requested_status:
            new_status = ReceiptService._resolve_status(receipt, requested_status)
            if new_status != previous_status:
                changes["status"] = new_status
                changes["confirmed_at"] = None

        for name, value in changes.items():
            setattr(receipt, name, value)
        receipt.stamp_user(actor)
        receipt.save(update_fields=[*changes, "updated_by", "updated_at"])

        if receipt.status != previous_status:
            invoice = Invoice.objects.select_for_update().get(pk=receipt.invoice_id)
            if invoice.status == Invoice.Status.PAID:
                invoice.status = Invoice.Status.SENT
                invoice.stamp_user(actor)
                invoice.save(update_fields=["status", "updated_by", "updated_at"])
                receipt.invoice = invoice

            logger.info(
                "Receipt %s reverted to draft, invoice %s is %s",
                receipt.receipt_number,
                invoice.invoice_number,
                invoice.status,
            )
            action = AuditLog.Action.STATUS_CHANGE
            message = _("Receipt %(number)s reverted to draft.") % {"number": receipt.receipt_number}
        else:
            action = AuditLog.Action.UPDATE
            message = _("Receipt %(number)s updated.") % {"number": receipt.receipt_number}

        log_receipt_action(
            user=actor,
            receipt=receipt,
            action=action,
            message=message,
            extra={"fields": sorted(changes), "status": receipt.status},
        )
        return receipt

    @staticmethod
    @transaction.atomic
    def confirm_receipt(receipt_id, *, actor=None) -> Receipt:
        """
        Issue the receipt and mark its invoice PAID, both or neither.

        Idempotent: an issued receipt is returned unchanged.
        """
        receipt = get_object_or_404(Receipt.objects.select_for_update(), pk=receipt_id)

        if receipt.status == Receipt.Status.ISSUED and receipt.confirmed_at:
            return receipt

        invoice = Invoice.objects.select_for_update().get(pk=receipt.invoice_id)
        if invoice.is_draft:
            raise PreconditionFailed(
                _("Please confirm the invoice first before issuing its receipt.")
            )

        now = timezone.now()
        receipt.status = Receipt.Status.ISSUED
        receipt.confirmed_at = now
        receipt.stamp_user(actor)
        receipt.save(update_fields=["status", "confirmed_at", "updated_by", "updated_at"])

        previous_invoice_status = invoice.status
        invoice.status = Invoice.Status.PAID
        invoice.stamp_user(actor)
        invoice.save(update_fields=["status", "updated_by", "updated_at"])
        receipt.invoice = invoice

        logger.info(
            "Receipt %s issued, invoice %s paid",
            receipt.receipt_number,
            invoice.invoice_number,
        )
        log_receipt_action(
            user=actor,
            receipt=receipt,
            action=AuditLog.Action.STATUS_CHANGE,
            message=_("Receipt %(number)s issued.") % {"number": receipt.receipt_number},
            extra={"invoice_id": invoice.pk},
        )
        log_invoice_action(
            user=actor,
            invoice=invoice,
            action=AuditLog.Action.STATUS_CHANGE,
            message=_("Invoice %(number)s paid by receipt %(receipt)s.") % {
                "number": invoice.invoice_number,
                "receipt": receipt.receipt_number,
            },
            extra={"from": previous_invoice_status, "to": invoice.status},
        )
        return receipt


# ============================================================
# Audit helpers
# ============================================================

def log_invoice_action(
    *,
    user,
    invoice: Invoice,
    action: str | AuditLog.Action,
    message: str = "",
    extra: Optional[Mapping[str, Any]] = None,
) -> None:
    log_event(
        action=action,
        message=message,
        actor=user,
        target=invoice,
        extra=extra,
    )


def log_receipt_action(
    *,
    user,
    receipt: Receipt,
    action: str | AuditLog.Action,
    message: str = "",
    extra: Optional[Mapping[str, Any]] = None,
) -> None:
    log_event(
        action=action,
        message=message,
        actor=user,
        target=receipt,
        extra=extra,
    )
