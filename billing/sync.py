# billing/sync.py
"""
Keeps a DRAFT invoice in step with its deal.

materialize_draft() is the one unit of work behind both the read path
(every GET of a draft) and the explicit "sync items" action.
"""
import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils.translation import gettext as _

from core.models import AuditLog
from core.services.audit import log_event
from deals.models import Deal

from .calculation import DocumentTotals, LineItem, compute_totals
from .exceptions import PreconditionFailed
from .models import Invoice, InvoiceItem
from .snapshots import derive_customer_snapshot, describe_deal_item

logger = logging.getLogger(__name__)

# Customer fields re-copied from the quotation on an explicit sync.
QUOTATION_CUSTOMER_FIELDS = {
    "customer_name": "quotation_customer_name",
    "customer_address": "quotation_customer_address",
    "customer_tax_id": "quotation_customer_tax_id",
    "customer_phone": "quotation_customer_phone",
    "customer_email": "quotation_customer_email",
}


def build_invoice_items(deal: Deal) -> list[InvoiceItem]:
    """
    Unsaved InvoiceItem rows mirroring the deal's current items.
    """
    items = []
    for position, deal_item in enumerate(deal.items.select_related("product")):
        description = describe_deal_item(deal_item)
        line = LineItem(
            quantity=deal_item.quantity,
            unit_price=deal_item.price,
            line_discount=deal_item.discount,
        )
        items.append(
            InvoiceItem(
                position=position,
                sku=description.sku,
                name=description.name,
                description=description.product_description,
                quantity=deal_item.quantity,
                unit_price=deal_item.price,
                discount=deal_item.discount,
                amount=line.amount,
            )
        )
    return items


def compute_deal_totals(deal: Deal, items: list[InvoiceItem]) -> DocumentTotals:
    """
    Totals for the given items with the deal's discount / VAT / WHT.
    A deal without items falls back to its manual value.
    """
    return compute_totals(
        [
            LineItem(quantity=i.quantity, unit_price=i.unit_price, line_discount=i.discount)
            for i in items
        ],
        global_discount=deal.quotation_discount,
        vat_rate=deal.quotation_vat_rate,
        wht_rate=deal.quotation_wht_rate,
        manual_subtotal=deal.value,
    )


def replace_invoice_items(invoice: Invoice, items: list[InvoiceItem]) -> None:
    invoice.items.all().delete()
    for item in items:
        item.invoice = invoice
    InvoiceItem.objects.bulk_create(items)


def _refresh_customer(invoice: Invoice, deal: Deal) -> list[str]:
    """
    Quotation overrides win; where the deal has none the invoice keeps its
    current value. Due date follows the quotation date + credit term.
    """
    touched = []
    for invoice_field, deal_field in QUOTATION_CUSTOMER_FIELDS.items():
        value = getattr(deal, deal_field)
        if value:
            setattr(invoice, invoice_field, value)
            touched.append(invoice_field)

    due_date = deal.quotation_due_date()
    if due_date is not None:
        invoice.due_date = due_date
        touched.append("due_date")
    return touched


@transaction.atomic
def materialize_draft(invoice_id, *, refresh_customer: bool = False) -> Invoice:
    """
    Rebuild a DRAFT invoice's items and totals from its deal.

    Non-draft invoices and invoices whose deal was removed are returned
    untouched. Running it twice in a row yields the same items and totals.
    """
    invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
    if not invoice.is_draft or invoice.deal_id is None:
        return invoice

    deal = Deal.objects.get(pk=invoice.deal_id)
    items = build_invoice_items(deal)
    replace_invoice_items(invoice, items)

    update_fields = invoice.apply_totals(compute_deal_totals(deal, items))
    if refresh_customer:
        update_fields += _refresh_customer(invoice, deal)

    invoice.save(update_fields=[*update_fields, "updated_at"])
    logger.debug("Invoice %s materialized from deal %s", invoice.invoice_number, deal.pk)
    return invoice


def sync_invoice(invoice_id, *, actor=None) -> Invoice:
    """
    Explicit sync: items, totals and customer block are pulled from the deal.
    """
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=invoice_id)
        if not invoice.is_draft:
            raise PreconditionFailed(_("Only draft invoices can be synced. Revert to draft first."))
        if invoice.deal_id is None:
            raise PreconditionFailed(_("Invoice has no associated deal."))

        invoice = materialize_draft(invoice.pk, refresh_customer=True)

        logger.info("Invoice %s synced from deal %s", invoice.invoice_number, invoice.deal_id)
        log_event(
            action=AuditLog.Action.SYNC,
            message=_("Invoice %(number)s synced with its deal.") % {"number": invoice.invoice_number},
            actor=actor,
            target=invoice,
            extra={"deal_id": invoice.deal_id, "grand_total": str(invoice.grand_total)},
        )
    return invoice
