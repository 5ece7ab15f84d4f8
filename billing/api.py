# billing/api.py

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from core.http import json_api, read_json_body

from .models import Invoice, InvoiceItem, Receipt
from .services import InvoiceService, ReceiptService
from .sync import sync_invoice


# ============================================================
# Helpers (serializer-style)
# ============================================================

def _iso(value):
    return value.isoformat() if value else None


def _snapshot_payload(document) -> dict:
    return {
        "company": {
            "name": document.company_name,
            "address": document.company_address,
            "tax_id": document.company_tax_id,
            "phone": document.company_phone,
        },
        "customer": {
            "name": document.customer_name,
            "address": document.customer_address,
            "tax_id": document.customer_tax_id,
            "phone": document.customer_phone,
            "email": document.customer_email,
        },
    }


def _serialize_invoice_item(item: InvoiceItem) -> dict:
    return {
        "id": item.id,
        "position": item.position,
        "description": item.description_snapshot,
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
        "discount": str(item.discount),
        "amount": str(item.amount),
    }


def _serialize_invoice(invoice: Invoice) -> dict:
    """
    Full invoice: header, snapshots, totals, items and receipt summary.
    """
    receipt = Receipt.objects.filter(invoice=invoice).first()

    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "date": _iso(invoice.date),
        "due_date": _iso(invoice.due_date),
        "status": invoice.status,
        "confirmed_at": _iso(invoice.confirmed_at),
        "deal_id": invoice.deal_id,
        "notes": invoice.notes,
        **_snapshot_payload(invoice),
        "totals": {name: str(getattr(invoice, name)) for name in Invoice.TOTALS_FIELDS},
        "items": [_serialize_invoice_item(item) for item in invoice.items.all()],
        "receipt": (
            {
                "id": receipt.id,
                "receipt_number": receipt.receipt_number,
                "status": receipt.status,
            }
            if receipt
            else None
        ),
    }


def _serialize_receipt(receipt: Receipt) -> dict:
    invoice = receipt.invoice
    return {
        "id": receipt.id,
        "receipt_number": receipt.receipt_number,
        "date": _iso(receipt.date),
        "status": receipt.status,
        "confirmed_at": _iso(receipt.confirmed_at),
        "payment_method": receipt.payment_method,
        "payment_date": _iso(receipt.payment_date),
        "notes": receipt.notes,
        **_snapshot_payload(receipt),
        "totals": {
            "grand_total": str(receipt.grand_total),
            "wht_amount": str(receipt.wht_amount),
            "net_total": str(receipt.net_total),
        },
        "invoice": {
            "id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "status": invoice.status,
        },
    }


# ============================================================
# Invoices
# ============================================================

@require_POST
@json_api
def deal_invoice_create(request, pk: int):
    """
    POST /api/deals/<pk>/invoice  → 201 with the new DRAFT invoice.
    """
    invoice = InvoiceService.generate_invoice(pk, actor=request.user)
    return JsonResponse(_serialize_invoice(invoice), status=201)


@require_http_methods(["GET", "PUT"])
@json_api
def invoice_detail(request, pk: int):
    """
    GET /api/invoices/<pk>   (a DRAFT is synced with its deal first)
    PUT /api/invoices/<pk>   partial update / revert to draft
    """
    if request.method == "PUT":
        invoice = InvoiceService.update_invoice(pk, read_json_body(request), actor=request.user)
    else:
        invoice = InvoiceService.get_invoice(pk)
    return JsonResponse(_serialize_invoice(invoice))


@require_POST
@json_api
def invoice_sync_items(request, pk: int):
    invoice = sync_invoice(pk, actor=request.user)
    return JsonResponse(_serialize_invoice(invoice))


@require_POST
@json_api
def invoice_confirm(request, pk: int):
    invoice = InvoiceService.confirm_invoice(pk, actor=request.user)
    return JsonResponse(_serialize_invoice(invoice))


@require_POST
@json_api
def invoice_receipt_create(request, pk: int):
    """
    POST /api/invoices/<pk>/receipt  → 201 with the new DRAFT receipt.
    """
    receipt = ReceiptService.generate_receipt(pk, actor=request.user)
    return JsonResponse(_serialize_receipt(receipt), status=201)


# ============================================================
# Receipts
# ============================================================

@require_http_methods(["GET", "PUT"])
@json_api
def receipt_detail(request, pk: int):
    if request.method == "PUT":
        receipt = ReceiptService.update_receipt(pk, read_json_body(request), actor=request.user)
    else:
        receipt = ReceiptService.get_receipt(pk)
    return JsonResponse(_serialize_receipt(receipt))


@require_POST
@json_api
def receipt_confirm(request, pk: int):
    """
    POST /api/receipts/<pk>/confirm  issues the receipt and pays its invoice.
    """
    receipt = ReceiptService.confirm_receipt(pk, actor=request.user)
    return JsonResponse(_serialize_receipt(receipt))
