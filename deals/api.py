# deals/api.py

from django.http import JsonResponse
from django.views.decorators.http import require_POST

from core.http import json_api

from .models import Deal
from .services import QuotationService


def _date_or_none(value):
    return value.isoformat() if value else None


def _serialize_quotation(deal: Deal) -> dict:
    """
    Deal with its embedded quotation fields.
    """
    return {
        "id": deal.id,
        "title": deal.title,
        "value": str(deal.value),
        "contact_id": deal.contact_id,
        "owner_id": deal.owner_id,
        "credit_term": deal.credit_term,
        "quotation_number": deal.quotation_number,
        "quotation_date": _date_or_none(deal.quotation_date),
        "valid_until": _date_or_none(deal.valid_until),
        "quotation_customer_name": deal.quotation_customer_name,
        "quotation_customer_address": deal.quotation_customer_address,
        "quotation_customer_tax_id": deal.quotation_customer_tax_id,
        "quotation_customer_phone": deal.quotation_customer_phone,
        "quotation_customer_email": deal.quotation_customer_email,
        "quotation_discount": str(deal.quotation_discount),
        "quotation_vat_rate": str(deal.quotation_vat_rate),
        "quotation_wht_rate": str(deal.quotation_wht_rate),
        "quotation_terms": deal.quotation_terms,
    }


@require_POST
@json_api
def deal_quotation(request, pk: int):
    """
    POST /api/deals/<pk>/quotation

    Generates the quotation number and defaults (idempotent).
    """
    deal = QuotationService.generate_quotation(pk, actor=request.user)
    return JsonResponse(_serialize_quotation(deal))
