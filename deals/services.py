# deals/services.py
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.translation import gettext as _

from core.models import AuditLog, CompanyProfile
from core.services.audit import log_event
from core.services.numbering import DocumentType, save_with_number

from .models import Deal
from .permissions import check_deal_access

logger = logging.getLogger(__name__)


class QuotationService:
    """
    Quotation stage of a deal: numbering and defaults.
    """

    @staticmethod
    @transaction.atomic
    def generate_quotation(deal_id, *, actor=None) -> Deal:
        """
        Give the deal its QT running number and quotation defaults.

        Idempotent: a deal that already has a quotation number is returned
        unchanged.
        """
        deal = get_object_or_404(Deal.objects.select_for_update(), pk=deal_id)
        check_deal_access(actor, deal)

        if deal.quotation_number:
            return deal

        today = timezone.localdate()
        company = CompanyProfile.get_solo()

        deal.quotation_date = today
        deal.valid_until = today + timedelta(days=settings.BILLING_QUOTATION_VALIDITY_DAYS)
        deal.credit_term = settings.BILLING_DEFAULT_CREDIT_TERM_DAYS
        deal.quotation_terms = company.quotation_terms

        save_with_number(
            deal,
            DocumentType.QUOTATION,
            update_fields=[
                "quotation_date",
                "valid_until",
                "credit_term",
                "quotation_terms",
                "updated_at",
            ],
        )

        logger.info("Quotation %s generated for deal %s", deal.quotation_number, deal.pk)
        log_event(
            action=AuditLog.Action.CREATE,
            message=_("Quotation %(number)s generated.") % {"number": deal.quotation_number},
            actor=actor,
            target=deal,
            extra={"quotation_number": deal.quotation_number},
        )
        return deal
