# core/services/numbering.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Type

from django.apps import apps
from django.conf import settings
from django.db import IntegrityError, models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import NumberSequence

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 4


class DocumentType(models.TextChoices):
    QUOTATION = "QT", _("Quotation")
    INVOICE = "IV", _("Invoice")
    RECEIPT = "RE", _("Receipt")


# Where each document type keeps its running number.
NUMBER_FIELDS = {
    DocumentType.QUOTATION: ("deals.Deal", "quotation_number"),
    DocumentType.INVOICE: ("billing.Invoice", "invoice_number"),
    DocumentType.RECEIPT: ("billing.Receipt", "receipt_number"),
}


class NumberAllocationError(Exception):
    """
    Raised when no unique running number could be persisted after
    BILLING_NUMBER_MAX_ATTEMPTS tries.
    """


def get_period(at: Optional[datetime] = None) -> str:
    """
    Monthly period string in local time, e.g. "202401".
    """
    local = timezone.localtime(at or timezone.now())
    return f"{local.year}{local.month:02d}"


def format_number(document_type: str, period: str, seq: int) -> str:
    """
    IV + 202401 + 7 → "IV-202401-0007"
    """
    return f"{document_type}-{period}-{seq:0{SEQUENCE_WIDTH}d}"


def _number_field(document_type: str) -> tuple[Type[models.Model], str]:
    label, field_name = NUMBER_FIELDS[DocumentType(document_type)]
    return apps.get_model(label), field_name


def _last_issued_value(model: Type[models.Model], field_name: str, head: str) -> int:
    """
    Highest running number already stored in model.<field_name> under the
    given head ("IV-202401-"). Returns 0 if none exists or it does not parse.
    """
    last = (
        model._default_manager
        .filter(**{f"{field_name}__startswith": head})
        .order_by(f"-{field_name}")
        .values_list(field_name, flat=True)
        .first()
    )
    if not last:
        return 0
    try:
        return int(last[len(head):])
    except ValueError:
        return 0


def _next_sequence_value(document_type: str, period: str) -> int:
    """
    Return the next sequence integer for the given type+period.

    The sequence row is locked with select_for_update until the surrounding
    transaction ends, and is floored by the numbers already persisted, so a
    counter that lags behind imported documents catches up by itself.
    """
    model, field_name = _number_field(document_type)

    with transaction.atomic():
        seq_obj, _created = NumberSequence.objects.select_for_update().get_or_create(
            key=document_type,
            period=period,
            defaults={"last_value": 0},
        )
        floor = _last_issued_value(model, field_name, f"{document_type}-{period}-")
        seq_obj.last_value = max(seq_obj.last_value, floor) + 1
        seq_obj.save(update_fields=["last_value"])
        return seq_obj.last_value


def allocate(document_type: str, at: Optional[datetime] = None) -> str:
    """
    Allocate the next "{TYPE}-{YYYYMM}-{NNNN}" number for a document type.

    Call inside the transaction that persists the document: the sequence
    row stays locked (and the increment rolls back) with it.
    """
    document_type = DocumentType(document_type).value
    period = get_period(at)
    seq = _next_sequence_value(document_type, period)
    return format_number(document_type, period, seq)


def save_with_number(
    instance: models.Model,
    document_type: str,
    *,
    at: Optional[datetime] = None,
    max_attempts: Optional[int] = None,
    update_fields: Optional[list[str]] = None,
) -> models.Model:
    """
    Assign a fresh running number to the instance's number field and save it.

    A unique violation on the number column means another writer got there
    first: the savepoint is rolled back and a new number is allocated, up to
    max_attempts times. Integrity errors on any other constraint are
    re-raised untouched.

    update_fields is passed to save() for already persisted rows (a Deal
    receiving its quotation number).
    """
    model, field_name = _number_field(document_type)
    attempts = max_attempts or getattr(settings, "BILLING_NUMBER_MAX_ATTEMPTS", 5)

    for attempt in range(1, attempts + 1):
        number = allocate(document_type, at=at)
        setattr(instance, field_name, number)
        try:
            with transaction.atomic():
                if update_fields:
                    instance.save(update_fields=[field_name, *update_fields])
                else:
                    instance.save()
        except IntegrityError:
            if not model._default_manager.filter(**{field_name: number}).exists():
                raise
            logger.warning(
                "Number %s already taken (attempt %d/%d), retrying",
                number,
                attempt,
                attempts,
            )
            continue

        logger.debug("Allocated %s for %s", number, model._meta.label)
        return instance

    logger.error(
        "Could not allocate a unique %s number after %d attempts",
        document_type,
        attempts,
    )
    raise NumberAllocationError(
        f"Could not allocate a unique {document_type} number after {attempts} attempts."
    )
