# billing/models.py
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models.base import BaseModel

from .calculation import DocumentTotals

DECIMAL_ZERO = Decimal("0.00")


def _money_field(verbose_name, **kwargs):
    return models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=verbose_name,
        **kwargs,
    )


def _rate_field(verbose_name, default=DECIMAL_ZERO):
    return models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=default,
        verbose_name=verbose_name,
    )


# ==============================================================================
# Snapshot base
# ==============================================================================

class PartySnapshotModel(BaseModel):
    """
    Company and customer details frozen onto a document.
    """

    company_name = models.CharField(max_length=255, blank=True, verbose_name=_("Company name"))
    company_address = models.TextField(blank=True, verbose_name=_("Company address"))
    company_tax_id = models.CharField(max_length=50, blank=True, verbose_name=_("Company tax ID"))
    company_phone = models.CharField(max_length=50, blank=True, verbose_name=_("Company phone"))

    customer_name = models.CharField(max_length=255, blank=True, verbose_name=_("Customer name"))
    customer_address = models.TextField(blank=True, verbose_name=_("Customer address"))
    customer_tax_id = models.CharField(max_length=50, blank=True, verbose_name=_("Customer tax ID"))
    customer_phone = models.CharField(max_length=50, blank=True, verbose_name=_("Customer phone"))
    customer_email = models.CharField(max_length=254, blank=True, verbose_name=_("Customer email"))

    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    SNAPSHOT_FIELDS = (
        "company_name",
        "company_address",
        "company_tax_id",
        "company_phone",
        "customer_name",
        "customer_address",
        "customer_tax_id",
        "customer_phone",
        "customer_email",
        "notes",
    )

    class Meta:
        abstract = True

    def snapshot_values(self) -> dict:
        return {name: getattr(self, name) for name in self.SNAPSHOT_FIELDS}


# ==============================================================================
# Invoice
# ==============================================================================

class Invoice(PartySnapshotModel):
    """
    Invoice generated from a deal.

    While DRAFT its items, totals and (on explicit sync) customer block
    follow the deal; once confirmed it is frozen until reverted to DRAFT.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", _("Draft")
        SENT = "SENT", _("Sent")
        PAID = "PAID", _("Paid")

    invoice_number = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name=_("Invoice number"),
    )
    date = models.DateField(default=timezone.localdate, verbose_name=_("Invoice date"))
    due_date = models.DateField(null=True, blank=True, verbose_name=_("Due date"))

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
        verbose_name=_("Status"),
    )
    confirmed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Confirmed at"))

    deal = models.OneToOneField(
        "deals.Deal",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoice",
        verbose_name=_("Deal"),
    )

    # ========== Totals ==========

    subtotal = _money_field(_("Subtotal"))
    item_discount = _money_field(_("Item discounts"))
    global_discount = _money_field(_("Special discount"))
    total_discount = _money_field(_("Total discount"))
    after_discount = _money_field(_("Amount after discount"))
    vat_rate = _rate_field(_("VAT rate (%)"), default=Decimal("7.00"))
    vat_amount = _money_field(_("VAT amount"))
    grand_total = _money_field(_("Grand total"))
    wht_rate = _rate_field(_("Withholding tax rate (%)"))
    wht_amount = _money_field(_("Withholding tax amount"))
    net_total = _money_field(_("Net total"))

    TOTALS_FIELDS = (
        "subtotal",
        "item_discount",
        "global_discount",
        "total_discount",
        "after_discount",
        "vat_rate",
        "vat_amount",
        "grand_total",
        "wht_rate",
        "wht_amount",
        "net_total",
    )

    class Meta:
        ordering = ("-date", "-id")
        verbose_name = _("Invoice")
        verbose_name_plural = _("Invoices")

    def __str__(self) -> str:
        return self.invoice_number or f"Invoice #{self.pk}"

    @property
    def is_draft(self) -> bool:
        return self.status == self.Status.DRAFT

    @property
    def totals(self) -> DocumentTotals:
        return DocumentTotals(**{name: getattr(self, name) for name in self.TOTALS_FIELDS})

    def apply_totals(self, totals: DocumentTotals) -> list[str]:
        """
        Copy computed totals onto the row; returns the touched field names.
        """
        values = totals.as_model_fields()
        for name, value in values.items():
            setattr(self, name, value)
        return list(values)


class InvoiceItem(models.Model):
    """
    A line copied from a deal item. sku / name / description are frozen at
    copy time.
    """

    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name=_("Invoice"),
    )
    position = models.PositiveIntegerField(default=0, verbose_name=_("Position"))

    sku = models.CharField(max_length=50, blank=True, verbose_name=_("SKU"))
    name = models.CharField(max_length=255, verbose_name=_("Item name"))
    description = models.TextField(blank=True, verbose_name=_("Product description"))

    quantity = models.PositiveIntegerField(default=1, verbose_name=_("Quantity"))
    unit_price = _money_field(_("Unit price"))
    discount = _money_field(_("Line discount"))
    amount = _money_field(_("Amount"))

    class Meta:
        ordering = ("position", "id")
        verbose_name = _("Invoice item")
        verbose_name_plural = _("Invoice items")

    def __str__(self) -> str:
        return f"{self.invoice} - {self.name}"

    @property
    def description_snapshot(self) -> dict:
        return {
            "sku": self.sku,
            "name": self.name,
            "product_description": self.description,
        }


# ==============================================================================
# Receipt
# ==============================================================================

class Receipt(PartySnapshotModel):
    """
    Receipt for a confirmed invoice. Confirming it marks the invoice PAID.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", _("Draft")
        ISSUED = "ISSUED", _("Issued")

    receipt_number = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name=_("Receipt number"),
    )
    date = models.DateField(default=timezone.localdate, verbose_name=_("Receipt date"))

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
        verbose_name=_("Status"),
    )
    confirmed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("Confirmed at"))

    invoice = models.OneToOneField(
        Invoice,
        on_delete=models.PROTECT,
        related_name="receipt",
        verbose_name=_("Invoice"),
    )

    payment_method = models.CharField(max_length=100, blank=True, verbose_name=_("Payment method"))
    payment_date = models.DateField(null=True, blank=True, verbose_name=_("Payment date"))

    grand_total = _money_field(_("Grand total"))
    wht_amount = _money_field(_("Withholding tax amount"))
    net_total = _money_field(_("Net total"))

    class Meta:
        ordering = ("-date", "-id")
        verbose_name = _("Receipt")
        verbose_name_plural = _("Receipts")

    def __str__(self) -> str:
        return self.receipt_number or f"Receipt #{self.pk}"

    @property
    def is_draft(self) -> bool:
        return self.status == self.Status.DRAFT
