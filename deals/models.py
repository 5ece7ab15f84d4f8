# deals/models.py
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from contacts.models import Contact
from core.models.base import TimeStampedModel

DECIMAL_ZERO = Decimal("0.00")


class Product(TimeStampedModel):
    """
    Catalog entry. Documents copy sku/name/description at generation time,
    later catalog edits never reach an issued document.
    """

    sku = models.CharField(max_length=50, unique=True, verbose_name=_("SKU"))
    name = models.CharField(max_length=255, verbose_name=_("Product name"))
    description = models.TextField(blank=True, verbose_name=_("Description"))
    price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Default price"),
    )
    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    class Meta:
        ordering = ("sku",)
        verbose_name = _("Product")
        verbose_name_plural = _("Products")

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class Deal(TimeStampedModel):
    """
    Sales opportunity with its embedded quotation.

    The quotation_* fields are the customer and rate overrides typed in on
    the quotation screen; they are the source of truth for the invoice
    while it is still a draft.
    """

    title = models.CharField(max_length=255, verbose_name=_("Title"))
    value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Deal value"),
        help_text=_("Used as the subtotal when the deal has no line items."),
    )

    contact = models.ForeignKey(
        Contact,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deals",
        verbose_name=_("Contact"),
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="owned_deals",
        verbose_name=_("Owner"),
    )
    team_members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="team_deals",
        verbose_name=_("Sales team"),
    )

    notes = models.TextField(blank=True, verbose_name=_("Notes"))
    credit_term = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Credit term (days)"),
    )

    # ========== Quotation ==========

    quotation_number = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_("Quotation number"),
    )
    quotation_date = models.DateField(null=True, blank=True, verbose_name=_("Quotation date"))
    valid_until = models.DateField(null=True, blank=True, verbose_name=_("Valid until"))

    quotation_customer_name = models.CharField(max_length=255, blank=True, verbose_name=_("Customer name"))
    quotation_customer_address = models.TextField(blank=True, verbose_name=_("Customer address"))
    quotation_customer_tax_id = models.CharField(max_length=50, blank=True, verbose_name=_("Customer tax ID"))
    quotation_customer_phone = models.CharField(max_length=50, blank=True, verbose_name=_("Customer phone"))
    quotation_customer_email = models.EmailField(blank=True, verbose_name=_("Customer email"))

    quotation_discount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Special discount"),
    )
    quotation_vat_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("7.00"),
        verbose_name=_("VAT rate (%)"),
    )
    quotation_wht_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Withholding tax rate (%)"),
    )
    quotation_terms = models.TextField(blank=True, verbose_name=_("Terms"))

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name = _("Deal")
        verbose_name_plural = _("Deals")

    def __str__(self) -> str:
        return self.title

    @property
    def has_quotation(self) -> bool:
        return bool(self.quotation_number)

    @property
    def effective_credit_term(self) -> int:
        # 0 means "not set", same as None
        return self.credit_term or settings.BILLING_DEFAULT_CREDIT_TERM_DAYS

    def quotation_due_date(self):
        """
        quotation_date + credit term, or None while no quotation date is set.
        """
        if not self.quotation_date:
            return None
        return self.quotation_date + timedelta(days=self.effective_credit_term)


class DealItem(models.Model):
    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name=_("Deal"),
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="deal_items",
        verbose_name=_("Product"),
    )
    name = models.CharField(max_length=255, blank=True, verbose_name=_("Item name"))
    description = models.TextField(blank=True, verbose_name=_("Description"))

    quantity = models.PositiveIntegerField(default=1, verbose_name=_("Quantity"))
    price = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Unit price"),
    )
    discount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=DECIMAL_ZERO,
        verbose_name=_("Line discount"),
    )
    position = models.PositiveIntegerField(default=0, verbose_name=_("Position"))

    class Meta:
        ordering = ("position", "id")
        verbose_name = _("Deal item")
        verbose_name_plural = _("Deal items")

    def __str__(self) -> str:
        return f"{self.deal} - {self.name or self.product}"
