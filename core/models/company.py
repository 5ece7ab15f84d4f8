# core/models/company.py
from django.db import models
from django.utils.translation import gettext_lazy as _


class CompanyProfile(models.Model):
    """
    Single settings row holding the issuing company's details.
    Copied onto every document at generation time.
    """

    name = models.CharField(max_length=255, blank=True, verbose_name=_("Company name"))
    address = models.TextField(blank=True, verbose_name=_("Address"))
    tax_id = models.CharField(max_length=50, blank=True, verbose_name=_("Tax ID"))
    phone = models.CharField(max_length=50, blank=True, verbose_name=_("Phone"))

    quotation_terms = models.TextField(
        blank=True,
        verbose_name=_("Default quotation terms"),
        help_text=_("Pre-filled into every newly generated quotation."),
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Updated at"),
    )

    class Meta:
        verbose_name = _("Company profile")
        verbose_name_plural = _("Company profile")

    def __str__(self) -> str:
        return self.name or str(_("Company profile"))

    @classmethod
    def get_solo(cls) -> "CompanyProfile":
        """
        Return the single settings row, creating it if missing.
        """
        obj, _created = cls.objects.get_or_create(pk=1)
        return obj

    def as_snapshot(self) -> dict:
        return {
            "company_name": self.name,
            "company_address": self.address,
            "company_tax_id": self.tax_id,
            "company_phone": self.phone,
        }
