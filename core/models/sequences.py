# core/models/sequences.py
from django.db import models
from django.utils.translation import gettext_lazy as _


class NumberSequence(models.Model):
    """
    Stores the last used running number for a document type (key) and period.

    Example:
    - key: "IV"
    - period: "202401"
    - last_value: 42 → next will be 43
    """

    key = models.CharField(max_length=16, verbose_name=_("Document type"))
    period = models.CharField(max_length=16, blank=True, verbose_name=_("Period"))
    last_value = models.PositiveIntegerField(default=0, verbose_name=_("Last value"))

    class Meta:
        unique_together = ("key", "period")
        verbose_name = _("Number sequence")
        verbose_name_plural = _("Number sequences")

    def __str__(self) -> str:
        if self.period:
            return f"{self.key} [{self.period}] → {self.last_value}"
        return f"{self.key} → {self.last_value}"
