# contacts/models.py
from django.db import models
from django.utils.translation import gettext_lazy as _


class Contact(models.Model):
    """
    A person or company the sales team deals with.
    Only the fields copied onto billing documents live here.
    """

    class ContactKind(models.TextChoices):
        PERSON = "person", _("Person")
        COMPANY = "company", _("Company")

    kind = models.CharField(
        max_length=20,
        choices=ContactKind.choices,
        default=ContactKind.PERSON,
        verbose_name=_("Contact type"),
    )

    first_name = models.CharField(max_length=150, blank=True, verbose_name=_("First name"))
    last_name = models.CharField(max_length=150, blank=True, verbose_name=_("Last name"))

    company_name = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_("Company name"),
        help_text=_("Billed name when the contact represents a company."),
    )

    address = models.TextField(blank=True, verbose_name=_("Address"))
    tax_number = models.CharField(max_length=50, blank=True, verbose_name=_("Tax ID"))
    phone = models.CharField(max_length=50, blank=True, verbose_name=_("Phone"))
    email = models.EmailField(blank=True, verbose_name=_("Email"))

    is_active = models.BooleanField(default=True, verbose_name=_("Active"))

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Created at"))

    class Meta:
        ordering = ("company_name", "last_name", "first_name", "id")
        verbose_name = _("Contact")
        verbose_name_plural = _("Contacts")

    def __str__(self) -> str:
        return self.display_name or f"Contact #{self.pk}"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        """
        Company name for companies (or anyone with one), else the person's name.
        """
        return self.company_name or self.full_name

    @property
    def is_company(self) -> bool:
        return self.kind == self.ContactKind.COMPANY
