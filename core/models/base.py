from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class TimeStampedModel(models.Model):
    """
    Adds created_at / updated_at fields.
    Use this for almost all models.
    """
    created_at = models.DateTimeField(
        default=timezone.now,
        editable=False,
        verbose_name=_("Created at"),
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Updated at"),
    )

    class Meta:
        abstract = True


class UserStampedModel(models.Model):
    """
    Adds created_by / updated_by fields.
    These are optional and are filled in by the service layer.
    """
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(app_label)s_%(class)s_created",
        verbose_name=_("Created by"),
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="%(app_label)s_%(class)s_updated",
        verbose_name=_("Updated by"),
    )

    class Meta:
        abstract = True

    def stamp_user(self, user, *, created: bool = False) -> None:
        """
        Record the acting user; anonymous or missing users are ignored.
        """
        if user is None or not getattr(user, "is_authenticated", False):
            return
        if created:
            self.created_by = user
        self.updated_by = user


class BaseModel(TimeStampedModel, UserStampedModel):
    """
    Base model for SalesDesk documents:

    - created_at / updated_at
    - created_by / updated_by
    """

    class Meta:
        abstract = True
