# core/models/audit.py
from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.utils.translation import gettext_lazy as _

from .base import TimeStampedModel


class AuditLog(TimeStampedModel):
    """
    Simple audit log entry to record important business events.

    Designed to be generic and lightweight:
    - action: short code describing what happened
    - actor: who did it (user)
    - target: any model instance (via GenericForeignKey)
    - message: human-readable description
    - extra: JSON payload for structured data
    """

    class Action(models.TextChoices):
        CREATE = "create", _("Create")
        UPDATE = "update", _("Update")
        STATUS_CHANGE = "status_change", _("Status change")
        SYNC = "sync", _("Sync")
        OTHER = "other", _("Other")

    # What happened
    action = models.CharField(
        max_length=32,
        choices=Action.choices,
        verbose_name=_("Action"),
        db_index=True,
    )

    # Who did it (optional)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
        verbose_name=_("User"),
    )

    # Generic relation to any target object (deal, invoice, receipt)
    target_content_type = models.ForeignKey(
        ContentType,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_logs",
        verbose_name=_("Target type"),
    )
    target_object_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        verbose_name=_("Target id"),
    )
    target = GenericForeignKey("target_content_type", "target_object_id")

    message = models.TextField(
        verbose_name=_("Message"),
        blank=True,
    )

    extra = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_("Extra data"),
    )

    class Meta:
        verbose_name = _("Audit log")
        verbose_name_plural = _("Audit logs")
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["actor", "created_at"], name="core_auditl_actor_i_0c5e2b_idx"),
            models.Index(
                fields=["target_content_type", "target_object_id", "created_at"],
                name="core_auditl_target__7b1f4d_idx",
            ),
            models.Index(fields=["action", "created_at"], name="core_auditl_action_3e9a61_idx"),
        ]

    def __str__(self) -> str:
        base = f"[{self.action}]"
        if self.message:
            return f"{base} {self.message[:80]}"
        return f"{base} #{self.pk}"
