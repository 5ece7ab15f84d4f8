# core/services/audit.py

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.contrib.contenttypes.models import ContentType

from core.models import AuditLog

logger = logging.getLogger(__name__)


def log_event(
    *,
    action: str | AuditLog.Action,
    message: str = "",
    actor: Any = None,
    target: Optional[Any] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    """
    Create a single audit log entry.

    action:
        One of AuditLog.Action (CREATE / UPDATE / STATUS_CHANGE / SYNC / OTHER)
        or its string value. Anything else raises ValueError.

    actor:
        The acting user. Only stored when user.is_authenticated is True.

    target:
        Optional model instance (Deal, Invoice, Receipt ...) stored through
        the generic foreign key.

    extra:
        Optional mapping of structured data, stored as JSON.
    """
    if isinstance(action, AuditLog.Action):
        action_value = action.value
    else:
        action_value = str(action)

    valid_actions = {choice[0] for choice in AuditLog.Action.choices}
    if action_value not in valid_actions:
        raise ValueError(
            f"Invalid audit action '{action_value}'. "
            f"Allowed values: {sorted(valid_actions)}"
        )

    data: dict[str, Any] = {
        "action": action_value,
        "message": str(message or ""),
        # Copy extra to avoid mutating the caller's dict
        "extra": dict(extra) if extra is not None else {},
    }

    if actor is not None and getattr(actor, "is_authenticated", False):
        data["actor"] = actor

    if target is not None:
        obj_id = getattr(target, "pk", None)
        if obj_id is not None:
            data["target_content_type"] = ContentType.objects.get_for_model(
                target, for_concrete_model=True
            )
            data["target_object_id"] = str(obj_id)

    entry = AuditLog.objects.create(**data)
    logger.debug("Audit [%s] %s", action_value, data["message"])
    return entry
