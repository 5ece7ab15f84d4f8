# deals/permissions.py
from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.utils.module_loading import import_string
from django.utils.translation import gettext_lazy as _

ADMIN_GROUP_NAME = "admin"


def is_admin(user) -> bool:
    return user.is_superuser or user.groups.filter(name=ADMIN_GROUP_NAME).exists()


def can_access_deal(user, deal) -> bool:
    """
    Default access predicate: admins, the deal owner and members of the
    deal's sales team.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    if is_admin(user):
        return True
    if deal.owner_id is not None and deal.owner_id == user.pk:
        return True
    return deal.team_members.filter(pk=user.pk).exists()


def get_access_predicate():
    """
    The predicate configured by settings.DEAL_ACCESS_PREDICATE (dotted path).
    """
    return import_string(settings.DEAL_ACCESS_PREDICATE)


def check_deal_access(user, deal) -> None:
    if not get_access_predicate()(user, deal):
        raise PermissionDenied(_("Access denied to this deal."))
