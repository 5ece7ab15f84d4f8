from .base import BaseModel, TimeStampedModel, UserStampedModel
from .audit import AuditLog
from .company import CompanyProfile
from .sequences import NumberSequence

__all__ = [
    "BaseModel",
    "TimeStampedModel",
    "UserStampedModel",
    "AuditLog",
    # Company settings
    "CompanyProfile",
    # Auto Number
    "NumberSequence",
]
