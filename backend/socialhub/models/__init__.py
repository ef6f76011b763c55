from __future__ import annotations

from .base import Record, Reference, ReferenceField, UserId, new_record_id
from .connection import UserConnection
from .module import Module
from .notification import Notification, NotificationType
from .user import User

__all__ = [
    "Module",
    "Notification",
    "NotificationType",
    "Record",
    "Reference",
    "ReferenceField",
    "User",
    "UserConnection",
    "UserId",
    "new_record_id",
]
