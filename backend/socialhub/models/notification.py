from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import NonEmptyStr, Record, UserId, utcnow


class NotificationType(str, Enum):
    FOLLOW = "follow"
    COMMENT = "comment"
    LIKE_POST = "like_post"
    LIKE_COMMENT = "like_comment"
    LIKE_STORY = "like_story"


class Notification(Record):
    """
    Event record fanned out to ``sentTo`` (kept in insertion order).

    Written once with its whole recipient list and never updated.
    """

    immutable = True

    title: NonEmptyStr
    body: NonEmptyStr
    sentTo: list[UserId] = Field(default_factory=list)
    type: NotificationType | None = None
    notificationFromUser: UserId | None = None
    createdAt: datetime = Field(default_factory=utcnow)
