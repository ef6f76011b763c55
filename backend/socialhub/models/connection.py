from __future__ import annotations

from datetime import datetime

from .base import Record, UserId


class UserConnection(Record):
    """
    Directed "follows" edge: ``owner`` follows ``followingTo``.

    Self-follows and duplicate pairs are rejected by the connection service;
    the shape alone allows both. Only the timestamps change after insert.
    """

    timestamps = True
    frozen_fields = frozenset({"owner", "followingTo"})

    owner: UserId
    followingTo: UserId
    createdAt: datetime | None = None
    updatedAt: datetime | None = None
