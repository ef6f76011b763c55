from __future__ import annotations

from .base import NonEmptyStr, Record


class Module(Record):
    """A titled content unit. No relation to users."""

    title: NonEmptyStr
