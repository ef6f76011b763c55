"""Error taxonomy of the data layer.

Collection handles raise these; routes never catch them; the exception
handlers in ``main`` turn them into problem+json responses.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ModelError(Exception):
    message: str
    collection: str | None = None
    record_id: str | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ValidationError(ModelError):
    """A write violates a schema constraint. ``field`` is a dotted path."""

    field: str | None = None


@dataclass(slots=True)
class NotFoundError(ModelError):
    pass


@dataclass(slots=True)
class ConflictError(ModelError):
    """A uniqueness rule enforced by the caller was violated."""

    fields: tuple[str, ...] = ()


@dataclass(slots=True)
class DuplicateModelError(ModelError):
    # The registry returns the existing handle on re-registration, so this is
    # only raised by callers that opt into strict registration.
    pass


class ReferenceDanglingWarning(UserWarning):
    """A weak reference points at a record that no longer exists."""
