from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(slots=True)
class DdbError(Exception):
    """Storage failure raised by ``ddb_call``.

    Collections translate the conditional-check failures they expect into
    ``socialhub.errors``; anything else reaches the FastAPI handler, which
    renders ``status_code``/``title`` as problem+json.
    """

    status_code: ClassVar[int] = 500
    title: ClassVar[str] = "Storage Error"

    message: str
    operation: str | None = None
    table_name: str | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class DdbConflict(DdbError):
    """Conditional check or transaction condition failed."""

    status_code: ClassVar[int] = 409
    title: ClassVar[str] = "Conflict"


@dataclass(slots=True)
class DdbValidation(DdbError):
    status_code: ClassVar[int] = 400
    title: ClassVar[str] = "Bad Request"


@dataclass(slots=True)
class DdbThrottled(DdbError):
    status_code: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    status_code: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbInternal(DdbError):
    pass
