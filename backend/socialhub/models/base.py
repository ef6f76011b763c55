from __future__ import annotations

import secrets
import threading
import time
import types
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, StringConstraints


_id_lock = threading.Lock()
_last_ms = 0


def new_record_id() -> str:
    """
    24 hex chars: 12 of epoch milliseconds, then 12 random.

    Lexicographic order of ids follows creation order within the process: the
    millisecond part is bumped when two ids would share one.
    """
    global _last_ms
    with _id_lock:
        ms = max(time.time_ns() // 1_000_000, _last_ms + 1)
        _last_ms = ms
    return f"{ms:012x}{secrets.token_hex(6)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Reference:
    """Field metadata: the value is the id of a ``target`` record (weak, not owned)."""

    target: str


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
UserId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1), Reference("User")]


@dataclass(frozen=True, slots=True)
class ReferenceField:
    field: str
    target: str
    many: bool


def _find_reference(annotation: Any) -> tuple[Reference, bool] | None:
    origin = get_origin(annotation)
    if origin is Annotated:
        base, *meta = get_args(annotation)
        for m in meta:
            if isinstance(m, Reference):
                return m, False
        return _find_reference(base)
    if origin in (list, tuple):
        for arg in get_args(annotation):
            found = _find_reference(arg)
            if found:
                return found[0], True
        return None
    if origin in (Union, types.UnionType):
        for arg in get_args(annotation):
            found = _find_reference(arg)
            if found:
                return found
    return None


class Record(BaseModel):
    """
    Base of every persisted record.

    ``_id`` is assigned by the collection on insert. Subclasses opt into
    system timestamps (``createdAt``/``updatedAt``) with ``timestamps``.
    ``immutable`` refuses every update; ``frozen_fields`` pins single fields.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    timestamps: ClassVar[bool] = False
    immutable: ClassVar[bool] = False
    # Wire names that update() refuses to change.
    frozen_fields: ClassVar[frozenset[str]] = frozenset()

    id: str = Field(default_factory=new_record_id, alias="_id")

    @classmethod
    def reference_fields(cls) -> list[ReferenceField]:
        out: list[ReferenceField] = []
        for name, info in cls.model_fields.items():
            for m in info.metadata:
                if isinstance(m, Reference):
                    out.append(ReferenceField(field=name, target=m.target, many=False))
                    break
            else:
                found = _find_reference(info.annotation)
                if found:
                    out.append(ReferenceField(field=name, target=found[0].target, many=found[1]))
        return out

    @classmethod
    def system_fields(cls) -> frozenset[str]:
        fields = {"id", "_id"}
        if cls.timestamps:
            fields |= {"createdAt", "updatedAt"}
        return frozenset(fields)

    def to_document(self) -> dict[str, Any]:
        """JSON-safe dict keyed by wire names (``_id``, camelCase)."""
        return self.model_dump(mode="json", by_alias=True)
