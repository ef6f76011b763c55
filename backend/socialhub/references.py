from __future__ import annotations

import warnings
from typing import Any

from .errors import ReferenceDanglingWarning
from .models import Record
from .observability.logging import get_logger
from .registry import ModelRegistry


def resolve_id(registry: ModelRegistry, target: str, record_id: str | None) -> Record | None:
    """
    Look up a weakly referenced record.

    A missing record is a normal outcome: it yields ``None`` and a
    ``ReferenceDanglingWarning``, never an exception.
    """
    if not record_id:
        return None
    found = registry.get(target).find_by_id(record_id)
    if found is None:
        get_logger("references").warning("reference_dangling", target=target, record_id=record_id)
        warnings.warn(
            f"{target} {record_id} is referenced but does not exist",
            ReferenceDanglingWarning,
            stacklevel=2,
        )
    return found


def resolve(registry: ModelRegistry, record: Record, field: str) -> Any:
    """Resolve one reference field of ``record``; list fields resolve element-wise."""
    for ref in record.reference_fields():
        if ref.field != field:
            continue
        value = getattr(record, field)
        if ref.many:
            return [resolve_id(registry, ref.target, v) for v in value or []]
        return resolve_id(registry, ref.target, value)
    raise KeyError(f"{type(record).__name__}.{field} is not a reference field")


def resolve_all(registry: ModelRegistry, record: Record) -> dict[str, Any]:
    return {ref.field: resolve(registry, record, ref.field) for ref in record.reference_fields()}
