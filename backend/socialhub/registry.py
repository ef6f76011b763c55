"""Named collections of typed records on top of one DynamoDB table.

Item layout (single table):

    pk      = "<Collection>#<id>"           sk     = "RECORD"
    gsi1pk  = "COLLECTION#<Collection>"     gsi1sk = "<id>"

Uniqueness guards (see ``Collection.insert``) live beside the records:

    pk      = "UNIQUE#<Collection>#<field>=<value>#..."   sk = "GUARD"

Guard fields are sorted by name. A guarded record stores the guard pk
(``_guards``) and the guarded fields (``_uniqueOn``) so updates can move
the guard and removals can release it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

import pydantic
from boto3.dynamodb.conditions import Key

from .db.dynamodb.errors import DdbConflict
from .errors import ConflictError, DuplicateModelError, NotFoundError, ValidationError
from .models import Module, Notification, Record, User, UserConnection
from .models.base import utcnow
from .observability.logging import get_logger

R = TypeVar("R", bound=Record)

_RECORD_SK = "RECORD"
_GUARD_SK = "GUARD"
_GUARDS_ATTR = "_guards"
_UNIQUE_ON_ATTR = "_uniqueOn"
_STORAGE_KEYS = frozenset(
    {"pk", "sk", "gsi1pk", "gsi1sk", "entityType", _GUARDS_ATTR, _UNIQUE_ON_ATTR}
)

_NOT_EXISTS = "attribute_not_exists(pk)"
_EXISTS = "attribute_exists(pk)"


def _validation_error(collection: str, exc: pydantic.ValidationError) -> ValidationError:
    first = (exc.errors() or [{}])[0]
    loc = [str(p) for p in first.get("loc") or ()]
    field = ".".join(loc) or None
    msg = str(first.get("msg") or "Invalid value")
    return ValidationError(
        message=f"{field}: {msg}" if field else msg,
        collection=collection,
        field=field,
    )


class Collection(Generic[R]):
    """CRUD handle for one named collection, typed by its record schema."""

    def __init__(self, *, name: str, schema: type[R], table: Any):
        self.name = name
        self.schema = schema
        self._table = table
        # wire name -> attribute name, e.g. "_id" -> "id"
        self._attr_names = {
            (info.alias or attr): attr for attr, info in schema.model_fields.items()
        }
        self._attr_names.update({attr: attr for attr in schema.model_fields})

    def __repr__(self) -> str:
        return f"Collection({self.name!r}, {self.schema.__name__})"

    # --- keys / items ---

    def key(self, record_id: str) -> dict[str, str]:
        rid = str(record_id or "").strip()
        if not rid:
            raise ValueError("record_id is required")
        return {"pk": f"{self.name}#{rid}", "sk": _RECORD_SK}

    def _guard_pk(self, values: Mapping[str, Any]) -> str:
        parts = []
        for f in sorted(values):
            value = values[f]
            if isinstance(value, (list, tuple)):
                value = ",".join(str(v) for v in value)
            parts.append(f"{f}={value}")
        return f"UNIQUE#{self.name}#" + "#".join(parts)

    def _record_guard_pk(self, record: R, fields: Iterable[str]) -> str:
        return self._guard_pk({f: getattr(record, self._attr(f)) for f in fields})

    def _guard_item(self, guard_pk: str, record: R) -> dict[str, Any]:
        return {
            "pk": guard_pk,
            "sk": _GUARD_SK,
            "entityType": "UniqueGuard",
            "collection": self.name,
            "recordId": record.id,
        }

    def _to_item(
        self,
        record: R,
        *,
        unique_on: tuple[str, ...] = (),
        guards: list[str] | None = None,
    ) -> dict[str, Any]:
        item: dict[str, Any] = {
            **self.key(record.id),
            "entityType": self.name,
            "gsi1pk": f"COLLECTION#{self.name}",
            "gsi1sk": record.id,
            **record.to_document(),
        }
        if unique_on:
            item[_UNIQUE_ON_ATTR] = list(unique_on)
        if guards:
            item[_GUARDS_ATTR] = list(guards)
        return item

    def _from_item(self, item: Mapping[str, Any]) -> R:
        doc = {k: v for k, v in item.items() if k not in _STORAGE_KEYS}
        return self.schema.model_validate(doc)

    def _attr(self, field: str) -> str:
        try:
            return self._attr_names[field]
        except KeyError:
            raise ValidationError(
                message=f"{field}: unknown field",
                collection=self.name,
                field=field,
            ) from None

    def _get_item(self, record_id: str) -> dict[str, Any] | None:
        rid = str(record_id or "").strip()
        if not rid:
            return None
        return self._table.get_item(key=self.key(rid))

    def _validate(self, data: Mapping[str, Any]) -> R:
        try:
            return self.schema.model_validate(dict(data))
        except pydantic.ValidationError as e:
            raise _validation_error(self.name, e) from e

    def _conflict(self, fields: Iterable[str], record_id: str | None = None) -> ConflictError:
        fields = tuple(fields)
        return ConflictError(
            message=f"{self.name} already exists for ({', '.join(fields)})",
            collection=self.name,
            record_id=record_id,
            fields=fields,
        )

    def _not_found(self, record_id: str) -> NotFoundError:
        return NotFoundError(
            message=f"{self.name} {record_id} not found",
            collection=self.name,
            record_id=record_id,
        )

    # --- operations ---

    def insert(self, data: Mapping[str, Any] | R, *, unique_on: Iterable[str] = ()) -> R:
        """
        Validate and store a new record; ``_id`` and timestamps are assigned here.

        ``unique_on`` names fields whose combined value must not already exist
        in this collection. The guard item is written in the same transaction
        as the record, so concurrent inserts cannot both succeed.
        """
        if isinstance(data, Record):
            data = data.model_dump(by_alias=True)
        system = self.schema.system_fields()
        payload = {k: v for k, v in dict(data).items() if k not in system}

        record = self._validate(payload)
        if self.schema.timestamps:
            now = utcnow()
            record = record.model_copy(update={"createdAt": now, "updatedAt": now})

        fields = tuple(unique_on)
        if not fields:
            self._table.put_item(item=self._to_item(record), condition_expression=_NOT_EXISTS)
            return record

        guard_pk = self._record_guard_pk(record, fields)
        try:
            self._table.transact_write(
                puts=[
                    self._table.tx_put(
                        item=self._to_item(record, unique_on=fields, guards=[guard_pk]),
                        condition_expression=_NOT_EXISTS,
                    ),
                    self._table.tx_put(
                        item=self._guard_item(guard_pk, record),
                        condition_expression=_NOT_EXISTS,
                    ),
                ]
            )
        except DdbConflict as e:
            raise self._conflict(fields) from e
        return record

    def find_by_id(self, record_id: str) -> R | None:
        item = self._get_item(record_id)
        return self._from_item(item) if item else None

    def find_unique(self, **values: Any) -> R | None:
        """
        The record holding the uniqueness guard for ``values``.

        ``values`` must name exactly the ``unique_on`` fields the record was
        inserted with. The guard is read with a consistent get, so a record
        written a moment ago is found even before the collection index has it.
        """
        if not values:
            raise ValueError("find_unique needs at least one field")
        for f in values:
            self._attr(f)
        guard = self._table.get_item(key={"pk": self._guard_pk(values), "sk": _GUARD_SK})
        if not guard:
            return None
        return self.find_by_id(str(guard.get("recordId") or ""))

    def find(self, filter: Mapping[str, Any] | None = None) -> list[R]:
        """
        All records matching ``filter``, oldest first.

        Scalar fields match on equality; list fields match when they contain
        the value (or equal it, when the value is itself a list).
        """
        criteria = [(self._attr(k), v) for k, v in (filter or {}).items()]
        items = self._table.query_all(
            index_name="GSI1",
            key_condition_expression=Key("gsi1pk").eq(f"COLLECTION#{self.name}"),
            scan_index_forward=True,
        )
        records = [self._from_item(it) for it in items]
        return [r for r in records if _matches(r, criteria)]

    def count(self, filter: Mapping[str, Any] | None = None) -> int:
        return len(self.find(filter))

    def update(self, record_id: str, patch: Mapping[str, Any]) -> R:
        """
        Merge ``patch`` into the stored record and revalidate it.

        When a guarded field changes, the old guard is released and the new
        one claimed in the same transaction as the write; a value already
        taken raises ``ConflictError``.
        """
        if self.schema.immutable:
            raise ValidationError(
                message=f"{self.name} records cannot be updated",
                collection=self.name,
                record_id=record_id,
            )

        for k in patch:
            if k in self.schema.system_fields() or k in self.schema.frozen_fields:
                raise ValidationError(
                    message=f"{k}: field cannot be changed after insert",
                    collection=self.name,
                    record_id=record_id,
                    field=k,
                )
            self._attr(k)

        item = self._get_item(record_id)
        if not item:
            raise self._not_found(record_id)
        current = self._from_item(item)

        record = self._validate({**current.model_dump(by_alias=True), **dict(patch)})
        if self.schema.timestamps:
            record = record.model_copy(update={"updatedAt": utcnow()})

        unique_on = tuple(str(f) for f in item.get(_UNIQUE_ON_ATTR) or ())
        old_guards = [str(g) for g in item.get(_GUARDS_ATTR) or []]
        new_guards = [self._record_guard_pk(record, unique_on)] if unique_on else old_guards
        new_item = self._to_item(record, unique_on=unique_on, guards=new_guards)

        try:
            if new_guards == old_guards:
                self._table.put_item(item=new_item, condition_expression=_EXISTS)
            else:
                self._table.transact_write(
                    puts=[
                        self._table.tx_put(item=new_item, condition_expression=_EXISTS),
                        *[
                            self._table.tx_put(
                                item=self._guard_item(g, record),
                                condition_expression=_NOT_EXISTS,
                            )
                            for g in new_guards
                        ],
                    ],
                    deletes=[self._table.tx_delete(key={"pk": g, "sk": _GUARD_SK}) for g in old_guards],
                )
        except DdbConflict as e:
            # Either the record went away between the read and the write, or
            # the new guarded value is taken.
            if self._get_item(record_id) is None:
                raise self._not_found(record_id) from e
            raise self._conflict(unique_on, record_id) from e
        return record

    def remove(self, record_id: str) -> None:
        item = self._get_item(record_id)
        if not item:
            raise self._not_found(record_id)

        key = self.key(record_id)
        guards = [str(g) for g in item.get(_GUARDS_ATTR) or []]
        try:
            if guards:
                self._table.transact_write(
                    deletes=[
                        self._table.tx_delete(key=key, condition_expression=_EXISTS),
                        *[self._table.tx_delete(key={"pk": g, "sk": _GUARD_SK}) for g in guards],
                    ]
                )
            else:
                self._table.delete_item(key=key, condition_expression=_EXISTS)
        except DdbConflict as e:
            raise self._not_found(record_id) from e


def _matches(record: Record, criteria: list[tuple[str, Any]]) -> bool:
    for attr, expected in criteria:
        actual = getattr(record, attr)
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class ModelRegistry:
    """
    Name -> collection handle mapping.

    Built once at startup (``create_app``) and handed to whatever needs
    persistence; registration after startup is not expected.
    """

    def __init__(self, table: Any):
        self._table = table
        self._collections: dict[str, Collection[Any]] = {}

    @property
    def table(self) -> Any:
        return self._table

    def register(self, name: str, schema: type[R], *, strict: bool = False) -> Collection[R]:
        """
        Bind ``schema`` to the collection ``name``.

        Registering a name again returns the existing handle untouched. With
        ``strict=True`` it raises ``DuplicateModelError`` instead.
        """
        n = str(name or "").strip()
        if not n or "#" in n:
            raise ValueError(f"invalid collection name: {name!r}")

        existing = self._collections.get(n)
        if existing is not None:
            if strict:
                raise DuplicateModelError(message=f"collection {n} is already registered", collection=n)
            if existing.schema is not schema:
                get_logger("registry").warning(
                    "collection_reregistered",
                    collection=n,
                    registered_schema=existing.schema.__name__,
                    ignored_schema=getattr(schema, "__name__", str(schema)),
                )
            return existing

        handle: Collection[R] = Collection(name=n, schema=schema, table=self._table)
        self._collections[n] = handle
        return handle

    def get(self, name: str) -> Collection[Any]:
        return self._collections[name]

    def names(self) -> list[str]:
        return sorted(self._collections)

    def __contains__(self, name: object) -> bool:
        return name in self._collections


def build_registry(table: Any) -> ModelRegistry:
    registry = ModelRegistry(table)
    registry.register("User", User)
    registry.register("Module", Module)
    registry.register("UserConnection", UserConnection)
    registry.register("Notification", Notification)
    return registry
