from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure `backend/` is on sys.path so `import socialhub.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from socialhub.db.dynamodb.errors import DdbConflict  # noqa: E402


class FakeTable:
    """
    In-memory stand-in for DynamoTable.

    Supports exactly what the collections use: conditional put/delete on
    ``attribute_(not_)exists(pk)``, equality key queries, and all-or-nothing
    transactions.
    """

    table_name = "fake"

    def __init__(self):
        # Keyed by (pk, sk)
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[str] = []

    @staticmethod
    def _key(d: dict[str, Any]) -> tuple[str, str]:
        return str(d.get("pk") or ""), str(d.get("sk") or "")

    def _check(self, key: tuple[str, str], condition: str | None, operation: str) -> None:
        exists = key in self.items
        if (condition == "attribute_not_exists(pk)" and exists) or (
            condition == "attribute_exists(pk)" and not exists
        ):
            raise DdbConflict(
                message="conflict",
                operation=operation,
                table_name=self.table_name,
            )

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        self.calls.append("GetItem")
        it = self.items.get(self._key(key))
        return copy.deepcopy(it) if it else None

    def put_item(self, *, item: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        self.calls.append("PutItem")
        k = self._key(item)
        self._check(k, condition_expression, "PutItem")
        self.items[k] = copy.deepcopy(item)
        return {}

    def delete_item(self, *, key: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        self.calls.append("DeleteItem")
        k = self._key(key)
        self._check(k, condition_expression, "DeleteItem")
        self.items.pop(k, None)
        return {}

    def query_all(self, *, key_condition_expression, index_name=None, scan_index_forward=True):
        self.calls.append("Query")
        attr, value = key_condition_expression.get_expression()["values"]
        sort_attr = "gsi1sk" if attr.name == "gsi1pk" else "sk"
        out = [copy.deepcopy(it) for it in self.items.values() if it.get(attr.name) == value]
        out.sort(key=lambda it: str(it.get(sort_attr) or ""), reverse=not scan_index_forward)
        return out

    def tx_put(self, *, item: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        return {"Item": item, "ConditionExpression": condition_expression}

    def tx_delete(self, *, key: dict[str, Any], condition_expression: str | None = None) -> dict[str, Any]:
        return {"Key": key, "ConditionExpression": condition_expression}

    def transact_write(self, *, puts=(), deletes=(), **_kw) -> dict[str, Any]:
        self.calls.append("TransactWriteItems")
        puts, deletes = list(puts), list(deletes)
        # Every condition is checked before anything is applied.
        for p in puts:
            self._check(self._key(p["Item"]), p.get("ConditionExpression"), "TransactWriteItems")
        for d in deletes:
            self._check(self._key(d["Key"]), d.get("ConditionExpression"), "TransactWriteItems")
        for p in puts:
            self.items[self._key(p["Item"])] = copy.deepcopy(p["Item"])
        for d in deletes:
            self.items.pop(self._key(d["Key"]), None)
        return {"ok": True}

    def records(self, entity_type: str) -> list[dict[str, Any]]:
        return [it for it in self.items.values() if it.get("entityType") == entity_type]


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def registry(table):
    from socialhub.registry import build_registry

    return build_registry(table)


@pytest.fixture
def settings():
    from socialhub.settings import Settings

    return Settings(environment="development", service_version="1.2.3")


@pytest.fixture
def app(settings, registry):
    from socialhub.main import create_app

    return create_app(settings=settings, registry=registry)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
