from __future__ import annotations

from typing import Any, Iterable

from boto3.dynamodb.types import TypeSerializer

from .client import dynamodb_client, table_resource
from .errors import DdbInternal
from .retry import RetryPolicy, ddb_call


_serializer = TypeSerializer()


def _serialize_item(item: dict[str, Any]) -> dict[str, Any]:
    # The low-level client expects AttributeValue shape ({'S': '...'} etc).
    return {k: _serializer.serialize(v) for k, v in item.items()}


class DynamoTable:
    """
    Thin wrapper over one DynamoDB table (``pk``/``sk`` primary key, ``GSI1``
    on ``gsi1pk``/``gsi1sk``).

    Every call goes through ``ddb_call`` so callers only ever see ``Ddb*``
    errors.
    """

    def __init__(self, *, table_name: str):
        self.table_name = str(table_name)
        self._table = table_resource(self.table_name)
        self._client = dynamodb_client()

    # --- basic operations ---

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        def _op():
            resp = self._table.get_item(Key=key, ConsistentRead=True)
            return resp.get("Item")

        return ddb_call("GetItem", _op, table_name=self.table_name)

    def put_item(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        def _op():
            kwargs: dict[str, Any] = {"Item": item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            return self._table.put_item(**kwargs)

        return ddb_call("PutItem", _op, table_name=self.table_name)

    def delete_item(
        self,
        *,
        key: dict[str, Any],
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        def _op():
            kwargs: dict[str, Any] = {"Key": key}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression
            return self._table.delete_item(**kwargs)

        return ddb_call("DeleteItem", _op, table_name=self.table_name)

    # --- query ---

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        scan_index_forward: bool = True,
    ) -> list[dict[str, Any]]:
        """Run a query and follow ``LastEvaluatedKey`` until exhausted."""
        items: list[dict[str, Any]] = []
        lek: dict[str, Any] | None = None

        while True:
            def _op(start_key=lek):
                kwargs: dict[str, Any] = {
                    "KeyConditionExpression": key_condition_expression,
                    "ScanIndexForward": bool(scan_index_forward),
                }
                if index_name:
                    kwargs["IndexName"] = index_name
                # Only pass ExclusiveStartKey when present.
                if start_key:
                    kwargs["ExclusiveStartKey"] = start_key
                return self._table.query(**kwargs)

            resp = ddb_call("Query", _op, table_name=self.table_name)
            items.extend(resp.get("Items") or [])
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                return items

    # --- transactions ---

    def transact_write(
        self,
        *,
        puts: Iterable[dict[str, Any]] = (),
        deletes: Iterable[dict[str, Any]] = (),
        retry_policy: RetryPolicy | None = None,
    ) -> dict[str, Any]:
        # Entries must already be in client shape (see tx_put/tx_delete).
        items: list[dict[str, Any]] = []
        for p in puts:
            items.append({"Put": p})
        for d in deletes:
            items.append({"Delete": d})

        if not items:
            return {"ok": True}

        def _op():
            return self._client.transact_write_items(TransactItems=items)

        return ddb_call(
            "TransactWriteItems",
            _op,
            table_name=self.table_name,
            retry_policy=retry_policy or RetryPolicy(max_attempts=8, base_delay_s=0.08, max_delay_s=2.0),
        )

    def tx_put(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        out: dict[str, Any] = {
            "TableName": self.table_name,
            "Item": _serialize_item(item),
        }
        if condition_expression:
            out["ConditionExpression"] = condition_expression
        return out

    def tx_delete(
        self,
        *,
        key: dict[str, Any],
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        out: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": _serialize_item(key),
        }
        if condition_expression:
            out["ConditionExpression"] = condition_expression
        return out


def get_main_table() -> DynamoTable:
    from ...settings import get_settings

    settings = get_settings()
    if not settings.ddb_table_name:
        raise DdbInternal(message="DDB_TABLE_NAME is not set", operation="Config")
    return DynamoTable(table_name=settings.ddb_table_name)
