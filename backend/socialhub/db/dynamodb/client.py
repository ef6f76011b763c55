from __future__ import annotations

from functools import lru_cache
from typing import Any

import boto3
from botocore.config import Config

from ...settings import get_settings


@lru_cache(maxsize=1)
def _connection_kwargs() -> dict[str, Any]:
    """Shared by the resource (record reads/writes) and the client (transactions)."""
    settings = get_settings()
    kwargs: dict[str, Any] = {
        "region_name": settings.aws_region,
        # ddb_call retries the throttling codes on top of botocore's own retries.
        "config": Config(
            retries={"max_attempts": 10, "mode": "adaptive"},
            connect_timeout=2,
            read_timeout=10,
        ),
    }
    if settings.ddb_endpoint_url:
        kwargs["endpoint_url"] = settings.ddb_endpoint_url
    return kwargs


@lru_cache(maxsize=1)
def dynamodb_resource():
    return boto3.resource("dynamodb", **_connection_kwargs())


@lru_cache(maxsize=1)
def dynamodb_client():
    return boto3.client("dynamodb", **_connection_kwargs())


def table_resource(table_name: str):
    return dynamodb_resource().Table(table_name)
