from __future__ import annotations

from pydantic import ConfigDict

from .base import Record


class User(Record):
    # Identity records are owned by the account service; only what reference
    # resolution needs is declared here.
    model_config = ConfigDict(extra="allow")

    userName: str | None = None
