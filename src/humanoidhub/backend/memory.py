"""In-memory backend for local development and tests."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from humanoidhub.backend.base import (
    AuthCapability,
    CurrentUser,
    Filter,
    FilterOp,
    Order,
    PageRange,
    RecordStoreCapability,
    Row,
)
from humanoidhub.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)


def row_matches(row: Row, filters: tuple[Filter, ...]) -> bool:
    """Evaluate every filter against one row."""
    for flt in filters:
        current = row.get(flt.column)
        if flt.op == FilterOp.EQ:
            if current != flt.value:
                return False
        elif flt.op == FilterOp.CONTAINS:
            if not set(flt.value) <= set(current or []):
                return False
        elif flt.op == FilterOp.IN:
            if current not in flt.value:
                return False
    return True


def _sort_key(column: str):
    def key(row: Row) -> tuple[bool, Any]:
        value = row.get(column)
        return (value is None, value if value is not None else 0)

    return key


class InMemoryRecordStore(RecordStoreCapability):
    """Record store keeping every table in process memory."""

    def __init__(self, unique_columns: Optional[Dict[str, tuple[str, ...]]] = None):
        self._tables: Dict[str, Dict[str, Row]] = {}
        self._unique_columns = unique_columns or {}

    def _table(self, table: str) -> Dict[str, Row]:
        return self._tables.setdefault(table, {})

    async def insert(self, table: str, fields: Row) -> Result[Row]:
        rows = self._table(table)
        if fields.get("id") is not None and fields["id"] in rows:
            return Err(ErrorKind.CONFLICT, f"{table}.id '{fields['id']}' already exists")
        for column in self._unique_columns.get(table, ()):
            value = fields.get(column)
            if any(existing.get(column) == value for existing in rows.values()):
                return Err(ErrorKind.CONFLICT, f"{table}.{column} '{value}' already exists")

        now = datetime.now(timezone.utc)
        row = {"created_at": now, "updated_at": now, **fields}
        row.setdefault("id", str(uuid4()))
        rows[row["id"]] = row

        logger.debug("Inserted row", extra={"table": table, "row_id": row["id"]})
        return Ok(dict(row))

    async def query(
        self,
        table: str,
        filters: tuple[Filter, ...] = (),
        order: Optional[Order] = None,
        page_range: Optional[PageRange] = None,
    ) -> Result[list[Row]]:
        matched = [row for row in self._table(table).values() if row_matches(row, filters)]
        matched.sort(key=lambda row: str(row.get("id")))
        if order is not None:
            matched.sort(key=_sort_key(order.column), reverse=not order.ascending)
        if page_range is not None:
            matched = matched[page_range.offset:page_range.offset + page_range.limit]
        return Ok([dict(row) for row in matched])

    async def count(self, table: str, filters: tuple[Filter, ...] = ()) -> Result[int]:
        return Ok(sum(1 for row in self._table(table).values() if row_matches(row, filters)))

    async def update(self, table: str, filters: tuple[Filter, ...], fields: Row) -> Result[list[Row]]:
        updated = []
        now = datetime.now(timezone.utc)
        for row in self._table(table).values():
            if row_matches(row, filters):
                row.update(fields)
                row["updated_at"] = now
                updated.append(dict(row))
        return Ok(updated)

    def get_backend_name(self) -> str:
        return "memory"


class InMemoryAuth(AuthCapability):
    """Token table mapping bearer credentials to users."""

    def __init__(self, users: Optional[Dict[str, CurrentUser]] = None):
        self._users: Dict[str, CurrentUser] = dict(users or {})

    def register(self, token: str, user: CurrentUser) -> None:
        self._users[token] = user

    async def get_current_user(self, token: Optional[str]) -> Optional[CurrentUser]:
        if not token:
            return None
        return self._users.get(token)
