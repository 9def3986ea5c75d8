"""
Notification record stores.

- InMemoryNotificationStore: dictionary, lost with the process
- FileNotificationStore: JSON document on disk, survives a cold restart
- SupabaseNotificationStore: the notification_queue table
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from shared.repository import BaseRepository

from .exceptions import NotificationStoreError
from .models import NotificationRecord

logger = logging.getLogger(__name__)


class InMemoryNotificationStore:
    """Notification records kept in a dictionary keyed by id."""

    def __init__(self) -> None:
        self._records: dict[str, NotificationRecord] = {}

    def _flush(self) -> None:
        """Hook for persistent subclasses."""
        pass

    async def list_records(self) -> list[NotificationRecord]:
        return [record.model_copy(deep=True) for record in self._records.values()]

    async def get(self, record_id: str) -> Optional[NotificationRecord]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def save(self, record: NotificationRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)
        self._flush()

    async def delete(self, record_ids: list[str]) -> int:
        removed = 0
        for record_id in record_ids:
            if self._records.pop(record_id, None) is not None:
                removed += 1
        if removed:
            self._flush()
        return removed

    async def clear(self) -> None:
        self._records.clear()
        self._flush()


class FileNotificationStore(InMemoryNotificationStore):
    """
    Notification records persisted as one JSON document.

    The document is loaded once at construction and rewritten atomically on
    every change.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._records = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, NotificationRecord]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Queue file %s unreadable, starting empty: %s", self._path, e)
            return {}

        records: dict[str, NotificationRecord] = {}
        for item in raw.get("records", []) if isinstance(raw, dict) else []:
            try:
                record = NotificationRecord.model_validate(item)
            except PydanticValidationError:
                logger.warning("Skipping unreadable queue record")
                continue
            records[record.id] = record
        logger.debug("Loaded %d queued notifications from %s", len(records), self._path)
        return records

    def _flush(self) -> None:
        document = {
            "records": [r.model_dump(mode="json") for r in self._records.values()]
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".queue-")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh)
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise NotificationStoreError(f"Failed to write queue file: {e}") from e


class SupabaseNotificationStore(BaseRepository[NotificationRecord]):
    """
    Notification records in the notification_queue table.

    Row columns match NotificationRecord fields; payload is a jsonb column.
    """

    table_name = "notification_queue"

    def __init__(self, db: Client, table_name: str | None = None) -> None:
        super().__init__(db, table_name)

    async def list_records(self) -> list[NotificationRecord]:
        result = self._execute(self._query().select("*"))
        return [self._map_to_record(row) for row in result.data or []]

    async def get(self, record_id: str) -> Optional[NotificationRecord]:
        result = self._execute(self._query().select("*").eq("id", record_id))
        if not result.data:
            return None
        return self._map_to_record(result.data[0])

    async def save(self, record: NotificationRecord) -> None:
        self._execute(self._query().upsert(record.model_dump(mode="json")))

    async def delete(self, record_ids: list[str]) -> int:
        if not record_ids:
            return 0
        result = self._execute(self._query().delete().in_("id", record_ids))
        return len(result.data or [])

    async def clear(self) -> None:
        self._execute(self._query().delete().neq("id", ""))

    def _execute(self, query: Any) -> Any:
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            raise NotificationStoreError(f"Queue table {self._table} unavailable: {e}") from e

    @staticmethod
    def _map_to_record(row: dict[str, Any]) -> NotificationRecord:
        return NotificationRecord.model_validate(row)
