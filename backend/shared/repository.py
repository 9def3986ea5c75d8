"""
Base repository class for database access.

Provides a common abstraction layer for Supabase-backed stores,
encapsulating client access and the table name they operate on.
"""

from typing import TypeVar, Generic
from supabase import Client


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for Supabase repositories.

    Provides common functionality for database operations:
    - Supabase client access via self._db
    - The table the repository reads and writes via self._table
    - Generic type parameter for model type hints

    Subclasses implement domain-specific data access methods and handle
    dict-to-Pydantic model mapping internally.

    Example:
        class NotificationRepository(BaseRepository[NotificationRecord]):
            table_name = "notification_queue"

            def get(self, record_id: str) -> Optional[NotificationRecord]:
                result = self._query().select("*").eq("id", record_id).execute()
                if not result.data:
                    return None
                return self._map_to_record(result.data[0])
    """

    table_name: str = ""

    def __init__(self, db: Client, table_name: str | None = None) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
            table_name: Optional override of the class-level table name.
        """
        self._db = db
        self._table = table_name or self.table_name

    def _query(self):
        """Start a query builder on this repository's table."""
        return self._db.table(self._table)
