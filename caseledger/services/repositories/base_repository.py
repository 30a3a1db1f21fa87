"""
Base Repository Module.

Provides the base classes for all repository implementations.
Repositories handle CRUD operations for specific tables.
"""

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

TransactionFactory = Callable[[], ContextManager[sqlite3.Connection]]


class BaseRepository:
    """
    Base class for repository implementations.

    Provides connection management, transaction handling, and JSON
    serialization. When a transaction factory is supplied (normally
    ``DatabaseService.transaction``), writes join the caller's transaction
    instead of committing on their own.

    Attributes:
        _connection: The SQLite database connection (managed by DatabaseService).
        _transaction_factory: Optional shared transaction context factory.
    """

    def __init__(
        self,
        connection: Optional[sqlite3.Connection] = None,
        transaction_factory: Optional[TransactionFactory] = None,
    ) -> None:
        """
        Initialize the repository.

        Args:
            connection: Optional SQLite connection. If None, must be set later.
            transaction_factory: Optional shared transaction context factory.
        """
        self._connection = connection
        self._transaction_factory = transaction_factory

    def set_connection(
        self,
        connection: Optional[sqlite3.Connection],
        transaction_factory: Optional[TransactionFactory] = None,
    ) -> None:
        """
        Set the database connection.

        Args:
            connection: The SQLite database connection.
            transaction_factory: Optional shared transaction context factory.
        """
        self._connection = connection
        self._transaction_factory = transaction_factory

    @property
    def connection(self) -> sqlite3.Connection:
        if not self._connection:
            raise RuntimeError("Database connection not initialized")
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for safe transaction handling.

        Yields:
            The database connection within a transaction context.

        Raises:
            sqlite3.Error: If the transaction fails.
        """
        if not self._connection:
            raise RuntimeError("Database connection not initialized")

        if self._transaction_factory is not None:
            with self._transaction_factory() as conn:
                yield conn
            return

        try:
            yield self._connection
            self._connection.commit()
        except Exception as e:
            self._connection.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
            raise

    @staticmethod
    def _serialize_json(data: Any) -> str:
        """
        Serialize a value to a JSON string.

        Args:
            data: Dictionary or list to serialize.

        Returns:
            JSON string representation.
        """
        return json.dumps(data)

    @staticmethod
    def _deserialize_json(json_str: Optional[str], default: Any = None) -> Any:
        """
        Deserialize a JSON string.

        Args:
            json_str: JSON string to deserialize.
            default: Value returned for empty or unparsable input
                (an empty dict when omitted).

        Returns:
            The decoded value, or ``default`` if parsing fails.
        """
        fallback = {} if default is None else default
        if not json_str:
            return fallback
        try:
            return json.loads(json_str)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to parse JSON: {e}. Returning default.")
            return fallback


class VersionedRepository(BaseRepository):
    """
    Generic row access for tables carrying a ``version`` stamp.

    Subclasses set ``table`` and ``columns``. Every update increments the
    row's version; undo/redo can pin it back with :meth:`set_version`.
    """

    table: str = ""
    columns: tuple = ()

    def get_row(self, row_id: int) -> Optional[Dict[str, Any]]:
        """
        Retrieve one row as a dictionary.

        Args:
            row_id: Primary key.

        Returns:
            The row, or None if missing.
        """
        cursor = self.connection.execute(
            f"SELECT {', '.join(self.columns)} FROM {self.table} WHERE id = ?",
            (row_id,),
        )
        row = cursor.fetchone()
        return dict(row) if row else None

    def get_rows(self, row_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        """
        Retrieve several rows keyed by id. Missing ids are absent.
        """
        ids = list(row_ids)
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        cursor = self.connection.execute(
            f"SELECT {', '.join(self.columns)} FROM {self.table} "
            f"WHERE id IN ({placeholders})",
            ids,
        )
        return {row["id"]: dict(row) for row in cursor.fetchall()}

    def insert_row(self, row: Dict[str, Any]) -> int:
        """
        Insert a row with every column given (including id when set).

        Args:
            row: Column -> value. Unknown keys are ignored.

        Returns:
            int: The id of the inserted row.
        """
        names = [c for c in self.columns if c in row and not (c == "id" and row[c] is None)]
        placeholders = ", ".join("?" for _ in names)
        with self.transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO {self.table} ({', '.join(names)}) VALUES ({placeholders})",
                [row[name] for name in names],
            )
        return row.get("id") or cursor.lastrowid

    def update_row(self, row_id: int, values: Dict[str, Any]) -> None:
        """
        Update columns of a row and bump its version.

        Args:
            row_id: Primary key.
            values: Column -> new value. May be empty (version bump only).
        """
        assignments = [f"{name} = ?" for name in values if name in self.columns]
        params = [values[name] for name in values if name in self.columns]
        assignments.extend(["version = version + 1", "updated_at = ?"])
        params.extend([time.time(), row_id])
        with self.transaction() as conn:
            conn.execute(
                f"UPDATE {self.table} SET {', '.join(assignments)} WHERE id = ?",
                params,
            )

    def delete_row(self, row_id: int) -> None:
        with self.transaction() as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE id = ?", (row_id,))

    def get_versions(self, row_ids: Iterable[int]) -> Dict[int, Optional[int]]:
        """
        Read the current version stamp of each id.

        Returns:
            Dict[int, Optional[int]]: id -> version, None for missing rows.
        """
        ids = list(row_ids)
        versions: Dict[int, Optional[int]] = {row_id: None for row_id in ids}
        if not ids:
            return versions
        placeholders = ", ".join("?" for _ in ids)
        cursor = self.connection.execute(
            f"SELECT id, version FROM {self.table} WHERE id IN ({placeholders})",
            ids,
        )
        for row in cursor.fetchall():
            versions[row["id"]] = row["version"]
        return versions

    def set_version(self, row_id: int, version: int) -> None:
        with self.transaction() as conn:
            conn.execute(
                f"UPDATE {self.table} SET version = ? WHERE id = ?", (version, row_id)
            )

    def allocate_ids(self, count: int) -> List[int]:
        """
        Reserve ids for rows that will be inserted in the current transaction.

        Ids are never reused: allocation starts above both the largest id in
        the table and the AUTOINCREMENT high-water mark.

        Args:
            count: Number of ids needed.

        Returns:
            List[int]: Consecutive fresh ids.
        """
        if count <= 0:
            return []
        conn = self.connection
        max_id = conn.execute(f"SELECT COALESCE(MAX(id), 0) FROM {self.table}").fetchone()[0]
        seq_row = conn.execute(
            "SELECT seq FROM sqlite_sequence WHERE name = ?", (self.table,)
        ).fetchone()
        start = max(max_id, seq_row[0] if seq_row else 0) + 1
        return list(range(start, start + count))
