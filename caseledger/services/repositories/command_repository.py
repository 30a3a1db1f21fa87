"""
Command Repository Module.

Persists CommandRecord rows. The table is keyed by (scope_id, sequence);
``sequence`` is monotonic per scope and gives the total command order.
"""

import logging
import time
from typing import List, Optional

from caseledger.core.history import CommandRecord, CommandStatus
from caseledger.services.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, scope_id, actor_id, action_type, description, sequence, "
    "forward_payload, inverse_payload, affected, stamps, status, "
    "created_at, updated_at"
)


class CommandRepository(BaseRepository):
    """
    Repository for command history rows.
    """

    def _to_record(self, row) -> CommandRecord:
        data = dict(row)
        data["forward_payload"] = self._deserialize_json(data["forward_payload"])
        data["inverse_payload"] = self._deserialize_json(data["inverse_payload"])
        data["affected"] = self._deserialize_json(data["affected"], default=[])
        data["stamps"] = self._deserialize_json(
            data["stamps"], default={"before": {}, "after": {}}
        )
        return CommandRecord.from_dict(data)

    def next_sequence(self, scope_id: str) -> int:
        """
        Returns the sequence number for the next transition in a scope.
        """
        row = self.connection.execute(
            "SELECT COALESCE(MAX(sequence), 0) FROM commands WHERE scope_id = ?",
            (scope_id,),
        ).fetchone()
        return row[0] + 1

    def append(self, record: CommandRecord) -> CommandRecord:
        """
        Insert a new command record.

        Args:
            record: The record to store; ``id`` is assigned on insert.

        Returns:
            CommandRecord: The same record with its id set.
        """
        sql = """
            INSERT INTO commands (scope_id, actor_id, action_type, description,
                                  sequence, forward_payload, inverse_payload,
                                  affected, stamps, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                sql,
                (
                    record.scope_id,
                    record.actor_id,
                    record.action_type,
                    record.description,
                    record.sequence,
                    self._serialize_json(record.forward_payload),
                    self._serialize_json(record.inverse_payload),
                    self._serialize_json(record.affected),
                    self._serialize_json(record.stamps),
                    record.status.value,
                    record.created_at,
                    record.updated_at,
                ),
            )
        record.id = cursor.lastrowid
        return record

    def get(self, command_id: int, scope_id: Optional[str] = None) -> Optional[CommandRecord]:
        row = self.connection.execute(
            f"SELECT {_COLUMNS} FROM commands WHERE id = ?", (command_id,)
        ).fetchone()
        if not row or (scope_id is not None and row["scope_id"] != scope_id):
            return None
        return self._to_record(row)

    def top(self, scope_id: str, status: CommandStatus) -> Optional[CommandRecord]:
        """
        Returns the highest-sequence command in a given status, if any.
        """
        row = self.connection.execute(
            f"SELECT {_COLUMNS} FROM commands WHERE scope_id = ? AND status = ? "
            "ORDER BY sequence DESC LIMIT 1",
            (scope_id, status.value),
        ).fetchone()
        return self._to_record(row) if row else None

    def list(
        self, scope_id: str, status: CommandStatus, limit: Optional[int] = None
    ) -> List[CommandRecord]:
        """
        Lists commands in a status, most recent sequence first.

        Args:
            scope_id: Owning scope.
            status: Status filter.
            limit: Maximum number of rows; None for all.
        """
        sql = (
            f"SELECT {_COLUMNS} FROM commands WHERE scope_id = ? AND status = ? "
            "ORDER BY sequence DESC"
        )
        params: list = [scope_id, status.value]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = self.connection.execute(sql, params)
        return [self._to_record(row) for row in cursor.fetchall()]

    def list_all(self, scope_id: str) -> List[CommandRecord]:
        cursor = self.connection.execute(
            f"SELECT {_COLUMNS} FROM commands WHERE scope_id = ? ORDER BY sequence",
            (scope_id,),
        )
        return [self._to_record(row) for row in cursor.fetchall()]

    def transition(
        self, command_id: int, status: CommandStatus, sequence: Optional[int] = None
    ) -> None:
        """
        Moves a command to a new status, optionally re-sequencing it.
        """
        with self.transaction() as conn:
            if sequence is None:
                conn.execute(
                    "UPDATE commands SET status = ?, updated_at = ? WHERE id = ?",
                    (status.value, time.time(), command_id),
                )
            else:
                conn.execute(
                    "UPDATE commands SET status = ?, sequence = ?, updated_at = ? "
                    "WHERE id = ?",
                    (status.value, sequence, time.time(), command_id),
                )

    def expire_undone(self, scope_id: str) -> int:
        """
        Expires every undone command of a scope.

        Returns:
            int: Number of commands expired.
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE commands SET status = ?, updated_at = ? "
                "WHERE scope_id = ? AND status = ?",
                (
                    CommandStatus.EXPIRED.value,
                    time.time(),
                    scope_id,
                    CommandStatus.UNDONE.value,
                ),
            )
        return cursor.rowcount

    def expire_committed_beyond(self, scope_id: str, keep: int) -> int:
        """
        Expires the oldest committed commands so at most ``keep`` remain.

        Returns:
            int: Number of commands expired.
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE commands SET status = ?, updated_at = ?
                WHERE id IN (
                    SELECT id FROM commands
                    WHERE scope_id = ? AND status = ?
                    ORDER BY sequence DESC
                    LIMIT -1 OFFSET ?
                )
                """,
                (
                    CommandStatus.EXPIRED.value,
                    time.time(),
                    scope_id,
                    CommandStatus.COMMITTED.value,
                    keep,
                ),
            )
        return cursor.rowcount

    def expire_all(self, scope_id: str) -> int:
        """
        Expires every live (committed or undone) command of a scope.
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE commands SET status = ?, updated_at = ? "
                "WHERE scope_id = ? AND status != ?",
                (
                    CommandStatus.EXPIRED.value,
                    time.time(),
                    scope_id,
                    CommandStatus.EXPIRED.value,
                ),
            )
        return cursor.rowcount
