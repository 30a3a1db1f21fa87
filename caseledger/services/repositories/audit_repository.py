"""
Audit Repository Module.

Append-only storage for AuditEntry rows, keyed by (entity, sequence).
There is deliberately no update or delete method.
"""

import logging
from typing import List, Optional

from caseledger.core.audit import AuditAction, AuditEntry, FieldDiff
from caseledger.services.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, scope_id, command_id, entity_type, entity_id, sequence, action, "
    "diffs, actor_id, created_at"
)


class AuditRepository(BaseRepository):
    """
    Repository for audit trail entries.
    """

    def _to_entry(self, row) -> AuditEntry:
        data = dict(row)
        diffs = self._deserialize_json(data["diffs"], default=[])
        return AuditEntry(
            id=data["id"],
            scope_id=data["scope_id"],
            command_id=data["command_id"],
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            sequence=data["sequence"],
            action=AuditAction(data["action"]),
            diffs=[FieldDiff.from_dict(d) for d in diffs],
            actor_id=data["actor_id"],
            created_at=data["created_at"],
        )

    def append(self, entry: AuditEntry) -> AuditEntry:
        """
        Append an entry, assigning the next per-entity sequence.

        Args:
            entry: The entry to store.

        Returns:
            AuditEntry: The entry with ``id`` and ``sequence`` set.
        """
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(sequence), 0) FROM audit_entries "
                "WHERE entity_type = ? AND entity_id = ?",
                (entry.entity_type, entry.entity_id),
            ).fetchone()
            entry.sequence = row[0] + 1
            cursor = conn.execute(
                """
                INSERT INTO audit_entries (scope_id, command_id, entity_type,
                                           entity_id, sequence, action, diffs,
                                           actor_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.scope_id,
                    entry.command_id,
                    entry.entity_type,
                    entry.entity_id,
                    entry.sequence,
                    entry.action.value,
                    self._serialize_json([d.to_dict() for d in entry.diffs]),
                    entry.actor_id,
                    entry.created_at,
                ),
            )
        entry.id = cursor.lastrowid
        return entry

    def list_for_entity(self, entity_type: str, entity_id: int) -> List[AuditEntry]:
        """
        Full history of one entity, oldest first.
        """
        cursor = self.connection.execute(
            f"SELECT {_COLUMNS} FROM audit_entries "
            "WHERE entity_type = ? AND entity_id = ? ORDER BY sequence",
            (entity_type, entity_id),
        )
        return [self._to_entry(row) for row in cursor.fetchall()]

    def list_for_scope(self, scope_id: str, limit: Optional[int] = None) -> List[AuditEntry]:
        """
        Recent entries of a scope, newest first.
        """
        sql = f"SELECT {_COLUMNS} FROM audit_entries WHERE scope_id = ? ORDER BY id DESC"
        params: list = [scope_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = self.connection.execute(sql, params)
        return [self._to_entry(row) for row in cursor.fetchall()]

    def count(self) -> int:
        return self.connection.execute("SELECT COUNT(*) FROM audit_entries").fetchone()[0]
