"""
Audit Trail Writer Module.

Turns applied mutations into permanent, field-level AuditEntry rows.
Runs inside the command's transaction; entries are only ever appended.
"""

import logging
from typing import Dict, List, Optional

from caseledger.core.audit import AuditAction, AuditEntry
from caseledger.core.diffs import diff_rows
from caseledger.core.mutation import ChangeKind, Mutation, RowChange, entity_key
from caseledger.core.scope import Scope
from caseledger.services.db_service import DatabaseService

logger = logging.getLogger(__name__)


class AuditTrailWriter:
    """
    Appends audit entries for mutations and serves the audit read side.
    """

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    def entries_for(
        self, mutation: Mutation, scope: Scope, command_id: Optional[int] = None
    ) -> List[AuditEntry]:
        """
        Computes the entries a mutation produces, without storing them.

        One entry per touched entity: inserts become ``created`` (or
        ``restored``), deletes become ``deleted``, updates become
        ``updated`` with scalar diffs. Collection changes are reported on
        the parent's ``updated`` entry. Updates that change no audited
        field produce nothing.

        Args:
            mutation: The applied mutation.
            scope: Scope and actor of the request.
            command_id: Command that produced the mutation.

        Returns:
            List[AuditEntry]: Entries in mutation order.
        """
        entries: Dict[str, AuditEntry] = {}

        def entry_for(entity_type: str, entity_id: int, action: AuditAction) -> AuditEntry:
            key = entity_key(entity_type, entity_id)
            if key not in entries:
                entries[key] = AuditEntry(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action=action,
                    actor_id=scope.actor_id,
                    scope_id=scope.scope_id,
                    command_id=command_id,
                )
            return entries[key]

        for change in mutation.changes:
            action = self._action_for(change)
            diffs = diff_rows(change.before, self._after_row(change))
            if action == AuditAction.UPDATED and not diffs:
                continue
            entry_for(change.entity_type, change.entity_id, action).diffs.extend(diffs)

        for collection in mutation.collection_changes:
            entry = entry_for(collection.entity_type, collection.entity_id, AuditAction.UPDATED)
            entry.diffs.extend(collection.diff.to_field_diffs(collection.field))

        return list(entries.values())

    @staticmethod
    def _action_for(change: RowChange) -> AuditAction:
        if change.kind == ChangeKind.INSERT:
            return AuditAction.RESTORED if change.restored else AuditAction.CREATED
        if change.kind == ChangeKind.DELETE:
            return AuditAction.DELETED
        return AuditAction.UPDATED

    @staticmethod
    def _after_row(change: RowChange):
        return None if change.kind == ChangeKind.DELETE else change.after

    def write(
        self, mutation: Mutation, scope: Scope, command_id: Optional[int] = None
    ) -> List[AuditEntry]:
        """
        Appends the entries of a mutation.

        Returns:
            List[AuditEntry]: The stored entries with ids and sequences.
        """
        stored = []
        with self.db.transaction():
            for entry in self.entries_for(mutation, scope, command_id):
                stored.append(self.db.audit.append(entry))
        logger.debug(
            f"Appended {len(stored)} audit entries for command {command_id} "
            f"in scope {scope.scope_id}"
        )
        return stored

    # --------------------------------------------------------------------------
    # Read side
    # --------------------------------------------------------------------------

    def get_audit_log(self, entity_id: int, entity_type: str = "test_case") -> List[AuditEntry]:
        return self.db.audit.list_for_entity(entity_type, entity_id)

    def get_changelog(self, scope_id: str, limit: Optional[int] = None) -> List[AuditEntry]:
        return self.db.audit.list_for_scope(scope_id, limit)
