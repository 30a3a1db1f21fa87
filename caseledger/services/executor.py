"""
Command Executor Module.

Snapshot & Execution: runs a Command Definition inside one transaction,
applies its mutation, stores the command record with version stamps and
appends the audit entries. Undo and redo replay stored payloads the same
way after the conflict check.
"""

import logging
from typing import Any, Dict, Iterable, List

from caseledger.commands import CommandContext, get_definition
from caseledger.core.config import DEFAULT_MAX_UNDO_DEPTH
from caseledger.core.errors import ValidationError
from caseledger.core.history import CommandRecord, CommandStatus
from caseledger.core.mutation import ChangeKind, Mutation
from caseledger.core.scope import Scope
from caseledger.services.audit_writer import AuditTrailWriter
from caseledger.services.conflict_detector import ConflictDetector
from caseledger.services.db_service import DatabaseService

logger = logging.getLogger(__name__)


def _merge_keys(*groups: Iterable[str]) -> List[str]:
    merged: List[str] = []
    for group in groups:
        for key in group:
            if key not in merged:
                merged.append(key)
    return merged


class CommandExecutor:
    """
    Applies commands, undos and redos atomically.

    Every public method runs in ``DatabaseService.transaction()``; when
    called inside an outer transaction it joins it.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        audit_writer: AuditTrailWriter = None,
        conflict_detector: ConflictDetector = None,
        max_undo_depth: int = DEFAULT_MAX_UNDO_DEPTH,
    ):
        self.db = db_service
        self.audit = audit_writer or AuditTrailWriter(db_service)
        self.conflicts = conflict_detector or ConflictDetector(db_service)
        self.max_undo_depth = max_undo_depth

    def apply(self, mutation: Mutation) -> None:
        """
        Writes a mutation, change by change, in order.

        Args:
            mutation: The write plan to apply.
        """
        for change in mutation.changes:
            repo = self.db.repo_for(change.entity_type)
            if change.kind == ChangeKind.INSERT:
                repo.insert_row(change.after)
            elif change.kind == ChangeKind.UPDATE:
                repo.update_row(change.entity_id, change.changed_values())
            else:
                repo.delete_row(change.entity_id)

    def submit(
        self, scope: Scope, action_type: str, params: Dict[str, Any]
    ) -> CommandRecord:
        """
        Executes a new command.

        Validation runs before the transaction opens. Inside it the
        definition reads current state, the mutation is applied, undone
        commands of the scope expire, the command is appended with the
        next sequence and the audit entries are written.

        Args:
            scope: Scope and actor of the request.
            action_type: Registered action type.
            params: Command parameters.

        Returns:
            CommandRecord: The committed command.

        Raises:
            ValidationError: Malformed parameters, or nothing would change.
            NotFoundError: A referenced entity does not exist in the scope.
            TransactionError: The store failed; nothing was committed.
        """
        definition = get_definition(action_type)
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ValidationError(
                "Command parameters must be an object", {"params": "not an object"}
            )
        params = definition.validate(params)
        context = CommandContext(self.db, scope)

        with self.db.transaction():
            execution = definition.execute(context, params)
            mutation = execution.mutation
            if mutation.is_empty():
                raise ValidationError(
                    "Command would not change anything", {"params": "no effect"}
                )

            keys = _merge_keys(execution.affected, mutation.keys())
            before = self.db.get_versions(keys)
            self.apply(mutation)
            after = self.db.get_versions(keys)

            expired = self.db.commands.expire_undone(scope.scope_id)
            if expired:
                logger.info(f"Expired {expired} undone command(s) in scope {scope.scope_id}")

            record = self.db.commands.append(
                CommandRecord(
                    scope_id=scope.scope_id,
                    actor_id=scope.actor_id,
                    action_type=definition.action_type,
                    description=execution.description,
                    sequence=self.db.commands.next_sequence(scope.scope_id),
                    forward_payload=execution.forward_payload,
                    inverse_payload=execution.inverse_payload,
                    affected=keys,
                    stamps={"before": before, "after": after},
                )
            )
            self.audit.write(mutation, scope, record.id)
            self._trim_history(scope.scope_id)

        logger.info(
            f"Committed command {record.id} [{record.action_type}] "
            f"'{record.description}'",
            extra={"scope": scope.scope_id},
        )
        return record

    def undo(self, scope: Scope, record: CommandRecord) -> Mutation:
        """
        Reverses a committed command and moves it to the top as undone.

        Raises:
            ConflictError: If a referenced entity changed since the command.
        """
        definition = get_definition(record.action_type)
        context = CommandContext(self.db, scope)

        with self.db.transaction():
            self.conflicts.verify(record, record.after_stamps)
            mutation = definition.apply_inverse(context, record.inverse_payload)
            self.apply(mutation)
            self.db.set_versions(record.before_stamps)
            self.db.commands.transition(
                record.id,
                CommandStatus.UNDONE,
                self.db.commands.next_sequence(scope.scope_id),
            )
            self.audit.write(mutation, scope, record.id)

        logger.info(
            f"Undid command {record.id} '{record.description}'",
            extra={"scope": scope.scope_id},
        )
        return mutation

    def redo(self, scope: Scope, record: CommandRecord) -> Mutation:
        """
        Re-applies an undone command and moves it to the top as committed.

        The rest of the undone run stays redoable; only a new forward
        commit expires it.

        Raises:
            ConflictError: If a referenced entity changed since the undo.
        """
        definition = get_definition(record.action_type)
        context = CommandContext(self.db, scope)

        with self.db.transaction():
            self.conflicts.verify(record, record.before_stamps)
            mutation = definition.apply_forward(context, record.forward_payload)
            self.apply(mutation)
            self.db.set_versions(record.after_stamps)
            self.db.commands.transition(
                record.id,
                CommandStatus.COMMITTED,
                self.db.commands.next_sequence(scope.scope_id),
            )
            self.audit.write(mutation, scope, record.id)
            self._trim_history(scope.scope_id)

        logger.info(
            f"Redid command {record.id} '{record.description}'",
            extra={"scope": scope.scope_id},
        )
        return mutation

    def _trim_history(self, scope_id: str) -> None:
        if self.max_undo_depth <= 0:
            return
        trimmed = self.db.commands.expire_committed_beyond(scope_id, self.max_undo_depth)
        if trimmed:
            logger.debug(f"Expired {trimmed} command(s) beyond undo depth in {scope_id}")
