"""
Command Log Module.

The Command API every collaborator goes through: submit a command, read
the undo/redo stacks, undo, redo and read the audit trail. This is the
Undo/Redo Stack Manager; writes are delegated to the CommandExecutor.
"""

import logging
from typing import Any, Dict, List, Optional

from caseledger.commands import CommandResult
from caseledger.core.audit import AuditEntry
from caseledger.core.config import LedgerConfig
from caseledger.core.errors import CaseLedgerError, ConflictError, NotFoundError
from caseledger.core.history import CommandRecord, CommandStatus
from caseledger.core.scope import Scope
from caseledger.services.db_service import DatabaseService
from caseledger.services.executor import CommandExecutor
from caseledger.services.save_orchestrator import SaveOrchestrator

logger = logging.getLogger(__name__)

NOTHING_TO_UNDO = "Nothing to undo"
NOTHING_TO_REDO = "Nothing to redo"


class CommandLog:
    """
    Per-scope command history with undo/redo and the audit read side.

    All stack queries are read-only. ``execute_undo``/``execute_redo``
    report failures in the returned CommandResult; ``submit_command``
    raises.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        config: Optional[LedgerConfig] = None,
        save_orchestrator: Optional[SaveOrchestrator] = None,
    ):
        """
        Args:
            db_service: Connected (or connectable) database service.
            config: Ledger settings; defaults apply when omitted.
            save_orchestrator: Pending-save sources flushed before undo/redo.
        """
        self.db = db_service
        self.config = config or LedgerConfig()
        self.save_orchestrator = save_orchestrator or SaveOrchestrator()
        self.executor = CommandExecutor(
            db_service, max_undo_depth=self.config.max_undo_depth
        )
        self.audit = self.executor.audit

    # --------------------------------------------------------------------------
    # Submit
    # --------------------------------------------------------------------------

    def submit_command(
        self, scope: Scope, action_type: str, params: Dict[str, Any]
    ) -> CommandResult:
        """
        Executes and records a new command.

        Args:
            scope: Scope and actor of the request.
            action_type: Registered action type, e.g. ``DeleteEntities``.
            params: Action parameters.

        Returns:
            CommandResult: ``data`` holds ``command_id`` and ``description``.

        Raises:
            ValidationError: Empty or malformed parameters.
            NotFoundError: A referenced entity is missing from the scope.
            ConflictError: A referenced entity changed concurrently.
            TransactionError: The store failed; nothing was committed.
        """
        record = self.executor.submit(scope, action_type, params)
        return CommandResult(
            success=True,
            message=record.description,
            command_name=record.action_type,
            data={"command_id": record.id, "description": record.description},
        )

    # --------------------------------------------------------------------------
    # Stack queries (read-only)
    # --------------------------------------------------------------------------

    @staticmethod
    def _head(record: Optional[CommandRecord]) -> Optional[Dict[str, Any]]:
        if record is None:
            return None
        return {"id": record.id, "description": record.description}

    def get_last_undo(self, scope: Scope) -> Optional[Dict[str, Any]]:
        """Returns ``{id, description}`` of the next command to undo, or None."""
        return self._head(self.db.commands.top(scope.scope_id, CommandStatus.COMMITTED))

    def get_last_redo(self, scope: Scope) -> Optional[Dict[str, Any]]:
        """Returns ``{id, description}`` of the next command to redo, or None."""
        return self._head(self.db.commands.top(scope.scope_id, CommandStatus.UNDONE))

    def get_undo_stack(self, scope: Scope, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Lists undoable commands, most recent first.

        Args:
            scope: Scope to list.
            limit: Maximum entries; defaults to ``stack_preview_limit``.

        Returns:
            List[Dict[str, Any]]: ``{id, description, action_type, created_at}``.
        """
        limit = self.config.stack_preview_limit if limit is None else limit
        records = self.db.commands.list(scope.scope_id, CommandStatus.COMMITTED, limit)
        return [record.summary() for record in records]

    def get_redo_stack(self, scope: Scope, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Lists redoable commands, next redo first."""
        limit = self.config.stack_preview_limit if limit is None else limit
        records = self.db.commands.list(scope.scope_id, CommandStatus.UNDONE, limit)
        return [record.summary() for record in records]

    def get_command(self, scope: Scope, command_id: int) -> CommandRecord:
        """
        Returns one command of the scope, in any status.

        Raises:
            NotFoundError: If the command does not exist in the scope.
        """
        record = self.db.commands.get(command_id, scope.scope_id)
        if record is None:
            raise NotFoundError(f"Command not found: {command_id}", entity="command")
        return record

    # --------------------------------------------------------------------------
    # Undo / Redo
    # --------------------------------------------------------------------------

    def execute_undo(self, scope: Scope) -> CommandResult:
        """
        Undoes the most recent committed command of the scope.

        Returns:
            CommandResult: On success ``message`` is the command's
            description. "Nothing to undo" is an unsuccessful result
            without an error; conflicts and store failures carry the
            exception in ``error``.
        """
        return self._replay(scope, CommandStatus.COMMITTED)

    def execute_redo(self, scope: Scope) -> CommandResult:
        """
        Redoes the most recently undone command of the scope.

        Returns:
            CommandResult: Same shape as :meth:`execute_undo`.
        """
        return self._replay(scope, CommandStatus.UNDONE)

    def _replay(self, scope: Scope, source_status: CommandStatus) -> CommandResult:
        undo = source_status == CommandStatus.COMMITTED
        name = "undo" if undo else "redo"

        self.save_orchestrator.flush_pending()

        try:
            with self.db.transaction():
                record = self.db.commands.top(scope.scope_id, source_status)
                if record is None:
                    return CommandResult(
                        success=False,
                        message=NOTHING_TO_UNDO if undo else NOTHING_TO_REDO,
                        command_name=name,
                    )
                if undo:
                    self.executor.undo(scope, record)
                else:
                    self.executor.redo(scope, record)
        except ConflictError as e:
            logger.warning(f"{name.capitalize()} rejected in scope {scope.scope_id}: {e}")
            return CommandResult(
                success=False,
                message=str(e),
                command_name=name,
                data={"command_id": e.command_id, "conflicts": e.conflicts},
                error=e,
            )
        except CaseLedgerError as e:
            logger.error(f"{name.capitalize()} failed in scope {scope.scope_id}: {e}")
            return CommandResult(
                success=False,
                message=f"{name.capitalize()} failed: {e}",
                command_name=name,
                error=e,
            )

        return CommandResult(
            success=True,
            message=record.description,
            command_name=name,
            data={"command_id": record.id, "description": record.description},
        )

    # --------------------------------------------------------------------------
    # Audit trail
    # --------------------------------------------------------------------------

    def get_audit_log(
        self,
        entity_id: int,
        entity_type: str = "test_case",
        scope: Optional[Scope] = None,
    ) -> List[AuditEntry]:
        """
        Full audit history of one entity, oldest first.

        Args:
            entity_id: The audited row's id.
            entity_type: ``test_case`` or ``scenario``.
            scope: If given, only entries of this scope are returned.
        """
        entries = self.audit.get_audit_log(entity_id, entity_type)
        if scope is not None:
            entries = [e for e in entries if e.scope_id == scope.scope_id]
        return entries

    def get_changelog(self, scope: Scope, limit: Optional[int] = 100) -> List[AuditEntry]:
        """Recent audit entries across the scope, newest first."""
        return self.audit.get_changelog(scope.scope_id, limit)

    def clear_history(self, scope: Scope) -> int:
        """
        Expires every committed and undone command of the scope.

        Audit entries are kept.

        Returns:
            int: Number of commands expired.
        """
        with self.db.transaction():
            count = self.db.commands.expire_all(scope.scope_id)
        logger.info(f"Cleared undo/redo history of scope {scope.scope_id} ({count} commands)")
        return count
