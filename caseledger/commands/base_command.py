"""
Base Command Module.

Defines the abstract base class and result types for all Command
Definitions, plus the read-only context definitions use to look at the
current state of a scope.

Classes:
    CommandResult: Standardized result object returned by the command log.
    Execution: What a definition produces when it executes.
    CommandContext: Scope-filtered read access used by definitions.
    BaseCommand: Abstract base class of every Command Definition.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from caseledger.core.errors import CaseLedgerError, NotFoundError
from caseledger.core.mutation import TEST_CASE, Mutation
from caseledger.core.scope import Scope
from caseledger.core.test_cases import Folder
from caseledger.services.db_service import DatabaseService


@dataclass
class CommandResult:
    """
    Standardized result object for command execution.

    Attributes:
        success (bool): True if the command executed successfully,
                        False otherwise.
        message (str): A human-readable message describing the result.
        errors (Dict[str, str]): A dictionary of validation errors
                                 (field -> error content).
        command_name (str): The action type that generated this result.
        data (Dict[str, Any]): Extra result data (command id, description).
        error (Optional[CaseLedgerError]): The exception behind a failure,
                                           if any.
    """

    success: bool
    message: str = ""
    errors: Dict[str, str] = field(default_factory=dict)
    command_name: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[CaseLedgerError] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": self.success,
            "message": self.message,
            "command_name": self.command_name,
            "data": dict(self.data),
        }
        if self.errors:
            result["errors"] = dict(self.errors)
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


@dataclass
class Execution:
    """
    Output of a definition's execute step.

    Attributes:
        mutation (Mutation): Writes to apply now.
        forward_payload (Dict[str, Any]): Data to re-apply the command (redo).
        inverse_payload (Dict[str, Any]): Data to reverse the command (undo).
        description (str): Human readable summary.
        affected (List[str]): Extra entity keys whose stamps guard replay,
            on top of those the mutation touches.
    """

    mutation: Mutation
    forward_payload: Dict[str, Any]
    inverse_payload: Dict[str, Any]
    description: str
    affected: List[str] = field(default_factory=list)


def count_label(count: int, noun: str = "test case") -> str:
    """Returns ``"1 test case"`` / ``"3 test cases"``."""
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


class CommandContext:
    """
    Read access to the state of one scope, used while a command runs.

    Every lookup is filtered by the scope; ids outside it are reported as
    missing.
    """

    def __init__(self, db_service: DatabaseService, scope: Scope):
        self.db = db_service
        self.scope = scope

    @property
    def scope_id(self) -> str:
        return self.scope.scope_id

    @staticmethod
    def now() -> float:
        return time.time()

    def test_case_rows(self, test_case_ids: Iterable[int]) -> List[Dict[str, Any]]:
        """
        Loads test case rows in the order given.

        Args:
            test_case_ids: Ids to load.

        Returns:
            List[Dict[str, Any]]: One row per id.

        Raises:
            NotFoundError: If any id does not exist in the scope.
        """
        ids = list(test_case_ids)
        rows = self.db.test_cases.get_rows_in_scope(self.scope_id, ids)
        missing = [i for i in ids if i not in rows]
        if missing:
            raise NotFoundError(
                f"Test case(s) not found: {', '.join(str(i) for i in missing)}",
                entity=TEST_CASE,
            )
        return [rows[i] for i in ids]

    def test_case_row(self, test_case_id: int) -> Dict[str, Any]:
        return self.test_case_rows([test_case_id])[0]

    def scenario_rows(self, test_case_id: int) -> List[Dict[str, Any]]:
        return self.db.scenarios.rows_for_test_case(test_case_id)

    def require_folder(self, folder_id: Optional[int]) -> Optional[Folder]:
        """
        Resolves a container id; None stands for the root container.

        Raises:
            NotFoundError: If the folder does not exist in the scope.
        """
        if folder_id is None:
            return None
        folder = self.db.folders.get(folder_id, self.scope_id)
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}", entity="folder")
        return folder

    def folder_label(self, folder_id: Optional[int]) -> str:
        folder = self.require_folder(folder_id)
        return "root" if folder is None else f'folder "{folder.name}"'

    def container_rows(self, folder_id: Optional[int]) -> List[Dict[str, Any]]:
        return self.db.test_cases.list_in_folder(self.scope_id, folder_id)

    def next_sort_order(self, folder_id: Optional[int]) -> int:
        rows = self.container_rows(folder_id)
        return max((row["sort_order"] for row in rows), default=-1) + 1

    def allocate_ids(self, entity_type: str, count: int) -> List[int]:
        return self.db.repo_for(entity_type).allocate_ids(count)


def field_updates(
    context: CommandContext, entity_type: str, entries: List[Dict[str, Any]]
) -> Mutation:
    """
    Builds an update mutation from ``[{"id": ..., "values": {...}}]`` entries.

    Entries whose values already match the stored row are skipped.

    Args:
        context: Current command context.
        entity_type: Entity type of every entry.
        entries: Target values per id.

    Returns:
        Mutation: One update per row that actually changes.
    """
    repo = context.db.repo_for(entity_type)
    rows = repo.get_rows([entry["id"] for entry in entries])
    mutation = Mutation()
    for entry in entries:
        row = rows.get(entry["id"])
        if row is None:
            raise NotFoundError(
                f"{entity_type} {entry['id']} no longer exists", entity=entity_type
            )
        change = mutation.update(entity_type, row, entry["values"])
        if not change.changed_values():
            mutation.changes.pop()
    return mutation


class BaseCommand(ABC):
    """
    Abstract base class for all Command Definitions.

    A definition describes one action type: how to validate its
    parameters, how to execute it against the current state, and how to
    re-apply either direction from a stored payload. Definitions never
    write; they return mutations for the executor to apply.
    """

    action_type: str = ""

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Checks and normalizes parameters before any transaction is opened.

        Args:
            params: Raw parameters as submitted.

        Returns:
            Dict[str, Any]: Normalized parameters.

        Raises:
            ValidationError: If the parameters are empty or malformed.
        """
        return dict(params)

    @abstractmethod
    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        """
        Computes the forward mutation and both payloads.

        Args:
            context (CommandContext): Read access to the scope.
            params (Dict[str, Any]): Validated parameters.

        Returns:
            Execution: Mutation, payloads and description.
        """
        pass

    @abstractmethod
    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        """
        Builds the mutation that reverses the command.

        Args:
            context (CommandContext): Read access to the scope.
            inverse_payload (Dict[str, Any]): Payload stored at execute time.
        """
        pass

    @abstractmethod
    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        """
        Builds the mutation that re-applies the command (redo).

        Args:
            context (CommandContext): Read access to the scope.
            forward_payload (Dict[str, Any]): Payload stored at execute time.
        """
        pass
