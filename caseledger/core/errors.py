"""
Error Types Module.

Defines the exception hierarchy raised by the command log.

Classes:
    CaseLedgerError: Base class for all command log errors.
    ValidationError: Malformed or empty command parameters.
    NotFoundError: A command or entity referenced by a request is missing.
    ConflictError: An entity changed since the command captured its state.
    TransactionError: The underlying store failed; nothing was committed.
"""

from typing import Any, Dict, List, Optional


class CaseLedgerError(Exception):
    """Base class for all errors raised by the command log."""

    kind = "error"

    def to_dict(self) -> Dict[str, Any]:
        """
        Serializes the error for API responses.

        Returns:
            Dict[str, Any]: The error kind and message.
        """
        return {"kind": self.kind, "error": str(self)}


class ValidationError(CaseLedgerError):
    """
    Raised when command parameters are empty or malformed.

    Attributes:
        errors (Dict[str, str]): Field -> problem description.
    """

    kind = "validation"

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = dict(self.errors)
        return data


class NotFoundError(CaseLedgerError):
    """Raised when a command or entity does not exist in the scope."""

    kind = "not_found"

    def __init__(self, message: str, entity: Optional[str] = None):
        super().__init__(message)
        self.entity = entity

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["entity"] = self.entity
        return data


class ConflictError(CaseLedgerError):
    """
    Raised when an entity referenced by a command was changed elsewhere.

    Attributes:
        command_id (Optional[int]): The command whose replay was refused.
        conflicts (List[Dict[str, Any]]): One item per stale entity with the
            keys ``entity``, ``expected`` and ``actual``.
    """

    kind = "conflict"

    def __init__(
        self,
        message: str,
        command_id: Optional[int] = None,
        conflicts: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.command_id = command_id
        self.conflicts = conflicts or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["command_id"] = self.command_id
        data["conflicts"] = list(self.conflicts)
        return data


class TransactionError(CaseLedgerError):
    """Raised when the store fails; the transaction has been rolled back."""

    kind = "transaction"
