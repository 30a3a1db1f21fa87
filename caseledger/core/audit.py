"""
Audit Entry Module.

Defines the append-only audit trail records.

Audit entries are never updated or deleted by undo/redo; reversing a
command appends new entries instead.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AuditAction(str, Enum):
    """What happened to the audited entity."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"


@dataclass(frozen=True)
class FieldDiff:
    """
    A single field-level change.

    Attributes:
        field (str): Column name, or a collection path such as
            ``scenarios[4].title``.
        old_value (Any): Value before the change (None if absent).
        new_value (Any): Value after the change (None if absent).
    """

    field: str
    old_value: Any = None
    new_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDiff":
        return cls(
            field=data["field"],
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
        )


@dataclass
class AuditEntry:
    """
    One permanent audit record for one entity.

    Attributes:
        entity_type (str): ``test_case`` or ``scenario``.
        entity_id (int): Identifier of the audited row.
        action (AuditAction): Kind of change.
        diffs (List[FieldDiff]): Field-level changes.
        actor_id (str): User responsible for the change.
        scope_id (str): Scope the entity belongs to.
        command_id (Optional[int]): Command that produced the entry.
        sequence (int): Per-entity position, assigned on append.
    """

    entity_type: str
    entity_id: int
    action: AuditAction
    diffs: List[FieldDiff] = field(default_factory=list)
    actor_id: str = "system"
    scope_id: str = ""
    command_id: Optional[int] = None
    sequence: int = 0

    id: Optional[int] = None
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the entry to its API shape.

        Returns:
            Dict[str, Any]: Serializable representation of the entry.
        """
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "sequence": self.sequence,
            "action": self.action.value,
            "diffs": [d.to_dict() for d in self.diffs],
            "actor_id": self.actor_id,
            "scope_id": self.scope_id,
            "command_id": self.command_id,
            "created_at": self.created_at,
        }
