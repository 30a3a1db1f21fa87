"""
Command History Module.

Defines the persisted Command record and its lifecycle states.

State machine::

    committed --undo--> undone --redo--> committed (re-sequenced to top)
    undone --(any forward commit in the scope)--> expired
    expired: terminal
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CommandStatus(str, Enum):
    """Lifecycle state of a command."""

    COMMITTED = "committed"
    UNDONE = "undone"
    EXPIRED = "expired"


@dataclass
class CommandRecord:
    """
    A reversible mutation stored in the command table.

    Attributes:
        scope_id (str): Owning scope.
        actor_id (str): User who submitted the command.
        action_type (str): Registered Command Definition name.
        description (str): Human readable summary shown in stacks.
        sequence (int): Position in the scope's total order.
        forward_payload (Dict[str, Any]): Data needed to re-apply (redo).
        inverse_payload (Dict[str, Any]): Data needed to reverse (undo).
        affected (List[str]): Entity keys referenced by the command.
        stamps (Dict[str, Dict[str, Optional[int]]]): Version stamps of the
            affected entities, ``before`` and ``after`` the forward mutation.
        status (CommandStatus): Current lifecycle state.
    """

    scope_id: str
    actor_id: str
    action_type: str
    description: str
    sequence: int
    forward_payload: Dict[str, Any] = field(default_factory=dict)
    inverse_payload: Dict[str, Any] = field(default_factory=dict)
    affected: List[str] = field(default_factory=list)
    stamps: Dict[str, Dict[str, Optional[int]]] = field(
        default_factory=lambda: {"before": {}, "after": {}}
    )
    status: CommandStatus = CommandStatus.COMMITTED

    id: Optional[int] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @property
    def before_stamps(self) -> Dict[str, Optional[int]]:
        return self.stamps.get("before", {})

    @property
    def after_stamps(self) -> Dict[str, Optional[int]]:
        return self.stamps.get("after", {})

    def summary(self) -> Dict[str, Any]:
        """
        Returns the stack preview shape of this command.

        Returns:
            Dict[str, Any]: id, description, action type and creation time.
        """
        return {
            "id": self.id,
            "description": self.description,
            "action_type": self.action_type,
            "created_at": self.created_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scope_id": self.scope_id,
            "actor_id": self.actor_id,
            "action_type": self.action_type,
            "description": self.description,
            "sequence": self.sequence,
            "forward_payload": self.forward_payload,
            "inverse_payload": self.inverse_payload,
            "affected": list(self.affected),
            "stamps": self.stamps,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommandRecord":
        d = data.copy()
        d["status"] = CommandStatus(d.get("status", CommandStatus.COMMITTED))
        return cls(**d)
