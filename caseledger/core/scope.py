"""
Scope Module.

The tenant boundary every command log call runs in.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Scope:
    """
    Identifies the tenant and the acting user of a request.

    Attributes:
        scope_id (str): Tenant/organization identifier. Command ordering,
            undo/redo stacks and entity visibility are all per scope.
        actor_id (str): The user performing the request; recorded on
            commands and audit entries.
    """

    scope_id: str
    actor_id: str = "system"
