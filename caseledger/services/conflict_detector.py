"""
Conflict Detector Module.

Guards undo/redo against entities that changed outside a command's own
history since the command was last transitioned.
"""

import logging
from typing import Any, Dict, List, Optional

from caseledger.core.errors import ConflictError
from caseledger.core.history import CommandRecord
from caseledger.services.db_service import DatabaseService

logger = logging.getLogger(__name__)


class ConflictDetector:
    """
    Compares current version stamps against the ones a command expects.
    """

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    def find_conflicts(self, expected: Dict[str, Optional[int]]) -> List[Dict[str, Any]]:
        """
        Lists every entity whose current stamp differs from the expected one.

        Args:
            expected: Entity key -> expected version (None means absent).

        Returns:
            List[Dict[str, Any]]: ``{"entity", "expected", "actual"}`` items.
        """
        current = self.db.get_versions(expected.keys())
        return [
            {"entity": key, "expected": version, "actual": current.get(key)}
            for key, version in expected.items()
            if current.get(key) != version
        ]

    def verify(self, record: CommandRecord, expected: Dict[str, Optional[int]]) -> None:
        """
        Raises if any entity referenced by the command is stale.

        Args:
            record: The command about to be undone or redone.
            expected: The stamps the entities must currently carry.

        Raises:
            ConflictError: Listing every stale entity.
        """
        conflicts = self.find_conflicts(expected)
        if conflicts:
            logger.warning(
                f"Conflict on command {record.id} ({record.description}): "
                f"{', '.join(c['entity'] for c in conflicts)}"
            )
            raise ConflictError(
                f'Cannot replay "{record.description}": '
                f"{len(conflicts)} item(s) were changed elsewhere",
                command_id=record.id,
                conflicts=conflicts,
            )
