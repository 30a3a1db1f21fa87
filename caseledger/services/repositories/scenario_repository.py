"""
Scenario Repository Module.

Handles CRUD operations for Scenario rows (children of test cases).

Adding or removing a scenario also bumps the parent test case's version,
so a command that captured the parent sees the collection change as a
conflict.
"""

import logging
import time
from typing import Any, Dict, List

from caseledger.core.test_cases import Scenario
from caseledger.services.repositories.base_repository import VersionedRepository

logger = logging.getLogger(__name__)


class ScenarioRepository(VersionedRepository):
    """
    Repository for Scenario rows.
    """

    table = "scenarios"
    columns = (
        "id",
        "test_case_id",
        "title",
        "gherkin",
        "sort_order",
        "created_at",
        "updated_at",
        "version",
    )

    def insert_row(self, row: Dict[str, Any]) -> int:
        with self.transaction():
            row_id = super().insert_row(row)
            self._touch_parent(row["test_case_id"])
        return row_id

    def delete_row(self, row_id: int) -> None:
        with self.transaction() as conn:
            parent = conn.execute(
                "SELECT test_case_id FROM scenarios WHERE id = ?", (row_id,)
            ).fetchone()
            super().delete_row(row_id)
            if parent:
                self._touch_parent(parent[0])

    def _touch_parent(self, test_case_id: int) -> None:
        self.connection.execute(
            "UPDATE test_cases SET version = version + 1, updated_at = ? WHERE id = ?",
            (time.time(), test_case_id),
        )

    def insert(self, scenario: Scenario) -> int:
        """
        Insert a new scenario.

        Args:
            scenario: The scenario to persist. ``id`` may be None.

        Returns:
            int: The id of the stored row.
        """
        scenario.id = self.insert_row(scenario.to_dict())
        return scenario.id

    def rows_for_test_case(self, test_case_id: int) -> List[dict]:
        """
        Retrieve the scenario rows of a test case in display order.
        """
        cursor = self.connection.execute(
            f"SELECT {', '.join(self.columns)} FROM scenarios "
            "WHERE test_case_id = ? ORDER BY sort_order, id",
            (test_case_id,),
        )
        return [dict(row) for row in cursor.fetchall()]

    def list_for_test_case(self, test_case_id: int) -> List[Scenario]:
        return [Scenario.from_dict(row) for row in self.rows_for_test_case(test_case_id)]
