"""
Mutation Module.

A Mutation is the write plan a Command Definition produces: an ordered list
of row-level changes plus optional collection-level changes for the audit
trail. Definitions only build mutations; the executor applies them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from caseledger.core.diffs import CollectionDiff, values_equal
from caseledger.core.test_cases import BOOKKEEPING_FIELDS

TEST_CASE = "test_case"
SCENARIO = "scenario"
ENTITY_TYPES = (TEST_CASE, SCENARIO)


def entity_key(entity_type: str, entity_id: int) -> str:
    """Builds the ``<type>:<id>`` key used for version stamps."""
    return f"{entity_type}:{entity_id}"


def parse_entity_key(key: str) -> Tuple[str, int]:
    """
    Splits an entity key into its type and id.

    Args:
        key: A key built by :func:`entity_key`.

    Returns:
        Tuple[str, int]: Entity type and integer id.
    """
    entity_type, _, raw_id = key.partition(":")
    return entity_type, int(raw_id)


class ChangeKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class RowChange:
    """
    One row-level write.

    Attributes:
        entity_type (str): Table family (test_case or scenario).
        entity_id (int): Row id.
        kind (ChangeKind): insert, update or delete.
        before (Optional[Dict[str, Any]]): Row as currently stored.
        after (Optional[Dict[str, Any]]): Row as it will be stored.
        restored (bool): True when an insert brings back a row that
            existed before (undo of a delete, redo of an add).
    """

    entity_type: str
    entity_id: int
    kind: ChangeKind
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    restored: bool = False

    @property
    def key(self) -> str:
        return entity_key(self.entity_type, self.entity_id)

    def changed_values(self) -> Dict[str, Any]:
        """
        Returns the non-bookkeeping fields an update actually changes.

        Returns:
            Dict[str, Any]: Field -> new value.
        """
        if self.kind != ChangeKind.UPDATE:
            return {}
        before = self.before or {}
        return {
            name: value
            for name, value in (self.after or {}).items()
            if name not in BOOKKEEPING_FIELDS
            and not values_equal(before.get(name), value)
        }


@dataclass
class CollectionChange:
    """A change to a child collection, reported on the parent entity."""

    entity_type: str
    entity_id: int
    field: str
    diff: CollectionDiff


@dataclass
class Mutation:
    """
    Ordered write plan for one command application.
    """

    changes: List[RowChange] = field(default_factory=list)
    collection_changes: List[CollectionChange] = field(default_factory=list)

    def insert(
        self,
        entity_type: str,
        row: Dict[str, Any],
        restored: bool = False,
    ) -> RowChange:
        change = RowChange(
            entity_type, row["id"], ChangeKind.INSERT, None, dict(row), restored
        )
        self.changes.append(change)
        return change

    def update(
        self,
        entity_type: str,
        before: Dict[str, Any],
        values: Dict[str, Any],
    ) -> RowChange:
        """
        Records an update of ``before`` with ``values``.

        An update with empty ``values`` still bumps the row's version
        (used to mark a parent whose collection changed).
        """
        after = dict(before)
        after.update(values)
        change = RowChange(
            entity_type, before["id"], ChangeKind.UPDATE, dict(before), after
        )
        self.changes.append(change)
        return change

    def delete(self, entity_type: str, before: Dict[str, Any]) -> RowChange:
        change = RowChange(entity_type, before["id"], ChangeKind.DELETE, dict(before))
        self.changes.append(change)
        return change

    def collection(
        self, entity_type: str, entity_id: int, field_name: str, diff: CollectionDiff
    ) -> None:
        if not diff.is_empty():
            self.collection_changes.append(
                CollectionChange(entity_type, entity_id, field_name, diff)
            )

    def keys(self) -> List[str]:
        """Entity keys touched by this mutation, in first-touch order."""
        seen: List[str] = []
        for change in self.changes:
            if change.key not in seen:
                seen.append(change.key)
        return seen

    def is_empty(self) -> bool:
        """True if applying the mutation would change no data."""
        if self.collection_changes:
            return False
        for change in self.changes:
            if change.kind != ChangeKind.UPDATE or change.changed_values():
                return False
        return True
