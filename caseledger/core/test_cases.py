"""Core Test Case Module.

Defines the mutable domain rows that commands operate on:
- TestCase: a test case owned by a scope, optionally placed in a folder
- Scenario: an owned child of a test case (Gherkin text)
- Folder: a container test cases can be moved into and ordered within

TestCase and Scenario carry an integer ``version`` stamp that changes on
every write and is checked before undo/redo.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

TEST_CASE_STATES = ("active", "draft", "upcoming", "retired", "rejected")
TEST_CASE_PRIORITIES = ("normal", "high", "critical")
TEST_CASE_TEMPLATES = ("bdd_feature", "steps", "text")

# Columns that never show up in audit diffs
BOOKKEEPING_FIELDS = ("version", "created_at", "updated_at")


@dataclass
class TestCase:
    """
    Represents a test case row.
    """

    __test__ = False  # not a pytest class

    scope_id: str
    title: str
    folder_id: Optional[int] = None
    sort_order: int = 0
    template: str = "bdd_feature"
    state: str = "active"
    priority: str = "normal"
    legacy_id: Optional[str] = None

    # Metadata
    id: Optional[int] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """
        Converts the TestCase to a plain row dictionary.

        Returns:
            Dict[str, Any]: Column name -> value.
        """
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TestCase":
        """
        Creates a TestCase from a row dictionary.

        Args:
            data (Dict[str, Any]): Column name -> value.

        Returns:
            TestCase: A new TestCase instance.
        """
        return cls(**data)


@dataclass
class Scenario:
    """
    Represents a scenario owned by a test case.
    """

    test_case_id: int
    title: str
    gherkin: str = ""
    sort_order: int = 0

    id: Optional[int] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        return cls(**data)


@dataclass
class Folder:
    """
    Represents a folder in a scope's folder tree.
    """

    scope_id: str
    name: str
    parent_id: Optional[int] = None
    sort_order: int = 0
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        return cls(**data)
