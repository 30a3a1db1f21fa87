import pathlib
import sys

import pytest

# Ensure project root is in sys.path
repo_root = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from caseledger.core.scope import Scope  # noqa: E402
from caseledger.core.test_cases import Folder, Scenario, TestCase  # noqa: E402
from caseledger.services.db_service import DatabaseService  # noqa: E402

SCOPE_ID = "acme"

TABLES = ("folders", "test_cases", "scenarios", "commands", "audit_entries")


def seed(service: DatabaseService) -> dict:
    """
    Populates a scope with two folders, four test cases and their scenarios.

    Layout::

        Smoke (folder 1):      10 Login works, 11 Logout works, 12 Password reset
        Regression (folder 2): empty
        root:                  13 Signup

    Scenarios: 100, 101 on test case 10; 110 on 11; 120 on 12.
    """
    smoke = service.insert_folder(Folder(scope_id=SCOPE_ID, name="Smoke"))
    regression = service.insert_folder(
        Folder(scope_id=SCOPE_ID, name="Regression", sort_order=1)
    )

    for test_case_id, title, folder_id, order in (
        (10, "Login works", smoke, 0),
        (11, "Logout works", smoke, 1),
        (12, "Password reset", smoke, 2),
        (13, "Signup", None, 0),
    ):
        service.insert_test_case(
            TestCase(
                id=test_case_id,
                scope_id=SCOPE_ID,
                title=title,
                folder_id=folder_id,
                sort_order=order,
            )
        )

    for scenario_id, test_case_id, title, order in (
        (100, 10, "Valid credentials", 0),
        (101, 10, "Wrong password", 1),
        (110, 11, "Session cleared", 0),
        (120, 12, "Email sent", 0),
    ):
        service.insert_scenario(
            Scenario(
                id=scenario_id,
                test_case_id=test_case_id,
                title=title,
                gherkin=f"Scenario: {title}",
                sort_order=order,
            )
        )
    return {"smoke": smoke, "regression": regression}


def snapshot(service: DatabaseService, tables=TABLES) -> dict:
    """Returns every row of the given tables as tuples, ordered by id."""
    return {
        table: [
            tuple(row)
            for row in service.connection.execute(f"SELECT * FROM {table} ORDER BY id")
        ]
        for table in tables
    }


def content(service: DatabaseService) -> dict:
    """Test case and scenario rows without the ``updated_at`` column."""
    result = {}
    for table in ("test_cases", "scenarios"):
        rows = service.connection.execute(f"SELECT * FROM {table} ORDER BY id").fetchall()
        result[table] = [
            {k: row[k] for k in row.keys() if k != "updated_at"} for row in rows
        ]
    return result


@pytest.fixture
def db_service():
    """
    Provides a fresh in-memory database service for each test.
    """
    service = DatabaseService(":memory:")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def seeded_db(db_service):
    """In-memory database with the standard seed loaded."""
    seed(db_service)
    return db_service


@pytest.fixture
def db_path(tmp_path):
    """Path of an on-disk database with the standard seed loaded."""
    path = str(tmp_path / "ledger.db")
    service = DatabaseService(path)
    service.connect()
    seed(service)
    service.close()
    return path


@pytest.fixture
def scope():
    return Scope(SCOPE_ID, "alice")


@pytest.fixture
def table_snapshot():
    """Callable returning every row of the ledger tables (byte-for-byte checks)."""
    return snapshot


@pytest.fixture
def data_content():
    """Callable returning test case and scenario rows without ``updated_at``."""
    return content
