"""
Database Service Module.
Provides the low-level SQL interface to the SQLite database.

The service owns the connection, the schema and a re-entrant transaction.
CRUD operations are delegated to specialized repository classes which all
share the service's transaction, so a command and everything it writes
commit or roll back together.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from caseledger.core.config import DEFAULT_BUSY_TIMEOUT
from caseledger.core.errors import TransactionError
from caseledger.core.mutation import SCENARIO, TEST_CASE, entity_key, parse_entity_key
from caseledger.core.test_cases import Folder, Scenario, TestCase

# Import repositories for modular CRUD operations
from caseledger.services.repositories import (
    AuditRepository,
    CommandRepository,
    FolderRepository,
    ScenarioRepository,
    TestCaseRepository,
)
from caseledger.services.repositories.base_repository import VersionedRepository

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Handles all raw interactions with the SQLite database.

    This service delegates CRUD operations to specialized repository
    classes while maintaining schema management, connection handling
    and transaction boundaries.
    """

    def __init__(
        self, db_path: str = ":memory:", busy_timeout_s: float = DEFAULT_BUSY_TIMEOUT
    ):
        """
        Args:
            db_path: Path to the SQLite database file.
                     Defaults to :memory: for testing.
            busy_timeout_s: Seconds to wait for another writer's lock.
        """
        self.db_path = db_path
        self.busy_timeout_s = busy_timeout_s
        self._connection: Optional[sqlite3.Connection] = None
        self._tx_depth = 0

        # Initialize repositories (will be connected after connection is established)
        self.test_cases = TestCaseRepository()
        self.scenarios = ScenarioRepository()
        self.folders = FolderRepository()
        self.commands = CommandRepository()
        self.audit = AuditRepository()

        logger.info(f"DatabaseService initialized with path: {self.db_path}")

    def connect(self) -> None:
        """Establishes connection to the database."""
        try:
            # Autocommit mode: transactions are opened explicitly in transaction()
            self._connection = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout_s, isolation_level=None
            )
            self._connection.execute("PRAGMA foreign_keys = ON;")
            # WAL mode allows concurrent readers with a single writer
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode=WAL;")
                logger.debug("WAL mode enabled for database.")
            self._connection.row_factory = sqlite3.Row
            logger.debug("Database connection established.")

            self._init_schema()

            for repo in self._repositories():
                repo.set_connection(self._connection, self.transaction)

        except sqlite3.Error as e:
            logger.critical(f"Failed to connect to database: {e}")
            raise

    def close(self) -> None:
        """Closes the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            self._tx_depth = 0
            for repo in self._repositories():
                repo.set_connection(None)
            logger.debug("Database connection closed.")

    def __enter__(self) -> "DatabaseService":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _repositories(self):
        return (self.test_cases, self.scenarios, self.folders, self.commands, self.audit)

    @property
    def connection(self) -> sqlite3.Connection:
        if not self._connection:
            self.connect()
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Re-entrant transaction context.

        The outermost level takes the write lock with ``BEGIN IMMEDIATE``
        and commits or rolls back; nested levels join it. Store failures
        surface as TransactionError after the rollback.

        Yields:
            sqlite3.Connection: The shared connection.

        Raises:
            TransactionError: If SQLite fails at any point.
        """
        conn = self.connection
        if self._tx_depth > 0:
            self._tx_depth += 1
            try:
                yield conn
            finally:
                self._tx_depth -= 1
            return

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            logger.error(f"Could not begin transaction: {e}")
            raise TransactionError(f"Could not begin transaction: {e}") from e

        self._tx_depth = 1
        try:
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(conn)
            logger.error(f"Transaction rolled back due to store error: {e}")
            raise TransactionError(str(e)) from e
        except Exception as e:
            self._rollback(conn)
            logger.debug(f"Transaction rolled back: {e!r}")
            raise
        finally:
            self._tx_depth = 0

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.rollback()

    def _init_schema(self) -> None:
        """Creates the core tables if they don't exist."""
        schema_sql = """
        CREATE TABLE IF NOT EXISTS folders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            scope_id TEXT NOT NULL,
            name TEXT NOT NULL,
            parent_id INTEGER REFERENCES folders(id) ON DELETE CASCADE,
            sort_order INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS test_cases (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            scope_id TEXT NOT NULL,
            title TEXT NOT NULL,
            folder_id INTEGER REFERENCES folders(id),
            sort_order INTEGER NOT NULL DEFAULT 0,
            template TEXT NOT NULL DEFAULT 'bdd_feature',
            state TEXT NOT NULL DEFAULT 'active',
            priority TEXT NOT NULL DEFAULT 'normal',
            legacy_id TEXT,
            created_at REAL,
            updated_at REAL,
            version INTEGER NOT NULL DEFAULT 1
        );

        CREATE TABLE IF NOT EXISTS scenarios (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            test_case_id INTEGER NOT NULL
                REFERENCES test_cases(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            gherkin TEXT NOT NULL DEFAULT '',
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at REAL,
            updated_at REAL,
            version INTEGER NOT NULL DEFAULT 1
        );

        -- Command history, totally ordered per scope
        CREATE TABLE IF NOT EXISTS commands (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            scope_id TEXT NOT NULL,
            actor_id TEXT NOT NULL,
            action_type TEXT NOT NULL,
            description TEXT NOT NULL,
            sequence INTEGER NOT NULL,
            forward_payload JSON DEFAULT '{}',
            inverse_payload JSON DEFAULT '{}',
            affected JSON DEFAULT '[]',
            stamps JSON DEFAULT '{}',
            status TEXT NOT NULL,
            created_at REAL,
            updated_at REAL,
            UNIQUE(scope_id, sequence)
        );

        -- Append-only audit trail, ordered per entity
        CREATE TABLE IF NOT EXISTS audit_entries (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            scope_id TEXT NOT NULL,
            command_id INTEGER,
            entity_type TEXT NOT NULL,
            entity_id INTEGER NOT NULL,
            sequence INTEGER NOT NULL,
            action TEXT NOT NULL,
            diffs JSON DEFAULT '[]',
            actor_id TEXT NOT NULL,
            created_at REAL,
            UNIQUE(entity_type, entity_id, sequence)
        );

        -- Indexes for performance
        CREATE INDEX IF NOT EXISTS idx_test_cases_folder
            ON test_cases(scope_id, folder_id, sort_order);
        CREATE INDEX IF NOT EXISTS idx_scenarios_test_case
            ON scenarios(test_case_id, sort_order);
        CREATE INDEX IF NOT EXISTS idx_commands_status
            ON commands(scope_id, status, sequence);
        CREATE INDEX IF NOT EXISTS idx_audit_scope ON audit_entries(scope_id, id);
        """

        # executescript manages its own transaction, so it runs outside ours
        try:
            self._connection.executescript(schema_sql)
            logger.debug("Database schema initialized.")
        except sqlite3.Error as e:
            logger.critical(f"Schema initialization failed: {e}")
            raise

    # --------------------------------------------------------------------------
    # Version stamps
    # --------------------------------------------------------------------------

    def repo_for(self, entity_type: str) -> VersionedRepository:
        """
        Returns the repository that stores an entity type.

        Raises:
            ValueError: For unknown entity types.
        """
        if entity_type == TEST_CASE:
            return self.test_cases
        if entity_type == SCENARIO:
            return self.scenarios
        raise ValueError(f"Unknown entity type: {entity_type}")

    def get_versions(self, keys: Iterable[str]) -> Dict[str, Optional[int]]:
        """
        Reads the current version stamp of each entity key.

        Args:
            keys: Entity keys such as ``test_case:10``.

        Returns:
            Dict[str, Optional[int]]: key -> version, None for missing rows.
        """
        by_type: Dict[str, List[int]] = {}
        for key in keys:
            entity_type, entity_id = parse_entity_key(key)
            by_type.setdefault(entity_type, []).append(entity_id)

        versions: Dict[str, Optional[int]] = {}
        for entity_type, ids in by_type.items():
            for entity_id, version in self.repo_for(entity_type).get_versions(ids).items():
                versions[entity_key(entity_type, entity_id)] = version
        return versions

    def set_versions(self, stamps: Dict[str, Optional[int]]) -> None:
        """
        Pins existing rows to the given version stamps.

        Keys with a None stamp (row absent in that state) are skipped.
        """
        with self.transaction():
            for key, version in stamps.items():
                if version is None:
                    continue
                entity_type, entity_id = parse_entity_key(key)
                self.repo_for(entity_type).set_version(entity_id, version)

    # --------------------------------------------------------------------------
    # Test Case Methods
    # --------------------------------------------------------------------------

    def insert_test_case(self, test_case: TestCase) -> int:
        """
        Inserts a test case directly (outside the command log).

        Args:
            test_case: The test case to insert.

        Returns:
            int: The new id.
        """
        return self.test_cases.insert(test_case)

    def get_test_case(
        self, test_case_id: int, scope_id: Optional[str] = None
    ) -> Optional[TestCase]:
        return self.test_cases.get(test_case_id, scope_id)

    def get_test_cases(self, scope_id: str) -> List[TestCase]:
        return self.test_cases.get_all(scope_id)

    def update_test_case(self, test_case_id: int, values: Dict) -> None:
        """
        Updates a test case directly, bypassing the command log.

        Used by collaborators that edit single fields in place (the
        inline editor); the version bump makes such edits visible to the
        conflict check of later undo/redo calls.

        Args:
            test_case_id: The row to update.
            values: Column -> new value.
        """
        self.test_cases.update_row(test_case_id, values)

    def list_folder_contents(self, scope_id: str, folder_id: Optional[int]) -> List[dict]:
        return self.test_cases.list_in_folder(scope_id, folder_id)

    # --------------------------------------------------------------------------
    # Scenario Methods
    # --------------------------------------------------------------------------

    def insert_scenario(self, scenario: Scenario) -> int:
        return self.scenarios.insert(scenario)

    def get_scenarios(self, test_case_id: int) -> List[Scenario]:
        """
        Retrieves the scenarios of a test case in display order.

        Args:
            test_case_id: The owning test case.

        Returns:
            List[Scenario]: Ordered by sort_order then id.
        """
        return self.scenarios.list_for_test_case(test_case_id)

    def update_scenario(self, scenario_id: int, values: Dict) -> None:
        self.scenarios.update_row(scenario_id, values)

    # --------------------------------------------------------------------------
    # Folder Methods
    # --------------------------------------------------------------------------

    def insert_folder(self, folder: Folder) -> int:
        return self.folders.insert(folder)

    def get_folder(self, folder_id: int, scope_id: Optional[str] = None) -> Optional[Folder]:
        return self.folders.get(folder_id, scope_id)

    def get_folders(self, scope_id: str) -> List[Folder]:
        return self.folders.get_all(scope_id)
