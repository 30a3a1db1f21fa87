"""
Ledger Configuration Module.

Defines the runtime settings of the command log and loads them from the
environment (optionally via a ``.env`` file).

Environment variables:
    CASELEDGER_DB_PATH: SQLite database file.
    CASELEDGER_MAX_UNDO_DEPTH: Committed commands kept undoable per scope.
    CASELEDGER_STACK_PREVIEW_LIMIT: Default size of stack listings.
    CASELEDGER_BUSY_TIMEOUT: Seconds to wait for the write lock.
    CASELEDGER_LOG_DIR: Directory for rotating log files.
    CASELEDGER_DEBUG: "1"/"true" enables DEBUG logging.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "caseledger.db"
DEFAULT_MAX_UNDO_DEPTH = 50
DEFAULT_STACK_PREVIEW_LIMIT = 10
DEFAULT_BUSY_TIMEOUT = 5.0


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LedgerConfig:
    """
    Configuration settings for the command log.

    Attributes:
        db_path: Path to the SQLite database (``:memory:`` for tests).
        max_undo_depth: Number of committed commands kept undoable per
            scope; older ones are expired. 0 or less disables trimming.
        stack_preview_limit: Default ``limit`` of undo/redo stack listings.
        busy_timeout_s: Seconds a writer waits for a concurrent writer.
        log_dir: Directory for the rotating log file.
        debug: Whether DEBUG logging is enabled.
    """

    db_path: str = DEFAULT_DB_NAME
    max_undo_depth: int = DEFAULT_MAX_UNDO_DEPTH
    stack_preview_limit: int = DEFAULT_STACK_PREVIEW_LIMIT
    busy_timeout_s: float = DEFAULT_BUSY_TIMEOUT
    log_dir: str = "logs"
    debug: bool = False

    def to_dict(self) -> dict:
        """
        Converts the config to a dictionary for JSON serialization.

        Returns:
            dict: Dictionary representation of the configuration.
        """
        return {
            "db_path": self.db_path,
            "max_undo_depth": self.max_undo_depth,
            "stack_preview_limit": self.stack_preview_limit,
            "busy_timeout_s": self.busy_timeout_s,
            "log_dir": self.log_dir,
            "debug": self.debug,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerConfig":
        """
        Creates a LedgerConfig from a dictionary.

        Args:
            data: Dictionary containing configuration values.

        Returns:
            LedgerConfig: A new LedgerConfig instance.
        """
        return cls(
            db_path=data.get("db_path", DEFAULT_DB_NAME),
            max_undo_depth=int(data.get("max_undo_depth", DEFAULT_MAX_UNDO_DEPTH)),
            stack_preview_limit=int(
                data.get("stack_preview_limit", DEFAULT_STACK_PREVIEW_LIMIT)
            ),
            busy_timeout_s=float(data.get("busy_timeout_s", DEFAULT_BUSY_TIMEOUT)),
            log_dir=data.get("log_dir", "logs"),
            debug=bool(data.get("debug", False)),
        )

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "LedgerConfig":
        """
        Builds the configuration from environment variables.

        Args:
            dotenv_path: Optional explicit ``.env`` file. When omitted the
                default ``.env`` lookup of python-dotenv is used.

        Returns:
            LedgerConfig: Configuration with environment overrides applied.
        """
        load_dotenv(dotenv_path)
        env = os.environ
        try:
            config = cls(
                db_path=env.get("CASELEDGER_DB_PATH", DEFAULT_DB_NAME),
                max_undo_depth=int(
                    env.get("CASELEDGER_MAX_UNDO_DEPTH", DEFAULT_MAX_UNDO_DEPTH)
                ),
                stack_preview_limit=int(
                    env.get(
                        "CASELEDGER_STACK_PREVIEW_LIMIT", DEFAULT_STACK_PREVIEW_LIMIT
                    )
                ),
                busy_timeout_s=float(
                    env.get("CASELEDGER_BUSY_TIMEOUT", DEFAULT_BUSY_TIMEOUT)
                ),
                log_dir=env.get("CASELEDGER_LOG_DIR", "logs"),
                debug=_env_bool(env.get("CASELEDGER_DEBUG")),
            )
        except ValueError as e:
            logger.error(f"Invalid configuration value in environment: {e}")
            raise
        logger.debug(f"Loaded configuration: {config.to_dict()}")
        return config
