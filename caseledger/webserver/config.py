"""
Configuration helpers for the command log web server.
"""

from dataclasses import dataclass

from caseledger.core.config import (
    DEFAULT_DB_NAME,
    DEFAULT_MAX_UNDO_DEPTH,
    DEFAULT_STACK_PREVIEW_LIMIT,
    LedgerConfig,
)


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    db_path: str = DEFAULT_DB_NAME
    max_undo_depth: int = DEFAULT_MAX_UNDO_DEPTH
    stack_preview_limit: int = DEFAULT_STACK_PREVIEW_LIMIT

    def ledger_config(self) -> LedgerConfig:
        return LedgerConfig(
            db_path=self.db_path,
            max_undo_depth=self.max_undo_depth,
            stack_preview_limit=self.stack_preview_limit,
        )

    @classmethod
    def from_ledger_config(
        cls, config: LedgerConfig, host: str = "127.0.0.1", port: int = 8000
    ) -> "ServerConfig":
        return cls(
            host=host,
            port=port,
            db_path=config.db_path,
            max_undo_depth=config.max_undo_depth,
            stack_preview_limit=config.stack_preview_limit,
        )
