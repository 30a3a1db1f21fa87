"""
Logging Configuration Module.

Routes log records of the ledger service and the history CLI to a
size-rotated file under ``LedgerConfig.log_dir`` and, optionally, to stderr.

Records may carry the scope they concern through ``extra={"scope": ...}``;
the file format prints ``-`` for records without one.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from caseledger.core.config import LedgerConfig

LOG_FILENAME = "caseledger.log"
MAX_BYTES = 2 * 1024 * 1024  # 2 MB
BACKUP_COUNT = 3
FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(scope)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Marks handlers installed here so shutdown leaves foreign ones alone
_OWNED = "_caseledger_owned"


class ScopeFilter(logging.Filter):
    """Fills in ``record.scope`` for records logged without one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "scope"):
            record.scope = "-"
        return True


def _install(handler: logging.Handler, formatter: logging.Formatter, level: int) -> None:
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler.addFilter(ScopeFilter())
    setattr(handler, _OWNED, True)
    logging.getLogger().addHandler(handler)


def _open_log_file(log_dir: str) -> Optional[RotatingFileHandler]:
    try:
        os.makedirs(log_dir, exist_ok=True)
        return RotatingFileHandler(
            os.path.join(log_dir, LOG_FILENAME),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
            delay=True,
        )
    except OSError as e:
        print(f"Could not open log file in {log_dir}: {e}", file=sys.stderr)
        return None


def setup_logging(
    config: LedgerConfig,
    verbose: bool = False,
    console: bool = True,
    console_level: Optional[int] = None,
) -> Optional[str]:
    """
    Configures the root logger for a ledger process.

    Calling it again replaces the handlers from the previous call.

    Args:
        config: Supplies ``log_dir`` and the ``debug`` switch.
        verbose: Forces DEBUG regardless of ``config.debug``.
        console: Whether to echo records to stderr.
        console_level: Threshold of the stderr echo. Defaults to the file
            level; the CLI raises it so command output stays readable.

    Returns:
        Optional[str]: Path of the log file, or None if it could not be opened.
    """
    shutdown_logging()

    level = logging.DEBUG if verbose or config.debug else logging.INFO
    logging.getLogger().setLevel(level)

    log_path = None
    file_handler = _open_log_file(config.log_dir)
    if file_handler is not None:
        _install(file_handler, logging.Formatter(FILE_FORMAT), level)
        log_path = file_handler.baseFilename

    if console:
        _install(
            logging.StreamHandler(sys.stderr),
            logging.Formatter(CONSOLE_FORMAT),
            level if console_level is None else max(level, console_level),
        )

    logging.getLogger(__name__).info(
        f"Logging at {logging.getLevelName(level)} to {log_path or 'stderr only'}"
    )
    return log_path


def shutdown_logging() -> None:
    """
    Removes and closes the handlers installed by :func:`setup_logging`.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _OWNED, False):
            root.removeHandler(handler)
            handler.close()
