"""
CLI Utilities Module.

Common utility functions for CLI tools.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def validate_database_path(db_path: str, allow_create: bool = False) -> bool:
    """
    Validate that a database file exists.

    Args:
        db_path: Path to the database file.
        allow_create: If True, allows non-existent databases (for create
            operations).

    Returns:
        True if valid, False otherwise.
    """
    path = Path(db_path)

    if not path.exists():
        if allow_create:
            # Database will be created automatically by DatabaseService
            logger.debug(f"Database will be created: {db_path}")
            return True
        else:
            logger.error(f"Database file not found: {db_path}")
            return False

    return True


def parse_params(raw: Optional[str]) -> Dict[str, Any]:
    """
    Parses the ``--params`` JSON object of a submit call.

    Raises:
        ValueError: If the text is not a JSON object.
    """
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"--params is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValueError("--params must be a JSON object")
    return value


def format_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")
