"""
Parameter validation helpers shared by Command Definitions.

All helpers raise ValidationError with a field -> message map.
"""

from typing import Any, Dict, List, Optional, Sequence

from caseledger.core.errors import ValidationError


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_id(params: Dict[str, Any], name: str) -> int:
    value = params.get(name)
    if not _is_int(value) or value <= 0:
        raise ValidationError(
            f"'{name}' must be a positive integer", {name: "must be a positive integer"}
        )
    return value


def require_id_list(params: Dict[str, Any], name: str = "ids") -> List[int]:
    """
    Validates a non-empty list of unique positive integer ids.

    Args:
        params: Command parameters.
        name: Key of the id list.

    Returns:
        List[int]: The ids, in the order given.

    Raises:
        ValidationError: If the list is missing, empty, or malformed.
    """
    ids = params.get(name)
    if not isinstance(ids, (list, tuple)) or not ids:
        raise ValidationError(f"'{name}' must be a non-empty list of ids", {name: "empty"})
    if not all(_is_int(i) and i > 0 for i in ids):
        raise ValidationError(
            f"'{name}' must contain positive integer ids", {name: "invalid id"}
        )
    if len(set(ids)) != len(ids):
        raise ValidationError(f"'{name}' contains duplicate ids", {name: "duplicate id"})
    return list(ids)


def optional_folder_id(params: Dict[str, Any], name: str = "folder_id") -> Optional[int]:
    """Validates a folder id that may be None (the root container)."""
    value = params.get(name)
    if value is None:
        return None
    if not _is_int(value) or value <= 0:
        raise ValidationError(
            f"'{name}' must be a folder id or null", {name: "invalid folder id"}
        )
    return value


def require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{name}' must be a non-empty string", {name: "empty"})
    return value.strip()


def require_choice(value: Any, name: str, choices: Sequence[str]) -> str:
    if value not in choices:
        raise ValidationError(
            f"'{name}' must be one of: {', '.join(choices)}",
            {name: f"invalid value {value!r}"},
        )
    return value
