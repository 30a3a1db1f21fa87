"""
Command Definition registry.

Maps action type names to definition classes. New reversible actions are
added by decorating a BaseCommand subclass with :func:`register`; nothing
that calls the command log has to change.
"""

import logging
from typing import Dict, List, Type

from caseledger.commands.base_command import BaseCommand
from caseledger.core.errors import ValidationError

logger = logging.getLogger(__name__)

_REGISTRY: Dict[str, Type[BaseCommand]] = {}


def register(cls: Type[BaseCommand]) -> Type[BaseCommand]:
    """
    Class decorator that registers a definition under its action type.

    Raises:
        ValueError: If the action type is empty or already taken.
    """
    if not cls.action_type:
        raise ValueError(f"{cls.__name__} has no action_type")
    existing = _REGISTRY.get(cls.action_type)
    if existing is not None and existing is not cls:
        raise ValueError(f"Action type already registered: {cls.action_type}")
    _REGISTRY[cls.action_type] = cls
    logger.debug(f"Registered command definition {cls.action_type}")
    return cls


def get_definition(action_type: str) -> BaseCommand:
    """
    Returns a definition instance for an action type.

    Raises:
        ValidationError: If the action type is unknown.
    """
    cls = _REGISTRY.get(action_type)
    if cls is None:
        raise ValidationError(
            f"Unknown action type: {action_type}", {"action_type": "unknown"}
        )
    return cls()


def action_types() -> List[str]:
    return sorted(_REGISTRY)
