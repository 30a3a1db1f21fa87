"""
Commands Package.

This package contains the Command Definitions of every reversible action.
Each definition is registered under its action type; importing the package
registers all of them.
"""

from caseledger.commands import folder_commands, scenario_commands, test_case_commands
from caseledger.commands.base_command import (
    BaseCommand,
    CommandContext,
    CommandResult,
    Execution,
)
from caseledger.commands.registry import action_types, get_definition, register

__all__ = [
    "BaseCommand",
    "CommandContext",
    "CommandResult",
    "Execution",
    "action_types",
    "folder_commands",
    "get_definition",
    "register",
    "scenario_commands",
    "test_case_commands",
]
