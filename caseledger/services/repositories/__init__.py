"""
Repository Module.

Provides specialized repository classes for the command log tables.
Each repository encapsulates CRUD operations for one table.
"""

from caseledger.services.repositories.audit_repository import AuditRepository
from caseledger.services.repositories.command_repository import CommandRepository
from caseledger.services.repositories.folder_repository import FolderRepository
from caseledger.services.repositories.scenario_repository import ScenarioRepository
from caseledger.services.repositories.test_case_repository import TestCaseRepository

__all__ = [
    "AuditRepository",
    "CommandRepository",
    "FolderRepository",
    "ScenarioRepository",
    "TestCaseRepository",
]
