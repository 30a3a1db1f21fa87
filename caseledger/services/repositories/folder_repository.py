"""
Folder Repository Module.

Handles CRUD operations for Folder rows.
"""

import logging
from typing import List, Optional

from caseledger.core.test_cases import Folder
from caseledger.services.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class FolderRepository(BaseRepository):
    """
    Repository for Folder rows.
    """

    def insert(self, folder: Folder) -> int:
        """
        Insert a new folder.

        Args:
            folder: The folder to persist.

        Returns:
            int: The id of the new folder.
        """
        sql = """
            INSERT INTO folders (scope_id, name, parent_id, sort_order)
            VALUES (?, ?, ?, ?)
        """
        with self.transaction() as conn:
            cursor = conn.execute(
                sql, (folder.scope_id, folder.name, folder.parent_id, folder.sort_order)
            )
        folder.id = cursor.lastrowid
        return folder.id

    def get(self, folder_id: int, scope_id: Optional[str] = None) -> Optional[Folder]:
        """
        Retrieve a folder by id.

        Args:
            folder_id: The folder id.
            scope_id: If given, the folder must belong to this scope.

        Returns:
            The Folder if found, else None.
        """
        row = self.connection.execute(
            "SELECT id, scope_id, name, parent_id, sort_order FROM folders WHERE id = ?",
            (folder_id,),
        ).fetchone()
        if not row or (scope_id is not None and row["scope_id"] != scope_id):
            return None
        return Folder.from_dict(dict(row))

    def get_all(self, scope_id: str) -> List[Folder]:
        cursor = self.connection.execute(
            "SELECT id, scope_id, name, parent_id, sort_order FROM folders "
            "WHERE scope_id = ? ORDER BY parent_id, sort_order, id",
            (scope_id,),
        )
        return [Folder.from_dict(dict(row)) for row in cursor.fetchall()]
