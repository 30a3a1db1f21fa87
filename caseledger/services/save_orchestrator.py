"""
Save Orchestrator Module.

Collaborators that buffer edits (an open scenario editor, an inline title
field) register here. Before the command log undoes or redoes anything it
asks every registered source to flush, so buffered edits land as regular
commands first and the stack reflects what the user actually sees.
"""

import logging
from typing import List, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class PendingSaveSource(Protocol):
    """Protocol for anything holding edits that are not saved yet."""

    def has_unsaved_changes(self) -> bool: ...
    def flush(self) -> None: ...


class SaveOrchestrator:
    """
    Explicit registry of pending-save sources.
    """

    def __init__(self) -> None:
        self._sources: List[PendingSaveSource] = []

    def register(self, source: PendingSaveSource) -> None:
        """
        Adds a source. Registering the same source twice has no effect.

        Raises:
            TypeError: If ``source`` does not satisfy PendingSaveSource.
        """
        if not isinstance(source, PendingSaveSource):
            raise TypeError(f"{source!r} does not implement PendingSaveSource")
        if source not in self._sources:
            self._sources.append(source)

    def unregister(self, source: PendingSaveSource) -> None:
        if source in self._sources:
            self._sources.remove(source)

    @property
    def sources(self) -> List[PendingSaveSource]:
        return list(self._sources)

    def flush_pending(self) -> int:
        """
        Flushes every source that reports unsaved changes.

        Returns:
            int: Number of sources flushed.
        """
        flushed = 0
        for source in list(self._sources):
            if source.has_unsaved_changes():
                logger.debug(f"Flushing pending changes of {source.__class__.__name__}")
                source.flush()
                flushed += 1
        return flushed
