from unittest.mock import MagicMock

import pytest

from caseledger.services.save_orchestrator import SaveOrchestrator


class Editor:
    def __init__(self, dirty):
        self.dirty = dirty
        self.flushed = 0

    def has_unsaved_changes(self):
        return self.dirty

    def flush(self):
        self.flushed += 1
        self.dirty = False


def test_flush_pending_only_flushes_dirty_sources():
    orchestrator = SaveOrchestrator()
    dirty, clean = Editor(True), Editor(False)
    orchestrator.register(dirty)
    orchestrator.register(clean)

    assert orchestrator.flush_pending() == 1
    assert dirty.flushed == 1
    assert clean.flushed == 0
    assert orchestrator.flush_pending() == 0


def test_register_is_idempotent_and_unregister():
    orchestrator = SaveOrchestrator()
    editor = Editor(True)
    orchestrator.register(editor)
    orchestrator.register(editor)
    assert orchestrator.sources == [editor]

    orchestrator.unregister(editor)
    assert orchestrator.sources == []


def test_register_rejects_objects_without_protocol():
    with pytest.raises(TypeError):
        SaveOrchestrator().register(object())


def test_mock_source():
    source = MagicMock()
    source.has_unsaved_changes.return_value = True
    orchestrator = SaveOrchestrator()
    orchestrator.register(source)

    orchestrator.flush_pending()

    source.flush.assert_called_once()
