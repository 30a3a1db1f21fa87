"""
Unit tests for AuditTrailWriter.entries_for.
"""

from unittest.mock import MagicMock

import pytest

from caseledger.core.audit import AuditAction, FieldDiff
from caseledger.core.diffs import CollectionDiff
from caseledger.core.mutation import SCENARIO, TEST_CASE, Mutation
from caseledger.core.scope import Scope
from caseledger.services.audit_writer import AuditTrailWriter


@pytest.fixture
def writer():
    return AuditTrailWriter(MagicMock())


@pytest.fixture
def scope():
    return Scope("acme", "alice")


def test_insert_becomes_created(writer, scope):
    mutation = Mutation()
    mutation.insert(TEST_CASE, {"id": 1, "title": "A", "version": 1})

    [entry] = writer.entries_for(mutation, scope, command_id=7)

    assert entry.action == AuditAction.CREATED
    assert entry.actor_id == "alice"
    assert entry.scope_id == "acme"
    assert entry.command_id == 7
    assert FieldDiff("title", None, "A") in entry.diffs


def test_restored_insert_and_delete(writer, scope):
    mutation = Mutation()
    mutation.insert(SCENARIO, {"id": 4, "title": "S"}, restored=True)
    mutation.delete(TEST_CASE, {"id": 1, "title": "A"})

    restored, deleted = writer.entries_for(mutation, scope)

    assert (restored.entity_type, restored.action) == (SCENARIO, AuditAction.RESTORED)
    assert (deleted.entity_type, deleted.action) == (TEST_CASE, AuditAction.DELETED)
    assert FieldDiff("title", "A", None) in deleted.diffs


def test_update_records_old_and_new_values(writer, scope):
    mutation = Mutation()
    mutation.update(TEST_CASE, {"id": 1, "state": "active", "version": 2}, {"state": "retired"})

    [entry] = writer.entries_for(mutation, scope)

    assert entry.action == AuditAction.UPDATED
    assert entry.diffs == [FieldDiff("state", "active", "retired")]


def test_version_only_update_is_not_audited(writer, scope):
    mutation = Mutation()
    mutation.update(TEST_CASE, {"id": 1, "title": "A"}, {})

    assert writer.entries_for(mutation, scope) == []


def test_collection_change_lands_on_parent(writer, scope):
    mutation = Mutation()
    mutation.delete(SCENARIO, {"id": 4, "title": "Old"})
    mutation.update(TEST_CASE, {"id": 1, "title": "A"}, {})
    mutation.collection(
        TEST_CASE, 1, "scenarios", CollectionDiff(removed=[{"id": 4, "title": "Old"}])
    )

    entries = writer.entries_for(mutation, scope)

    assert [(e.entity_type, e.action) for e in entries] == [
        (SCENARIO, AuditAction.DELETED),
        (TEST_CASE, AuditAction.UPDATED),
    ]
    assert entries[1].diffs == [FieldDiff("scenarios", {"id": 4, "title": "Old"}, None)]


def test_write_appends_each_entry(writer, scope):
    writer.db.audit.append.side_effect = lambda entry: entry
    mutation = Mutation()
    mutation.insert(TEST_CASE, {"id": 1, "title": "A"})
    mutation.insert(TEST_CASE, {"id": 2, "title": "B"})

    stored = writer.write(mutation, scope, command_id=3)

    assert len(stored) == 2
    assert writer.db.audit.append.call_count == 2
    writer.db.transaction.assert_called_once()
