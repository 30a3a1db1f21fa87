from caseledger.core.diffs import CollectionDiff
from caseledger.core.mutation import (
    SCENARIO,
    TEST_CASE,
    ChangeKind,
    Mutation,
    entity_key,
    parse_entity_key,
)


def test_entity_key_round_trip():
    key = entity_key(TEST_CASE, 10)
    assert key == "test_case:10"
    assert parse_entity_key(key) == (TEST_CASE, 10)


def test_update_changed_values_ignore_bookkeeping():
    mutation = Mutation()
    change = mutation.update(
        TEST_CASE, {"id": 1, "state": "active", "version": 3}, {"state": "retired", "version": 9}
    )

    assert change.kind == ChangeKind.UPDATE
    assert change.changed_values() == {"state": "retired"}
    assert change.before["state"] == "active"


def test_version_bump_only_mutation_is_empty():
    mutation = Mutation()
    mutation.update(TEST_CASE, {"id": 1, "title": "A"}, {})
    mutation.update(TEST_CASE, {"id": 2, "title": "B"}, {"title": "B"})

    assert mutation.is_empty()


def test_collection_change_makes_mutation_non_empty():
    mutation = Mutation()
    mutation.update(TEST_CASE, {"id": 1, "title": "A"}, {})
    mutation.collection(TEST_CASE, 1, "scenarios", CollectionDiff(added=[{"id": 5}]))

    assert not mutation.is_empty()


def test_empty_collection_diff_is_dropped():
    mutation = Mutation()
    mutation.collection(TEST_CASE, 1, "scenarios", CollectionDiff())
    assert mutation.collection_changes == []


def test_keys_in_first_touch_order():
    mutation = Mutation()
    mutation.delete(SCENARIO, {"id": 4})
    mutation.delete(TEST_CASE, {"id": 1})
    mutation.insert(SCENARIO, {"id": 4}, restored=True)

    assert mutation.keys() == ["scenario:4", "test_case:1"]
    assert mutation.changes[-1].restored is True
