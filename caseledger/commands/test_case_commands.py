"""
Commands for creating, deleting and editing TestCase rows.
"""

import logging
from typing import Any, Dict, List

from caseledger.commands.base_command import (
    BaseCommand,
    CommandContext,
    Execution,
    count_label,
    field_updates,
)
from caseledger.commands.registry import register
from caseledger.commands.validation import (
    optional_folder_id,
    require_choice,
    require_id_list,
    require_text,
)
from caseledger.core.errors import ValidationError
from caseledger.core.mutation import SCENARIO, TEST_CASE, Mutation, entity_key
from caseledger.core.test_cases import (
    TEST_CASE_PRIORITIES,
    TEST_CASE_STATES,
    TEST_CASE_TEMPLATES,
    Scenario,
    TestCase,
)

logger = logging.getLogger(__name__)

# Fields ChangeField may touch, with their allowed values (None = free text)
EDITABLE_FIELDS = {
    "title": None,
    "state": TEST_CASE_STATES,
    "priority": TEST_CASE_PRIORITIES,
    "template": TEST_CASE_TEMPLATES,
}


def _delete_mutation(context: CommandContext, test_case_ids: List[int]) -> Mutation:
    """Deletes test cases together with their scenarios (children first)."""
    mutation = Mutation()
    for row in context.test_case_rows(test_case_ids):
        for scenario in context.scenario_rows(row["id"]):
            mutation.delete(SCENARIO, scenario)
        mutation.delete(TEST_CASE, row)
    return mutation


def _restore_mutation(
    test_cases: List[Dict[str, Any]], scenarios: List[Dict[str, Any]]
) -> Mutation:
    """Re-inserts serialized rows with their original ids (parents first)."""
    mutation = Mutation()
    for row in test_cases:
        mutation.insert(TEST_CASE, row, restored=True)
    for row in scenarios:
        mutation.insert(SCENARIO, row, restored=True)
    return mutation


@register
class DeleteEntitiesCommand(BaseCommand):
    """
    Deletes test cases and everything they own.

    The inverse payload holds the full rows of the test cases and their
    scenarios so undo restores them with the same ids, folder and order.
    """

    action_type = "DeleteEntities"

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"ids": require_id_list(params)}

    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        ids = params["ids"]
        mutation = _delete_mutation(context, ids)
        test_cases = [c.before for c in mutation.changes if c.entity_type == TEST_CASE]
        scenarios = [c.before for c in mutation.changes if c.entity_type == SCENARIO]
        return Execution(
            mutation=mutation,
            forward_payload={"ids": ids},
            inverse_payload={"test_cases": test_cases, "scenarios": scenarios},
            description=f"Deleted {count_label(len(ids))}",
        )

    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        return _restore_mutation(
            inverse_payload.get("test_cases", []), inverse_payload.get("scenarios", [])
        )

    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        return _delete_mutation(context, forward_payload["ids"])


@register
class CreateTestCaseCommand(BaseCommand):
    """
    Creates a test case, optionally with initial scenarios.

    The new row is appended to the end of its container.
    """

    action_type = "CreateTestCase"

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        normalized = {
            "title": require_text(params.get("title"), "title"),
            "folder_id": optional_folder_id(params),
            "template": require_choice(
                params.get("template", "bdd_feature"), "template", TEST_CASE_TEMPLATES
            ),
            "state": require_choice(
                params.get("state", "active"), "state", TEST_CASE_STATES
            ),
            "priority": require_choice(
                params.get("priority", "normal"), "priority", TEST_CASE_PRIORITIES
            ),
            "legacy_id": params.get("legacy_id"),
            "scenarios": [],
        }
        scenarios = params.get("scenarios") or []
        if not isinstance(scenarios, list):
            raise ValidationError("'scenarios' must be a list", {"scenarios": "not a list"})
        for index, item in enumerate(scenarios):
            if not isinstance(item, dict):
                raise ValidationError(
                    "Scenario items must be objects", {f"scenarios[{index}]": "not an object"}
                )
            normalized["scenarios"].append(
                {
                    "title": require_text(item.get("title"), f"scenarios[{index}].title"),
                    "gherkin": item.get("gherkin") or "",
                }
            )
        return normalized

    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        folder_id = params["folder_id"]
        context.require_folder(folder_id)

        test_case = TestCase(
            scope_id=context.scope_id,
            title=params["title"],
            folder_id=folder_id,
            sort_order=context.next_sort_order(folder_id),
            template=params["template"],
            state=params["state"],
            priority=params["priority"],
            legacy_id=params["legacy_id"],
        )
        test_case.id = context.allocate_ids(TEST_CASE, 1)[0]

        scenario_ids = context.allocate_ids(SCENARIO, len(params["scenarios"]))
        scenarios = [
            Scenario(
                test_case_id=test_case.id,
                title=item["title"],
                gherkin=item["gherkin"],
                sort_order=index,
                id=scenario_id,
            ).to_dict()
            for index, (item, scenario_id) in enumerate(
                zip(params["scenarios"], scenario_ids)
            )
        ]

        row = test_case.to_dict()
        mutation = Mutation()
        mutation.insert(TEST_CASE, row)
        for scenario in scenarios:
            mutation.insert(SCENARIO, scenario)

        return Execution(
            mutation=mutation,
            forward_payload={"test_cases": [row], "scenarios": scenarios},
            inverse_payload={"ids": [test_case.id]},
            description=f'Created test case "{test_case.title}"',
        )

    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        return _delete_mutation(context, inverse_payload["ids"])

    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        return _restore_mutation(
            forward_payload.get("test_cases", []), forward_payload.get("scenarios", [])
        )


@register
class ChangeFieldCommand(BaseCommand):
    """
    Sets one or more fields to the same value on several test cases.

    Rows that already hold the requested values are left alone; the
    inverse payload keeps each changed row's own prior values.
    """

    action_type = "ChangeField"

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        ids = require_id_list(params)
        changes = params.get("changes")
        if not isinstance(changes, dict) or not changes:
            raise ValidationError(
                "'changes' must be a non-empty object", {"changes": "empty"}
            )
        normalized = {}
        for name, value in changes.items():
            if name not in EDITABLE_FIELDS:
                raise ValidationError(
                    f"Field '{name}' cannot be changed", {name: "not editable"}
                )
            choices = EDITABLE_FIELDS[name]
            if choices is None:
                normalized[name] = require_text(value, name)
            else:
                normalized[name] = require_choice(value, name, choices)
        return {"ids": ids, "changes": normalized}

    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        changes = params["changes"]
        rows = context.test_case_rows(params["ids"])

        forward, inverse = [], []
        for row in rows:
            new_values = {
                name: value for name, value in changes.items() if row[name] != value
            }
            if not new_values:
                continue
            forward.append({"id": row["id"], "values": new_values})
            inverse.append(
                {"id": row["id"], "values": {name: row[name] for name in new_values}}
            )

        mutation = field_updates(context, TEST_CASE, forward)
        return Execution(
            mutation=mutation,
            forward_payload={"changes": forward},
            inverse_payload={"changes": inverse},
            description=self._describe(changes, len(forward)),
            affected=[entity_key(TEST_CASE, row["id"]) for row in rows],
        )

    @staticmethod
    def _describe(changes: Dict[str, Any], count: int) -> str:
        if len(changes) == 1:
            name, value = next(iter(changes.items()))
            return f'Changed {name} to "{value}" for {count_label(count)}'
        return f"Changed {', '.join(changes)} for {count_label(count)}"

    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        return field_updates(context, TEST_CASE, inverse_payload["changes"])

    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        return field_updates(context, TEST_CASE, forward_payload["changes"])
