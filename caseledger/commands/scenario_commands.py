"""
Commands for editing the scenario collection of a test case.
"""

import logging
from typing import Any, Dict, List

from caseledger.commands.base_command import BaseCommand, CommandContext, Execution
from caseledger.commands.registry import register
from caseledger.commands.validation import require_id, require_text
from caseledger.core.diffs import CollectionDiff
from caseledger.core.errors import NotFoundError, ValidationError
from caseledger.core.mutation import SCENARIO, TEST_CASE, Mutation
from caseledger.core.test_cases import Scenario

logger = logging.getLogger(__name__)

SCENARIO_FIELDS = ("title", "gherkin", "sort_order")


def _delta_mutation(
    context: CommandContext,
    test_case_id: int,
    add: List[Dict[str, Any]],
    remove: List[int],
    modify: List[Dict[str, Any]],
    restored: bool,
) -> Mutation:
    """
    Builds the mutation for one add/remove/modify delta of a collection.

    The parent test case gets a version bump and a collection change so
    the audit trail shows the edit on the test case itself.
    """
    parent = context.test_case_row(test_case_id)
    current = {row["id"]: row for row in context.scenario_rows(test_case_id)}

    diff = CollectionDiff(added=[dict(row) for row in add])
    mutation = Mutation()

    for scenario_id in remove:
        row = current.get(scenario_id)
        if row is None:
            raise NotFoundError(f"Scenario not found: {scenario_id}", entity=SCENARIO)
        diff.removed.append(dict(row))
        mutation.delete(SCENARIO, row)

    for item in modify:
        row = current.get(item["id"])
        if row is None:
            raise NotFoundError(f"Scenario not found: {item['id']}", entity=SCENARIO)
        before = {name: row[name] for name in item["values"]}
        diff.changed.append({"id": item["id"], "before": before, "after": dict(item["values"])})
        mutation.update(SCENARIO, row, item["values"])

    for row in add:
        mutation.insert(SCENARIO, row, restored=restored)

    mutation.update(TEST_CASE, parent, {})
    mutation.collection(TEST_CASE, test_case_id, "scenarios", diff)
    return mutation


@register
class EditChildCollectionCommand(BaseCommand):
    """
    Replaces the scenario collection of a test case with a desired list.

    Items carrying an ``id`` are kept (and modified where they differ),
    items without one are added, and current scenarios missing from the
    list are removed. List position becomes ``sort_order``.
    """

    action_type = "EditChildCollection"

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        test_case_id = require_id(params, "test_case_id")
        items = params.get("scenarios")
        if not isinstance(items, list):
            raise ValidationError("'scenarios' must be a list", {"scenarios": "not a list"})

        normalized, seen = [], set()
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError(
                    "Scenario items must be objects", {f"scenarios[{index}]": "not an object"}
                )
            entry = {
                "title": require_text(item.get("title"), f"scenarios[{index}].title"),
                "gherkin": item.get("gherkin") or "",
                "sort_order": index,
            }
            if item.get("id") is not None:
                scenario_id = require_id(item, "id")
                if scenario_id in seen:
                    raise ValidationError(
                        f"Scenario {scenario_id} listed twice", {"scenarios": "duplicate id"}
                    )
                seen.add(scenario_id)
                entry["id"] = scenario_id
            normalized.append(entry)
        return {"test_case_id": test_case_id, "scenarios": normalized}

    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        test_case_id = params["test_case_id"]
        parent = context.test_case_row(test_case_id)
        current = context.scenario_rows(test_case_id)
        current_ids = {row["id"] for row in current}

        unknown = [
            item["id"] for item in params["scenarios"]
            if "id" in item and item["id"] not in current_ids
        ]
        if unknown:
            raise NotFoundError(
                f"Scenario(s) {unknown} do not belong to test case {test_case_id}",
                entity=SCENARIO,
            )

        diff = CollectionDiff.between(current, params["scenarios"], SCENARIO_FIELDS)
        if diff.is_empty():
            raise ValidationError("No changes to scenarios", {"scenarios": "unchanged"})

        new_ids = context.allocate_ids(SCENARIO, len(diff.added))
        added = [
            Scenario(
                test_case_id=test_case_id,
                title=item["title"],
                gherkin=item["gherkin"],
                sort_order=item["sort_order"],
                id=scenario_id,
            ).to_dict()
            for item, scenario_id in zip(diff.added, new_ids)
        ]
        removed_ids = [row["id"] for row in diff.removed]
        forward_modify = [{"id": c["id"], "values": c["after"]} for c in diff.changed]
        inverse_modify = [{"id": c["id"], "values": c["before"]} for c in diff.changed]

        mutation = _delta_mutation(
            context, test_case_id, added, removed_ids, forward_modify, restored=False
        )
        return Execution(
            mutation=mutation,
            forward_payload={
                "test_case_id": test_case_id,
                "add": added,
                "remove": removed_ids,
                "modify": forward_modify,
            },
            inverse_payload={
                "test_case_id": test_case_id,
                "add": [dict(row) for row in diff.removed],
                "remove": new_ids,
                "modify": inverse_modify,
            },
            description=f'Edited scenarios of "{parent["title"]}" ({diff.counts()})',
        )

    def _replay(self, context: CommandContext, payload: Dict[str, Any]) -> Mutation:
        return _delta_mutation(
            context,
            payload["test_case_id"],
            payload.get("add", []),
            payload.get("remove", []),
            payload.get("modify", []),
            restored=True,
        )

    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        return self._replay(context, inverse_payload)

    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        return self._replay(context, forward_payload)
