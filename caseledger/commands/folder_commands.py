"""
Commands for placing test cases in folders and ordering them.
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
from caseledger.commands.validation import optional_folder_id, require_id_list
from caseledger.core.errors import ValidationError
from caseledger.core.mutation import TEST_CASE, Mutation, entity_key

logger = logging.getLogger(__name__)


@register
class MoveToContainerCommand(BaseCommand):
    """
    Moves test cases into a folder (or to the root when folder_id is None).

    Moved rows are appended to the end of the target container in the
    order given. The inverse payload keeps each row's prior folder and
    position.
    """

    action_type = "MoveToContainer"

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if "folder_id" not in params:
            raise ValidationError("'folder_id' is required", {"folder_id": "missing"})
        return {"ids": require_id_list(params), "folder_id": optional_folder_id(params)}

    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        folder_id = params["folder_id"]
        label = context.folder_label(folder_id)
        rows = context.test_case_rows(params["ids"])

        next_order = context.next_sort_order(folder_id)
        forward, inverse = [], []
        for row in rows:
            if row["folder_id"] == folder_id:
                continue
            forward.append(
                {"id": row["id"], "values": {"folder_id": folder_id, "sort_order": next_order}}
            )
            inverse.append(
                {
                    "id": row["id"],
                    "values": {"folder_id": row["folder_id"], "sort_order": row["sort_order"]},
                }
            )
            next_order += 1

        return Execution(
            mutation=field_updates(context, TEST_CASE, forward),
            forward_payload={"folder_id": folder_id, "moves": forward},
            inverse_payload={"moves": inverse},
            description=f"Moved {count_label(len(forward))} to {label}",
            affected=[entity_key(TEST_CASE, row["id"]) for row in rows],
        )

    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        return field_updates(context, TEST_CASE, inverse_payload["moves"])

    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        context.require_folder(forward_payload["folder_id"])
        return field_updates(context, TEST_CASE, forward_payload["moves"])


def _ordering_entries(order: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"id": item["id"], "values": {"sort_order": item["sort_order"]}} for item in order]


@register
class ReorderCommand(BaseCommand):
    """
    Rewrites the order of every test case in one container.

    ``ordered_ids`` must name exactly the container's current members.
    The inverse payload is the complete prior ordering, not a diff.
    """

    action_type = "Reorder"

    def validate(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "folder_id": optional_folder_id(params),
            "ordered_ids": require_id_list(params, "ordered_ids"),
        }

    def execute(self, context: CommandContext, params: Dict[str, Any]) -> Execution:
        folder_id = params["folder_id"]
        ordered_ids = params["ordered_ids"]
        context.require_folder(folder_id)

        members = context.container_rows(folder_id)
        member_ids = {row["id"] for row in members}
        if member_ids != set(ordered_ids):
            missing = sorted(member_ids - set(ordered_ids))
            extra = sorted(set(ordered_ids) - member_ids)
            raise ValidationError(
                "ordered_ids must list exactly the members of the container",
                {"ordered_ids": f"missing {missing}, not in container {extra}"},
            )

        prior = [{"id": row["id"], "sort_order": row["sort_order"]} for row in members]
        target = [
            {"id": test_case_id, "sort_order": index}
            for index, test_case_id in enumerate(ordered_ids)
        ]
        return Execution(
            mutation=field_updates(context, TEST_CASE, _ordering_entries(target)),
            forward_payload={"folder_id": folder_id, "order": target},
            inverse_payload={"folder_id": folder_id, "order": prior},
            description=f"Reordered {count_label(len(ordered_ids))}",
            affected=[entity_key(TEST_CASE, row["id"]) for row in members],
        )

    def apply_inverse(
        self, context: CommandContext, inverse_payload: Dict[str, Any]
    ) -> Mutation:
        return field_updates(context, TEST_CASE, _ordering_entries(inverse_payload["order"]))

    def apply_forward(
        self, context: CommandContext, forward_payload: Dict[str, Any]
    ) -> Mutation:
        return field_updates(context, TEST_CASE, _ordering_entries(forward_payload["order"]))
