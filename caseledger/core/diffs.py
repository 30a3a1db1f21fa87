"""
Diff Strategies Module.

Computes field-level differences between two states of an entity.

Two strategies exist and are chosen per field kind:
- ScalarDiff: plain column values, compared by their JSON form.
- CollectionDiff: child collections keyed by a stable id, reported as
  added / removed / changed items.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from caseledger.core.audit import FieldDiff
from caseledger.core.test_cases import BOOKKEEPING_FIELDS


def values_equal(old: Any, new: Any) -> bool:
    """
    Compares two values the way they are persisted (as JSON).

    Args:
        old: Previous value.
        new: New value.

    Returns:
        bool: True if both serialize to the same JSON.
    """
    return json.dumps(old, sort_keys=True, default=str) == json.dumps(
        new, sort_keys=True, default=str
    )


class ScalarDiff:
    """Diff strategy for plain column values."""

    def between(self, field_name: str, old: Any, new: Any) -> List[FieldDiff]:
        """
        Returns a single FieldDiff if the values differ.

        Args:
            field_name: Name of the compared field.
            old: Value before the change.
            new: Value after the change.

        Returns:
            List[FieldDiff]: Empty when unchanged, otherwise one diff.
        """
        if values_equal(old, new):
            return []
        return [FieldDiff(field=field_name, old_value=old, new_value=new)]


def _strip(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in item.items() if k not in BOOKKEEPING_FIELDS}


@dataclass
class CollectionDiff:
    """
    Diff of a child collection keyed by stable id.

    Attributes:
        added (List[Dict[str, Any]]): Full rows present only after.
        removed (List[Dict[str, Any]]): Full rows present only before.
        changed (List[Dict[str, Any]]): ``{"id", "before", "after"}`` items,
            where before/after hold only the fields that differ.
    """

    added: List[Dict[str, Any]] = field(default_factory=list)
    removed: List[Dict[str, Any]] = field(default_factory=list)
    changed: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def between(
        cls,
        old_items: Iterable[Dict[str, Any]],
        new_items: Iterable[Dict[str, Any]],
        fields: Iterable[str],
        key: str = "id",
    ) -> "CollectionDiff":
        """
        Compares two versions of a collection.

        Items in ``new_items`` without a key (or with an unknown key) count
        as added.

        Args:
            old_items: Collection before the change.
            new_items: Collection after the change.
            fields: Fields compared on items present in both.
            key: Name of the stable identifier field.

        Returns:
            CollectionDiff: The computed diff.
        """
        fields = list(fields)
        old_by_key = {item[key]: item for item in old_items}
        new_list = list(new_items)
        new_keys = {item.get(key) for item in new_list if item.get(key) is not None}

        diff = cls()
        for item in new_list:
            item_key = item.get(key)
            if item_key is None or item_key not in old_by_key:
                diff.added.append(dict(item))
                continue
            old_item = old_by_key[item_key]
            before, after = {}, {}
            for name in fields:
                if name in item and not values_equal(old_item.get(name), item[name]):
                    before[name] = old_item.get(name)
                    after[name] = item[name]
            if after:
                diff.changed.append({key: item_key, "before": before, "after": after})

        for item_key, old_item in old_by_key.items():
            if item_key not in new_keys:
                diff.removed.append(dict(old_item))
        return diff

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def inverted(self) -> "CollectionDiff":
        """Returns the diff that reverses this one."""
        return CollectionDiff(
            added=[dict(item) for item in self.removed],
            removed=[dict(item) for item in self.added],
            changed=[
                {"id": c["id"], "before": dict(c["after"]), "after": dict(c["before"])}
                for c in self.changed
            ],
        )

    def to_field_diffs(self, field_name: str) -> List[FieldDiff]:
        """
        Flattens the collection diff into audit rows.

        Args:
            field_name: Name of the collection on the parent (e.g. scenarios).

        Returns:
            List[FieldDiff]: One row per added/removed item and per changed field.
        """
        diffs = [FieldDiff(field_name, None, _strip(item)) for item in self.added]
        diffs.extend(FieldDiff(field_name, _strip(item), None) for item in self.removed)
        for change in self.changed:
            for name, new_value in change["after"].items():
                diffs.append(
                    FieldDiff(
                        f"{field_name}[{change['id']}].{name}",
                        change["before"].get(name),
                        new_value,
                    )
                )
        return diffs

    def counts(self) -> str:
        return f"+{len(self.added)} -{len(self.removed)} ~{len(self.changed)}"


# Per-field strategy table; anything not listed is scalar
FIELD_STRATEGIES = {
    "scenarios": CollectionDiff,
}

_scalar = ScalarDiff()


def diff_rows(
    old_row: Optional[Dict[str, Any]],
    new_row: Optional[Dict[str, Any]],
    ignore: Iterable[str] = BOOKKEEPING_FIELDS,
) -> List[FieldDiff]:
    """
    Computes scalar diffs between two versions of a row.

    A missing row is treated as all-None, so creation and deletion produce
    one diff per populated field.

    Args:
        old_row: Row before the change, or None.
        new_row: Row after the change, or None.
        ignore: Fields never reported.

    Returns:
        List[FieldDiff]: Field diffs in column order.
    """
    old_row = old_row or {}
    new_row = new_row or {}
    ignored = set(ignore)
    names = list(old_row.keys()) + [k for k in new_row.keys() if k not in old_row]

    diffs: List[FieldDiff] = []
    for name in names:
        if name in ignored or FIELD_STRATEGIES.get(name) is CollectionDiff:
            continue
        diffs.extend(_scalar.between(name, old_row.get(name), new_row.get(name)))
    return diffs
