"""
Version Comparator - field-level differences between data snapshots.

- deep_equal: structural equality over JSON-like values
- compare_data: added / removed / modified key lists
- diff_fields: per-key detail with old and new values
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from numbers import Number
from typing import Any, Dict, List, Mapping

from ...models import FieldChanges, ensure_utc


class ChangeType(str, Enum):
    """Field change type"""
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass
class FieldChange:
    """Change of a single top-level field"""
    field_name: str
    change_type: ChangeType
    old_value: Any = None
    new_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field_name,
            "changeType": self.change_type.value,
            "oldValue": self._serialize_value(self.old_value),
            "newValue": self._serialize_value(self.new_value),
        }

    @staticmethod
    def _serialize_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, str) and len(value) > 200:
            return value[:200] + "..."
        return value


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural equality.

    bool is never equal to a number, int and float compare numerically,
    None only equals None, lists compare element-wise, mappings by key
    set and value, datetimes by instant.
    """
    if a is b:
        return True
    if a is None or b is None:
        return False

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, Number) and isinstance(b, Number):
        return a == b

    if isinstance(a, datetime) and isinstance(b, datetime):
        return ensure_utc(a) == ensure_utc(b)

    if isinstance(a, str) or isinstance(b, str):
        return isinstance(a, str) and isinstance(b, str) and a == b

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        for key, value in a.items():
            if key not in b or not deep_equal(value, b[key]):
                return False
        return True

    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))

    return type(a) is type(b) and a == b


def compare_data(previous: Mapping[str, Any], current: Mapping[str, Any]) -> FieldChanges:
    """
    Key-level comparison of two snapshots.

    added/modified follow the key order of ``current``, removed follows
    the key order of ``previous``.
    """
    changes = FieldChanges()

    for key, value in current.items():
        if key not in previous:
            changes.added.append(key)
        elif not deep_equal(previous[key], value):
            changes.modified.append(key)

    for key in previous:
        if key not in current:
            changes.removed.append(key)

    return changes


def diff_fields(previous: Mapping[str, Any], current: Mapping[str, Any]) -> List[FieldChange]:
    """Per-field detail in the same order as compare_data."""
    result: List[FieldChange] = []

    for key, value in current.items():
        if key not in previous:
            result.append(FieldChange(key, ChangeType.ADDED, new_value=value))
        elif not deep_equal(previous[key], value):
            result.append(FieldChange(key, ChangeType.MODIFIED, previous[key], value))

    for key, value in previous.items():
        if key not in current:
            result.append(FieldChange(key, ChangeType.REMOVED, old_value=value))

    return result
