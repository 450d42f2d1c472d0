"""
Content versioning and scheduled publishing.
"""

from .comparator import ChangeType, FieldChange, compare_data, deep_equal, diff_fields
from .versioning import VersioningService, content_namespace, store_guard
from .scheduling import SchedulingService, SweepItemResult, SweepResult

__all__ = [
    "ChangeType",
    "FieldChange",
    "compare_data",
    "deep_equal",
    "diff_fields",
    "VersioningService",
    "content_namespace",
    "store_guard",
    "SchedulingService",
    "SweepItemResult",
    "SweepResult",
]
