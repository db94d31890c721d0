"""Data models."""

from .hierarchy import HierarchyReport, NodeResult, NodeStatus
from .issue import HierarchyNode, IssueRef, ItemRecord, Project
from .mutation import IntentResult, MutationIntent, PreparedMutation
from .pagination import Page, PageCursor
from .schema import FieldOption, FieldSchema, FieldType

__all__ = [
    "FieldOption",
    "FieldSchema",
    "FieldType",
    "HierarchyNode",
    "HierarchyReport",
    "IntentResult",
    "IssueRef",
    "ItemRecord",
    "MutationIntent",
    "NodeResult",
    "NodeStatus",
    "Page",
    "PageCursor",
    "PreparedMutation",
    "Project",
]
