"""Hierarchy traversal result models."""

from dataclasses import dataclass, field
from enum import Enum

from .issue import HierarchyNode
from .mutation import IntentResult


class NodeStatus(str, Enum):
    """Outcome of visiting one node."""

    MUTATED = "mutated"
    WOULD_CHANGE = "would_change"  # dry-run
    UNCHANGED = "unchanged"  # operation had nothing to change
    FAILED = "failed"
    SKIPPED_CYCLE = "skipped_cycle"  # node already visited in this traversal
    SKIPPED_NOT_IN_PROJECT = "skipped_not_in_project"


SKIPPED_STATUSES = frozenset({NodeStatus.SKIPPED_CYCLE, NodeStatus.SKIPPED_NOT_IN_PROJECT})


@dataclass
class NodeResult:
    """Per-node outcome of a traversal."""

    node: HierarchyNode
    status: NodeStatus
    intents: list[IntentResult] = field(default_factory=list)
    error: str | None = None
    children_error: str | None = None  # child listing failed; descendants unknown

    @property
    def is_skipped(self) -> bool:
        return self.status in SKIPPED_STATUSES

    @property
    def failed_intents(self) -> list[IntentResult]:
        return [r for r in self.intents if not r.success]


@dataclass
class HierarchyReport:
    """Aggregated outcome of a traversal."""

    root_ids: list[str]
    dry_run: bool = False
    nodes: list[NodeResult] = field(default_factory=list)

    @property
    def root_id(self) -> str:
        """The first root; single-root traversals have only this one."""
        return self.root_ids[0]

    def by_status(self, status: NodeStatus) -> list[NodeResult]:
        return [r for r in self.nodes if r.status == status]

    @property
    def visited(self) -> int:
        """Distinct nodes visited (revisits are not counted)."""
        return sum(1 for r in self.nodes if r.status != NodeStatus.SKIPPED_CYCLE)

    @property
    def mutated(self) -> int:
        return len(self.by_status(NodeStatus.MUTATED))

    @property
    def would_change(self) -> int:
        return len(self.by_status(NodeStatus.WOULD_CHANGE))

    @property
    def unchanged(self) -> int:
        return len(self.by_status(NodeStatus.UNCHANGED))

    @property
    def failed(self) -> int:
        return len(self.by_status(NodeStatus.FAILED))

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.nodes if r.is_skipped)

    @property
    def has_errors(self) -> bool:
        """Whether any node failed or could not list its children."""
        return self.failed > 0 or any(r.children_error for r in self.nodes)
