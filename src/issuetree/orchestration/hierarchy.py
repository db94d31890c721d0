"""Breadth-first traversal of an issue hierarchy.

The walker applies an operation one level at a time: every node of a level
is turned into mutation intents, those intents are applied together as
batched requests, and only then are the level's children listed. A visited
set stops cyclic or duplicated parent links, and ``max_depth`` bounds the
descent.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..github.client import GitHubClientError
from ..models.hierarchy import HierarchyReport, NodeResult, NodeStatus
from ..models.issue import HierarchyNode
from ..models.mutation import IntentResult, MutationIntent
from .batch import BatchMutator
from .context import RunContext
from .exceptions import IssueTreeError, is_fatal
from .operations import NodeOperation

if TYPE_CHECKING:
    from ..repositories.issues import IssueRepository

logger = logging.getLogger(__name__)


class HierarchyWalker:
    """Applies a node operation across an issue and its descendants."""

    def __init__(
        self,
        context: RunContext,
        repository: IssueRepository,
        mutator: BatchMutator | None = None,
    ) -> None:
        self._context = context
        self._repository = repository
        self._mutator = mutator

    def apply(
        self,
        root_id: str,
        operation: NodeOperation,
        max_depth: int | None = None,
        dry_run: bool = False,
    ) -> HierarchyReport:
        """Traverse from ``root_id`` and apply ``operation`` to every node.

        Args:
            root_id: Node ID of the root issue
            operation: Produces the intents for each node
            max_depth: Levels to descend below the root; 0 or None means the
                root only
            dry_run: Validate intents but send no mutations

        Returns:
            One NodeResult per node reached, in breadth-first order

        Raises:
            GitHubAuthError, GitHubTransportUnavailableError, DeadlineExceededError:
                No further progress is possible
            GitHubClientError: The root issue could not be read
        """
        return self.apply_many([root_id], operation, max_depth, dry_run)

    def apply_many(
        self,
        root_ids: Sequence[str],
        operation: NodeOperation,
        max_depth: int | None = None,
        dry_run: bool = False,
    ) -> HierarchyReport:
        """Traverse several roots together, one shared level at a time.

        The roots form the first level, so their intents go out in the same
        batched requests. The visited set is shared: a root reached again
        (listed twice, or found under another root) is a ``SKIPPED_CYCLE``.
        """
        depth_limit = 0 if max_depth is None else max_depth
        if depth_limit < 0:
            raise ValueError("max_depth must be zero or positive")
        if not root_ids:
            raise ValueError("At least one root issue is required")
        if operation.requires_project and self._context.project_id is None:
            raise IssueTreeError("This operation needs a project; none was selected")

        report = HierarchyReport(root_ids=list(root_ids), dry_run=dry_run)
        visited: set[str] = set()
        level: list[HierarchyNode] = []
        for root_id in root_ids:
            root = self._repository.get_issue(root_id)
            if root.issue_id in visited:
                logger.warning("%s is listed more than once; skipping", root.reference)
                report.nodes.append(NodeResult(node=root, status=NodeStatus.SKIPPED_CYCLE))
                continue
            visited.add(root.issue_id)
            level.append(root)

        label = ", ".join(node.reference for node in level)
        logger.info(
            "Walking hierarchy of %s (max depth %d%s)",
            label,
            depth_limit,
            ", dry run" if dry_run else "",
        )

        while level:
            results = self._apply_level(level, operation, dry_run)
            report.nodes.extend(results)

            next_level: list[HierarchyNode] = []
            for result in results:
                if result.node.depth >= depth_limit:
                    continue
                for child in self._children_of(result):
                    if child.issue_id in visited:
                        logger.warning(
                            "%s is reached again under %s; skipping",
                            child.reference,
                            result.node.reference,
                        )
                        report.nodes.append(NodeResult(node=child, status=NodeStatus.SKIPPED_CYCLE))
                        continue
                    visited.add(child.issue_id)
                    next_level.append(child)

            level = next_level

        logger.info(
            "Hierarchy of %s: %d visited, %d mutated, %d would change, %d unchanged, "
            "%d failed, %d skipped",
            label,
            report.visited,
            report.mutated,
            report.would_change,
            report.unchanged,
            report.failed,
            report.skipped,
        )
        return report

    def _children_of(self, result: NodeResult) -> list[HierarchyNode]:
        """List a node's children once; a failed listing is recorded on the node."""
        node = result.node
        try:
            children = [child.as_child_of(node) for child in self._repository.iter_sub_issues(node.issue_id)]
        except (IssueTreeError, GitHubClientError) as e:
            if is_fatal(e):
                raise
            logger.error("Could not list sub-issues of %s: %s", node.reference, e)
            result.children_error = str(e)
            return []

        node.children_ids = [child.issue_id for child in children]
        return children

    def _apply_level(
        self,
        nodes: list[HierarchyNode],
        operation: NodeOperation,
        dry_run: bool,
    ) -> list[NodeResult]:
        results: list[NodeResult | None] = [None] * len(nodes)
        intents: list[MutationIntent] = []
        owners: list[int] = []

        for index, node in enumerate(nodes):
            if operation.requires_project and not node.in_project:
                results[index] = NodeResult(node=node, status=NodeStatus.SKIPPED_NOT_IN_PROJECT)
                continue

            node_intents = operation.intents_for(node)
            if not node_intents:
                results[index] = NodeResult(node=node, status=NodeStatus.UNCHANGED)
                continue

            intents.extend(node_intents)
            owners.extend([index] * len(node_intents))

        per_node: dict[int, list[IntentResult]] = {}
        if intents:
            for owner, outcome in zip(owners, self._run_intents(intents, dry_run), strict=True):
                per_node.setdefault(owner, []).append(outcome)

        done = NodeStatus.WOULD_CHANGE if dry_run else NodeStatus.MUTATED
        for index, outcomes in per_node.items():
            failures = [o for o in outcomes if not o.success]
            if failures:
                results[index] = NodeResult(
                    node=nodes[index],
                    status=NodeStatus.FAILED,
                    intents=outcomes,
                    error="; ".join(f"{o.intent.field_name}: {o.error}" for o in failures),
                )
            else:
                results[index] = NodeResult(node=nodes[index], status=done, intents=outcomes)

        return [r for r in results if r is not None]

    def _run_intents(self, intents: list[MutationIntent], dry_run: bool) -> list[IntentResult]:
        if self._mutator is None:
            self._mutator = self._context.batch_mutator()
        if dry_run:
            return self._mutator.validate(intents)
        project_id = self._context.project_id
        if project_id is None:
            raise IssueTreeError("No project selected for this run")
        return self._mutator.apply(project_id, intents)
