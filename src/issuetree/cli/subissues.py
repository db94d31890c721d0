"""Sub-issue commands: list a hierarchy, link and unlink children."""

import logging

from ..config import Settings
from ..models import HierarchyReport, NodeResult, NodeStatus
from ..orchestration import HierarchyWalker, ReadOnlyOperation, RunContext
from ..repositories import IssueRepository
from .common import resolve_issue, run_command
from .output import error, header, info, node_line, success

logger = logging.getLogger(__name__)


def run_sub_list(settings: Settings, issue: str, depth: int | None = None) -> int:
    """Print the sub-issue tree of an issue.

    ``depth`` defaults to ``settings.max_depth``.
    """
    max_depth = settings.max_depth if depth is None else depth

    def command(context: RunContext, repository: IssueRepository) -> int:
        root = resolve_issue(repository, issue)
        walker = HierarchyWalker(context, repository)
        report = walker.apply(root.issue_id, ReadOnlyOperation(), max_depth)

        header(f"Sub-issues of {root.reference}:")
        print_tree(report)
        print()
        info(f"{report.visited} issue(s)")

        for result in report.nodes:
            if result.children_error:
                error(f"Could not list sub-issues of {result.node.reference}: {result.children_error}")
        return 1 if report.has_errors else 0

    return run_command(settings, command)


def print_tree(report: HierarchyReport) -> None:
    """Print the report depth-first, each child indented under its parent."""
    if not report.nodes:
        return

    by_parent: dict[str | None, list[NodeResult]] = {}
    for result in report.nodes[1:]:
        by_parent.setdefault(result.node.parent_id, []).append(result)

    stack = [report.nodes[0]]
    while stack:
        result = stack.pop()
        node = result.node
        state = f" [{node.state.lower()}]" if node.state else ""
        suffix = " (already listed)" if result.status == NodeStatus.SKIPPED_CYCLE else ""
        node_line(result.status, f"{node.reference}: {node.title}{state}{suffix}", node.depth)
        if result.status != NodeStatus.SKIPPED_CYCLE:
            stack.extend(reversed(by_parent.pop(node.issue_id, [])))


def run_sub_add(settings: Settings, parent: str, child: str) -> int:
    """Link ``child`` as a sub-issue of ``parent``."""

    def command(context: RunContext, repository: IssueRepository) -> int:
        parent_node = resolve_issue(repository, parent)
        child_node = resolve_issue(repository, child)
        repository.add_sub_issue(parent_node.issue_id, child_node.issue_id)
        success(f"Added {child_node.reference} as a sub-issue of {parent_node.reference}")
        return 0

    return run_command(settings, command)


def run_sub_remove(settings: Settings, parent: str, child: str) -> int:
    """Unlink ``child`` from ``parent``."""

    def command(context: RunContext, repository: IssueRepository) -> int:
        parent_node = resolve_issue(repository, parent)
        child_node = resolve_issue(repository, child)
        repository.remove_sub_issue(parent_node.issue_id, child_node.issue_id)
        success(f"Removed {child_node.reference} from {parent_node.reference}")
        return 0

    return run_command(settings, command)
