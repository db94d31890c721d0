"""Move command: set project fields on an issue and, optionally, its descendants."""

import logging

from ..config import Settings
from ..models import HierarchyReport, NodeResult, NodeStatus
from ..orchestration import FieldUpdateOperation, HierarchyWalker, RunContext
from ..repositories import IssueRepository
from .common import open_project, resolve_issue, run_command
from .output import header, info, node_line

logger = logging.getLogger(__name__)


def parse_field_assignments(
    assignments: list[str] | None = None,
    clears: list[str] | None = None,
    status: str | None = None,
    priority: str | None = None,
) -> dict[str, str | None]:
    """Collect ``--status``, ``--priority``, ``--field`` and ``--clear`` into one update map.

    Raises:
        ValueError: If an assignment is not NAME=VALUE
    """
    updates: dict[str, str | None] = {}
    if status is not None:
        updates["Status"] = status
    if priority is not None:
        updates["Priority"] = priority

    for assignment in assignments or []:
        name, sep, value = assignment.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid field assignment '{assignment}' (expected NAME=VALUE)")
        updates[name.strip()] = value

    for name in clears or []:
        updates[name.strip()] = None

    if not updates:
        raise ValueError("Nothing to change: pass --status, --priority, --field or --clear")
    return updates


def run_move(
    settings: Settings,
    issues: list[str],
    project: str | None,
    updates: dict[str, str | None],
    recursive: bool = False,
    depth: int | None = None,
    dry_run: bool = False,
) -> int:
    """Apply field updates to issues (and their sub-issues when recursive).

    All named issues form the first level of one traversal, so their updates
    are sent together.

    Args:
        settings: Application settings
        issues: ``owner/repo#N`` references or issue node IDs
        project: ``OWNER/NUMBER``, or None for the configured project
        updates: Field name -> value (None clears the field)
        recursive: Cascade to sub-issues
        depth: Levels to descend when recursive (default: settings.max_depth)
        dry_run: Show what would change without mutating

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    max_depth = (settings.max_depth if depth is None else depth) if recursive else 0

    def command(context: RunContext, repository: IssueRepository) -> int:
        target_project = open_project(context, repository, project)
        roots = [resolve_issue(repository, issue) for issue in issues]

        names = ", ".join(root.reference for root in roots)
        header(f"{'[DRY RUN] ' if dry_run else ''}Updating {names} in {target_project}")
        walker = HierarchyWalker(context, repository)
        root_ids = [root.issue_id for root in roots]
        report = walker.apply_many(root_ids, FieldUpdateOperation(updates), max_depth, dry_run)

        print_report(report)
        return 1 if report.has_errors else 0

    return run_command(settings, command)


def _describe(result: NodeResult) -> str:
    node = result.node
    text = f"{node.reference}: {node.title}" if node.title else node.reference

    if result.status == NodeStatus.FAILED:
        text += f" ({result.error})"
    elif result.status in (NodeStatus.MUTATED, NodeStatus.WOULD_CHANGE):
        changes = ", ".join(
            f"{r.intent.field_name}={r.intent.value}" if not r.intent.is_clear else f"{r.intent.field_name} cleared"
            for r in result.intents
        )
        text += f" [{changes}]"
    elif result.status == NodeStatus.SKIPPED_CYCLE:
        text += " (already visited)"
    elif result.status == NodeStatus.SKIPPED_NOT_IN_PROJECT:
        text += " (not in project)"

    if result.children_error:
        text += f" (sub-issues unavailable: {result.children_error})"
    return text


def print_report(report: HierarchyReport) -> None:
    """Print each node result followed by the totals."""
    for result in report.nodes:
        node_line(result.status, _describe(result), result.node.depth)

    print()
    changed = report.would_change if report.dry_run else report.mutated
    verb = "Would change" if report.dry_run else "Changed"
    info(
        f"{verb} {changed} of {report.visited} issue(s): "
        f"{report.unchanged} unchanged, {report.failed} failed, {report.skipped} skipped"
    )
