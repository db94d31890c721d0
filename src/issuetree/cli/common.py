"""Helpers shared by the commands."""

import logging
from collections.abc import Callable

from ..config import Settings
from ..github import GitHubAuthError, GitHubClientError, GitHubTransportUnavailableError
from ..models import HierarchyNode, IssueRef, Project
from ..orchestration import IssueTreeError, RunContext
from ..repositories import IssueRepository
from .output import error, info

logger = logging.getLogger(__name__)

Command = Callable[[RunContext, IssueRepository], int]


def resolve_issue(repository: IssueRepository, value: str) -> HierarchyNode:
    """Look up an issue given as ``owner/repo#N`` or as a node ID."""
    if "#" in value:
        ref = IssueRef.parse(value)
        return repository.get_issue_by_number(ref.owner, ref.repo, ref.number)
    return repository.get_issue(value)


def open_project(context: RunContext, repository: IssueRepository, reference: str | None) -> Project:
    """Find the project and bind its field schema to the run.

    Without a reference, the project configured in settings is used.
    """
    if reference is not None:
        owner, number = Project.parse_reference(reference)
    elif context.settings.project_owner and context.settings.project_number:
        owner, number = context.settings.project_owner, context.settings.project_number
    else:
        raise ValueError("No project given: pass --project OWNER/NUMBER or set ISSUETREE_PROJECT_OWNER")

    project = repository.get_project(owner, number)
    if project.closed:
        logger.warning("Project %s is closed", project)
    context.bind_project(
        project.id,
        repository.field_loader(project.id),
        aliases=context.settings.field_aliases,
    )
    return project


def run_command(settings: Settings, command: Command) -> int:
    """Open a run context, run the command, and turn errors into exit codes."""
    try:
        with RunContext.from_settings(settings) as context:
            return command(context, IssueRepository(context))
    except GitHubAuthError as e:
        error(f"GitHub authentication failed: {e}")
        info("Run 'gh auth login', or set GITHUB_TOKEN with --transport http")
        return 1
    except GitHubTransportUnavailableError as e:
        error(str(e))
        info("Install the GitHub CLI (https://cli.github.com) or use --transport http")
        return 1
    except (IssueTreeError, GitHubClientError) as e:
        logger.debug("Command failed", exc_info=True)
        error(str(e))
        return 1
    except ValueError as e:
        error(str(e))
        return 2
