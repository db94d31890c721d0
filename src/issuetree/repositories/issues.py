"""GitHub issue and sub-issue repository."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from ..github.client import GitHubClientError, GitHubNotFoundError
from ..github.queries import (
    ADD_SUB_ISSUE,
    GET_ISSUE,
    GET_ISSUE_BY_NUMBER,
    GET_ORG_PROJECT,
    GET_PARENT_ISSUE,
    GET_PROJECT_FIELDS,
    GET_SUB_ISSUES,
    GET_USER_PROJECT,
    REMOVE_SUB_ISSUE,
)
from ..models import FieldSchema, HierarchyNode, ItemRecord, Page, Project
from ..orchestration.context import RunContext
from ..orchestration.exceptions import HierarchyCycleError
from ..orchestration.pagination import parse_connection
from ..orchestration.schema_cache import FieldLoader

logger = logging.getLogger(__name__)

# Value keys of the ProjectV2ItemField*Value fragments
_VALUE_KEYS = ("name", "text", "date", "title")


def format_field_value(value_node: dict[str, Any]) -> str | None:
    """Display value of one ``fieldValues`` node."""
    for key in _VALUE_KEYS:
        value = value_node.get(key)
        if value is not None:
            return str(value)

    number = value_node.get("number")
    if number is None:
        return None
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


class IssueRepository:
    """Reads issues, their project items and sub-issues, and edits sub-issue links.

    Every call runs through the context's retry controller; listings run
    through its page walker.
    """

    def __init__(self, context: RunContext) -> None:
        self._context = context
        self._transport = context.transport
        self._retry = context.retry
        self._pages = context.pages

    # --- Projects ---

    def get_project(self, owner: str, number: int) -> Project:
        """Find a project by owner and number, trying a user owner first.

        Raises:
            GitHubNotFoundError: Neither a user nor an organization project matches
        """
        variables = {"owner": owner, "number": number}

        for query, owner_key in ((GET_USER_PROJECT, "user"), (GET_ORG_PROJECT, "organization")):
            try:
                result = self._query(query, variables, f"project lookup ({owner_key})")
            except GitHubNotFoundError:
                logger.debug("No %s project %s/%d", owner_key, owner, number)
                continue

            project_data = (result.get(owner_key) or {}).get("projectV2")
            if project_data:
                logger.info("Found %s project %s/%d: %s", owner_key, owner, number, project_data["id"])
                return Project(
                    id=project_data["id"],
                    owner=owner,
                    number=project_data.get("number", number),
                    title=project_data.get("title") or "",
                    closed=bool(project_data.get("closed")),
                )

        raise GitHubNotFoundError(f"Project not found: {owner}/projects/{number}")

    def list_fields(self, project_id: str) -> list[FieldSchema]:
        """List every field of a project."""
        page_size = self._context.settings.page_size

        def fetch(cursor: str | None) -> Page[FieldSchema]:
            result = self._transport.query(
                GET_PROJECT_FIELDS,
                {"projectId": project_id, "first": page_size, "cursor": cursor},
            )
            node = result.get("node")
            if not node:
                raise GitHubNotFoundError(f"Project not found: {project_id}")
            return parse_connection(node.get("fields"), FieldSchema.from_node)

        return self._pages.collect(fetch, "project fields")

    def field_loader(self, project_id: str) -> FieldLoader:
        """Loader for a ``FieldSchemaCache`` of this project."""
        return lambda: self.list_fields(project_id)

    # --- Issues ---

    def get_issue(self, issue_id: str) -> HierarchyNode:
        """Get an issue by node ID.

        Raises:
            GitHubNotFoundError: If the ID is not an issue
        """
        result = self._query(GET_ISSUE, {"issueId": issue_id}, f"issue {issue_id}")
        node = self._to_node(result.get("node") or {})
        if node is None:
            raise GitHubNotFoundError(f"Issue not found: {issue_id}")
        return node

    def get_issue_by_number(self, owner: str, repo: str, number: int) -> HierarchyNode:
        """Get an issue by repository and number.

        Raises:
            GitHubNotFoundError: If the repository or issue does not exist
        """
        reference = f"{owner}/{repo}#{number}"
        result = self._query(
            GET_ISSUE_BY_NUMBER,
            {"owner": owner, "repo": repo, "number": number},
            f"issue {reference}",
        )
        node = self._to_node((result.get("repository") or {}).get("issue") or {})
        if node is None:
            raise GitHubNotFoundError(f"Issue not found: {reference}")
        return node

    def iter_sub_issues(self, issue_id: str) -> Iterator[HierarchyNode]:
        """Yield the direct sub-issues of an issue, page by page.

        Raises:
            FetchError: A page exhausted its retries
            GitHubNotFoundError: The parent is not an issue
        """
        page_size = self._context.settings.page_size

        def fetch(cursor: str | None) -> Page[HierarchyNode]:
            result = self._transport.query(
                GET_SUB_ISSUES,
                {"issueId": issue_id, "first": page_size, "cursor": cursor},
            )
            node = result.get("node")
            if not node:
                raise GitHubNotFoundError(f"Issue not found: {issue_id}")
            return parse_connection(node.get("subIssues"), self._to_node)

        for child in self._pages.walk(fetch, f"sub-issues of {issue_id}"):
            yield child.model_copy(update={"parent_id": issue_id})

    def get_parent(self, issue_id: str) -> HierarchyNode | None:
        """The issue's parent, or None for a top-level issue."""
        result = self._query(GET_PARENT_ISSUE, {"issueId": issue_id}, f"parent of {issue_id}")
        parent = (result.get("node") or {}).get("parent")
        if not parent:
            return None
        return self._to_node(parent)

    # --- Sub-issue links ---

    def add_sub_issue(self, parent_id: str, child_id: str) -> None:
        """Link ``child_id`` under ``parent_id``.

        Raises:
            HierarchyCycleError: The child is the parent or one of its ancestors
        """
        self._check_not_ancestor(parent_id, child_id)
        self._mutate(
            ADD_SUB_ISSUE,
            {"issueId": parent_id, "subIssueId": child_id},
            f"add sub-issue {child_id} to {parent_id}",
        )
        logger.info("Linked %s under %s", child_id, parent_id)

    def remove_sub_issue(self, parent_id: str, child_id: str) -> None:
        """Unlink ``child_id`` from ``parent_id``."""
        self._mutate(
            REMOVE_SUB_ISSUE,
            {"issueId": parent_id, "subIssueId": child_id},
            f"remove sub-issue {child_id} from {parent_id}",
        )
        logger.info("Unlinked %s from %s", child_id, parent_id)

    def _check_not_ancestor(self, parent_id: str, child_id: str) -> None:
        if parent_id == child_id:
            raise HierarchyCycleError(f"Issue {child_id} cannot be its own sub-issue")

        seen: set[str] = set()
        current: str | None = parent_id
        while current is not None and current not in seen:
            seen.add(current)
            parent = self.get_parent(current)
            if parent is None:
                return
            if parent.issue_id == child_id:
                raise HierarchyCycleError(
                    f"Issue {child_id} is an ancestor of {parent_id}; linking it would create a cycle"
                )
            current = parent.issue_id

        if current is not None:
            raise HierarchyCycleError(f"Existing parent chain of {parent_id} loops at {current}")

    # --- Mapping ---

    def _to_node(self, data: dict[str, Any]) -> HierarchyNode | None:
        issue_id = data.get("id")
        if not issue_id:
            return None

        return HierarchyNode(
            issue_id=issue_id,
            number=data.get("number") or 0,
            title=data.get("title") or "",
            state=data.get("state") or "",
            repository=(data.get("repository") or {}).get("nameWithOwner", ""),
            item=self._to_item(issue_id, data),
        )

    def _to_item(self, issue_id: str, data: dict[str, Any]) -> ItemRecord | None:
        project_id = self._context.project_id
        if project_id is None:
            return None

        project_items = data.get("projectItems") or {}
        for item in project_items.get("nodes") or []:
            if not item or (item.get("project") or {}).get("id") != project_id:
                continue

            values: dict[str, str] = {}
            for value_node in (item.get("fieldValues") or {}).get("nodes") or []:
                if not value_node:
                    continue
                field_name = (value_node.get("field") or {}).get("name")
                value = format_field_value(value_node)
                if field_name and value is not None:
                    values[field_name] = value

            return ItemRecord(
                item_id=item["id"],
                project_id=project_id,
                issue_id=issue_id,
                field_values=values,
            )

        if (project_items.get("pageInfo") or {}).get("hasNextPage"):
            logger.warning(
                "Issue %s belongs to more projects than one listing returns; "
                "its item in this project may have been missed",
                issue_id,
            )
        return None

    # --- Transport helpers ---

    def _query(self, query: str, variables: dict[str, Any], description: str) -> dict[str, Any]:
        return self._retry.execute(lambda: self._transport.query(query, variables), description)

    def _mutate(self, mutation: str, variables: dict[str, Any], description: str) -> dict[str, Any]:
        try:
            return self._retry.execute(lambda: self._transport.mutate(mutation, variables), description)
        except GitHubClientError as e:
            logger.error("%s failed: %s", description, e)
            raise
