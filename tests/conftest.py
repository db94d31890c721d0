"""Shared fakes for issuetree tests.

``FakeGitHub`` is an in-memory GraphQL transport that answers the queries
and mutations issuetree sends, keyed by operation name, and records every
request it receives.
"""

import random
from collections.abc import Callable
from typing import Any

import pytest

from issuetree.config import Settings
from issuetree.github.client import GraphQLResponse, GraphQLTransport, operation_name
from issuetree.orchestration import RetryController, RetryPolicy, RunContext

PROJECT_ID = "PVT_project"

FIELD_NODES: list[dict[str, Any]] = [
    {"id": "F_title", "name": "Title", "dataType": "TITLE"},
    {
        "id": "F_status",
        "name": "Status",
        "dataType": "SINGLE_SELECT",
        "options": [
            {"id": "OPT_todo", "name": "Todo"},
            {"id": "OPT_progress", "name": "In Progress"},
            {"id": "OPT_done", "name": "Done"},
        ],
    },
    {
        "id": "F_priority",
        "name": "Priority",
        "dataType": "SINGLE_SELECT",
        "options": [
            {"id": "OPT_p0", "name": "P0"},
            {"id": "OPT_p1", "name": "P1"},
        ],
    },
    {"id": "F_estimate", "name": "Estimate", "dataType": "NUMBER"},
    {"id": "F_due", "name": "Due", "dataType": "DATE"},
    {"id": "F_notes", "name": "Notes", "dataType": "TEXT"},
    {
        "id": "F_sprint",
        "name": "Sprint",
        "dataType": "ITERATION",
        "configuration": {"iterations": [{"id": "IT_1", "title": "Sprint 1"}]},
    },
    {},  # a field type no fragment matched
]


def issue_node(
    issue_id: str,
    number: int,
    item_id: str | None = None,
    values: dict[str, str] | None = None,
    project_id: str = PROJECT_ID,
    repository: str = "acme/api",
) -> dict[str, Any]:
    """An issue as returned through the IssueNodeFields fragment."""
    items = []
    if item_id is not None:
        items.append(
            {
                "id": item_id,
                "project": {"id": project_id},
                "fieldValues": {
                    "nodes": [
                        {"name": value, "field": {"name": name}}
                        for name, value in (values or {}).items()
                    ]
                },
            }
        )
    return {
        "id": issue_id,
        "number": number,
        "title": f"Issue {number}",
        "state": "OPEN",
        "repository": {"nameWithOwner": repository},
        "projectItems": {"nodes": items},
    }


def connection(nodes: list[Any], start: int, first: int) -> dict[str, Any]:
    """Slice ``nodes`` into one page of a connection, using integer cursors."""
    end = start + first
    has_next = end < len(nodes)
    return {
        "nodes": nodes[start:end],
        "pageInfo": {"hasNextPage": has_next, "endCursor": str(end) if has_next else None},
    }


class FakeTransport(GraphQLTransport):
    """Transport answering each operation with a registered handler.

    A handler receives the request variables and returns response data, a
    ``GraphQLResponse``, or an exception to raise.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.handlers: dict[str, Callable[[dict[str, Any]], Any]] = {}
        self.closed = False

    def on(self, op_name: str, handler: Callable[[dict[str, Any]], Any]) -> None:
        self.handlers[op_name] = handler

    def calls(self, op_name: str) -> list[dict[str, Any]]:
        """Variables of every request sent for an operation."""
        return [
            r.get("variables") or {}
            for r in self.requests
            if operation_name(r["query"]) == op_name
        ]

    def operations(self) -> list[str]:
        return [operation_name(r["query"]) for r in self.requests]

    def send(self, payload: dict[str, Any]) -> GraphQLResponse:
        self.requests.append(payload)
        op_name = operation_name(payload["query"])
        if op_name not in self.handlers:
            raise AssertionError(f"Unexpected GraphQL operation {op_name}")

        result = self.handlers[op_name](payload.get("variables") or {})
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, GraphQLResponse):
            return result
        return GraphQLResponse(status_code=200, data=result)

    def close(self) -> None:
        self.closed = True


class FakeGitHub(FakeTransport):
    """A small GitHub: one project, issues with sub-issues and project items."""

    def __init__(self, project_id: str = PROJECT_ID) -> None:
        super().__init__()
        self.project_id = project_id
        self.issues: dict[str, dict[str, Any]] = {}
        self.children: dict[str, list[str]] = {}
        self.parents: dict[str, str] = {}
        self.fields: list[dict[str, Any]] = list(FIELD_NODES)
        self.failing_items: dict[str, str] = {}  # item id -> error message
        self.broken_listings: dict[str, BaseException] = {}  # issue id -> error

        self.on("GetIssue", self._get_issue)
        self.on("GetIssueByNumber", self._get_issue_by_number)
        self.on("GetSubIssues", self._get_sub_issues)
        self.on("GetParentIssue", self._get_parent)
        self.on("GetProjectFields", self._get_fields)
        self.on("GetUserProject", self._get_user_project)
        self.on("BatchUpdate", self._batch_update)
        self.on("AddSubIssue", self._add_sub_issue)
        self.on("RemoveSubIssue", self._remove_sub_issue)

    def add_issue(
        self,
        issue_id: str,
        number: int,
        parent: str | None = None,
        in_project: bool = True,
        values: dict[str, str] | None = None,
    ) -> None:
        item_id = f"PVTI_{issue_id}" if in_project else None
        self.issues[issue_id] = issue_node(issue_id, number, item_id, values, self.project_id)
        self.children.setdefault(issue_id, [])
        if parent is not None:
            self.link(parent, issue_id)

    def link(self, parent: str, child: str) -> None:
        self.children.setdefault(parent, []).append(child)
        self.parents[child] = parent

    def mutation_count(self) -> int:
        return len(self.calls("BatchUpdate")) + len(self.calls("AddSubIssue"))

    def _get_issue(self, variables: dict[str, Any]) -> Any:
        return {"node": self.issues.get(variables["issueId"])}

    def _get_issue_by_number(self, variables: dict[str, Any]) -> Any:
        repository = f"{variables['owner']}/{variables['repo']}"
        for node in self.issues.values():
            if node["number"] == variables["number"] and node["repository"]["nameWithOwner"] == repository:
                return {"repository": {"issue": node}}
        return {"repository": {"issue": None}}

    def _get_sub_issues(self, variables: dict[str, Any]) -> Any:
        issue_id = variables["issueId"]
        if issue_id in self.broken_listings:
            return self.broken_listings[issue_id]
        nodes = [self.issues[child] for child in self.children.get(issue_id, [])]
        start = int(variables.get("cursor") or 0)
        return {"node": {"subIssues": connection(nodes, start, variables["first"])}}

    def _get_parent(self, variables: dict[str, Any]) -> Any:
        parent = self.parents.get(variables["issueId"])
        return {"node": {"parent": self.issues[parent] if parent else None}}

    def _get_fields(self, variables: dict[str, Any]) -> Any:
        start = int(variables.get("cursor") or 0)
        return {"node": {"fields": connection(self.fields, start, variables["first"])}}

    def _get_user_project(self, variables: dict[str, Any]) -> Any:
        return {
            "user": {
                "projectV2": {
                    "id": self.project_id,
                    "number": variables["number"],
                    "title": "Roadmap",
                    "closed": False,
                }
            }
        }

    def _batch_update(self, variables: dict[str, Any]) -> GraphQLResponse:
        data: dict[str, Any] = {}
        errors: list[dict[str, Any]] = []
        for name, value in variables.items():
            alias = "m" + name.removeprefix("input")
            item_id = value["itemId"]
            if item_id in self.failing_items:
                data[alias] = None
                errors.append({"message": self.failing_items[item_id], "path": [alias]})
            else:
                data[alias] = {"projectV2Item": {"id": item_id}}
        return GraphQLResponse(status_code=200, data=data, errors=errors)

    def _add_sub_issue(self, variables: dict[str, Any]) -> Any:
        self.link(variables["issueId"], variables["subIssueId"])
        return {"addSubIssue": {"issue": {"id": variables["issueId"]}}}

    def _remove_sub_issue(self, variables: dict[str, Any]) -> Any:
        self.children[variables["issueId"]].remove(variables["subIssueId"])
        self.parents.pop(variables["subIssueId"], None)
        return {"removeSubIssue": {"issue": {"id": variables["issueId"]}}}


def make_context(
    transport: GraphQLTransport, settings: Settings | None = None, **overrides: Any
) -> RunContext:
    """A run context with instant, deterministic retries.

    Uses ``settings`` when given, otherwise settings built from ``overrides``.
    """
    resolved = settings if settings is not None else Settings(**overrides)
    retry = RetryController(
        RetryPolicy.from_settings(resolved),
        sleep=lambda _: None,
        rng=random.Random(0),
    )
    return RunContext(resolved, transport, retry)


@pytest.fixture
def github():
    """An empty fake GitHub."""
    return FakeGitHub()


@pytest.fixture
def context(github):
    """A run context over the fake GitHub with small pages."""
    return make_context(github, page_size=2)
