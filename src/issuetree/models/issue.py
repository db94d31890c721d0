"""Issue and project item models."""

import re

from pydantic import BaseModel, Field

_ISSUE_REF_PATTERN = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)#(?P<number>\d+)$")


class IssueRef(BaseModel):
    """Human reference to an issue: ``owner/repo#123``."""

    owner: str
    repo: str
    number: int

    @classmethod
    def parse(cls, value: str) -> "IssueRef":
        """Parse ``owner/repo#123``.

        Raises:
            ValueError: If the value is not in that format
        """
        match = _ISSUE_REF_PATTERN.match(value.strip())
        if not match:
            raise ValueError(f"Invalid issue reference '{value}' (expected owner/repo#number)")
        return cls(
            owner=match.group("owner"),
            repo=match.group("repo"),
            number=int(match.group("number")),
        )

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


class ItemRecord(BaseModel):
    """An issue's entry in a project, with its current field values."""

    item_id: str  # "PVTI_..." - the target of field mutations
    project_id: str
    issue_id: str
    field_values: dict[str, str] = Field(default_factory=dict)  # field name -> display value

    def current_value(self, field_name: str) -> str | None:
        return self.field_values.get(field_name)


class HierarchyNode(BaseModel):
    """One issue in a parent/child traversal."""

    issue_id: str  # "I_kw..." node ID
    number: int = 0
    title: str = ""
    state: str = ""
    repository: str = ""  # "owner/repo"
    parent_id: str | None = None
    depth: int = 0
    item: ItemRecord | None = None
    children_ids: list[str] = Field(default_factory=list)

    @property
    def reference(self) -> str:
        """Display reference, falling back to the node ID."""
        if self.repository and self.number:
            return f"{self.repository}#{self.number}"
        return self.issue_id

    @property
    def in_project(self) -> bool:
        return self.item is not None

    def as_child_of(self, parent: "HierarchyNode") -> "HierarchyNode":
        """Copy of this node positioned one level below ``parent``."""
        return self.model_copy(
            update={"parent_id": parent.issue_id, "depth": parent.depth + 1, "children_ids": []}
        )


class Project(BaseModel):
    """A GitHub Project (v2) resolved from its owner and number."""

    id: str  # "PVT_..."
    owner: str
    number: int
    title: str = ""
    closed: bool = False

    @staticmethod
    def parse_reference(value: str) -> tuple[str, int]:
        """Split ``OWNER/NUMBER`` into its parts.

        Raises:
            ValueError: If the value is not in that format
        """
        owner, sep, number = value.strip().partition("/")
        if not sep or not owner or not number.isdigit():
            raise ValueError(f"Invalid project reference '{value}' (expected OWNER/NUMBER)")
        return owner, int(number)

    def __str__(self) -> str:
        return f"{self.owner}/projects/{self.number}"
