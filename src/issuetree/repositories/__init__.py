"""Repository layer for GitHub data access."""

from .issues import IssueRepository

__all__ = [
    "IssueRepository",
]
