"""Tests for IssueRepository."""

import pytest
from conftest import PROJECT_ID, FakeTransport, issue_node, make_context

from issuetree.github.client import GitHubNotFoundError, GraphQLResponse
from issuetree.orchestration import HierarchyCycleError
from issuetree.repositories import IssueRepository
from issuetree.repositories.issues import format_field_value


@pytest.fixture
def repository(context):
    context.bind_project(PROJECT_ID, lambda: [])
    return IssueRepository(context)


class TestGetProject:
    """Tests for project lookup."""

    def test_user_project(self, github, repository):
        """User projects are found with the first query."""
        project = repository.get_project("octocat", 4)

        assert project.id == PROJECT_ID
        assert project.title == "Roadmap"
        assert str(project) == "octocat/projects/4"
        assert github.operations() == ["GetUserProject"]

    def test_falls_back_to_organization(self):
        """A NOT_FOUND user lookup falls back to the organization query."""
        transport = FakeTransport()
        transport.on(
            "GetUserProject",
            lambda v: GraphQLResponse(
                status_code=200,
                data={"user": None},
                errors=[{"type": "NOT_FOUND", "message": "Could not resolve to a User"}],
            ),
        )
        transport.on(
            "GetOrgProject",
            lambda v: {"organization": {"projectV2": {"id": "PVT_org", "number": 7, "title": "Org"}}},
        )

        project = IssueRepository(make_context(transport)).get_project("acme", 7)

        assert project.id == "PVT_org"
        assert transport.operations() == ["GetUserProject", "GetOrgProject"]

    def test_not_found_anywhere(self):
        """A project missing for both owner kinds raises GitHubNotFoundError."""
        transport = FakeTransport()
        transport.on("GetUserProject", lambda v: {"user": {"projectV2": None}})
        transport.on("GetOrgProject", lambda v: {"organization": None})

        with pytest.raises(GitHubNotFoundError, match="acme/projects/9"):
            IssueRepository(make_context(transport)).get_project("acme", 9)


class TestReadIssues:
    """Tests for issue reads and node mapping."""

    def test_get_issue_with_project_item(self, github, repository):
        """Issues carry their item and current field values for the bound project."""
        github.add_issue("I_1", 12, values={"Status": "Todo"})

        node = repository.get_issue("I_1")

        assert node.reference == "acme/api#12"
        assert node.state == "OPEN"
        assert node.item.item_id == "PVTI_I_1"
        assert node.item.current_value("Status") == "Todo"

    def test_items_of_other_projects_ignored(self, github, repository):
        """Only the bound project's item is used."""
        github.issues["I_2"] = issue_node("I_2", 3, item_id="PVTI_other", project_id="PVT_other")

        assert repository.get_issue("I_2").item is None

    def test_item_beyond_first_listing_warned(self, github, repository, caplog):
        """An issue in more projects than one listing returns logs that its item may be missing."""
        node = issue_node("I_3", 4, item_id="PVTI_other", project_id="PVT_other")
        node["projectItems"]["pageInfo"] = {"hasNextPage": True}
        github.issues["I_3"] = node

        with caplog.at_level("WARNING", logger="issuetree"):
            assert repository.get_issue("I_3").item is None

        assert "I_3 belongs to more projects than one listing returns" in caplog.text

    def test_complete_listing_not_warned(self, github, repository, caplog):
        """Issues simply outside the project log nothing."""
        github.issues["I_2"] = issue_node("I_2", 3, item_id="PVTI_other", project_id="PVT_other")

        with caplog.at_level("WARNING", logger="issuetree"):
            repository.get_issue("I_2")

        assert caplog.text == ""

    def test_no_project_bound_means_no_item(self, github):
        """Without a project, nodes carry no item."""
        github.add_issue("I_1", 1)
        node = IssueRepository(make_context(github)).get_issue("I_1")
        assert node.item is None
        assert not node.in_project

    def test_get_issue_not_found(self, github, repository):
        """Unknown IDs raise GitHubNotFoundError."""
        with pytest.raises(GitHubNotFoundError):
            repository.get_issue("I_missing")

    def test_get_issue_by_number(self, github, repository):
        """Issues resolve from owner, repository and number."""
        github.add_issue("I_5", 5)

        node = repository.get_issue_by_number("acme", "api", 5)

        assert node.issue_id == "I_5"
        assert github.calls("GetIssueByNumber") == [{"owner": "acme", "repo": "api", "number": 5}]

    def test_get_issue_by_number_not_found(self, github, repository):
        """A missing issue number raises GitHubNotFoundError."""
        with pytest.raises(GitHubNotFoundError, match="acme/api#99"):
            repository.get_issue_by_number("acme", "api", 99)

    def test_iter_sub_issues_pages(self, github, repository):
        """Sub-issues are listed across pages with the parent set."""
        github.add_issue("P", 1)
        for n in range(5):
            github.add_issue(f"C{n}", 10 + n, parent="P")

        children = list(repository.iter_sub_issues("P"))

        assert [c.issue_id for c in children] == ["C0", "C1", "C2", "C3", "C4"]
        assert all(c.parent_id == "P" for c in children)
        assert [v.get("cursor") for v in github.calls("GetSubIssues")] == [None, "2", "4"]

    def test_get_parent(self, github, repository):
        """The parent is returned, or None at the top."""
        github.add_issue("P", 1)
        github.add_issue("C", 2, parent="P")

        assert repository.get_parent("C").issue_id == "P"
        assert repository.get_parent("P") is None

    @pytest.mark.parametrize(
        ("value_node", "expected"),
        [
            ({"name": "Done"}, "Done"),
            ({"text": "hello"}, "hello"),
            ({"date": "2025-01-31"}, "2025-01-31"),
            ({"title": "Sprint 4"}, "Sprint 4"),
            ({"number": 3.0}, "3"),
            ({"number": 2.5}, "2.5"),
            ({}, None),
        ],
    )
    def test_format_field_value(self, value_node, expected):
        """Field values display the way they would be typed."""
        assert format_field_value(value_node) == expected


class TestSubIssueLinks:
    """Tests for adding and removing sub-issues."""

    def test_add_sub_issue(self, github, repository):
        """Linking sends addSubIssue with parent and child IDs."""
        github.add_issue("P", 1)
        github.add_issue("C", 2)

        repository.add_sub_issue("P", "C")

        assert github.calls("AddSubIssue") == [{"issueId": "P", "subIssueId": "C"}]
        assert github.children["P"] == ["C"]

    def test_add_self_rejected(self, github, repository):
        """An issue cannot be its own sub-issue."""
        with pytest.raises(HierarchyCycleError):
            repository.add_sub_issue("P", "P")
        assert github.calls("AddSubIssue") == []

    def test_add_ancestor_rejected(self, github, repository):
        """Linking an ancestor under its descendant is rejected locally."""
        github.add_issue("G", 1)
        github.add_issue("P", 2, parent="G")
        github.add_issue("C", 3, parent="P")

        with pytest.raises(HierarchyCycleError, match="ancestor"):
            repository.add_sub_issue("C", "G")
        assert github.calls("AddSubIssue") == []

    def test_remove_sub_issue(self, github, repository):
        """Unlinking sends removeSubIssue."""
        github.add_issue("P", 1)
        github.add_issue("C", 2, parent="P")

        repository.remove_sub_issue("P", "C")

        assert github.calls("RemoveSubIssue") == [{"issueId": "P", "subIssueId": "C"}]
        assert github.children["P"] == []
