"""Tests for the run context and transport selection."""

from unittest.mock import MagicMock, patch

import pytest
from conftest import FIELD_NODES, PROJECT_ID, FakeTransport

from issuetree.config import Settings
from issuetree.github import GhCliTransport
from issuetree.models import FieldSchema
from issuetree.orchestration import (
    BatchMutator,
    DeadlineExceededError,
    IssueTreeError,
    RunContext,
    create_transport,
)

FIELDS = [schema for schema in map(FieldSchema.from_node, FIELD_NODES) if schema is not None]


class TestCreateTransport:
    """Tests for create_transport."""

    def test_gh_is_default(self):
        """The gh CLI transport is used unless http is requested."""
        transport = create_transport(Settings(host="github.example.com", request_timeout=12))

        assert isinstance(transport, GhCliTransport)
        assert transport.host == "github.example.com"
        assert transport.timeout == 12

    def test_http(self):
        """The http transport reads its token from the environment."""
        with patch("issuetree.orchestration.context.GitHubClient") as client_cls:
            create_transport(Settings(transport="http", request_timeout=5))

        client_cls.from_environment.assert_called_once_with("api.github.com", 5)


class TestRunContext:
    """Tests for RunContext."""

    @pytest.fixture
    def context(self):
        return RunContext(Settings(), FakeTransport())

    def test_schema_requires_project(self, context):
        """The schema cache exists only after a project is bound."""
        with pytest.raises(IssueTreeError, match="No project selected"):
            context.schema

    def test_bind_project(self, context):
        """Binding creates one lazily loaded schema cache."""
        loader = MagicMock(return_value=FIELDS)

        schema = context.bind_project(PROJECT_ID, loader)

        assert context.project_id == PROJECT_ID
        assert context.schema is schema
        loader.assert_not_called()
        assert schema.resolve("Status").id == "F_status"

    def test_rebinding_same_project_keeps_cache(self, context):
        """Binding the same project again returns the existing cache."""
        first = context.bind_project(PROJECT_ID, lambda: FIELDS)
        assert context.bind_project(PROJECT_ID, lambda: []) is first

    def test_switching_project_rejected(self, context):
        """A run reads and writes a single project."""
        context.bind_project(PROJECT_ID, lambda: FIELDS)

        with pytest.raises(IssueTreeError, match="cannot switch"):
            context.bind_project("PVT_other", lambda: FIELDS)

    def test_contexts_do_not_share_caches(self):
        """Separate invocations load fields separately."""
        loader = MagicMock(return_value=FIELDS)
        for _ in range(2):
            context = RunContext(Settings(), FakeTransport())
            context.bind_project(PROJECT_ID, loader).resolve("Status")

        assert loader.call_count == 2

    def test_batch_mutator_uses_settings(self):
        """The mutator's builder follows the configured limits."""
        context = RunContext(Settings(max_batch_size=7), FakeTransport())
        context.bind_project(PROJECT_ID, lambda: FIELDS)

        mutator = context.batch_mutator()

        assert isinstance(mutator, BatchMutator)
        assert mutator._builder.max_batch_size == 7

    def test_close_closes_transport(self):
        """Leaving the context closes the transport."""
        transport = FakeTransport()
        with RunContext(Settings(), transport):
            pass
        assert transport.closed

    def test_from_settings_starts_deadline(self):
        """A configured deadline is measured from context creation."""
        now = [100.0]
        context = RunContext.from_settings(
            Settings(deadline_seconds=5, retry_jitter=0),
            FakeTransport(),
            sleep=lambda seconds: now.__setitem__(0, now[0] + seconds),
            clock=lambda: now[0],
        )

        assert context.retry.deadline == 105.0
        now[0] = 106.0
        with pytest.raises(DeadlineExceededError):
            context.retry.execute(lambda: "never", "late call")

    def test_from_settings_without_deadline(self):
        """No deadline is set unless configured."""
        context = RunContext.from_settings(Settings(), FakeTransport())
        assert context.retry.deadline is None
        assert context.retry.policy.max_attempts == 5
