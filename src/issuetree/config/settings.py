"""Application settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings.

    Values come from ``ISSUETREE_*`` environment variables; CLI flags override them.
    """

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    transport: Literal["gh", "http"] = Field(
        default="gh",
        description="GraphQL transport: 'gh' pipes requests through the gh CLI, 'http' uses httpx",
    )

    host: str = Field(
        default="github.com",
        description="GitHub hostname (use a custom host for Enterprise)",
    )

    project_owner: str | None = Field(default=None, description="Project owner login")
    project_number: int | None = Field(default=None, description="Project number")
    field_aliases: dict[str, str] = Field(
        default_factory=dict,
        description="Short field names mapped to project field names, as JSON (e.g. {\"branch\": \"Release\"})",
    )

    max_batch_size: int = Field(default=50, ge=1, description="Maximum mutations per request")
    max_payload_bytes: int = Field(
        default=256 * 1024,
        ge=1024,
        description="Estimated serialized-size ceiling for one batched request",
    )

    retry_base_delay: float = Field(default=1.0, gt=0, description="First backoff delay (seconds)")
    retry_max_delay: float = Field(default=30.0, gt=0, description="Backoff cap (seconds)")
    retry_max_attempts: int = Field(default=5, ge=1, description="Total attempts per operation")
    retry_jitter: float = Field(default=0.2, ge=0, lt=1, description="Relative jitter (+/-)")

    max_depth: int = Field(default=10, ge=0, description="Default hierarchy depth ceiling")
    max_pages: int = Field(default=1000, ge=1, description="Page ceiling for one listing")
    page_size: int = Field(default=50, ge=1, le=100, description="Records requested per page")

    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout (seconds)")
    deadline_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Wall-clock budget for a whole command; retries stop once it is spent",
    )

    model_config = {
        "env_prefix": "ISSUETREE_",
    }

    @property
    def api_host(self) -> str:
        """Host serving the GraphQL endpoint."""
        if self.host == "github.com":
            return "api.github.com"
        return f"{self.host}/api"
