"""issuetree - GitHub issue hierarchy and project field management."""

__version__ = "0.1.0"
