"""Field mutation models."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class MutationIntent:
    """A requested field change on one project item.

    Intents are never modified; a retry re-sends the same intent.
    A ``value`` of None or "" clears the field.
    """

    item_id: str
    field_name: str
    value: str | None
    issue_id: str | None = None  # owning issue, for attributing results to nodes

    @property
    def is_clear(self) -> bool:
        return self.value is None or self.value == ""


@dataclass(frozen=True)
class PreparedMutation:
    """An intent with its field identifiers resolved and value encoded.

    ``value`` is the ``ProjectV2FieldValue`` input object, or None when the
    field is being cleared.
    """

    intent: MutationIntent
    field_id: str
    data_type: str
    value: dict[str, Any] | None

    @property
    def is_clear(self) -> bool:
        return self.value is None


@dataclass(frozen=True)
class IntentResult:
    """Outcome of one intent."""

    intent: MutationIntent
    success: bool
    error: str | None = None
    alias: str | None = None  # alias used on the wire, when the intent was sent

    @classmethod
    def failed(cls, intent: MutationIntent, error: str, alias: str | None = None) -> "IntentResult":
        return cls(intent=intent, success=False, error=error, alias=alias)

    @classmethod
    def succeeded(cls, intent: MutationIntent, alias: str | None = None) -> "IntentResult":
        return cls(intent=intent, success=True, alias=alias)
