"""Batched project field mutations.

Many field updates are packed into one GraphQL document, each as an aliased
sub-operation (``m0``, ``m1``, ...). The response is keyed by the same
aliases, so every intent gets its own result. Batches are not transactional:
some aliases can fail while their siblings succeed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..github.client import GitHubClientError, GraphQLResponse, GraphQLTransport
from ..github.queries import (
    BATCH_MUTATION,
    CLEAR_FIELD_INPUT_TYPE,
    CLEAR_FIELD_OPERATION,
    UPDATE_FIELD_INPUT_TYPE,
    UPDATE_FIELD_OPERATION,
)
from ..models.mutation import IntentResult, MutationIntent, PreparedMutation
from .exceptions import (
    InvalidFieldValueError,
    IssueTreeError,
    UnknownFieldError,
    UnknownOptionError,
    is_fatal,
)
from .retry import RetryController
from .schema_cache import FieldSchemaCache

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 50
DEFAULT_MAX_PAYLOAD_BYTES = 256 * 1024

# {"query": "mutation BatchUpdate() {  }", "variables": {}}
_ENVELOPE_BYTES = 64

VALIDATION_ERRORS = (UnknownFieldError, UnknownOptionError, InvalidFieldValueError)


def alias_for(index: int) -> str:
    return f"m{index}"


def variable_for(index: int) -> str:
    return f"input{index}"


def _operation_parts(
    project_id: str, mutation: PreparedMutation, index: int
) -> tuple[str, str, dict[str, Any]]:
    """Build (operation text, variable declaration, variable value) for one entry."""
    alias = alias_for(index)
    variable = variable_for(index)
    value: dict[str, Any] = {
        "projectId": project_id,
        "itemId": mutation.intent.item_id,
        "fieldId": mutation.field_id,
    }

    if mutation.is_clear:
        operation = CLEAR_FIELD_OPERATION.format(alias=alias, variable=variable)
        declaration = f"${variable}: {CLEAR_FIELD_INPUT_TYPE}"
    else:
        value["value"] = mutation.value
        operation = UPDATE_FIELD_OPERATION.format(alias=alias, variable=variable)
        declaration = f"${variable}: {UPDATE_FIELD_INPUT_TYPE}"

    return operation, declaration, value


def estimate_entry_size(project_id: str, mutation: PreparedMutation, index: int) -> int:
    """Estimated serialized bytes one entry adds to a batch request."""
    operation, declaration, value = _operation_parts(project_id, mutation, index)
    variable = variable_for(index)
    # Separators, quotes and JSON escaping of the query text
    return (
        len(operation)
        + len(declaration)
        + len(json.dumps({variable: value}).encode("utf-8"))
        + 8
    )


@dataclass
class BatchRequest:
    """A group of prepared mutations sent as one aliased request.

    ``aliases`` maps alias -> index into ``mutations``; ``index_aliases``
    is the reverse mapping.
    """

    project_id: str
    mutations: list[PreparedMutation]
    aliases: dict[str, int] = field(init=False)
    index_aliases: list[str] = field(init=False)

    def __post_init__(self) -> None:
        self.index_aliases = [alias_for(i) for i in range(len(self.mutations))]
        self.aliases = {alias: i for i, alias in enumerate(self.index_aliases)}

    def __len__(self) -> int:
        return len(self.mutations)

    @property
    def intents(self) -> list[MutationIntent]:
        return [m.intent for m in self.mutations]

    def to_payload(self) -> dict[str, Any]:
        """The request body: ``{"query": ..., "variables": ...}``."""
        operations: list[str] = []
        declarations: list[str] = []
        variables: dict[str, Any] = {}

        for index, mutation in enumerate(self.mutations):
            operation, declaration, value = _operation_parts(self.project_id, mutation, index)
            operations.append(operation)
            declarations.append(declaration)
            variables[variable_for(index)] = value

        query = BATCH_MUTATION.format(
            declarations=", ".join(declarations),
            operations=" ".join(operations),
        )
        return {"query": query, "variables": variables}

    def payload_size(self) -> int:
        """Serialized size of the request body in bytes."""
        return len(json.dumps(self.to_payload()).encode("utf-8"))

    def demultiplex(self, response: GraphQLResponse) -> list[IntentResult]:
        """Split an aliased response into one result per mutation, in order.

        Errors are attributed by the first element of their ``path``. An alias
        with neither data nor an attributed error takes the first unattributed
        error message.
        """
        data = response.data or {}
        attributed: dict[str, str] = {}
        unattributed: list[str] = []

        for error in response.errors:
            message = error.get("message", str(error))
            path = error.get("path") or []
            if path and path[0] in self.aliases:
                attributed.setdefault(path[0], message)
            else:
                unattributed.append(message)

        results: list[IntentResult] = []
        for index, mutation in enumerate(self.mutations):
            alias = self.index_aliases[index]
            if alias in attributed:
                results.append(IntentResult.failed(mutation.intent, attributed[alias], alias))
            elif data.get(alias) is None:
                reason = unattributed[0] if unattributed else "no result returned"
                results.append(IntentResult.failed(mutation.intent, reason, alias))
            else:
                results.append(IntentResult.succeeded(mutation.intent, alias))
        return results


class BatchRequestBuilder:
    """Groups prepared mutations into size-bounded batches."""

    def __init__(
        self,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if max_payload_bytes <= _ENVELOPE_BYTES:
            raise ValueError(f"max_payload_bytes must exceed {_ENVELOPE_BYTES}")
        self.max_batch_size = max_batch_size
        self.max_payload_bytes = max_payload_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> BatchRequestBuilder:
        return cls(settings.max_batch_size, settings.max_payload_bytes)

    def build(self, project_id: str, mutations: Sequence[PreparedMutation]) -> list[BatchRequest]:
        """Pack mutations, in order, into as few batches as the limits allow.

        A batch is closed when it holds ``max_batch_size`` entries or when the
        next entry would push its estimated size past ``max_payload_bytes``.
        An entry that is too large on its own still gets a batch to itself.
        """
        batches: list[BatchRequest] = []
        current: list[PreparedMutation] = []
        current_bytes = _ENVELOPE_BYTES

        for mutation in mutations:
            size = estimate_entry_size(project_id, mutation, len(current))
            if current and (
                len(current) >= self.max_batch_size
                or current_bytes + size > self.max_payload_bytes
            ):
                batches.append(BatchRequest(project_id, current))
                current = []
                current_bytes = _ENVELOPE_BYTES
                size = estimate_entry_size(project_id, mutation, 0)

            if not current and current_bytes + size > self.max_payload_bytes:
                logger.warning(
                    "Update of '%s' on %s is ~%d bytes, over the %d byte batch ceiling; sending it alone",
                    mutation.intent.field_name,
                    mutation.intent.item_id,
                    size,
                    self.max_payload_bytes,
                )

            current.append(mutation)
            current_bytes += size

        if current:
            batches.append(BatchRequest(project_id, current))

        logger.debug("Built %d batch(es) for %d mutation(s)", len(batches), len(mutations))
        return batches


class BatchMutator:
    """Resolves, batches, sends and demultiplexes field mutations."""

    def __init__(
        self,
        transport: GraphQLTransport,
        schema: FieldSchemaCache,
        retry: RetryController,
        builder: BatchRequestBuilder | None = None,
    ) -> None:
        self._transport = transport
        self._schema = schema
        self._retry = retry
        self._builder = builder or BatchRequestBuilder()

    def validate(self, intents: Sequence[MutationIntent]) -> list[IntentResult]:
        """Check intents against the schema without sending anything.

        Valid intents come back as successes with no alias.
        """
        results: list[IntentResult] = []
        for intent in intents:
            try:
                self._schema.prepare(intent)
            except VALIDATION_ERRORS as e:
                results.append(IntentResult.failed(intent, str(e)))
            else:
                results.append(IntentResult.succeeded(intent))
        return results

    def apply(self, project_id: str, intents: Sequence[MutationIntent]) -> list[IntentResult]:
        """Apply intents, returning one result per intent in input order.

        Invalid intents fail without a wire call. A batch that fails as a
        whole marks each of its intents failed with the batch error.

        Raises:
            GitHubAuthError, GitHubTransportUnavailableError, DeadlineExceededError:
                Fatal errors abort the whole operation
        """
        results: list[IntentResult | None] = [None] * len(intents)
        prepared: list[PreparedMutation] = []
        positions: list[int] = []

        for position, intent in enumerate(intents):
            try:
                prepared.append(self._schema.prepare(intent))
            except VALIDATION_ERRORS as e:
                logger.warning("Skipping update of %s: %s", intent.item_id, e)
                results[position] = IntentResult.failed(intent, str(e))
                continue
            positions.append(position)

        offset = 0
        batches = self._builder.build(project_id, prepared)
        for number, batch in enumerate(batches, 1):
            for result in self.execute(batch, f"batch {number}/{len(batches)}"):
                results[positions[offset]] = result
                offset += 1

        return [r for r in results if r is not None]

    def execute(self, batch: BatchRequest, label: str = "batch") -> list[IntentResult]:
        """Send one batch through the retry controller and demultiplex it."""
        payload = batch.to_payload()
        description = f"{label} mutation ({len(batch)} updates)"

        try:
            response = self._retry.execute(lambda: self._transport.send(payload), description)
        except (GitHubClientError, IssueTreeError) as e:
            if is_fatal(e):
                raise
            logger.error("%s failed: %s", description, e)
            return [
                IntentResult.failed(m.intent, str(e), alias)
                for m, alias in zip(batch.mutations, batch.index_aliases, strict=True)
            ]

        results = batch.demultiplex(response)
        failures = sum(1 for r in results if not r.success)
        if failures:
            logger.warning("%s: %d of %d updates failed", description, failures, len(results))
        else:
            logger.info("%s: all %d updates applied", description, len(results))
        return results
