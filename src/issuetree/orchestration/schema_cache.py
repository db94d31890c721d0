"""Run-scoped cache of project field definitions."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

from ..models.mutation import MutationIntent, PreparedMutation
from ..models.schema import FieldOption, FieldSchema, FieldType
from .exceptions import InvalidFieldValueError, UnknownFieldError, UnknownOptionError

logger = logging.getLogger(__name__)

FieldLoader = Callable[[], Iterable[FieldSchema]]

# Older projects name the branch field "Release"; used only when no field matches the name itself
LEGACY_FIELD_NAMES = {"branch": "Release"}


class FieldSchemaCache:
    """Maps field names to field and option identifiers for one run.

    The project's fields are listed once, on the first lookup; every later
    lookup is served from memory. The cache belongs to a ``RunContext`` and
    is never shared between runs.
    """

    def __init__(self, loader: FieldLoader, aliases: Mapping[str, str] | None = None) -> None:
        """Initialize the cache.

        Args:
            loader: Returns every field of the project (called at most once)
            aliases: Optional alias -> field name lookup table (e.g. {"branch": "Release"})
        """
        self._loader = loader
        self._aliases = {alias.casefold(): name for alias, name in (aliases or {}).items()}
        self._fields: dict[str, FieldSchema] | None = None
        self._resolved: dict[str, FieldSchema] = {}
        self.load_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._fields is not None

    def fields(self) -> list[FieldSchema]:
        """All project fields in listing order."""
        return list(self._ensure_loaded().values())

    def resolve(self, field_name: str) -> FieldSchema:
        """Resolve a field by name or alias.

        A name with no matching field falls back to its legacy name, if it has
        one (``Branch`` -> ``Release``).

        Raises:
            UnknownFieldError: If no field matches
        """
        if field_name in self._resolved:
            return self._resolved[field_name]

        fields = self._ensure_loaded()
        target = self._aliases.get(field_name.casefold(), field_name)

        schema = _lookup(fields, target)
        if schema is None:
            legacy = LEGACY_FIELD_NAMES.get(target.casefold())
            schema = _lookup(fields, legacy) if legacy else None
            if schema is None:
                raise UnknownFieldError(field_name, list(fields))
            logger.info("No %s field in this project; using legacy field %s", target, schema.name)

        self._resolved[field_name] = schema
        return schema

    def resolve_option(self, field_name: str, label: str) -> tuple[FieldSchema, FieldOption]:
        """Resolve a single-select (or iteration) option label to its identifier.

        Raises:
            UnknownFieldError: If no field matches
            InvalidFieldValueError: If the field has no options
            UnknownOptionError: If the label is not one of the field's options
        """
        schema = self.resolve(field_name)
        if not schema.has_options:
            raise InvalidFieldValueError(
                schema.name, label, f"field type {schema.data_type} has no options"
            )

        option = schema.find_option(label)
        if option is None:
            raise UnknownOptionError(schema.name, label, schema.option_names)
        return schema, option

    def prepare(self, intent: MutationIntent) -> PreparedMutation:
        """Resolve and validate an intent into a wire-ready mutation.

        Raises:
            UnknownFieldError, UnknownOptionError, InvalidFieldValueError
        """
        schema = self.resolve(intent.field_name)
        if not schema.is_settable:
            raise InvalidFieldValueError(
                schema.name, intent.value, f"fields of type {schema.data_type} cannot be set"
            )

        if intent.is_clear:
            return PreparedMutation(intent=intent, field_id=schema.id, data_type=schema.data_type, value=None)

        value = intent.value or ""
        data_type = schema.data_type

        if data_type == FieldType.SINGLE_SELECT.value:
            _, option = self.resolve_option(intent.field_name, value)
            encoded: dict[str, object] = {"singleSelectOptionId": option.id}
        elif data_type == FieldType.ITERATION.value:
            _, option = self.resolve_option(intent.field_name, value)
            encoded = {"iterationId": option.id}
        elif data_type == FieldType.NUMBER.value:
            encoded = {"number": _parse_number(schema.name, value)}
        elif data_type == FieldType.DATE.value:
            _validate_date(schema.name, value)
            encoded = {"date": value}
        else:
            encoded = {"text": value}

        return PreparedMutation(intent=intent, field_id=schema.id, data_type=data_type, value=encoded)

    def _ensure_loaded(self) -> dict[str, FieldSchema]:
        if self._fields is None:
            fields: dict[str, FieldSchema] = {}
            for schema in self._loader():
                # First definition wins if the listing repeats a name
                fields.setdefault(schema.name, schema)
            self._fields = fields
            self.load_count += 1
            logger.debug("Loaded %d project fields", len(fields))
        return self._fields


def _lookup(fields: dict[str, FieldSchema], name: str) -> FieldSchema | None:
    """Exact name first, then a unique case-insensitive match."""
    schema = fields.get(name)
    if schema is not None:
        return schema
    folded = name.casefold()
    matches = [f for key, f in fields.items() if key.casefold() == folded]
    return matches[0] if len(matches) == 1 else None

def _parse_number(field_name: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise InvalidFieldValueError(field_name, value, "expected a number") from None
    if not math.isfinite(number):
        raise InvalidFieldValueError(field_name, value, "expected a finite number")
    return number


def _validate_date(field_name: str, value: str) -> None:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise InvalidFieldValueError(field_name, value, "expected date format YYYY-MM-DD") from None
