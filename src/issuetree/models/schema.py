"""Project field schema models.

A project field is described once per run by the field listing query and is
read-only afterwards. Only the data types in ``FieldType`` accept values
through ``updateProjectV2ItemFieldValue``; built-in fields such as Title,
Assignees or Labels are listed but cannot be set.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class FieldType(str, Enum):
    """Field data types that can be written on a project item."""

    TEXT = "TEXT"
    SINGLE_SELECT = "SINGLE_SELECT"
    DATE = "DATE"
    NUMBER = "NUMBER"
    ITERATION = "ITERATION"


SETTABLE_FIELD_TYPES = frozenset(t.value for t in FieldType)


class FieldOption(BaseModel):
    """One option of a single-select field (or one iteration)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class FieldSchema(BaseModel):
    """A project field definition."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    data_type: str
    options: tuple[FieldOption, ...] = ()

    @property
    def is_settable(self) -> bool:
        """Whether values of this field can be written."""
        return self.data_type in SETTABLE_FIELD_TYPES

    @property
    def has_options(self) -> bool:
        return self.data_type in (FieldType.SINGLE_SELECT.value, FieldType.ITERATION.value)

    @property
    def option_names(self) -> list[str]:
        return [opt.name for opt in self.options]

    def find_option(self, label: str) -> FieldOption | None:
        """Find an option by label.

        Exact match wins; otherwise a case-insensitive match is accepted
        when it is unique.
        """
        for opt in self.options:
            if opt.name == label:
                return opt

        folded = label.casefold()
        matches = [opt for opt in self.options if opt.name.casefold() == folded]
        if len(matches) == 1:
            return matches[0]
        return None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "FieldSchema | None":
        """Build a schema from a ``ProjectV2FieldConfiguration`` node.

        Returns None for nodes that carry no id (fragments that did not match).
        """
        field_id = node.get("id")
        if not field_id:
            return None

        options: list[FieldOption] = []
        if "options" in node:
            options = [FieldOption(id=opt["id"], name=opt["name"]) for opt in node["options"]]
        elif "configuration" in node:
            iterations = (node.get("configuration") or {}).get("iterations", [])
            options = [FieldOption(id=it["id"], name=it["title"]) for it in iterations]

        return cls(
            id=field_id,
            name=node.get("name", ""),
            data_type=node.get("dataType", ""),
            options=tuple(options),
        )
