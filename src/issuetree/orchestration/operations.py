"""Operations applied to each node of a hierarchy traversal."""

from collections.abc import Mapping
from typing import Protocol

from ..models.issue import HierarchyNode, ItemRecord
from ..models.mutation import MutationIntent


class NodeOperation(Protocol):
    """Turns a node into the field changes it needs.

    ``intents_for`` must not call the network; the walker batches the
    intents of a whole level together.
    """

    requires_project: bool

    def intents_for(self, node: HierarchyNode) -> list[MutationIntent]: ...


class ReadOnlyOperation:
    """Changes nothing; used to list a hierarchy."""

    requires_project = False

    def intents_for(self, node: HierarchyNode) -> list[MutationIntent]:
        return []


class FieldUpdateOperation:
    """Sets (or clears) the same project fields on every node."""

    requires_project = True

    def __init__(self, updates: Mapping[str, str | None], skip_unchanged: bool = True) -> None:
        """Initialize the operation.

        Args:
            updates: Field name -> new value; None or "" clears the field
            skip_unchanged: Leave out fields whose current value already matches
        """
        if not updates:
            raise ValueError("At least one field update is required")
        self.updates = dict(updates)
        self.skip_unchanged = skip_unchanged

    def intents_for(self, node: HierarchyNode) -> list[MutationIntent]:
        item = node.item
        if item is None:
            return []

        intents: list[MutationIntent] = []
        for field_name, value in self.updates.items():
            if self.skip_unchanged and self._is_current(item, field_name, value):
                continue
            intents.append(
                MutationIntent(
                    item_id=item.item_id,
                    field_name=field_name,
                    value=value,
                    issue_id=node.issue_id,
                )
            )
        return intents

    @staticmethod
    def _is_current(item: ItemRecord, field_name: str, value: str | None) -> bool:
        current = item.current_value(field_name)
        if current is None:
            # Field names are matched case-insensitively
            folded = field_name.casefold()
            for name, field_value in item.field_values.items():
                if name.casefold() == folded:
                    current = field_value
                    break

        if not value:
            return current is None or current == ""
        return current == value
