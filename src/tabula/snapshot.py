"""Snapshot store for the most recent host tab and pane views.

Both views are replaced wholesale on every update. Nothing is validated
here; a pane list keyed by a position that no current tab has is simply
never joined.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Group:
    """A tab as reported by the host."""
    position: int
    label: str


@dataclass(frozen=True)
class Item:
    """A pane as reported by the host."""
    id: int
    is_virtual: bool = False
    is_hidden: bool = False

    @property
    def eligible(self) -> bool:
        return not (self.is_virtual or self.is_hidden)


@dataclass(frozen=True)
class RenameAction:
    """Outbound rename: ``target`` is a stable tab id or a direct tab index."""
    target: int
    label: str


class SnapshotStore:
    def __init__(self):
        self.groups: list[Group] = []
        self.items: dict[int, list[Item]] = {}

    def replace_groups(self, groups: list[Group]) -> None:
        self.groups = list(groups)

    def replace_items(self, items_by_position: dict[int, list[Item]]) -> None:
        self.items = {position: list(items) for position, items in items_by_position.items()}

    def eligible_items(self) -> Iterator[tuple[int, Item]]:
        """Yield ``(display_position, item)`` for every non-virtual, non-hidden pane.

        The display position is the tab's index in the group list; panes are
        looked up by the tab's host-assigned ``position``.
        """
        for display_position, group in enumerate(self.groups):
            for item in self.items.get(group.position, ()):
                if item.eligible:
                    yield display_position, item

    def group_at(self, display_position: int) -> Group | None:
        if 0 <= display_position < len(self.groups):
            return self.groups[display_position]
        return None
