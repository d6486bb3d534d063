"""In-memory stand-in for the zellij side of the plugin.

Tabs carry an internal id that only ever increases (what zellij's rename
call addresses) while their position is renormalised after every close, which
is exactly the mismatch the stable ids paper over.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tabula import Group, Item, PipeMessage, TabulaPlugin
from tabula.rename_request import DEFAULT_PIPE_NAME


@dataclass
class FakeTab:
    tab_id: int
    name: str
    panes: list[int] = field(default_factory=list)
    plugin_panes: list[int] = field(default_factory=list)


class FakeHost:
    def __init__(self, config: dict | None = None):
        self.tabs: list[FakeTab] = []
        self.renames: list[tuple[int, str]] = []
        self._next_tab_id = 1
        self._next_pane_id = 1
        self.plugin = TabulaPlugin(self.rename_tab, config)

    # host actions -------------------------------------------------------

    def new_tab(self, panes: int = 1) -> list[int]:
        tab = FakeTab(tab_id=self._next_tab_id, name=f"Tab #{len(self.tabs) + 1}")
        self._next_tab_id += 1
        for _ in range(panes):
            tab.panes.append(self._new_pane_id())
        self.tabs.append(tab)
        return list(tab.panes)

    def close_tab(self, index: int) -> None:
        del self.tabs[index]

    def renumber_pane(self, pane_id: int) -> int:
        """Swap a pane for a fresh id in place (scrollback editor style)."""
        for tab in self.tabs:
            if pane_id in tab.panes:
                new_id = self._new_pane_id()
                tab.panes[tab.panes.index(pane_id)] = new_id
                return new_id
        raise KeyError(pane_id)

    def rename_tab(self, tab_id: int, name: str) -> None:
        self.renames.append((tab_id, name))
        for tab in self.tabs:
            if tab.tab_id == tab_id:
                tab.name = name

    def _new_pane_id(self) -> int:
        pane_id = self._next_pane_id
        self._next_pane_id += 1
        return pane_id

    # plugin delivery ----------------------------------------------------

    def sync(self) -> None:
        """Deliver a pane update followed by a tab update.

        Panes go first: after a close, a pane manifest that is still keyed by
        the old positions would otherwise be joined against the new tab list.
        """
        self.plugin.on_pane_update({
            index: [Item(id=pane_id) for pane_id in tab.panes]
            + [Item(id=pane_id, is_virtual=True) for pane_id in tab.plugin_panes]
            for index, tab in enumerate(self.tabs)
        })
        self.plugin.on_tab_update([
            Group(position=index, label=tab.name) for index, tab in enumerate(self.tabs)
        ])

    def pipe(self, payload: str | None, name: str = DEFAULT_PIPE_NAME):
        return self.plugin.pipe(PipeMessage(name=name, payload=payload))

    def tab_names(self) -> list[str]:
        return [tab.name for tab in self.tabs]
