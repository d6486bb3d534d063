"""The plugin state object wiring host events to the engine.

One :class:`TabulaPlugin` holds every mapping. Each host event is handled to
completion before the next one arrives, so nothing here is locked.
"""

from __future__ import annotations

from typing import Callable

from loguru import logger

from tabula.config_loader import DEFAULT_CONFIG, deep_merge
from tabula.errors import Result
from tabula.events import PaneUpdate, PipeMessage, TabUpdate
from tabula.reconciler import IdentityReconciler
from tabula.relabel import auto_update_tab_names
from tabula.rename_request import RenameOutcome, RenameRequest, RenameRequestHandler
from tabula.snapshot import Group, Item, RenameAction, SnapshotStore


class TabulaPlugin:
    """Stable tab ids and templated tab names for one host session.

    Args:
        rename_tab: Host rename call, ``rename_tab(tab_id, name)``. Fire and
            forget: nothing waits for the host to apply it.
        config: Partial config merged over ``DEFAULT_CONFIG``.
    """

    def __init__(self, rename_tab: Callable[[int, str], None], config: dict | None = None):
        self.config = deep_merge(DEFAULT_CONFIG, config or {})
        self.store = SnapshotStore()
        self.reconciler = IdentityReconciler()
        self.rename_tab = rename_tab
        self.requests = RenameRequestHandler(
            self.store,
            self.reconciler,
            rename_tab,
            pipe_name=self.config["pipe"]["name"],
            default_use_stable_identity=self.config["rename"]["use_stable_identity"],
        )

    def on_tab_update(self, groups: list[Group]) -> list[RenameAction]:
        self.store.replace_groups(groups)
        return self._rebuild()

    def on_pane_update(self, items_by_position: dict[int, list[Item]]) -> list[RenameAction]:
        self.store.replace_items(items_by_position)
        return self._rebuild()

    def update(self, event) -> list[RenameAction]:
        """Dispatch a decoded host event; other event kinds are ignored."""
        if isinstance(event, TabUpdate):
            return self.on_tab_update(event.groups)
        if isinstance(event, PaneUpdate):
            return self.on_pane_update(event.items)
        logger.debug(
            "Ignoring unsupported event",
            operation="update",
            status="ignored",
            event_type=type(event).__name__
        )
        return []

    def pipe(self, message: PipeMessage) -> Result[RenameOutcome]:
        return self.requests.handle_pipe(message)

    def rename(self, request: RenameRequest) -> Result[RenameOutcome]:
        return self.requests.handle_request(request)

    def _rebuild(self) -> list[RenameAction]:
        result = self.reconciler.reconcile(self.store)
        return auto_update_tab_names(self.reconciler, self.rename_tab, trace_id=result.trace_id)

    def tab_position_of(self, pane_id: int) -> int | None:
        return self.reconciler.pane_to_tab.get(pane_id)

    def stable_id_of(self, pane_id: int) -> int | None:
        return self.reconciler.pane_to_stable_id.get(pane_id)

    def template_of(self, stable_id: int) -> str | None:
        return self.reconciler.stable_id_to_template.get(stable_id)
