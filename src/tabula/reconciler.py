"""Stable tab identity reconciliation.

The host's rename call addresses tabs by an auto-incrementing id that its tab
listing never exposes, and pane ids can be renumbered behind our back (for
example when a pane is swapped for the scrollback editor). This module keeps
our own stable tab id per pane and carries it across host updates:

* every pane in a tab shares the tab's stable id;
* a pane that disappears while a brand new pane shows up at the same tab
  position hands its stable id over to the newcomer;
* a stable id that loses its last pane is retired for good, together with
  any label template registered for it;
* new tabs get ``highest id ever allocated + 1``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from loguru import logger

from tabula.snapshot import SnapshotStore


@dataclass
class ReconcileResult:
    """Summary of one reconciliation pass."""
    trace_id: str
    panes: int = 0
    # (departed pane id, receiving pane id, stable id)
    transfers: list[tuple[int, int, int]] = field(default_factory=list)
    retired: list[int] = field(default_factory=list)
    allocated: list[int] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Metrics view for logging."""
        return {
            "panes": self.panes,
            "transfers": len(self.transfers),
            "retired": len(self.retired),
            "allocated": len(self.allocated),
            "duration_ms": self.duration_ms,
        }


class IdentityReconciler:
    """Owns the pane/tab mappings and the stable id allocator."""

    def __init__(self):
        # pane id -> current display index (0-indexed), rebuilt every pass
        self.pane_to_tab: dict[int, int] = {}
        # pane id -> stable tab id, carried across passes
        self.pane_to_stable_id: dict[int, int] = {}
        self.stable_id_to_last_position: dict[int, int] = {}
        self.stable_id_to_template: dict[int, str] = {}
        self._last_allocated = 0

    @property
    def last_allocated(self) -> int:
        return self._last_allocated

    def _allocate(self) -> int:
        self._last_allocated += 1
        return self._last_allocated

    def _retire(self, stable_id: int, result: ReconcileResult) -> None:
        self.stable_id_to_template.pop(stable_id, None)
        self.stable_id_to_last_position.pop(stable_id, None)
        result.retired.append(stable_id)
        logger.debug(
            "Stable tab id retired",
            operation="reconcile",
            status="retired",
            trace_id=result.trace_id,
            stable_id=stable_id
        )

    def reconcile(self, store: SnapshotStore) -> ReconcileResult:
        """Rebuild the mappings from the current snapshot.

        Never raises: host data that cannot be explained (panes keyed by a
        position no tab has, duplicate pane ids) just yields fewer mappings.
        """
        start_time = time.perf_counter()
        result = ReconcileResult(trace_id=str(uuid4()))
        old_pane_to_tab = self.pane_to_tab

        # Current eligible panes and brand new panes grouped by display index
        current: dict[int, int] = {}
        new_panes_by_position: dict[int, list[int]] = {}
        for display_position, item in store.eligible_items():
            if item.id in current:
                continue
            current[item.id] = display_position
            if item.id not in self.pane_to_stable_id:
                new_panes_by_position.setdefault(display_position, []).append(item.id)
        result.panes = len(current)

        # Departed panes hand their stable id to a new pane at the same
        # position when there is one (last enumerated pane wins).
        departed = sorted(pane_id for pane_id in self.pane_to_stable_id if pane_id not in current)
        departed_ids: set[int] = set()
        for pane_id in departed:
            stable_id = self.pane_to_stable_id.pop(pane_id)
            departed_ids.add(stable_id)
            candidates = new_panes_by_position.get(old_pane_to_tab.get(pane_id))
            if candidates:
                new_pane_id = candidates.pop()
                self.pane_to_stable_id[new_pane_id] = stable_id
                result.transfers.append((pane_id, new_pane_id, stable_id))
                logger.debug(
                    "Stable tab id transferred to renumbered pane",
                    operation="reconcile",
                    status="transfer",
                    trace_id=result.trace_id,
                    old_pane_id=pane_id,
                    new_pane_id=new_pane_id,
                    stable_id=stable_id,
                    position=old_pane_to_tab.get(pane_id)
                )

        bearing = set(self.pane_to_stable_id.values())
        for stable_id in sorted(departed_ids - bearing):
            self._retire(stable_id, result)

        # Existing panes pin their tab's stable id. Surviving panes resolve
        # positions before transfer recipients, so a transfer never
        # overrides a tab that kept its own panes. A stable id stays with
        # the first tab that claims it; panes disagreeing with their tab's
        # id are re-pointed, and panes whose id belongs to an earlier tab
        # queue up for assignment like new panes.
        recipients = {new_pane_id for _, new_pane_id, _ in result.transfers}
        ordered = [pane_id for pane_id in current if pane_id not in recipients]
        ordered += [pane_id for pane_id in current if pane_id in recipients]
        position_to_stable_id: dict[int, int] = {}
        claimed_by: dict[int, int] = {}
        displaced: set[int] = set()
        dropped: set[int] = set()
        for pane_id in ordered:
            display_position = current[pane_id]
            stable_id = self.pane_to_stable_id.get(pane_id)
            if stable_id is None:
                continue
            resolved = position_to_stable_id.get(display_position)
            if resolved is None and claimed_by.get(stable_id, display_position) == display_position:
                position_to_stable_id[display_position] = stable_id
                claimed_by[stable_id] = display_position
                continue
            if resolved is not None and resolved == stable_id:
                continue
            if resolved is not None:
                self.pane_to_stable_id[pane_id] = resolved
            else:
                del self.pane_to_stable_id[pane_id]
                new_panes_by_position.setdefault(display_position, []).append(pane_id)
            displaced.add(stable_id)
            if pane_id in recipients:
                dropped.add(pane_id)

        if dropped:
            result.transfers = [t for t in result.transfers if t[1] not in dropped]
        if displaced:
            bearing = set(self.pane_to_stable_id.values())
            for stable_id in sorted(displaced - bearing):
                self._retire(stable_id, result)

        # Remaining new panes join their tab's stable id or open a new one
        for display_position in sorted(new_panes_by_position):
            for pane_id in new_panes_by_position[display_position]:
                stable_id = position_to_stable_id.get(display_position)
                if stable_id is None:
                    stable_id = self._allocate()
                    position_to_stable_id[display_position] = stable_id
                    result.allocated.append(stable_id)
                    logger.debug(
                        "New stable tab id allocated",
                        operation="reconcile",
                        status="allocated",
                        trace_id=result.trace_id,
                        pane_id=pane_id,
                        stable_id=stable_id,
                        position=display_position
                    )
                self.pane_to_stable_id[pane_id] = stable_id

        self.pane_to_tab = current

        result.duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Reconciliation pass complete",
            operation="reconcile",
            status="success",
            trace_id=result.trace_id,
            metrics=result.to_dict()
        )
        return result

    def stable_id_positions(self) -> dict[int, int]:
        """Current display index of every stable id that still has panes."""
        positions: dict[int, int] = {}
        for pane_id, stable_id in self.pane_to_stable_id.items():
            display_position = self.pane_to_tab.get(pane_id)
            if display_position is not None:
                positions.setdefault(stable_id, display_position)
        return positions

    def register_template(self, stable_id: int, template: str, position: int) -> None:
        self.stable_id_to_template[stable_id] = template
        self.stable_id_to_last_position[stable_id] = position

    def mark_position(self, stable_id: int, position: int) -> None:
        self.stable_id_to_last_position[stable_id] = position
