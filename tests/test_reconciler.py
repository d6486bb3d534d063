from __future__ import annotations

import unittest

from tabula.reconciler import IdentityReconciler
from tabula.snapshot import Group, Item, SnapshotStore


def load(store: SnapshotStore, *tabs: list[int]) -> None:
    """Replace the snapshot with one tab per pane list, positions 0..n-1."""
    store.replace_groups([Group(position=i, label=f"Tab #{i + 1}") for i in range(len(tabs))])
    store.replace_items({i: [Item(id=pane_id) for pane_id in panes] for i, panes in enumerate(tabs)})


class ReconcilerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.store = SnapshotStore()
        self.reconciler = IdentityReconciler()

    def reconcile(self, *tabs: list[int]):
        load(self.store, *tabs)
        return self.reconciler.reconcile(self.store)

    def sid(self, pane_id: int) -> int | None:
        return self.reconciler.pane_to_stable_id.get(pane_id)

    def assert_one_tab_per_stable_id(self) -> None:
        seen: dict[int, int] = {}
        for pane_id, stable_id in self.reconciler.pane_to_stable_id.items():
            position = self.reconciler.pane_to_tab[pane_id]
            self.assertEqual(seen.setdefault(stable_id, position), position)


class TestAssignment(ReconcilerTestCase):
    def test_new_tabs_get_increasing_ids_and_panes_share_them(self) -> None:
        result = self.reconcile([7, 8], [9])
        self.assertEqual(self.reconciler.pane_to_tab, {7: 0, 8: 0, 9: 1})
        self.assertEqual(self.sid(7), 1)
        self.assertEqual(self.sid(8), 1)
        self.assertEqual(self.sid(9), 2)
        self.assertEqual(result.allocated, [1, 2])

    def test_new_pane_in_existing_tab_joins_its_id(self) -> None:
        self.reconcile([7], [9])
        result = self.reconcile([7, 8], [9])
        self.assertEqual(self.sid(8), self.sid(7))
        self.assertEqual(result.allocated, [])

    def test_virtual_and_hidden_panes_are_ignored(self) -> None:
        self.store.replace_groups([Group(position=0, label="a")])
        self.store.replace_items({0: [
            Item(id=1),
            Item(id=2, is_virtual=True),
            Item(id=3, is_hidden=True),
        ]})
        self.reconciler.reconcile(self.store)
        self.assertEqual(self.reconciler.pane_to_tab, {1: 0})
        self.assertEqual(set(self.reconciler.pane_to_stable_id), {1})

    def test_panes_without_a_tab_are_not_mapped(self) -> None:
        self.store.replace_groups([Group(position=0, label="a")])
        self.store.replace_items({0: [Item(id=1)], 5: [Item(id=2)]})
        self.reconciler.reconcile(self.store)
        self.assertEqual(self.reconciler.pane_to_tab, {1: 0})

    def test_display_position_follows_group_order_not_host_position(self) -> None:
        self.store.replace_groups([Group(position=4, label="a"), Group(position=2, label="b")])
        self.store.replace_items({2: [Item(id=20)], 4: [Item(id=40)]})
        self.reconciler.reconcile(self.store)
        self.assertEqual(self.reconciler.pane_to_tab, {40: 0, 20: 1})

    def test_duplicate_pane_id_keeps_first_position(self) -> None:
        self.reconcile([1], [1, 2])
        self.assertEqual(self.reconciler.pane_to_tab, {1: 0, 2: 1})
        self.assert_one_tab_per_stable_id()


class TestTransfer(ReconcilerTestCase):
    def test_renumbered_pane_keeps_stable_id(self) -> None:
        self.reconcile([7, 8], [9])
        before = self.sid(9)
        result = self.reconcile([7, 8], [10])
        self.assertEqual(self.sid(10), before)
        self.assertNotIn(9, self.reconciler.pane_to_stable_id)
        self.assertEqual(result.transfers, [(9, 10, before)])
        self.assertEqual(result.retired, [])

    def test_transfer_keeps_template(self) -> None:
        self.reconcile([7], [9])
        self.reconciler.register_template(self.sid(9), "T{tab_position}", 1)
        self.reconcile([7], [10])
        self.assertEqual(self.reconciler.stable_id_to_template, {2: "T{tab_position}"})
        self.assertEqual(self.reconciler.stable_id_to_last_position, {2: 1})

    def test_no_transfer_across_positions(self) -> None:
        self.reconcile([7], [9])
        result = self.reconcile([7, 10])
        self.assertEqual(result.transfers, [])
        self.assertEqual(result.retired, [2])
        self.assertEqual(self.sid(10), self.sid(7))

    def test_tied_candidates_pick_last_enumerated(self) -> None:
        self.reconcile([7], [9])
        result = self.reconcile([7], [10, 11])
        # Stack-pop order: the last new pane at the position receives the id
        self.assertEqual(result.transfers, [(9, 11, 2)])
        # The other candidate joins the same tab anyway
        self.assertEqual(self.sid(10), 2)
        self.assertEqual(result.allocated, [])

    def test_whole_tab_renumbered(self) -> None:
        self.reconcile([7, 8], [9])
        result = self.reconcile([17, 18], [9])
        self.assertEqual(self.sid(17), 1)
        self.assertEqual(self.sid(18), 1)
        self.assertEqual(len(result.transfers), 2)
        self.assertEqual(result.retired, [])

    def test_transfer_never_overrides_surviving_tab(self) -> None:
        self.reconcile([7], [9])
        self.reconciler.register_template(2, "win-{tab_position}", 1)
        # Tab 0 closes while a new pane opens ahead of 9 in the surviving tab
        result = self.reconcile([10, 9])
        self.assertEqual(self.sid(9), 2)
        self.assertEqual(self.sid(10), 2)
        self.assertEqual(result.transfers, [])
        self.assertEqual(result.retired, [1])
        self.assertEqual(self.reconciler.stable_id_to_template, {2: "win-{tab_position}"})
        self.assert_one_tab_per_stable_id()


class TestRetirement(ReconcilerTestCase):
    def test_closed_tab_retires_id_and_template(self) -> None:
        self.reconcile([7, 8], [9])
        self.reconciler.register_template(2, "win-{tab_position}", 1)
        result = self.reconcile([7, 8])
        self.assertEqual(result.retired, [2])
        self.assertNotIn(9, self.reconciler.pane_to_stable_id)
        self.assertEqual(self.reconciler.stable_id_to_template, {})
        self.assertEqual(self.reconciler.stable_id_to_last_position, {})

    def test_closing_one_of_several_panes_keeps_template(self) -> None:
        self.reconcile([7, 8], [9])
        self.reconciler.register_template(1, "main", 0)
        result = self.reconcile([7], [9])
        self.assertEqual(result.retired, [])
        self.assertEqual(self.reconciler.stable_id_to_template, {1: "main"})

    def test_retired_ids_are_never_reused(self) -> None:
        self.reconcile([1], [2], [3])
        self.reconcile([1])
        self.reconcile([1], [4])
        self.assertEqual(self.sid(4), 4)

    def test_allocations_strictly_increase_over_many_passes(self) -> None:
        allocated: list[int] = []
        next_pane = 100
        tabs: list[list[int]] = [[1]]
        for step in range(12):
            if step % 3 == 2 and len(tabs) > 1:
                tabs.pop(0)
            else:
                tabs.append([next_pane])
                next_pane += 1
            allocated.extend(self.reconcile(*tabs).allocated)
            self.assert_one_tab_per_stable_id()
        self.assertEqual(allocated, sorted(set(allocated)))
        self.assertEqual(self.reconciler.last_allocated, max(allocated))


class TestPaneMoves(ReconcilerTestCase):
    def test_pane_broken_out_to_new_tab_gets_new_id(self) -> None:
        self.reconcile([1, 2])
        result = self.reconcile([1], [2])
        self.assertEqual(self.sid(1), 1)
        self.assertEqual(self.sid(2), 2)
        self.assertEqual(result.allocated, [2])
        self.assertEqual(result.retired, [])
        self.assert_one_tab_per_stable_id()

    def test_pane_joined_into_other_tab_takes_its_id(self) -> None:
        self.reconcile([1, 2], [3])
        self.reconcile([1], [3, 2])
        self.assertEqual(self.sid(2), self.sid(3))
        self.assert_one_tab_per_stable_id()

    def test_last_pane_joined_away_retires_its_tab_id(self) -> None:
        self.reconcile([1], [3])
        self.reconciler.register_template(1, "gone", 0)
        result = self.reconcile([], [3, 1])
        self.assertEqual(self.sid(1), 2)
        self.assertEqual(result.retired, [1])
        self.assertNotIn(1, self.reconciler.stable_id_to_template)


class TestStableIdPositions(ReconcilerTestCase):
    def test_positions_per_stable_id(self) -> None:
        self.reconcile([7, 8], [9])
        self.assertEqual(self.reconciler.stable_id_positions(), {1: 0, 2: 1})


if __name__ == "__main__":
    unittest.main()
