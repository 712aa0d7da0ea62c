"""Tests for the selection coordinator."""

from docspace.components.workspace.selection import SelectionCoordinator


class TestSelectionCoordinator:
    def test_toggle_is_reversible(self):
        selection = SelectionCoordinator("office")
        assert selection.toggle("a") is True
        assert selection.toggle("a") is False
        assert len(selection) == 0

    def test_select_all_and_clear_are_idempotent(self, make_entry):
        entries = [make_entry("a"), make_entry("b")]
        selection = SelectionCoordinator("office")
        selection.select_all(entries)
        selection.select_all(entries)
        assert selection.snapshot().ids == ["a", "b"]
        selection.clear()
        selection.clear()
        assert selection.snapshot().empty

    def test_rescope_clears(self, make_entry):
        selection = SelectionCoordinator("office")
        selection.select_all([make_entry("a")])
        selection.rescope("shared")
        snapshot = selection.snapshot()
        assert snapshot.locationKey == "shared"
        assert snapshot.ids == []

    def test_actions_enabled_only_when_non_empty(self):
        selection = SelectionCoordinator("office")
        assert not selection.actions_enabled
        selection.select("a")
        assert selection.actions_enabled

    def test_resolve_drops_stale_ids_and_keeps_listing_order(self, make_entry):
        listed = [make_entry("c"), make_entry("a"), make_entry("b")]
        selection = SelectionCoordinator("office")
        for entry_id in ("b", "gone", "c"):
            selection.select(entry_id)

        assert [e.id for e in selection.resolve(listed)] == ["c", "b"]
