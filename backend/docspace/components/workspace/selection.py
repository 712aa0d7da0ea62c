"""Multi-select model and bulk action vocabulary.

A selection is a set of Entry ids scoped to exactly one location key.
Rescoping to another location always clears it. Bulk actions never trust the
raw id set: they resolve it against the entries currently listed, so ids of
entries that are no longer present are dropped silently.
"""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from docspace.components.workspace.models import Entry

logger = logging.getLogger(__name__)


class BulkAction(str, Enum):
    delete = "delete"
    restore = "restore"
    permanent_delete = "permanent_delete"
    download = "download"


class KeyBinding(str, Enum):
    """Workspace-wide keyboard shortcuts."""

    select_all = "select_all"  # Ctrl/Cmd+A
    clear = "clear"  # Escape
    delete = "delete"  # Delete / Backspace


class SelectionSet(BaseModel):
    """Snapshot of the current selection."""

    locationKey: str | None = None
    ids: list[str] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.ids


class SelectionCoordinator:
    """Holds the selection for the active location."""

    def __init__(self, location_key: str | None = None):
        self._scope = location_key
        self._ids: dict[str, None] = {}  # insertion-ordered set

    @property
    def scope(self) -> str | None:
        return self._scope

    def rescope(self, location_key: str) -> None:
        """Bind the selection to a new location, dropping everything selected."""
        if self._ids:
            logger.debug(f"Selection cleared ({len(self._ids)} ids) on move to {location_key}")
        self._scope = location_key
        self._ids.clear()

    def toggle(self, entry_id: str) -> bool:
        """Flip one id; returns whether it is selected afterwards."""
        if entry_id in self._ids:
            del self._ids[entry_id]
            return False
        self._ids[entry_id] = None
        return True

    def select(self, entry_id: str) -> None:
        self._ids[entry_id] = None

    def select_all(self, entries: list[Entry]) -> None:
        self._ids = {e.id: None for e in entries}

    def clear(self) -> None:
        self._ids.clear()

    def is_selected(self, entry_id: str) -> bool:
        return entry_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def actions_enabled(self) -> bool:
        return bool(self._ids)

    def snapshot(self) -> SelectionSet:
        return SelectionSet(locationKey=self._scope, ids=list(self._ids))

    def resolve(self, entries: list[Entry]) -> list[Entry]:
        """Selected entries that are still listed, in listing order."""
        resolved = [e for e in entries if e.id in self._ids]
        dropped = len(self._ids) - len(resolved)
        if dropped:
            logger.debug(f"Dropped {dropped} stale selected id(s) in {self._scope}")
        return resolved
