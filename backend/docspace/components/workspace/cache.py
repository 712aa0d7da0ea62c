"""Quota-aware local document cache.

One JSON entry list per location key, stored under ``documents_<location key>``
in a PersistentKeyValueStore. The store as a whole shares a byte budget
(``cache_quota_bytes``); writes go through a two-phase check:

1. Estimate the new value, compare with the budget left by every other key.
2. If it does not fit, make room and re-check. For ordinary buckets that means
   evicting the oldest stored trash entries (by ``deletedAt``) down to
   ``trash_min_retained``; for the trash bucket itself the value being written
   is trimmed the same way, sparing the entries that are being trashed now.
3. Write. If the store itself refuses (``StoreFull``) and no room has been made
   yet, make room and retry exactly once. A second refusal raises
   QuotaExceeded and leaves the previously stored value untouched.

A missing key reads as an empty list; a store that cannot be reached raises
StorageUnavailable so read-modify-write callers never overwrite real data.

Ids removed for good while their objects still exist remotely are kept in a
tombstone set (``removed_ids``) outside the ``documents_`` namespace.
"""

import json
import logging
from collections.abc import Callable, Iterable
from contextlib import contextmanager

from pydantic import TypeAdapter, ValidationError

from docspace.components.workspace.errors import QuotaExceeded, StorageUnavailable
from docspace.components.workspace.models import GALLERY_KEY, TRASH_KEY, Entry
from docspace.components.workspace.store import PersistentKeyValueStore, StoreFull, StoreUnavailable
from docspace.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

DOCUMENTS_PREFIX = "documents_"
REMOVED_IDS_KEY = "removed_ids"

_entry_list = TypeAdapter(list[Entry])
_id_list = TypeAdapter(list[str])


@contextmanager
def store_errors(action: str):
    """Translate store outages into StorageUnavailable."""
    try:
        yield
    except StoreUnavailable as e:
        logger.error(f"Store unavailable while {action}: {e}")
        raise StorageUnavailable(f"Local storage is unavailable ({action})") from e


class DocumentCache:
    """Per-location entry lists with a bounded total size."""

    def __init__(
        self,
        store: PersistentKeyValueStore,
        quota_bytes: int | None = None,
        trash_min_retained: int | None = None,
        config: Settings | None = None,
    ):
        config = config or default_settings
        self.store = store
        self.quota_bytes = quota_bytes if quota_bytes is not None else config.cache_quota_bytes
        self.trash_min_retained = (
            trash_min_retained if trash_min_retained is not None else config.trash_min_retained
        )

    # ==================== Keys ====================

    @staticmethod
    def store_key(location_key: str) -> str:
        return f"{DOCUMENTS_PREFIX}{location_key}"

    def location_keys(self, prefix: str = "") -> list[str]:
        """Cached location keys, optionally limited to a key prefix."""
        with store_errors("listing cached locations"):
            keys = self.store.keys_with_prefix(f"{DOCUMENTS_PREFIX}{prefix}")
        return [key[len(DOCUMENTS_PREFIX):] for key in keys]

    def has(self, location_key: str) -> bool:
        return self.raw(location_key) is not None

    # ==================== Read ====================

    def read(self, location_key: str) -> list[Entry]:
        """Entries cached for a location; a missing or unparseable value is an empty list.

        Raises:
            StorageUnavailable: The store could not be read
        """
        raw = self.raw(location_key)
        if raw is None:
            return []
        try:
            return _entry_list.validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable cache value for {location_key}: {e}")
            return []

    def read_trash(self) -> list[Entry]:
        return self.read(TRASH_KEY)

    def raw(self, location_key: str) -> str | None:
        with store_errors(f"reading {location_key}"):
            return self.store.get(self.store_key(location_key))

    # ==================== Write ====================

    @staticmethod
    def serialize(entries: list[Entry]) -> str:
        return json.dumps(
            [e.model_dump(mode="json", exclude_none=True) for e in entries],
            separators=(",", ":"),
        )

    def available_for(self, store_key: str) -> int:
        """Budget left for ``store_key``, counting everything except its current value."""
        with store_errors("measuring usage"):
            occupied = self.store.total_size()
            existing = self.store.get(store_key)
        if existing is not None:
            occupied -= self.store.estimate_size(store_key, existing)
        return self.quota_bytes - occupied

    def write(self, location_key: str, entries: list[Entry], keep_ids: Iterable[str] = ()) -> list[Entry]:
        """Persist the entry list for a location.

        ``keep_ids`` only matters for the trash bucket: those entries survive
        trimming when the trash value has to shrink to fit.

        Returns:
            The entries actually stored (the trash may come back trimmed)

        Raises:
            QuotaExceeded: The value does not fit even after making room;
                the stored value is unchanged.
            StorageUnavailable: The store failed for another reason.
        """
        key = self.store_key(location_key)
        value = self.serialize(entries)
        stored_entries = entries

        if location_key == TRASH_KEY:
            keep = set(keep_ids)

            def make_room() -> str:
                nonlocal stored_entries
                stored_entries = self.trim_trash(entries, keep)
                dropped = len(entries) - len(stored_entries)
                if dropped:
                    logger.warning(f"Trimmed {dropped} old trash entries to fit the trash write")
                return self.serialize(stored_entries)
        else:
            def make_room() -> str:
                self.evict_trash(reason=f"writing {location_key}")
                return value

        self._put(key, location_key, value, make_room)
        logger.debug(f"Cache set: {location_key} ({len(stored_entries)} entries)")
        return stored_entries

    def _put(self, key: str, label: str, value: str, make_room: Callable[[], str]) -> None:
        """Quota-checked set with one round of room-making and one StoreFull retry."""
        required = self.store.estimate_size(key, value)
        made_room = False

        available = self.available_for(key)
        if required > available:
            made_room = True
            value = make_room()
            required = self.store.estimate_size(key, value)
            available = self.available_for(key)
            if required > available:
                logger.warning(f"Cache write rejected for {label}: need {required} bytes, {available} available")
                raise QuotaExceeded(label, required, available)

        try:
            stored = self.store.set(key, value)
        except StoreFull as first_error:
            if made_room:
                raise QuotaExceeded(label, required, self.available_for(key)) from first_error
            logger.info(f"Store refused {label} ({first_error}), making room and retrying once")
            value = make_room()
            required = self.store.estimate_size(key, value)
            try:
                stored = self.store.set(key, value)
            except StoreFull as retry_error:
                logger.error(f"Store refused {label} after making room: {retry_error}")
                raise QuotaExceeded(label, required, self.available_for(key)) from retry_error

        if not stored:
            raise StorageUnavailable(f"Could not save documents for {label}")

    def restore_raw(self, location_key: str, raw: str | None) -> None:
        """Put back a previously read raw value (rollback helper, bypasses the quota check)."""
        key = self.store_key(location_key)
        if raw is None:
            self.store.remove(key)
        else:
            self.store.set(key, raw)

    def remove(self, location_key: str) -> bool:
        return self.store.remove(self.store_key(location_key))

    # ==================== Removed ids ====================

    def read_removed(self) -> set[str]:
        """Ids permanently removed locally; remote listings must keep hiding them."""
        with store_errors("reading removed ids"):
            raw = self.store.get(REMOVED_IDS_KEY)
        if raw is None:
            return set()
        try:
            return set(_id_list.validate_json(raw))
        except ValidationError as e:
            logger.error(f"Discarding unreadable removed-id set: {e}")
            return set()

    def mark_removed(self, ids: Iterable[str]) -> None:
        removed = self.read_removed()
        new_ids = set(ids) - removed
        if not new_ids:
            return
        value = json.dumps(sorted(removed | new_ids), separators=(",", ":"))

        def make_room() -> str:
            self.evict_trash(reason="recording removed ids")
            return value

        self._put(REMOVED_IDS_KEY, "removed ids", value, make_room)
        logger.debug(f"Recorded {len(new_ids)} removed ids")

    def raw_removed(self) -> str | None:
        with store_errors("reading removed ids"):
            return self.store.get(REMOVED_IDS_KEY)

    def restore_raw_removed(self, raw: str | None) -> None:
        if raw is None:
            self.store.remove(REMOVED_IDS_KEY)
        else:
            self.store.set(REMOVED_IDS_KEY, raw)

    # ==================== Eviction ====================

    def trim_trash(self, entries: list[Entry], keep_ids: Iterable[str] = ()) -> list[Entry]:
        """Drop the oldest entries (by ``deletedAt``) beyond ``trash_min_retained``.

        Entries in ``keep_ids`` are never dropped; survivors keep their order.
        """
        keep = set(keep_ids)
        excess = len(entries) - self.trash_min_retained
        if excess <= 0:
            return list(entries)
        candidates = sorted(
            (i for i, entry in enumerate(entries) if entry.id not in keep),
            key=lambda i: entries[i].deletedAt or 0,
        )
        doomed = set(candidates[:excess])
        return [entry for i, entry in enumerate(entries) if i not in doomed]

    def evict_trash(self, reason: str = "") -> int:
        """Drop the oldest stored trash entries down to ``trash_min_retained``.

        Returns the number evicted.
        """
        trash = self.read_trash()
        kept = self.trim_trash(trash)
        evicted = len(trash) - len(kept)
        if not evicted:
            logger.debug(f"Trash eviction skipped ({len(trash)} entries, min {self.trash_min_retained})")
            return 0

        # Shrinking write: no quota check needed
        key = self.store_key(TRASH_KEY)
        try:
            self.store.set(key, self.serialize(kept))
        except StoreFull as e:
            logger.error(f"Store refused shrinking trash write: {e}")
            return 0
        logger.warning(f"Evicted {evicted} old trash entries" + (f" ({reason})" if reason else ""))
        return evicted

    # ==================== Aggregates ====================

    def usage(self) -> dict:
        """Occupied/available bytes against the configured quota."""
        with store_errors("measuring usage"):
            occupied = self.store.total_size()
        return {
            "used_bytes": occupied,
            "quota_bytes": self.quota_bytes,
            "available_bytes": max(self.quota_bytes - occupied, 0),
            "percent": round(occupied / self.quota_bytes * 100, 1) if self.quota_bytes > 0 else 0,
        }

    def gallery_images(self) -> list[Entry]:
        """Images from every cached bucket, then the gallery bucket, de-duplicated.

        Duplicates are detected by (name, size, lastModified); the first
        occurrence wins, so an image's own folder takes precedence over its
        gallery mirror. Result is newest first.
        """
        seen: set[tuple] = set()
        images: list[Entry] = []
        source_keys = [k for k in self.location_keys() if k not in (TRASH_KEY, GALLERY_KEY)]
        for location_key in [*source_keys, GALLERY_KEY]:
            for entry in self.read(location_key):
                if not entry.is_image:
                    continue
                identity = (entry.name, entry.size, entry.lastModified)
                if identity in seen:
                    continue
                seen.add(identity)
                if entry.path is None:
                    entry = entry.model_copy(update={"path": location_key})
                images.append(entry)
        images.sort(key=lambda e: e.lastModified or 0, reverse=True)
        return images
