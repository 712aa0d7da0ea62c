"""Soft-delete / restore / permanent-delete lifecycle.

States of an entry:

    Active(location) --delete--> Trashed(originalPath, deletedAt)
    Trashed --restore--> Active(originalPath)
    Trashed --permanently_delete--> PermanentlyRemoved

There is no Active -> PermanentlyRemoved edge: permanent deletion only ever
acts on entries found in the trash bucket.

Atomicity:
- delete is all-or-nothing per batch: the trash bucket is written first and
  the source buckets only after it succeeded; a failed source write rolls the
  trash bucket back. A trash write that does not fit drops the oldest
  trashed entries beyond the retention minimum, never the ones being moved.
- restore is atomic per entry: the target bucket is written first and the
  entry leaves the trash only after that write succeeded.
"""

from collections.abc import Iterable

from docspace.components.workspace.cache import DocumentCache
from docspace.components.workspace.catalog import RemoteCatalogClient
from docspace.components.workspace.errors import WorkspaceError, message_for
from docspace.components.workspace.models import TRASH_KEY, BatchReport, Category, Entry, FailedItem
from docspace.settings import Settings, settings as default_settings
from docspace.utils import get_logger, get_timestamp_ms

logger = get_logger(__name__)


def is_cached_location(location_key: str) -> bool:
    """Shared listings are remote-only, so no shared bucket is ever written."""
    return location_key.split("/", 1)[0] != Category.shared.value


def merge_by_id(entries: list[Entry], incoming: Iterable[Entry]) -> list[Entry]:
    """Append ``incoming`` to ``entries``, replacing any entry with the same id in place."""
    result = list(entries)
    positions = {e.id: i for i, e in enumerate(result)}
    for entry in incoming:
        if entry.id in positions:
            result[positions[entry.id]] = entry
        else:
            positions[entry.id] = len(result)
            result.append(entry)
    return result


class LifecycleCoordinator:
    """Executes lifecycle transitions against the document cache (and, by policy, the catalog)."""

    def __init__(
        self,
        cache: DocumentCache,
        catalog: RemoteCatalogClient | None = None,
        config: Settings | None = None,
    ):
        config = config or default_settings
        self.cache = cache
        self.catalog = catalog
        self.fallback_root = config.restore_fallback_root
        self.permanent_delete_policy = config.permanent_delete_policy

    # ==================== delete ====================

    def delete(self, entries: list[Entry], from_location: str) -> list[Entry]:
        """Move entries to the trash.

        Each entry's source bucket is its own ``path`` (falling back to
        ``from_location``); that bucket becomes its ``originalPath``.

        Returns:
            The trashed copies, in input order

        Raises:
            QuotaExceeded: The trash bucket could not be written; nothing moved
            StorageUnavailable: The store could not be read or written; nothing moved
            ValueError: An entry is already in the trash
        """
        if not entries:
            return []
        for entry in entries:
            if entry.is_trashed:
                raise ValueError(f"Entry {entry.id} is already in the trash")

        now = get_timestamp_ms()
        trashed: list[Entry] = []
        by_source: dict[str, set[str]] = {}
        for entry in entries:
            source = entry.path or from_location
            by_source.setdefault(source, set()).add(entry.id)
            trashed.append(
                entry.model_copy(update={"path": TRASH_KEY, "originalPath": source, "deletedAt": now})
            )

        trash_before = self.cache.raw(TRASH_KEY)
        self.cache.write(
            TRASH_KEY, merge_by_id(self.cache.read_trash(), trashed), keep_ids=[e.id for e in trashed]
        )

        written: list[tuple[str, str | None]] = []
        try:
            for source, ids in by_source.items():
                if not is_cached_location(source):
                    continue
                raw_before = self.cache.raw(source)
                remaining = [e for e in self.cache.read(source) if e.id not in ids]
                self.cache.write(source, remaining)
                written.append((source, raw_before))
        except WorkspaceError:
            logger.error(f"Rolling back trash move of {len(entries)} entries from {from_location}")
            for source, raw_before in reversed(written):
                self.cache.restore_raw(source, raw_before)
            self.cache.restore_raw(TRASH_KEY, trash_before)
            raise

        logger.info(f"Moved {len(trashed)} entries to trash from {', '.join(by_source)}")
        return trashed

    # ==================== restore ====================

    def resolve_restore_target(self, entry: Entry) -> str:
        if entry.originalPath:
            return entry.originalPath
        logger.warning(f"Entry {entry.id} has no original location, restoring to {self.fallback_root}")
        return self.fallback_root

    def restore(self, entries: list[Entry]) -> BatchReport:
        """Return trashed entries to their original locations, one at a time.

        Entries whose target write fails stay in the trash and are reported
        in ``failed``.
        """
        report = BatchReport()
        for entry in entries:
            try:
                restored = self._restore_one(entry)
            except WorkspaceError as e:
                logger.warning(f"Restore of {entry.id} failed: {e.message}")
                report.failed.append(FailedItem(id=entry.id, name=entry.name, reason=message_for(e)))
                continue
            if restored is None:
                report.failed.append(FailedItem(id=entry.id, name=entry.name, reason="Not in trash"))
                continue
            report.succeeded.append(restored)

        logger.info(f"Restore: {report.summary('restored')}")
        return report

    def _restore_one(self, entry: Entry) -> Entry | None:
        if not any(e.id == entry.id for e in self.cache.read_trash()):
            return None

        target = self.resolve_restore_target(entry)
        restored = entry.model_copy(update={"path": target, "originalPath": None, "deletedAt": None})

        cached_target = is_cached_location(target)
        target_before = None
        if cached_target:
            target_before = self.cache.raw(target)
            self.cache.write(target, merge_by_id(self.cache.read(target), [restored]))

        try:
            # Target write may have evicted trash entries, start from the stored list
            self.cache.write(TRASH_KEY, [e for e in self.cache.read_trash() if e.id != entry.id])
        except WorkspaceError:
            if cached_target:
                self.cache.restore_raw(target, target_before)
            raise
        return restored

    # ==================== permanent delete ====================

    async def permanently_delete(self, entries: list[Entry]) -> BatchReport:
        """Remove entries from the trash for good.

        Policy ``local_only`` (default) drops the cached trash entries without
        contacting the catalog and records their ids as removed, so remote
        listings keep hiding them. Policy ``remote`` deletes each object
        through the catalog first and keeps entries whose remote delete failed.

        Raises:
            StorageUnavailable: The trash could not be read; nothing changed
        """
        report = BatchReport()
        in_trash = {e.id for e in self.cache.read_trash()}
        remote = self.permanent_delete_policy == "remote" and self.catalog is not None

        removable: list[Entry] = []
        for entry in entries:
            if entry.id not in in_trash:
                report.failed.append(FailedItem(id=entry.id, name=entry.name, reason="Not in trash"))
                continue
            if remote:
                try:
                    await self.catalog.delete(entry)
                except WorkspaceError as e:
                    report.failed.append(FailedItem(id=entry.id, name=entry.name, reason=message_for(e)))
                    continue
            removable.append(entry)

        if not removable:
            return report

        # Re-read after the awaits above so the write starts from the latest snapshot
        doomed = {e.id for e in removable}
        try:
            trash_before = self.cache.raw(TRASH_KEY)
            self.cache.write(TRASH_KEY, [e for e in self.cache.read_trash() if e.id not in doomed])
            if not remote:
                try:
                    self.cache.mark_removed(doomed)
                except WorkspaceError:
                    self.cache.restore_raw(TRASH_KEY, trash_before)
                    raise
        except WorkspaceError as e:
            report.failed.extend(
                FailedItem(id=entry.id, name=entry.name, reason=message_for(e)) for entry in removable
            )
            return report

        report.succeeded.extend(removable)
        logger.info(
            f"Permanently deleted {len(removable)} entries (policy={self.permanent_delete_policy})"
        )
        return report
