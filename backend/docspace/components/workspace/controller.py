"""Workspace controller.

The only component the UI shell talks to. It owns the current Location, the
listed entries and the selection, and orchestrates:

- RemoteCatalogClient: listing, folder creation, uploads, downloads
- DocumentCache: per-location entry lists, trash, gallery aggregation
- LifecycleCoordinator: delete / restore / permanent delete
- SelectionCoordinator: multi-select scoped to the current location

Navigation is last-request-wins: every navigate() takes a monotonic token and
a list response whose token is no longer current is discarded (the request
itself is not cancelled).
"""

import base64
import binascii

from pydantic import BaseModel, Field

from docspace.components.workspace.cache import DocumentCache
from docspace.components.workspace.catalog import RemoteCatalogClient
from docspace.components.workspace.errors import (
    NotConfigured,
    NotFound,
    PartialFailure,
    StorageUnavailable,
    Unauthenticated,
    WorkspaceError,
    message_for,
)
from docspace.components.workspace.folder_tree import build_folder_tree, display_name
from docspace.components.workspace.lifecycle import LifecycleCoordinator, merge_by_id
from docspace.components.workspace.models import (
    GALLERY_KEY,
    PROJECT_KEY_PREFIX,
    BatchReport,
    Category,
    ConnectivityStatus,
    DownloadedFile,
    Entry,
    FailedItem,
    FolderTreeNode,
    Location,
    Project,
    UploadFile,
)
from docspace.components.workspace.notifications import LoggingNotifier, NotificationSink
from docspace.components.workspace.selection import (
    BulkAction,
    KeyBinding,
    SelectionCoordinator,
    SelectionSet,
)
from docspace.components.workspace.session import SessionProvider, has_session
from docspace.settings import Settings, settings as default_settings
from docspace.utils import get_logger

logger = get_logger(__name__)

ROOT_LABELS = {
    Category.office: "Office",
    Category.shared: "Shared",
    Category.gallery: "Image Gallery",
    Category.trash: "Trash",
}


class ActionResult(BaseModel):
    """Outcome of a bulk action or keyboard shortcut."""

    action: BulkAction
    report: BatchReport = Field(default_factory=BatchReport)
    downloads: list[DownloadedFile] = Field(default_factory=list)


def filter_entries(entries: list[Entry], query: str) -> list[Entry]:
    """Case-insensitive substring match on name or owner."""
    needle = query.strip().casefold()
    if not needle:
        return list(entries)
    return [e for e in entries if needle in e.name.casefold() or needle in e.owner.casefold()]


def filter_gallery(entries: list[Entry], name: str = "", project_id: str | None = None) -> list[Entry]:
    """Gallery filters: image name substring and source project."""
    needle = name.strip().casefold()
    result = []
    for entry in entries:
        if needle and needle not in entry.name.casefold():
            continue
        if project_id:
            source = entry.path or ""
            if not (source == f"{PROJECT_KEY_PREFIX}{project_id}"
                    or source.startswith(f"{PROJECT_KEY_PREFIX}{project_id}/")):
                continue
        result.append(entry)
    return result


class WorkspaceController:
    """Stateful facade over the document workspace."""

    def __init__(
        self,
        session: SessionProvider,
        catalog: RemoteCatalogClient,
        cache: DocumentCache,
        notifier: NotificationSink | None = None,
        projects: list[Project] | None = None,
        config: Settings | None = None,
    ):
        self.session = session
        self.catalog = catalog
        self.cache = cache
        self.notifier = notifier or LoggingNotifier()
        self.lifecycle = LifecycleCoordinator(cache, catalog, config or default_settings)

        self.location = Location(category=Category.office)
        self.blocked_reason: str | None = None
        self.projects: dict[str, Project] = {}
        self._entries: list[Entry] = []
        self._nav_token = 0
        self._selection = SelectionCoordinator(self.location.key)
        self.set_projects(projects or [])

    # ==================== Projects ====================

    def set_projects(self, projects: list[Project]) -> None:
        self.projects = {p.id: p for p in projects}

    def project_for(self, location: Location) -> Project | None:
        """Project descriptor of a project location, registering unknown ids."""
        if location.category != Category.project:
            return None
        project = self.projects.get(location.projectId)
        if project is None:
            # Descriptor not known yet: the catalog fetches its root on first use
            project = Project(id=location.projectId, name=location.projectId)
            self.projects[project.id] = project
        return project

    async def refresh_connectivity(self) -> dict[str, ConnectivityStatus]:
        """Probe every known project's storage root, one after another."""
        results = {}
        for project in list(self.projects.values()):
            results[project.id] = await self.catalog.check_connectivity(project)
        return results

    # ==================== Navigation ====================

    async def navigate(self, location: Location) -> bool:
        """Switch to a location and load its entries.

        Returns:
            False when the listing was superseded by a later navigation
        """
        self._nav_token += 1
        token = self._nav_token
        self.location = location
        self.blocked_reason = None
        self._selection.rescope(location.key)

        if location.category in (Category.trash, Category.gallery):
            self._entries = self._local_listing(location)
            return True
        if not has_session(self.session):
            self._entries = []
            return True

        project = self.project_for(location)
        try:
            entries = await self.catalog.list(location, project)
        except Unauthenticated:
            if token != self._nav_token:
                return False
            self._entries = []
            return True
        except NotConfigured as e:
            if token != self._nav_token:
                return False
            self.blocked_reason = message_for(e)
            self.notifier.error(self.blocked_reason)
            self._entries = []
            return True
        except WorkspaceError as e:
            if token != self._nav_token:
                return False
            if isinstance(e, NotFound):
                self.notifier.warning(message_for(e))
            else:
                self.notifier.error(message_for(e))
            logger.warning(f"Listing {location.key} failed ({e.message}), showing cached entries")
            self._entries = self._local_listing(location)
            return True

        if token != self._nav_token:
            logger.debug(f"Discarding stale listing for {location.key} (token {token} < {self._nav_token})")
            return False

        # Trashed and locally removed objects still exist remotely
        try:
            hidden = {e.id for e in self.cache.read_trash()} | self.cache.read_removed()
        except StorageUnavailable as e:
            self.notifier.error(message_for(e))
            self._entries = []
            return True
        entries = [e for e in entries if e.id not in hidden]
        if location.category != Category.shared:
            self._remember(location.key, entries)
        self._entries = entries
        return True

    async def open_folder(self, entry_id: str) -> bool:
        entry = next((e for e in self._entries if e.id == entry_id), None)
        if entry is None or entry.kind != "folder" or entry.ref is None:
            raise ValueError(f"{entry_id} is not a folder in {self.location.key}")
        return await self.navigate(self.location.child(entry.ref))

    async def go_up(self) -> bool:
        return await self.navigate(self.location.parent())

    def breadcrumb(self) -> list[str]:
        if self.location.category == Category.project:
            project = self.projects.get(self.location.projectId)
            root = project.name if project else self.location.projectId
        else:
            root = ROOT_LABELS[self.location.category]
        return [root, *(ref.name or display_name(ref.segment) for ref in self.location.segments)]

    def _local_listing(self, location: Location) -> list[Entry]:
        try:
            if location.category == Category.trash:
                return self.cache.read_trash()
            if location.category == Category.gallery:
                return self.cache.gallery_images()
            return self.cache.read(location.key)
        except StorageUnavailable as e:
            self.notifier.error(message_for(e))
            return []

    def _remember(self, location_key: str, entries: list[Entry]) -> bool:
        try:
            self.cache.write(location_key, entries)
        except WorkspaceError as e:
            self.notifier.warning(message_for(e))
            return False
        return True

    # ==================== Views ====================

    def current_entries(self) -> list[Entry]:
        return list(self._entries)

    def visible_entries(
        self, query: str = "", image_name: str = "", project_id: str | None = None
    ) -> list[Entry]:
        entries = filter_entries(self._entries, query)
        if self.location.category == Category.gallery:
            entries = filter_gallery(entries, image_name, project_id)
        return entries

    def folder_tree(self, base_path: str) -> list[FolderTreeNode]:
        return build_folder_tree(base_path, self.cache.location_keys())

    def usage(self) -> dict:
        return self.cache.usage()

    # ==================== Selection ====================

    def selection(self) -> SelectionSet:
        return self._selection.snapshot()

    def toggle_selection(self, entry_id: str) -> bool:
        return self._selection.toggle(entry_id)

    def select_all(self) -> None:
        self._selection.select_all(self._entries)

    def clear_selection(self) -> None:
        self._selection.clear()

    async def handle_key(self, binding: KeyBinding) -> ActionResult | None:
        """Dispatch a keyboard shortcut; delete is inert with nothing selected."""
        if binding == KeyBinding.select_all:
            self.select_all()
            return None
        if binding == KeyBinding.clear:
            self.clear_selection()
            return None
        if not self._selection.actions_enabled:
            return None
        if self.location.category == Category.trash:
            return await self.perform(BulkAction.permanent_delete)
        return await self.perform(BulkAction.delete)

    # ==================== Mutations ====================

    def _writable(self, what: str) -> bool:
        if self.location.category in (Category.gallery, Category.trash):
            self.notifier.warning(f"{what} is not available in {ROOT_LABELS[self.location.category]}")
            return False
        if self.blocked_reason:
            self.notifier.error(self.blocked_reason)
            return False
        return True

    def _merge_into(self, location: Location, incoming: list[Entry]) -> None:
        """Add entries to a location's bucket and, if still shown, to the listing."""
        if location.category != Category.shared:
            try:
                cached = self.cache.read(location.key)
            except StorageUnavailable as e:
                self.notifier.warning(message_for(e))
            else:
                self._remember(location.key, merge_by_id(cached, incoming))
        if self.location.key == location.key:
            self._entries = merge_by_id(self._entries, incoming)

    async def create_folder(self, name: str) -> Entry | None:
        name = name.strip()
        if not name:
            self.notifier.warning("Please enter a folder name")
            return None
        if "/" in name:
            self.notifier.warning("Folder names cannot contain '/'")
            return None
        if not self._writable("Creating folders"):
            return None

        location = self.location
        try:
            folder = await self.catalog.create_folder(location, name, self.project_for(location))
        except Unauthenticated:
            return None
        except WorkspaceError as e:
            if isinstance(e, NotConfigured) and self.location.key == location.key:
                self.blocked_reason = message_for(e)
            self.notifier.error(message_for(e))
            return None

        self._merge_into(location, [folder])
        if folder.ref is not None and location.category != Category.shared:
            child_key = location.child(folder.ref).key
            try:
                missing = not self.cache.has(child_key)
            except StorageUnavailable as e:
                logger.warning(f"Could not check cached bucket {child_key}: {e.message}")
                missing = False
            if missing:
                self._remember(child_key, [])
        self.notifier.success(f"Folder '{name}' created")
        return folder

    async def upload(self, files: list[UploadFile]) -> BatchReport:
        """Upload files into the current location in one batch.

        Images uploaded into ``shared`` are mirrored into the gallery bucket,
        since shared listings are never cached.
        """
        if not files:
            return BatchReport()
        if not self._writable("Uploading"):
            return BatchReport(
                failed=[FailedItem(name=f.name, index=i, reason="Upload not allowed here") for i, f in enumerate(files)]
            )

        location = self.location
        try:
            report = await self.catalog.upload(location, files, self.project_for(location))
        except PartialFailure as e:
            self.notifier.error(f"Upload failed: {e.report.summary('uploaded')}")
            return e.report
        except WorkspaceError as e:
            if not isinstance(e, Unauthenticated):
                self.notifier.error(message_for(e))
            return BatchReport(
                failed=[FailedItem(name=f.name, index=i, reason=message_for(e)) for i, f in enumerate(files)]
            )

        self._merge_into(location, report.succeeded)
        if location.category == Category.shared:
            mirrors = [
                e.model_copy(update={"id": f"{e.id}_gallery", "path": GALLERY_KEY})
                for e in report.succeeded
                if e.is_image
            ]
            if mirrors:
                self._merge_into(Location.gallery(), mirrors)

        if report.partial:
            self.notifier.warning(f"Upload finished: {report.summary('uploaded')}")
        else:
            self.notifier.success(report.summary("uploaded"))
        return report

    async def perform(self, action: BulkAction) -> ActionResult:
        """Run a bulk action on the selected entries that are still listed."""
        targets = self._selection.resolve(self._entries)
        result = ActionResult(action=action)
        if not targets:
            logger.debug(f"Bulk {action.value} ignored: nothing selected in {self.location.key}")
            return result

        if action == BulkAction.download:
            result.downloads, result.report = await self.download(targets)
            return result

        if action == BulkAction.delete:
            if self.location.category == Category.trash:
                return await self.perform(BulkAction.permanent_delete)
            try:
                trashed = self.lifecycle.delete(targets, self.location.key)
            except WorkspaceError as e:
                self.notifier.error(message_for(e))
                result.report.failed = [FailedItem(id=t.id, name=t.name, reason=message_for(e)) for t in targets]
                return result
            moved = {e.id for e in trashed}
            self._entries = [e for e in self._entries if e.id not in moved]
            result.report.succeeded = trashed
            self.notifier.success(f"{len(trashed)} item(s) moved to trash")
        elif action == BulkAction.restore:
            result.report = self.lifecycle.restore(targets)
            self._after_trash_change(result.report, "restored")
        elif action == BulkAction.permanent_delete:
            try:
                result.report = await self.lifecycle.permanently_delete(targets)
            except WorkspaceError as e:
                result.report.failed = [FailedItem(id=t.id, name=t.name, reason=message_for(e)) for t in targets]
            self._after_trash_change(result.report, "permanently deleted")

        self._selection.clear()
        return result

    def _after_trash_change(self, report: BatchReport, verb: str) -> None:
        if self.location.category == Category.trash:
            self._entries = self._local_listing(self.location)
        if report.ok:
            self.notifier.success(report.summary(verb))
        elif report.succeeded:
            self.notifier.warning(report.summary(verb))
        else:
            self.notifier.error(report.summary(verb))

    async def download(self, entries: list[Entry]) -> tuple[list[DownloadedFile], BatchReport]:
        """Resolve each entry's bytes in turn; one failure does not stop the rest."""
        files: list[DownloadedFile] = []
        report = BatchReport()
        for entry in entries:
            try:
                content = await self._content_of(entry)
            except (WorkspaceError, ValueError) as e:
                reason = message_for(e) if isinstance(e, WorkspaceError) else str(e)
                logger.warning(f"Download of {entry.id} failed: {reason}")
                report.failed.append(FailedItem(id=entry.id, name=entry.name, reason=reason))
                continue
            files.append(
                DownloadedFile(
                    entryId=entry.id,
                    name=entry.name,
                    mimeType=entry.contentRef.mimeType,
                    content=content,
                )
            )
            report.succeeded.append(entry)

        if report.failed:
            self.notifier.warning(f"Download finished: {report.summary('downloaded')}")
        return files, report

    async def _content_of(self, entry: Entry) -> bytes:
        if entry.kind == "folder":
            raise ValueError("Folders cannot be downloaded")
        if entry.contentRef is None:
            raise ValueError("No content available")
        if entry.contentRef.kind == "local":
            try:
                return base64.b64decode(entry.contentRef.data, validate=True)
            except binascii.Error as e:
                raise ValueError("Stored content is corrupt") from e
        return await self.catalog.download(entry.contentRef)
