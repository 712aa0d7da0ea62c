"""Document Workspace Module.

This module provides the state manager behind the document browser: a
virtual folder hierarchy over the remote document catalog, a bounded local
cache, the trash lifecycle and multi-select bulk actions.

Components:
- models.py: Location, FolderRef, Entry, Project and batch report models
- folder_tree.py: Sidebar tree rebuilt from cached location keys
- catalog.py: Async client for the remote document catalog
- store.py / cache.py: Persistent key/value store and quota-aware cache
- lifecycle.py: Soft-delete, restore and permanent delete
- selection.py: Selection set and bulk action vocabulary
- controller.py: WorkspaceController, the facade used by the UI and the API

Usage:
    from docspace.components.workspace import (
        WorkspaceController,
        RemoteCatalogClient,
        DocumentCache,
        Location,
        Category,
    )
"""

from docspace.components.workspace.cache import DocumentCache
from docspace.components.workspace.catalog import RemoteCatalogClient
from docspace.components.workspace.controller import (
    ActionResult,
    WorkspaceController,
    filter_entries,
    filter_gallery,
)
from docspace.components.workspace.errors import (
    NotConfigured,
    NotFound,
    PartialFailure,
    QuotaExceeded,
    RateLimited,
    ServerError,
    StorageUnavailable,
    TransportError,
    Unauthenticated,
    Unauthorized,
    ValidationFailed,
    WorkspaceError,
    message_for,
)
from docspace.components.workspace.folder_tree import build_folder_tree, display_name
from docspace.components.workspace.lifecycle import LifecycleCoordinator
from docspace.components.workspace.models import (
    BatchReport,
    Category,
    ConnectivityStatus,
    ContentRef,
    DownloadedFile,
    Entry,
    FailedItem,
    FolderRef,
    FolderTreeNode,
    Location,
    Project,
    UploadFile,
)
from docspace.components.workspace.notifications import LoggingNotifier, RecordingNotifier
from docspace.components.workspace.selection import BulkAction, KeyBinding, SelectionCoordinator, SelectionSet
from docspace.components.workspace.session import RequestSessionProvider, StaticSessionProvider
from docspace.components.workspace.store import (
    MemoryKeyValueStore,
    RedisKeyValueStore,
    get_document_store,
    reset_document_store,
)

__all__ = [
    # Models
    "Category",
    "FolderRef",
    "Location",
    "ContentRef",
    "Entry",
    "Project",
    "ConnectivityStatus",
    "FolderTreeNode",
    "FailedItem",
    "BatchReport",
    "UploadFile",
    "DownloadedFile",
    # Errors
    "WorkspaceError",
    "Unauthenticated",
    "Unauthorized",
    "NotFound",
    "ValidationFailed",
    "RateLimited",
    "ServerError",
    "TransportError",
    "NotConfigured",
    "QuotaExceeded",
    "StorageUnavailable",
    "PartialFailure",
    "message_for",
    # Storage
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "get_document_store",
    "reset_document_store",
    "DocumentCache",
    # Components
    "build_folder_tree",
    "display_name",
    "RemoteCatalogClient",
    "LifecycleCoordinator",
    "SelectionCoordinator",
    "SelectionSet",
    "BulkAction",
    "KeyBinding",
    "RequestSessionProvider",
    "StaticSessionProvider",
    "LoggingNotifier",
    "RecordingNotifier",
    "WorkspaceController",
    "ActionResult",
    "filter_entries",
    "filter_gallery",
]
