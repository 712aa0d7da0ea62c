"""Workspace data models.

Defines the entities of the document workspace:
- Category / FolderRef / Location: where a listing lives and how it is addressed
- Entry: a cached file or folder record
- Project: external project descriptor with its storage connectivity
- FolderTreeNode: derived sidebar hierarchy node (never persisted)
- BatchReport: succeeded/failed outcome of a multi-item operation

Field names follow the camelCase wire format of the cached entry lists so that
``model_dump`` output can be written to the persistent store as-is.
"""

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

TRASH_KEY = "trash"
GALLERY_KEY = "gallery"
PROJECT_KEY_PREFIX = "project_"

IMAGE_NAME_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg|bmp)$", re.IGNORECASE)


class Category(str, Enum):
    """Top-level document scope."""

    office = "office"
    project = "project"
    shared = "shared"
    gallery = "gallery"
    trash = "trash"


class FolderRef(BaseModel):
    """One navigable folder segment.

    ``kind`` is fixed when the ref is built from a catalog response:
    - id:   database-issued folder identifier (office/shared folders)
    - path: literal storage path fragment (folders under a project root)

    It is never re-derived from the shape of ``value``.
    """

    kind: Literal["id", "path"]
    value: str
    name: str | None = None  # Display name, only meaningful for id refs

    @model_validator(mode="after")
    def _check_value(self) -> "FolderRef":
        if not self.value:
            raise ValueError("FolderRef value must not be empty")
        if self.kind == "path" and "/" in self.value.strip("/"):
            raise ValueError(f"Path fragment must be a single segment: {self.value!r}")
        if self.name and "/" in self.name:
            raise ValueError(f"Folder name must not contain '/': {self.name!r}")
        return self

    @property
    def segment(self) -> str:
        """Cache key segment.

        Id refs are keyed as ``<name>_<id>`` so the folder tree can strip the
        trailing identifier back off for display; path refs use the literal
        fragment.
        """
        if self.kind == "id":
            return f"{self.name}_{self.value}" if self.name else self.value
        return self.value.strip("/")


class Location(BaseModel):
    """A navigable folder scope: (category, project, folder segments)."""

    category: Category
    projectId: str | None = None
    segments: list[FolderRef] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_addressing(self) -> "Location":
        if self.category == Category.project:
            if not self.projectId:
                raise ValueError("Project locations require a projectId")
            if any(ref.kind != "path" for ref in self.segments):
                raise ValueError("Folders under a project root are addressed by storage path")
        elif self.projectId is not None:
            raise ValueError(f"{self.category.value} locations do not take a projectId")
        if self.category in (Category.office, Category.shared):
            if any(ref.kind != "id" for ref in self.segments):
                raise ValueError(f"{self.category.value} folders are addressed by database id")
        if self.category in (Category.gallery, Category.trash) and self.segments:
            raise ValueError(f"{self.category.value} has no sub-folders")
        return self

    @property
    def root_key(self) -> str:
        if self.category == Category.project:
            return f"{PROJECT_KEY_PREFIX}{self.projectId}"
        return self.category.value

    @property
    def key(self) -> str:
        """Cache key: root followed by the folder segments, '/'-joined."""
        return "/".join([self.root_key, *(ref.segment for ref in self.segments)])

    @property
    def current_folder(self) -> FolderRef | None:
        return self.segments[-1] if self.segments else None

    def child(self, ref: FolderRef) -> "Location":
        return Location(category=self.category, projectId=self.projectId, segments=[*self.segments, ref])

    def parent(self) -> "Location":
        return Location(category=self.category, projectId=self.projectId, segments=self.segments[:-1])

    @classmethod
    def trash(cls) -> "Location":
        return cls(category=Category.trash)

    @classmethod
    def gallery(cls) -> "Location":
        return cls(category=Category.gallery)


class ContentRef(BaseModel):
    """Where an entry's bytes live: inline (base64) or behind a remote URL."""

    kind: Literal["local", "remote"]
    mimeType: str = "application/octet-stream"
    data: str | None = None  # base64, local only
    url: str | None = None  # remote only

    @model_validator(mode="after")
    def _check_kind(self) -> "ContentRef":
        if self.kind == "local" and self.data is None:
            raise ValueError("Local content requires data")
        if self.kind == "remote" and not self.url:
            raise ValueError("Remote content requires url")
        return self


class Entry(BaseModel):
    """A file or folder record.

    ``path`` is the cache key of the location the entry is listed in. While
    trashed, ``path`` is the trash key and ``originalPath``/``deletedAt``
    record where it came from and when.
    """

    id: str
    name: str
    kind: Literal["file", "folder"] = "file"
    size: int | None = None  # bytes, None for folders
    lastModified: int | None = None  # ms since epoch
    owner: str = "You"
    path: str | None = None
    originalPath: str | None = None
    deletedAt: int | None = None  # ms since epoch
    contentRef: ContentRef | None = None
    ref: FolderRef | None = None  # folders only: how to navigate into it

    @property
    def is_trashed(self) -> bool:
        return self.path == TRASH_KEY

    @property
    def is_image(self) -> bool:
        if self.kind != "file":
            return False
        if self.contentRef and self.contentRef.mimeType.startswith("image/"):
            return True
        return bool(IMAGE_NAME_PATTERN.search(self.name))


class ConnectivityStatus(BaseModel):
    """Reachability of a project's storage root."""

    connected: bool | None = None  # None = unknown / never checked
    itemCount: int | None = None
    lastError: str | None = None
    checkedAt: int | None = None


class Project(BaseModel):
    """External project descriptor."""

    id: str
    name: str
    remoteFolderPath: str | None = None
    connectivity: ConnectivityStatus = Field(default_factory=ConnectivityStatus)


class FolderTreeNode(BaseModel):
    """Sidebar hierarchy node derived from cached location keys."""

    id: str
    name: str
    path: str
    children: list["FolderTreeNode"] = Field(default_factory=list)
    level: int


class FailedItem(BaseModel):
    """One failed member of a batch operation."""

    name: str
    reason: str
    id: str | None = None
    index: int | None = None


class BatchReport(BaseModel):
    """Succeeded/failed outcome of a batch (upload, restore, download, ...)."""

    succeeded: list[Entry] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)

    def summary(self, verb: str) -> str:
        text = f"{len(self.succeeded)} file(s) {verb}"
        if self.failed:
            text += f", {len(self.failed)} failed"
        return text


class UploadFile(BaseModel):
    """A file handed to the workspace for upload."""

    name: str
    content: bytes
    mimeType: str = "application/octet-stream"


class DownloadedFile(BaseModel):
    """Resolved bytes of one downloaded entry."""

    model_config = ConfigDict(ser_json_bytes="base64")

    entryId: str
    name: str
    mimeType: str
    content: bytes
