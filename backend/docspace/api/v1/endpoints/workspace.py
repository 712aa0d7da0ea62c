"""Workspace API endpoints.

HTTP surface over the WorkspaceController: navigation, listing, selection,
bulk actions, folder tree, folder creation, uploads and project
connectivity.

The API serves a single workspace: location, listing and selection live in
one process-wide controller. The bearer token, however, is bound per request
through a RequestSessionProvider, so a request without a token never signs
out another request that is still awaiting the catalog. Without a token,
remote calls are suppressed.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Header, HTTPException
from fastapi import UploadFile as UploadedFile
from pydantic import BaseModel, Field

from docspace.components.workspace import (
    ActionResult,
    BatchReport,
    BulkAction,
    Category,
    ConnectivityStatus,
    DocumentCache,
    Entry,
    FolderRef,
    FolderTreeNode,
    KeyBinding,
    Location,
    Project,
    RecordingNotifier,
    RemoteCatalogClient,
    SelectionSet,
    RequestSessionProvider,
    UploadFile,
    WorkspaceController,
    get_document_store,
)
from docspace.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== Schemas ====================


class NavigateRequest(BaseModel):
    category: Category
    projectId: str | None = None
    segments: list[FolderRef] = Field(default_factory=list)


class CreateFolderRequest(BaseModel):
    name: str


class WorkspaceView(BaseModel):
    """Everything the shell needs to render the current location."""

    location: Location
    locationKey: str
    breadcrumb: list[str]
    entries: list[Entry]
    selection: SelectionSet
    blockedReason: str | None = None
    stale: bool = False


class NotificationOut(BaseModel):
    level: str
    message: str


# ==================== Controller dependency ====================

_controller: WorkspaceController | None = None


def get_controller() -> WorkspaceController:
    """Process-wide controller built from settings (created on first use)."""
    global _controller
    if _controller is None:
        session = RequestSessionProvider()
        _controller = WorkspaceController(
            session=session,
            catalog=RemoteCatalogClient(session),
            cache=DocumentCache(get_document_store()),
            notifier=RecordingNotifier(),
        )
        logger.info(f"Workspace controller ready (catalog={settings.catalog_base_url})")
    return _controller


def set_controller(controller: WorkspaceController | None) -> None:
    """Replace the controller singleton (for testing)."""
    global _controller
    _controller = controller


async def bind_session(
    controller: Annotated[WorkspaceController, Depends(get_controller)],
    authorization: Annotated[str | None, Header()] = None,
) -> WorkspaceController:
    """Bind the request's bearer token to the request-scoped session."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    controller.session.bind(token)
    return controller


Controller = Annotated[WorkspaceController, Depends(bind_session)]


def _view(controller: WorkspaceController, stale: bool = False) -> WorkspaceView:
    return WorkspaceView(
        location=controller.location,
        locationKey=controller.location.key,
        breadcrumb=controller.breadcrumb(),
        entries=controller.current_entries(),
        selection=controller.selection(),
        blockedReason=controller.blocked_reason,
        stale=stale,
    )


# ==================== Navigation ====================


@router.get("", response_model=WorkspaceView)
async def get_workspace(controller: Controller) -> WorkspaceView:
    return _view(controller)


@router.post("/navigate", response_model=WorkspaceView)
async def navigate(request: NavigateRequest, controller: Controller) -> WorkspaceView:
    """Navigate to a location.

    Raises:
        HTTPException: 422 if the folder refs do not fit the category
    """
    try:
        location = Location(category=request.category, projectId=request.projectId, segments=request.segments)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    current = await controller.navigate(location)
    return _view(controller, stale=not current)


@router.post("/open/{entry_id}", response_model=WorkspaceView)
async def open_folder(entry_id: str, controller: Controller) -> WorkspaceView:
    try:
        current = await controller.open_folder(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _view(controller, stale=not current)


@router.post("/up", response_model=WorkspaceView)
async def go_up(controller: Controller) -> WorkspaceView:
    current = await controller.go_up()
    return _view(controller, stale=not current)


@router.get("/entries", response_model=list[Entry])
async def list_entries(
    controller: Controller,
    query: str = "",
    image_name: str = "",
    project_id: str | None = None,
) -> list[Entry]:
    """Entries of the current location, with search and gallery filters."""
    return controller.visible_entries(query, image_name, project_id)


@router.get("/tree", response_model=list[FolderTreeNode])
async def folder_tree(base: str, controller: Controller) -> list[FolderTreeNode]:
    return controller.folder_tree(base)


# ==================== Selection ====================


@router.get("/selection", response_model=SelectionSet)
async def get_selection(controller: Controller) -> SelectionSet:
    return controller.selection()


@router.post("/selection/toggle/{entry_id}", response_model=SelectionSet)
async def toggle_selection(entry_id: str, controller: Controller) -> SelectionSet:
    controller.toggle_selection(entry_id)
    return controller.selection()


@router.post("/selection/all", response_model=SelectionSet)
async def select_all(controller: Controller) -> SelectionSet:
    controller.select_all()
    return controller.selection()


@router.delete("/selection", response_model=SelectionSet)
async def clear_selection(controller: Controller) -> SelectionSet:
    controller.clear_selection()
    return controller.selection()


# ==================== Actions ====================


@router.post("/actions/{action}", response_model=ActionResult)
async def perform_action(action: BulkAction, controller: Controller) -> ActionResult:
    return await controller.perform(action)


@router.post("/keys/{binding}", response_model=ActionResult | None)
async def handle_key(binding: KeyBinding, controller: Controller) -> ActionResult | None:
    return await controller.handle_key(binding)


@router.post("/folders", response_model=Entry)
async def create_folder(request: CreateFolderRequest, controller: Controller) -> Entry:
    """Create a folder in the current location.

    Raises:
        HTTPException: 400 if the folder could not be created (see notifications)
    """
    folder = await controller.create_folder(request.name)
    if folder is None:
        raise HTTPException(status_code=400, detail="Folder was not created")
    return folder


@router.post("/upload", response_model=BatchReport)
async def upload_files(
    controller: Controller,
    files: Annotated[list[UploadedFile], File()],
) -> BatchReport:
    uploads = [
        UploadFile(
            name=f.filename or "upload",
            content=await f.read(),
            mimeType=f.content_type or "application/octet-stream",
        )
        for f in files
    ]
    return await controller.upload(uploads)


# ==================== Status ====================


@router.get("/usage")
async def storage_usage(controller: Controller) -> dict:
    return controller.usage()


@router.get("/notifications", response_model=list[NotificationOut])
async def drain_notifications(controller: Controller) -> list[NotificationOut]:
    notifier = controller.notifier
    if not isinstance(notifier, RecordingNotifier):
        return []
    return [NotificationOut(level=n.level, message=n.message) for n in notifier.drain()]


@router.get("/projects", response_model=list[Project])
async def list_projects(controller: Controller) -> list[Project]:
    return list(controller.projects.values())


@router.put("/projects", response_model=list[Project])
async def set_projects(projects: list[Project], controller: Controller) -> list[Project]:
    controller.set_projects(projects)
    return list(controller.projects.values())


@router.post("/projects/connectivity", response_model=dict[str, ConnectivityStatus])
async def refresh_connectivity(controller: Controller) -> dict[str, ConnectivityStatus]:
    return await controller.refresh_connectivity()
