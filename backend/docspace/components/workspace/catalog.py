"""Remote document catalog client.

Translates workspace Locations into catalog requests and decodes responses
into Entry objects. Two addressing schemes hide behind this client:

- office/shared folders are database records, addressed by ``folder_uuid``
  (``parent_folder_uuid`` when creating/uploading)
- project folders mirror a blob store, addressed by the literal
  ``folder_path`` below the project's ``remoteFolderPath``

A request carries exactly one of the two, chosen by the Location's FolderRef
kinds. No other component builds catalog requests.

Catalog API Reference:
- GET    /documents                 list (category, project_id?, folder_uuid?, folder_path?)
- POST   /documents/folders         create folder
- POST   /documents/upload          multipart upload, files[] (partial success allowed)
- DELETE /documents/{id}            remove an object
- GET    /projects/{id}             project descriptor (remote_folder_path)

Errors are normalized into the workspace taxonomy; no httpx exception leaves
this module.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from docspace.components.workspace.errors import (
    NotConfigured,
    NotFound,
    PartialFailure,
    RateLimited,
    ServerError,
    TransportError,
    Unauthenticated,
    Unauthorized,
    ValidationFailed,
    WorkspaceError,
)
from docspace.components.workspace.models import (
    BatchReport,
    Category,
    ConnectivityStatus,
    ContentRef,
    Entry,
    FailedItem,
    FolderRef,
    Location,
    Project,
    UploadFile,
)
from docspace.components.workspace.session import SessionProvider, has_session
from docspace.settings import Settings, settings as default_settings
from docspace.utils.time_utils import get_timestamp_ms

logger = logging.getLogger(__name__)


class RemoteCatalogClient:
    """Async client for the remote document catalog.

    Typical usage:
        async with RemoteCatalogClient(session) as catalog:
            entries = await catalog.list(Location(category=Category.office))
    """

    def __init__(
        self,
        session: SessionProvider,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: Settings | None = None,
    ):
        config = config or default_settings
        self.session = session
        self.base_url = (base_url or config.catalog_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.catalog_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily created shared AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteCatalogClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ==================== Transport ====================

    def _auth_headers(self) -> dict:
        """Bearer header for the current session.

        Raises:
            Unauthenticated: No session, so no request may be sent
        """
        if not has_session(self.session):
            raise Unauthenticated("No active session")
        return {"Authorization": f"Bearer {self.session.current_token()}"}

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = self._auth_headers()
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {method} {url}: {e}") from e
        self._raise_for_status(response)
        return response

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        response = await self._send(method, url, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid response format from {url}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        """Map an error status onto the workspace error taxonomy."""
        status = response.status_code
        if status < 400:
            return
        message, field_errors = _error_details(response)

        if status == 401:
            raise Unauthorized(message or "Unauthorized")
        if status == 404:
            raise NotFound(message or "Not found")
        if status == 422:
            raise ValidationFailed(message or "Validation failed", field_errors)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimited(
                message or "Rate limited",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        raise ServerError(message or f"Catalog error: {status}", status_code=status)

    # ==================== Projects ====================

    async def resolve_project_root(self, project: Project) -> str:
        """Remote folder path of a project, fetching the descriptor once if missing.

        The fetched path is cached on the Project record.

        Raises:
            NotConfigured: Still no path after the one secondary fetch
        """
        if project.remoteFolderPath:
            return project.remoteFolderPath

        logger.info(f"Project {project.id} has no remote folder path, fetching descriptor")
        payload = await self._request_json("GET", f"/projects/{project.id}")
        data = _unwrap(payload)
        remote_path = None
        if isinstance(data, dict):
            remote_path = data.get("remote_folder_path") or data.get("remoteFolderPath")

        if not remote_path:
            logger.warning(f"Project {project.id} is not configured with a remote folder")
            raise NotConfigured(project.id)

        project.remoteFolderPath = remote_path
        return remote_path

    async def _addressing(self, location: Location, project: Project | None, parent: bool = False) -> dict:
        """Request parameters for a location: category, project, and ONE folder address."""
        params: dict[str, Any] = {"category": location.category.value}
        uuid_field = "parent_folder_uuid" if parent else "folder_uuid"

        if location.category == Category.project:
            if project is None or project.id != location.projectId:
                raise ValueError(f"Project descriptor for {location.projectId} is required")
            root = (await self.resolve_project_root(project)).rstrip("/")
            fragments = [ref.value.strip("/") for ref in location.segments]
            params["project_id"] = project.id
            params["folder_path"] = "/".join([root, *fragments])
        elif location.current_folder is not None:
            params[uuid_field] = location.current_folder.value
        return params

    # ==================== Listing ====================

    async def list(self, location: Location, project: Project | None = None) -> list[Entry]:
        """List a location. An empty list is a valid result, distinct from failure."""
        params = await self._addressing(location, project)
        payload = await self._request_json("GET", "/documents", params=params)
        items = _unwrap(payload) or []
        if not isinstance(items, list):
            raise TransportError("Catalog list response is not a list")
        entries = [decode_entry(item, location) for item in items]
        logger.debug(f"Listed {len(entries)} entries for {location.key}")
        return entries

    async def create_folder(self, location: Location, name: str, project: Project | None = None) -> Entry:
        """Create a folder inside a location."""
        body = await self._addressing(location, project, parent=True)
        body["name"] = name
        payload = await self._request_json("POST", "/documents/folders", json=body)
        data = _unwrap(payload)
        if not isinstance(data, dict):
            raise TransportError("Catalog create-folder response is not an object")
        data.setdefault("type", "folder")
        data.setdefault("name", name)
        entry = decode_entry(data, location)
        logger.info(f"Created folder '{name}' in {location.key} ({entry.ref.kind if entry.ref else 'no ref'})")
        return entry

    async def upload(
        self, location: Location, files: list[UploadFile], project: Project | None = None
    ) -> BatchReport:
        """Upload files in one batched request.

        Returns:
            Succeeded entries in input order plus the rejected files

        Raises:
            PartialFailure: Every file was rejected
        """
        if not files:
            return BatchReport()

        form = await self._addressing(location, project, parent=True)
        multipart = [("files[]", (f.name, f.content, f.mimeType)) for f in files]
        payload = await self._request_json("POST", "/documents/upload", data=form, files=multipart)

        body = payload if isinstance(payload, dict) else {"data": payload}
        items = body.get("data") or []
        rejected = body.get("failed") or []

        # Rejected files leave gaps in the response; "index" points back at the input
        indexed = []
        for position, item in enumerate(items):
            item.setdefault("type", "file")
            indexed.append((item.get("index", position), decode_entry(item, location)))
        indexed.sort(key=lambda pair: pair[0])
        report = BatchReport(succeeded=[entry for _, entry in indexed])

        for item in rejected:
            index = item.get("index")
            name = item.get("name") or (files[index].name if isinstance(index, int) and index < len(files) else "?")
            report.failed.append(
                FailedItem(name=name, index=index, reason=item.get("message") or item.get("error") or "Rejected")
            )

        if report.failed:
            logger.warning(f"Upload to {location.key}: {report.summary('uploaded')}")
        if not report.succeeded and report.failed:
            raise PartialFailure(report, f"All {len(files)} file(s) were rejected")
        return report

    async def delete(self, entry: Entry) -> None:
        """Delete an object from the catalog."""
        await self._send("DELETE", f"/documents/{entry.id}")
        logger.info(f"Deleted remote object {entry.id} ({entry.name})")

    async def download(self, content: ContentRef) -> bytes:
        """Fetch the bytes behind a remote content reference."""
        if content.kind != "remote" or not content.url:
            raise ValueError("Only remote content can be downloaded")
        response = await self._send("GET", content.url)
        return response.content

    # ==================== Connectivity ====================

    async def check_connectivity(self, project: Project) -> ConnectivityStatus:
        """Probe a project's storage root and record the result on the project.

        - 404: root not found, disconnected
        - 401: says nothing about the root, reported as connected with
          ``lastError='auth required'``
        """
        status = ConnectivityStatus(checkedAt=get_timestamp_ms())
        try:
            entries = await self.list(Location(category=Category.project, projectId=project.id), project)
        except NotFound:
            status.connected = False
            status.lastError = "root not found"
        except Unauthorized:
            status.connected = True
            status.lastError = "auth required"
        except NotConfigured:
            status.connected = False
            status.lastError = "not configured"
        except Unauthenticated:
            status.lastError = "not signed in"
        except WorkspaceError as e:
            status.lastError = e.message
        else:
            status.connected = True
            status.itemCount = len(entries)

        project.connectivity = status
        logger.info(
            f"Connectivity for project {project.id}: connected={status.connected}, "
            f"items={status.itemCount}, error={status.lastError}"
        )
        return status


# ==================== Decoding helpers ====================


def _unwrap(payload: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope when present."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def _error_details(response: httpx.Response) -> tuple[str, dict[str, list[str]]]:
    """Best message from an error body: message, error, then the first field error."""
    try:
        data = response.json()
    except ValueError:
        return "", {}
    if not isinstance(data, dict):
        return "", {}

    errors = data.get("errors") if isinstance(data.get("errors"), dict) else {}
    field_errors = {k: v if isinstance(v, list) else [str(v)] for k, v in errors.items()}
    if data.get("message"):
        return str(data["message"]), field_errors
    if data.get("error"):
        return str(data["error"]), field_errors
    for messages in field_errors.values():
        for message in messages:
            if message and str(message).strip():
                return str(message), field_errors
    return "", field_errors


def _timestamp_ms(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return None


def decode_entry(item: dict, location: Location) -> Entry:
    """Decode one catalog item listed in ``location``."""
    kind = "folder" if item.get("type") == "folder" else "file"
    name = str(item.get("name") or item.get("id"))

    ref = None
    if kind == "folder":
        if location.category == Category.project:
            fragment = str(item.get("folder_path") or name).rstrip("/").rsplit("/", 1)[-1]
            ref = FolderRef(kind="path", value=fragment)
        else:
            ref = FolderRef(
                kind="id",
                value=str(item.get("folder_uuid") or item["id"]),
                name=name.replace("/", "-"),
            )

    content = None
    if kind == "file" and item.get("url"):
        content = ContentRef(
            kind="remote",
            url=item["url"],
            mimeType=item.get("mime_type") or "application/octet-stream",
        )

    size = item.get("size")
    return Entry(
        id=str(item["id"]),
        name=name,
        kind=kind,
        size=int(size) if isinstance(size, (int, float)) else None,
        lastModified=_timestamp_ms(item.get("last_modified") or item.get("updated_at")),
        owner=str(item.get("owner") or "You"),
        path=location.key,
        contentRef=content,
        ref=ref,
    )
