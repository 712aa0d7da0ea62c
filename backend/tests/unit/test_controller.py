"""Tests for the workspace controller.

Test cases:
- Navigation: stale responses discarded, selection cleared, session handling
- Error handling: cache fallback, NotConfigured blocking
- Bulk actions: stale ids dropped, delete/restore/permanent delete flow
- Keyboard bindings
- Folder creation, uploads, gallery mirror, downloads, filters
"""

import asyncio
import base64

import httpx
import pytest

from docspace.components.workspace.catalog import RemoteCatalogClient
from docspace.components.workspace.controller import WorkspaceController, filter_entries, filter_gallery
from docspace.components.workspace.models import (
    Category,
    ContentRef,
    FolderRef,
    Location,
    Project,
    UploadFile,
)
from docspace.components.workspace.selection import BulkAction, KeyBinding
from docspace.components.workspace.store import StoreUnavailable

OFFICE = Location(category=Category.office)
SHARED = Location(category=Category.shared)


def listing(*ids: str) -> list[dict]:
    return [{"id": i, "name": f"{i}.pdf", "type": "file", "size": 10} for i in ids]


class TestNavigation:
    @pytest.mark.asyncio
    async def test_stale_listing_is_discarded(self, session, cache, notifier, test_settings):
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("folder_uuid") == "slow":
                await release.wait()
                return httpx.Response(200, json=listing("old"))
            return httpx.Response(200, json=listing("new"))

        catalog = RemoteCatalogClient(session, transport=httpx.MockTransport(handler), config=test_settings)
        controller = WorkspaceController(session, catalog, cache, notifier, config=test_settings)
        slow = OFFICE.child(FolderRef(kind="id", value="slow", name="Slow"))

        first = asyncio.create_task(controller.navigate(slow))
        await asyncio.sleep(0.01)
        assert await controller.navigate(OFFICE) is True
        release.set()
        assert await first is False

        assert controller.location == OFFICE
        assert [e.id for e in controller.current_entries()] == ["new"]
        assert cache.raw(slow.key) is None
        await catalog.aclose()

    @pytest.mark.asyncio
    async def test_listing_is_cached(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("a", "b"))
        await controller.navigate(OFFICE)
        assert [e.id for e in cache.read("office")] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_shared_listing_is_not_cached(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("s"))
        await controller.navigate(SHARED)
        assert [e.id for e in controller.current_entries()] == ["s"]
        assert cache.raw("shared") is None

    @pytest.mark.asyncio
    async def test_selection_cleared_on_location_change(self, controller, catalog_recorder):
        catalog_recorder.route("GET", "/documents", listing("a", "b", "c"))
        await controller.navigate(OFFICE)
        controller.select_all()
        assert len(controller.selection().ids) == 3

        await controller.navigate(SHARED)
        await controller.navigate(OFFICE)

        assert controller.selection().ids == []
        assert controller.selection().locationKey == "office"

    @pytest.mark.asyncio
    async def test_unauthenticated_clears_entries_silently(self, controller, catalog_recorder, session, notifier):
        catalog_recorder.route("GET", "/documents", listing("a"))
        await controller.navigate(OFFICE)
        session.sign_out()

        await controller.navigate(OFFICE)

        assert controller.current_entries() == []
        assert notifier.messages == []
        assert len(catalog_recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_falls_back_to_cache(self, controller, catalog_recorder, cache, notifier, make_entry):
        cache.write("office", [make_entry("cached", path="office")])
        catalog_recorder.route("GET", "/documents", httpx.Response(503))

        await controller.navigate(OFFICE)

        assert [e.id for e in controller.current_entries()] == ["cached"]
        assert notifier.levels() == ["error"]

    @pytest.mark.asyncio
    async def test_not_configured_blocks_location(self, controller, catalog_recorder, notifier):
        catalog_recorder.route("GET", "/projects/42", {"data": {}})
        controller.set_projects([Project(id="42", name="Bridge")])
        location = Location(category=Category.project, projectId="42")

        await controller.navigate(location)

        assert controller.blocked_reason
        assert controller.current_entries() == []
        report = await controller.upload([UploadFile(name="a.pdf", content=b"x")])
        assert report.failed and not report.succeeded
        assert catalog_recorder.calls("POST", "/documents/upload") == []
        assert notifier.levels() == ["error", "error"]

    @pytest.mark.asyncio
    async def test_trashed_ids_hidden_from_remote_listing(self, controller, catalog_recorder):
        catalog_recorder.route("GET", "/documents", listing("a", "b"))
        await controller.navigate(OFFICE)
        controller.toggle_selection("a")
        await controller.perform(BulkAction.delete)

        await controller.navigate(OFFICE)

        assert [e.id for e in controller.current_entries()] == ["b"]

    @pytest.mark.asyncio
    async def test_open_folder_and_breadcrumb(self, controller, catalog_recorder):
        catalog_recorder.route("GET", "/documents", [{"id": "f1", "name": "Plans", "type": "folder"}])
        await controller.navigate(OFFICE)

        await controller.open_folder("f1")

        assert controller.location.key == "office/Plans_f1"
        assert controller.breadcrumb() == ["Office", "Plans"]
        await controller.go_up()
        assert controller.location == OFFICE


class TestBulkActions:
    @pytest.mark.asyncio
    async def test_stale_ids_only_affect_listed_subset(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("a", "b"))
        await controller.navigate(OFFICE)
        controller.toggle_selection("a")
        controller.toggle_selection("not-listed")

        result = await controller.perform(BulkAction.delete)

        assert [e.id for e in result.report.succeeded] == ["a"]
        assert [e.id for e in cache.read_trash()] == ["a"]
        assert [e.id for e in controller.current_entries()] == ["b"]
        assert controller.selection().ids == []

    @pytest.mark.asyncio
    async def test_empty_selection_is_inert(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("a"))
        await controller.navigate(OFFICE)
        result = await controller.perform(BulkAction.delete)
        assert result.report.succeeded == [] and result.report.failed == []
        assert cache.read_trash() == []

    @pytest.mark.asyncio
    async def test_delete_restore_round_trip(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("a", "b"))
        await controller.navigate(OFFICE)
        controller.select_all()
        await controller.perform(BulkAction.delete)
        assert cache.read("office") == []

        await controller.navigate(Location.trash())
        assert [e.id for e in controller.current_entries()] == ["a", "b"]
        controller.select_all()
        result = await controller.perform(BulkAction.restore)

        assert result.report.ok
        assert controller.current_entries() == []
        assert [e.id for e in cache.read("office")] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_permanent_delete_from_trash(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("a"))
        await controller.navigate(OFFICE)
        controller.select_all()
        await controller.perform(BulkAction.delete)

        await controller.navigate(Location.trash())
        controller.select_all()
        result = await controller.perform(BulkAction.permanent_delete)

        assert [e.id for e in result.report.succeeded] == ["a"]
        assert cache.read_trash() == []
        assert catalog_recorder.calls("DELETE", "/documents/a") == []

    @pytest.mark.asyncio
    async def test_permanently_deleted_entry_stays_gone_from_listings(self, controller, catalog_recorder):
        # local_only: the object still exists in the catalog
        catalog_recorder.route("GET", "/documents", listing("a", "b"))
        await controller.navigate(OFFICE)
        controller.toggle_selection("a")
        await controller.perform(BulkAction.delete)
        await controller.navigate(Location.trash())
        controller.select_all()
        await controller.perform(BulkAction.permanent_delete)

        await controller.navigate(OFFICE)

        assert [e.id for e in controller.current_entries()] == ["b"]

    @pytest.mark.asyncio
    async def test_store_outage_during_delete_is_reported(self, controller, catalog_recorder, cache, notifier):
        catalog_recorder.route("GET", "/documents", listing("a"))
        await controller.navigate(OFFICE)
        controller.select_all()

        def unavailable(key):
            raise StoreUnavailable("connection reset")

        cache.store.get = unavailable
        result = await controller.perform(BulkAction.delete)

        assert [f.id for f in result.report.failed] == ["a"]
        assert notifier.levels()[-1] == "error"
        assert [e.id for e in controller.current_entries()] == ["a"]


class TestKeyBindings:
    @pytest.mark.asyncio
    async def test_delete_binding_inert_without_selection(self, controller, catalog_recorder):
        catalog_recorder.route("GET", "/documents", listing("a"))
        await controller.navigate(OFFICE)
        assert await controller.handle_key(KeyBinding.delete) is None

    @pytest.mark.asyncio
    async def test_select_all_clear_delete(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", listing("a", "b"))
        await controller.navigate(OFFICE)

        await controller.handle_key(KeyBinding.select_all)
        assert controller.selection().ids == ["a", "b"]
        await controller.handle_key(KeyBinding.clear)
        assert controller.selection().ids == []

        controller.toggle_selection("b")
        result = await controller.handle_key(KeyBinding.delete)
        assert result.action == BulkAction.delete
        assert [e.id for e in cache.read_trash()] == ["b"]

    @pytest.mark.asyncio
    async def test_delete_binding_in_trash_is_permanent(self, controller, cache, make_entry):
        cache.write("trash", [make_entry("t", path="trash", originalPath="office", deletedAt=1)])
        await controller.navigate(Location.trash())
        controller.select_all()

        result = await controller.handle_key(KeyBinding.delete)

        assert result.action == BulkAction.permanent_delete
        assert cache.read_trash() == []


class TestMutations:
    @pytest.mark.asyncio
    async def test_create_folder_appears_in_tree(self, controller, catalog_recorder, notifier):
        catalog_recorder.route("GET", "/documents", [])
        catalog_recorder.route("POST", "/documents/folders", {"data": {"id": "f9", "name": "Specs"}})
        await controller.navigate(OFFICE)

        folder = await controller.create_folder("  Specs ")

        assert folder.name == "Specs"
        assert [e.id for e in controller.current_entries()] == ["f9"]
        tree = controller.folder_tree("office")
        assert [(n.name, n.path) for n in tree] == [("Specs", "office/Specs_f9")]
        assert notifier.levels() == ["success"]

    @pytest.mark.asyncio
    async def test_create_folder_rejects_blank_name(self, controller, catalog_recorder, notifier):
        assert await controller.create_folder("   ") is None
        assert catalog_recorder.requests == []
        assert notifier.levels() == ["warning"]

    @pytest.mark.asyncio
    async def test_upload_not_allowed_in_trash(self, controller, catalog_recorder):
        await controller.navigate(Location.trash())
        report = await controller.upload([UploadFile(name="a.pdf", content=b"x")])
        assert report.failed[0].reason == "Upload not allowed here"
        assert catalog_recorder.requests == []

    @pytest.mark.asyncio
    async def test_partial_upload_keeps_successes(self, controller, catalog_recorder, cache, notifier):
        catalog_recorder.route("GET", "/documents", [])
        catalog_recorder.route("POST", "/documents/upload", {
            "data": [{"id": "u1", "name": "one.pdf", "index": 0}, {"id": "u3", "name": "three.pdf", "index": 2}],
            "failed": [{"index": 1, "name": "two.pdf", "message": "too large"}],
        })
        await controller.navigate(OFFICE)
        files = [UploadFile(name=n, content=b"x") for n in ("one.pdf", "two.pdf", "three.pdf")]

        report = await controller.upload(files)

        assert [e.id for e in report.succeeded] == ["u1", "u3"]
        assert [e.id for e in cache.read("office")] == ["u1", "u3"]
        assert notifier.levels() == ["warning"]

    @pytest.mark.asyncio
    async def test_shared_image_upload_mirrored_to_gallery(self, controller, catalog_recorder, cache):
        catalog_recorder.route("GET", "/documents", [])
        catalog_recorder.route("POST", "/documents/upload", {"data": [
            {"id": "i1", "name": "photo.png", "index": 0, "size": 5, "last_modified": 2000},
            {"id": "d1", "name": "doc.pdf", "index": 1},
        ]})
        await controller.navigate(SHARED)
        await controller.upload([UploadFile(name="photo.png", content=b"x"), UploadFile(name="doc.pdf", content=b"y")])

        assert cache.raw("shared") is None
        await controller.navigate(Location.gallery())
        assert [e.id for e in controller.current_entries()] == ["i1_gallery"]


class TestDownload:
    @pytest.mark.asyncio
    async def test_failures_reported_individually(self, controller, catalog_recorder, make_entry):
        catalog_recorder.route("GET", "/blobs/ok", httpx.Response(200, content=b"remote-bytes"))
        catalog_recorder.route("GET", "/blobs/broken", httpx.Response(500))
        entries = [
            make_entry("l", contentRef=ContentRef(kind="local", data=base64.b64encode(b"local").decode())),
            make_entry("f", kind="folder"),
            make_entry("b", contentRef=ContentRef(kind="remote", url="http://catalog.test/api/blobs/broken")),
            make_entry("r", contentRef=ContentRef(kind="remote", url="http://catalog.test/api/blobs/ok")),
        ]

        files, report = await controller.download(entries)

        assert [(f.entryId, f.content) for f in files] == [("l", b"local"), ("r", b"remote-bytes")]
        assert [f.id for f in report.failed] == ["f", "b"]


class TestFilters:
    def test_filter_entries_by_name_or_owner(self, make_entry):
        entries = [make_entry("a", name="Budget.xlsx"), make_entry("b", name="x.pdf", owner="Dana"), make_entry("c")]
        assert [e.id for e in filter_entries(entries, "budget")] == ["a"]
        assert [e.id for e in filter_entries(entries, "DANA")] == ["b"]
        assert len(filter_entries(entries, "  ")) == 3

    def test_filter_gallery_by_project(self, make_entry):
        entries = [
            make_entry("p", name="a.png", path="project_4/site"),
            make_entry("q", name="b.png", path="project_42"),
            make_entry("o", name="c.png", path="office"),
        ]
        assert [e.id for e in filter_gallery(entries, project_id="4")] == ["p"]
        assert [e.id for e in filter_gallery(entries, name="B.")] == ["q"]


@pytest.mark.asyncio
async def test_refresh_connectivity(controller, catalog_recorder):
    catalog_recorder.route("GET", "/documents", httpx.Response(404))
    controller.set_projects([Project(id="1", name="P", remoteFolderPath="root")])

    results = await controller.refresh_connectivity()

    assert results["1"].connected is False
    assert controller.projects["1"].connectivity.lastError == "root not found"
