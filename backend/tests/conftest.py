#!/usr/bin/env python
"""
pytest configuration file

This file contains shared fixtures for all tests.
"""

import json
from collections.abc import Callable

import fakeredis
import httpx
import pytest

from docspace.components.workspace.cache import DocumentCache
from docspace.components.workspace.catalog import RemoteCatalogClient
from docspace.components.workspace.controller import WorkspaceController
from docspace.components.workspace.models import Entry
from docspace.components.workspace.notifications import RecordingNotifier
from docspace.components.workspace.session import StaticSessionProvider
from docspace.components.workspace.store import MemoryKeyValueStore
from docspace.settings import Settings

CATALOG_URL = "http://catalog.test/api"


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and .env.local"""
    return Settings(
        _env_file=None,
        environment="test",
        catalog_base_url=CATALOG_URL,
        store_type="memory",
        cache_quota_bytes=5 * 1024 * 1024,
        trash_min_retained=50,
    )


@pytest.fixture
def fake_redis_client():
    """
    Create a fakeredis client for unit tests.

    This provides an in-memory Redis implementation that allows
    unit tests to run without a real Redis server.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.close()


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def cache(memory_store, test_settings) -> DocumentCache:
    return DocumentCache(memory_store, config=test_settings)


@pytest.fixture
def session() -> StaticSessionProvider:
    return StaticSessionProvider(token="test-token")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


class CatalogRecorder:
    """httpx MockTransport handler that records requests and replies from a route table.

    Routes map "METHOD /path" to a response (dict/list body, an httpx.Response,
    or a callable taking the request).
    """

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, response) -> None:
        self.routes[f"{method} {path}"] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        response = self.routes.get(f"{request.method} {path}")
        if response is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        if callable(response):
            response = response(request)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.removeprefix("/api") == path
        ]

    @staticmethod
    def params(request: httpx.Request) -> dict:
        return dict(request.url.params)

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def catalog_recorder() -> CatalogRecorder:
    return CatalogRecorder()


@pytest.fixture
def catalog(session, catalog_recorder, test_settings) -> RemoteCatalogClient:
    return RemoteCatalogClient(
        session,
        transport=httpx.MockTransport(catalog_recorder),
        config=test_settings,
    )


@pytest.fixture
def controller(session, catalog, cache, notifier, test_settings) -> WorkspaceController:
    return WorkspaceController(session, catalog, cache, notifier, config=test_settings)


@pytest.fixture
def make_entry() -> Callable[..., Entry]:
    """Factory for cache entries with sensible defaults."""

    def _make(entry_id: str, name: str | None = None, **fields) -> Entry:
        fields.setdefault("kind", "file")
        fields.setdefault("size", 1024)
        fields.setdefault("lastModified", 1_700_000_000_000)
        return Entry(id=entry_id, name=name or f"{entry_id}.pdf", **fields)

    return _make
