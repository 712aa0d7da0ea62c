"""Tests for the session providers."""

import asyncio

import pytest

from docspace.components.workspace.session import (
    RequestSessionProvider,
    StaticSessionProvider,
    has_session,
)


class TestStaticSessionProvider:
    def test_sign_in_and_out(self):
        session = StaticSessionProvider()
        assert not has_session(session)
        session.sign_in("t")
        assert has_session(session)
        session.sign_out()
        assert session.current_token() is None


class TestRequestSessionProvider:
    def test_unbound_has_no_session(self):
        assert not has_session(RequestSessionProvider())

    @pytest.mark.asyncio
    async def test_tokens_do_not_leak_between_requests(self):
        session = RequestSessionProvider()
        bound = asyncio.Event()
        signed_out = asyncio.Event()

        async def with_token() -> str | None:
            session.bind("alice")
            bound.set()
            await signed_out.wait()
            return session.current_token()

        async def without_token() -> str | None:
            await bound.wait()
            session.bind(None)
            signed_out.set()
            return session.current_token()

        first = asyncio.create_task(with_token())
        second = asyncio.create_task(without_token())

        assert await first == "alice"
        assert await second is None
        assert not has_session(session)
