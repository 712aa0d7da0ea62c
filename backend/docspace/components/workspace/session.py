"""Session provider seam.

Token acquisition and global session invalidation live outside the workspace;
the workspace only asks whether a session exists and which bearer token to
send.
"""

from contextvars import ContextVar
from typing import Protocol


class SessionProvider(Protocol):
    """Protocol defining what the workspace needs from the session layer."""

    def current_token(self) -> str | None: ...
    def is_authenticated(self) -> bool: ...


class StaticSessionProvider:
    """Session backed by a fixed token (CLI use, API dependency, tests)."""

    def __init__(self, token: str | None = None, authenticated: bool | None = None):
        self._token = token
        self._authenticated = bool(token) if authenticated is None else authenticated

    def current_token(self) -> str | None:
        return self._token

    def is_authenticated(self) -> bool:
        return self._authenticated

    def sign_in(self, token: str) -> None:
        self._token = token
        self._authenticated = True

    def sign_out(self) -> None:
        self._token = None
        self._authenticated = False


class RequestSessionProvider:
    """Session whose token is bound per request.

    Each HTTP request runs in its own task context, so binding a token here
    never leaks into, or signs out, a request that is still in flight.
    """

    def __init__(self):
        self._token: ContextVar[str | None] = ContextVar("docspace_session_token", default=None)

    def current_token(self) -> str | None:
        return self._token.get()

    def is_authenticated(self) -> bool:
        return bool(self._token.get())

    def bind(self, token: str | None) -> None:
        self._token.set(token or None)

def has_session(session: SessionProvider) -> bool:
    """True only when the provider is authenticated AND holds a token."""
    return bool(session.is_authenticated() and session.current_token())
