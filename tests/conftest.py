"""
Shared fixtures.

- An in-memory keyring, so no test touches the OS keychain
- A fake chat service behind httpx.MockTransport
- Pre-wired session, conversation store and dispatcher
"""

import httpx
import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from parley.api import ApiClient
from parley.conversations import ConversationStore
from parley.dispatcher import MessageDispatcher
from parley.session_manager import SessionManager
from parley.token_store import TokenStore

BASE_URL = "http://parley.test/api"
API_PREFIX = "/api"


class MemoryKeyring(KeyringBackend):
    """Keyring backend that lives in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError(username)


class FakeServer:
    """Routes requests to canned handlers and records everything it receives."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def on(self, method, path, status=200, json=None, handler=None):
        if handler is None:

            def handler(request):
                return httpx.Response(status, json=json)

        self.routes[(method, API_PREFIX + path)] = handler

    def sent(self, method, path) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path == API_PREFIX + path
        ]

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"detail": "Not found."})
        return handler(request)


def login_payload(username="alice", is_staff=False, access="access-1", refresh="refresh-1"):
    return {
        "success": True,
        "user": {
            "id": 1,
            "username": username,
            "first_name": username.capitalize(),
            "email": f"{username}@example.com",
            "is_staff": is_staff,
        },
        "tokens": {"access": access, "refresh": refresh},
    }


@pytest.fixture(autouse=True)
def memory_keyring():
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def api(server):
    return ApiClient(BASE_URL, transport=httpx.MockTransport(server))


@pytest.fixture
def tokens():
    return TokenStore()


@pytest.fixture
def session(api, tokens):
    return SessionManager(api, tokens)


@pytest.fixture
def conversations(session, tmp_path):
    return ConversationStore(session, exports_dir=str(tmp_path))


@pytest.fixture
def dispatcher(session, conversations):
    return MessageDispatcher(session, conversations)


@pytest.fixture
def authenticate(server, session):
    """Signs the session in through the login endpoint."""

    async def _authenticate(username="alice", is_staff=False, access="access-1"):
        server.on(
            "POST",
            "/users/login/",
            json=login_payload(username, is_staff=is_staff, access=access),
        )
        result = await session.login(username, "hunter22")
        assert result.success
        return session.user

    return _authenticate
