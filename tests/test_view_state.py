"""Screen navigation driven by user actions and session changes."""

import pytest

from parley.models import AuthMode, Tokens, View
from parley.view_state import ViewStateMachine


@pytest.fixture
def view(session):
    machine = ViewStateMachine(session)
    machine.start()
    return machine


def test_starts_on_landing(view):
    assert view.current is View.LANDING
    assert view.auth_mode is AuthMode.LOGIN


@pytest.mark.asyncio
async def test_get_started_through_to_chat(view, authenticate):
    view.get_started()
    assert view.current is View.AUTH
    assert view.auth_mode is AuthMode.REGISTER

    view.switch_auth_mode()
    assert view.auth_mode is AuthMode.LOGIN

    await authenticate()

    assert view.current is View.CHAT


@pytest.mark.asyncio
async def test_restored_session_starts_in_chat(session, tokens, server):
    tokens.save(Tokens(access="stored", refresh="stored-r"))
    server.on("GET", "/users/profile/", json={"id": 1, "username": "alice"})
    view = ViewStateMachine(session)

    await session.load_session()
    view.start()

    assert view.current is View.CHAT


@pytest.mark.asyncio
async def test_admin_is_staff_only(view, authenticate):
    await authenticate(is_staff=False)

    assert view.open_admin() is False
    assert view.current is View.CHAT


@pytest.mark.asyncio
async def test_staff_admin_survives_reauthentication(view, session, authenticate):
    await authenticate(is_staff=True)
    assert view.open_admin()
    assert view.current is View.ADMIN

    await authenticate(is_staff=True, access="access-2")

    assert view.current is View.ADMIN
    view.back_to_chat()
    assert view.current is View.CHAT


@pytest.mark.asyncio
async def test_logout_returns_to_landing(view, session, authenticate):
    await authenticate()
    view.toggle_panel()

    session.logout()

    assert view.current is View.LANDING
    assert view.panel_open is False


@pytest.mark.asyncio
async def test_expiry_returns_to_login(view, session, authenticate):
    await authenticate()
    view.get_started()  # no effect while signed in

    session.expire()

    assert view.current is View.AUTH
    assert view.auth_mode is AuthMode.LOGIN


def test_chat_unreachable_without_session(view):
    view.on_auth_success()
    assert view.current is View.LANDING
    assert view.toggle_panel() is False


@pytest.mark.asyncio
async def test_panel_toggle(view, authenticate):
    await authenticate()

    assert view.toggle_panel() is True
    assert view.toggle_panel() is False
    view.toggle_panel()
    view.close_panel()
    assert view.panel_open is False
