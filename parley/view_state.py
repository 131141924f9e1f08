"""Top-level navigation between the landing, auth, chat and admin screens."""

import logging

from parley.models import AuthMode, View, ViewState
from parley.session_manager import SessionManager


class ViewStateMachine:
    """Single source of truth for which screen is shown.

    Subscribes to the session so authentication changes navigate on their own:
    becoming authenticated lands in chat (admin is left alone), logging out
    lands on the landing screen, and an expired session goes back to login.
    """

    def __init__(self, session: SessionManager):
        self.session = session
        self._state = ViewState()
        self.panel_open: bool = False
        self.session.subscribe(self._on_session_change)

    def _go(self, view: View, auth_mode: AuthMode | None = None):
        state = ViewState(view=view, auth_mode=auth_mode or self._state.auth_mode)
        if state != self._state:
            logging.debug(f"View: {self._state.view.value} -> {view.value}")
        self._state = state

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def current(self) -> View:
        """The screen to render. Never chat or admin without a session."""
        view = self._state.view
        if view in (View.CHAT, View.ADMIN) and not self.session.is_authenticated:
            return View.LANDING
        if view is View.LANDING and self.session.is_authenticated:
            return View.CHAT
        return view

    @property
    def auth_mode(self) -> AuthMode:
        return self._state.auth_mode

    # <~~SESSION EVENTS~~>
    def start(self):
        """Initial screen once the stored session has been checked."""
        self._go(View.CHAT if self.session.is_authenticated else View.LANDING)

    def _on_session_change(self, authenticated: bool, reason: str):
        if authenticated:
            if self._state.view is not View.ADMIN:
                self._go(View.CHAT)
            return
        self.panel_open = False
        if reason == "expired":
            self._go(View.AUTH, AuthMode.LOGIN)
        else:
            self._go(View.LANDING)

    # <~~USER NAVIGATION~~>
    def get_started(self):
        if self.current is View.LANDING:
            self._go(View.AUTH, AuthMode.REGISTER)

    def sign_in(self):
        if self.current in (View.LANDING, View.AUTH):
            self._go(View.AUTH, AuthMode.LOGIN)

    def switch_auth_mode(self, mode: AuthMode | None = None):
        if self.current is not View.AUTH:
            return
        if mode is None:
            mode = AuthMode.REGISTER if self.auth_mode is AuthMode.LOGIN else AuthMode.LOGIN
        self._go(View.AUTH, mode)

    def on_auth_success(self):
        if self.session.is_authenticated:
            self._go(View.CHAT, AuthMode.LOGIN)

    def open_admin(self) -> bool:
        """Staff only. Anyone else stays where they are."""
        user = self.session.user
        if self.current is not View.CHAT or user is None or not user.is_staff:
            return False
        self._go(View.ADMIN)
        return True

    def back_to_chat(self):
        if self.current is View.ADMIN:
            self._go(View.CHAT)

    def logout(self):
        self.panel_open = False
        self._go(View.LANDING, AuthMode.LOGIN)

    # <~~PANEL~~>
    def toggle_panel(self) -> bool:
        if self.current is not View.CHAT:
            return False
        self.panel_open = not self.panel_open
        return self.panel_open

    def close_panel(self):
        self.panel_open = False
