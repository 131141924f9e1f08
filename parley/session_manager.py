"""Authentication state and the token lifecycle."""

import logging
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError as SchemaError

from parley.api import ApiClient
from parley.errors import (
    AuthError,
    NetworkError,
    ResponseError,
    SessionExpired,
    ValidationError,
)
from parley.globals import log_exception
from parley.models import AuthResult, Tokens, User
from parley.token_store import TokenStore

# listener(authenticated, reason)
SessionListener = Callable[[bool, str], None]

NETWORK_ERROR = "Network error. Please try again."


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionManager:
    """Owns the current user and the authenticated flag.

    This is the only writer of the token pair. Every authenticated request in
    Parley goes through `request()`, which reads the access token at call time.
    """

    def __init__(self, api: ApiClient, tokens: TokenStore):
        self.api = api
        self.tokens = tokens
        self.user: User | None = None
        self.state: AuthState = AuthState.ANONYMOUS
        self.is_loading: bool = True
        self._loaded: bool = False
        self._listeners: list[SessionListener] = []

    # <~~STATE~~>
    @property
    def is_authenticated(self) -> bool:
        return self.state is AuthState.AUTHENTICATED

    @property
    def access_token(self) -> str | None:
        return self.tokens.access_token

    def subscribe(self, listener: SessionListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SessionListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, reason: str):
        for listener in list(self._listeners):
            try:
                listener(self.is_authenticated, reason)
            except Exception as e:
                log_exception(e, f"Session listener failed on '{reason}'")

    def _set_authenticated(self, user: User, tokens: Tokens | None, reason: str):
        if tokens is not None:
            self.tokens.save(tokens)
        self.user = user
        self.state = AuthState.AUTHENTICATED
        logging.info(f"Session authenticated ({reason}) as '{user.username}'")
        self._notify(reason)

    def _set_anonymous(self, reason: str):
        self.tokens.clear()
        self.user = None
        self.state = AuthState.ANONYMOUS
        logging.info(f"Session ended ({reason})")
        self._notify(reason)

    # <~~STARTUP~~>
    async def load_session(self) -> bool:
        """Restores a persisted session. Must run once, before anything else."""
        if self._loaded:
            raise RuntimeError("Session already loaded!")
        self._loaded = True
        try:
            if not self.tokens.access_token:
                return False
            self.state = AuthState.AUTHENTICATING
            try:
                profile = await self.api.get(
                    "/users/profile/", token=self.tokens.access_token
                )
                user = User.model_validate(profile)
            except (NetworkError, SessionExpired, SchemaError) as e:
                log_exception(e, "Error in load_session(), discarding stored tokens")
                self.tokens.clear()
                self.state = AuthState.ANONYMOUS
                return False
            self._set_authenticated(user, None, "restored")
            return True
        finally:
            self.is_loading = False

    # <~~LOGIN PATHS~~>
    async def _authenticate(self, path: str, body: dict[str, Any], reason: str):
        """Posts to a login endpoint and adopts the returned user and tokens.

        Raises AuthError when the server answers without `success`.
        """
        data = await self.api.post(path, json=body)
        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("message") if isinstance(data, dict) else None
            raise AuthError(message or "")
        user = User.model_validate(data["user"])
        tokens = Tokens.model_validate(data["tokens"])
        self._set_authenticated(user, tokens, reason)

    def _begin_attempt(self) -> AuthState:
        previous = self.state
        # A signed-in session stays signed in until a new login succeeds
        if previous is not AuthState.AUTHENTICATED:
            self.state = AuthState.AUTHENTICATING
        return previous

    def _fail_attempt(self, previous: AuthState):
        """A failed attempt leaves an existing session exactly as it was."""
        if previous is AuthState.AUTHENTICATED and self.user is not None:
            self.state = AuthState.AUTHENTICATED
        else:
            self.state = AuthState.ANONYMOUS

    async def _attempt(
        self,
        path: str,
        body: dict[str, Any],
        reason: str,
        failed_msg: str,
        refused_msg: str,
    ) -> AuthResult:
        """Shared contract for login and google_login: never raises."""
        previous = self._begin_attempt()
        try:
            await self._authenticate(path, body, reason)
            return AuthResult.ok()
        except AuthError as e:
            error = e.message or failed_msg
        except ResponseError as e:
            payload = e.payload if isinstance(e.payload, dict) else {}
            error = payload.get("message") or refused_msg
        except (NetworkError, SchemaError, KeyError) as e:
            log_exception(e, f"Error in {reason}")
            error = refused_msg
        self._fail_attempt(previous)
        logging.warning(f"{reason} failed: {error}")
        return AuthResult.failed(error)

    async def login(self, username: str, password: str) -> AuthResult:
        return await self._attempt(
            "/users/login/",
            {"username": username, "password": password},
            "login",
            failed_msg="Login failed",
            refused_msg="Invalid credentials",
        )

    async def google_login(self, credential: str) -> AuthResult:
        return await self._attempt(
            "/users/google-login/",
            {"credential": credential},
            "google-login",
            failed_msg="Google login failed",
            refused_msg="Google login failed",
        )

    async def register(self, fields: dict[str, Any]) -> AuthResult:
        """Creates an account. Field-scoped failures land in `field_errors`."""
        try:
            self._validate_registration(fields)
        except ValidationError as e:
            return AuthResult.invalid({e.field or "general": [e.message]})

        previous = self._begin_attempt()
        try:
            await self._authenticate("/users/register/", fields, "register")
            return AuthResult.ok()
        except AuthError:
            self._fail_attempt(previous)
            return AuthResult.failed("Registration failed")
        except ResponseError as e:
            self._fail_attempt(previous)
            return self._registration_failure(e.payload)
        except (NetworkError, SchemaError, KeyError) as e:
            log_exception(e, "Error in register()")
            self._fail_attempt(previous)
            return AuthResult.failed(NETWORK_ERROR)

    @staticmethod
    def _validate_registration(fields: dict[str, Any]):
        if "password2" in fields and fields.get("password") != fields.get("password2"):
            raise ValidationError("Passwords don't match!", field="password2")

    @staticmethod
    def _registration_failure(payload: Any) -> AuthResult:
        if not isinstance(payload, dict):
            return AuthResult.failed("Registration failed")
        detail = payload.get("errors") or payload.get("error")
        if isinstance(detail, dict):
            return AuthResult.invalid(
                {
                    field: [str(m) for m in msgs] if isinstance(msgs, list) else [str(msgs)]
                    for field, msgs in detail.items()
                }
            )
        if isinstance(detail, str) and detail:
            return AuthResult.failed(detail)
        return AuthResult.failed("Registration failed")

    # <~~LOGOUT & EXPIRY~~>
    def logout(self):
        """Drops the session immediately. In-flight requests are left to fail."""
        self._set_anonymous("logout")

    def expire(self):
        """Called when a protected call is refused."""
        if self.state is AuthState.ANONYMOUS and self.user is None:
            return
        self._set_anonymous("expired")

    # <~~AUTHENTICATED REQUESTS~~>
    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Authenticated request with the token current at call time."""
        token = self.access_token
        try:
            return await self.api.request(method, path, token=token, **kwargs)
        except SessionExpired:
            # Only expire if nobody replaced the token while we were waiting
            if token and token == self.access_token:
                self.expire()
            raise
