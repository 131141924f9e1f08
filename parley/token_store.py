"""Keychain-backed storage for the bearer token pair."""

import logging

from keyring import delete_password, get_password, set_password
from keyring.errors import KeyringError, PasswordDeleteError

from parley.globals import (
    ACCESS_TOKEN_KEY,
    KEYRING_SERVICE,
    REFRESH_TOKEN_KEY,
    log_exception,
)
from parley.models import Tokens


class TokenStore:
    """Reads and writes the access/refresh tokens. Both move together.

    If the keychain refuses a write, the pair is kept in memory for the rest
    of the process so the current session still works.
    """

    def __init__(self):
        self._cached: Tokens | None = None

    def _read(self, key: str) -> str | None:
        try:
            return get_password(KEYRING_SERVICE, key)
        except (KeyringError, RuntimeError, OSError) as e:
            log_exception(e, f"Error reading '{key}' from keyring")
            return None

    @property
    def access_token(self) -> str | None:
        if self._cached:
            return self._cached.access
        return self._read(ACCESS_TOKEN_KEY)

    @property
    def refresh_token(self) -> str | None:
        if self._cached:
            return self._cached.refresh
        return self._read(REFRESH_TOKEN_KEY)

    def save(self, tokens: Tokens):
        """Persists both tokens"""
        self._cached = tokens
        try:
            set_password(KEYRING_SERVICE, ACCESS_TOKEN_KEY, tokens.access)
            set_password(KEYRING_SERVICE, REFRESH_TOKEN_KEY, tokens.refresh)
        except (KeyringError, ValueError, RuntimeError, OSError) as e:
            log_exception(e, "Could not save tokens to keyring, keeping them in memory")

    def clear(self):
        """Removes both tokens. Missing entries are fine."""
        self._cached = None
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY):
            try:
                delete_password(KEYRING_SERVICE, key)
            except PasswordDeleteError:
                pass
            except (KeyringError, RuntimeError, OSError) as e:
                log_exception(e, f"Error deleting '{key}' from keyring")
        logging.debug("Stored tokens cleared")
