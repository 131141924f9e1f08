"""Data shapes exchanged with the chat service, plus the live message sequence."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Tokens(BaseModel):
    """Bearer token pair returned by every login path."""

    access: str
    refresh: str


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str | None = None
    username: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    is_staff: bool = False

    @property
    def display_name(self) -> str:
        return self.first_name or self.username


class ConversationSummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    title: str = "Untitled"
    message_count: int = 0
    created_at: str | None = None
    matched_message: str | None = None

    @field_validator("title", "message_count", mode="before")
    @classmethod
    def _null_to_default(cls, value, info):
        # null means the server has no value yet
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class Message(BaseModel):
    """A single chat entry. `id` stays None until the server assigns one."""

    type: Literal["user", "bot"]
    content: str
    timestamp: str = Field(default_factory=now_iso)
    intent: str | None = None
    confidence: float | None = None
    id: int | str | None = None

    @classmethod
    def from_server(cls, payload: dict[str, Any]) -> "Message":
        """Maps a stored message (`message_type`) into the common shape."""
        return cls(
            type=payload.get("message_type") or payload.get("type") or "bot",
            content=payload.get("content") or "",
            timestamp=payload.get("timestamp") or now_iso(),
            intent=payload.get("intent"),
            confidence=payload.get("confidence"),
            id=payload.get("id"),
        )

    @classmethod
    def from_bot_reply(cls, payload: dict[str, Any]) -> "Message":
        return cls(
            type="bot",
            content=payload.get("content") or "",
            timestamp=payload.get("timestamp") or now_iso(),
            intent=payload.get("intent"),
            confidence=payload.get("confidence"),
            id=payload.get("id"),
        )


class AuthResult(BaseModel):
    """Outcome of a login path. Field errors and a general error never mix."""

    success: bool
    error: str | None = None
    field_errors: dict[str, list[str]] | None = None

    @classmethod
    def ok(cls) -> "AuthResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "AuthResult":
        return cls(success=False, error=error)

    @classmethod
    def invalid(cls, field_errors: dict[str, list[str]]) -> "AuthResult":
        return cls(success=False, field_errors=field_errors)


class DashboardStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    today: dict[str, Any] = Field(default_factory=dict)
    overall: dict[str, Any] = Field(default_factory=dict)


class View(str, Enum):
    LANDING = "landing"
    AUTH = "auth"
    CHAT = "chat"
    ADMIN = "admin"


class AuthMode(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class ViewState(BaseModel):
    model_config = ConfigDict(frozen=True)

    view: View = View.LANDING
    auth_mode: AuthMode = AuthMode.LOGIN


class MessageSequence:
    """Append-only ordered messages of the active conversation.

    Messages enter through `append_optimistic` (user input, before any
    request) or `reconcile` (whatever the server, or the fallback path,
    produced). Nothing is ever reordered or removed individually.
    """

    def __init__(self):
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def append_optimistic(self, content: str) -> Message:
        message = Message(type="user", content=content)
        self._messages.append(message)
        return message

    def reconcile(self, message: Message) -> bool:
        """Appends a server-side message. A repeated server id is ignored."""
        if message.id is not None and self.find(message.id) is not None:
            return False
        self._messages.append(message)
        return True

    def replace(self, messages: list[Message]):
        self._messages = list(messages)

    def clear(self):
        self._messages = []

    def find(self, message_id: int | str) -> Message | None:
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def last_bot(self) -> Message | None:
        for msg in reversed(self._messages):
            if msg.type == "bot":
                return msg
        return None
