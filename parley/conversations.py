"""Conversation list, search, selection and export."""

import logging
import os
from datetime import datetime

from pydantic import ValidationError as SchemaError

from parley.errors import ParleyError
from parley.globals import EXPORTS_DIR, UNSAFE_FILENAME, log_exception
from parley.models import ConversationSummary, Message
from parley.session_manager import SessionManager

MIN_QUERY_LENGTH = 2
EXPORT_FORMATS = ("txt",)


class ConversationStore:
    """Owns the conversation list, search results and the active conversation id.

    Searches and selections are guarded by sequence numbers, so a slow, older
    response can never overwrite the result of a newer request.
    """

    def __init__(self, session: SessionManager, exports_dir: str = EXPORTS_DIR):
        self.session = session
        self.exports_dir = exports_dir
        self.conversations: list[ConversationSummary] = []
        self.search_results: list[ConversationSummary] = []
        self.search_query: str = ""
        self.is_searching: bool = False
        self.active_conversation_id: int | str | None = None
        self.last_error: str | None = None
        self._search_seq: int = 0
        self._select_seq: int = 0

    @property
    def displayed(self) -> list[ConversationSummary]:
        """The list the panel should show right now."""
        return self.search_results if self.is_searching else self.conversations

    def set_active(self, conversation_id: int | str | None):
        """Hand-off point for ids created or dropped by the dispatcher."""
        if conversation_id != self.active_conversation_id:
            logging.debug(f"Active conversation: {conversation_id}")
        self.active_conversation_id = conversation_id

    def _fail(self, e: Exception, context: str):
        log_exception(e, context)
        self.last_error = str(e) or type(e).__name__

    # <~~LISTING~~>
    async def list_conversations(self) -> bool:
        """Replaces the list with the server's, in server order."""
        try:
            data = await self.session.request("GET", "/chatbot/conversations/")
            conversations = [ConversationSummary.model_validate(c) for c in data or []]
        except (ParleyError, SchemaError, TypeError) as e:
            self._fail(e, "Error in list_conversations()")
            return False
        self.conversations = conversations
        self.last_error = None
        return True

    # <~~SEARCH~~>
    async def search(self, query: str) -> list[ConversationSummary]:
        """Searches titles and messages. Short queries fall back to the full list."""
        self.search_query = query
        self._search_seq += 1
        seq = self._search_seq

        if len(query.strip()) < MIN_QUERY_LENGTH:
            self.search_results = []
            self.is_searching = False
            return self.search_results

        self.is_searching = True
        try:
            data = await self.session.request(
                "GET", "/chatbot/search/", params={"q": query}
            ) or {}
            results = [
                ConversationSummary.model_validate(r)
                for r in data.get("results") or []
            ]
        except (ParleyError, SchemaError, AttributeError, TypeError) as e:
            if seq == self._search_seq:
                self._fail(e, f"Error in search() - query: {query!r}")
                self.is_searching = False
            return []

        if seq != self._search_seq:
            logging.debug(f"Discarding stale search response for {query!r}")
            return results
        if data.get("success"):
            self.search_results = results
        return self.search_results

    def clear_search(self):
        self._search_seq += 1
        self.search_query = ""
        self.search_results = []
        self.is_searching = False

    # <~~SELECTION~~>
    async def _fetch_detail(self, conversation_id: int | str) -> dict:
        data = await self.session.request(
            "GET", f"/chatbot/conversations/{conversation_id}/"
        )
        if not isinstance(data, dict):
            raise TypeError(f"Unexpected conversation payload: {type(data).__name__}")
        return data

    async def select_conversation(self, conversation_id: int | str) -> list[Message] | None:
        """Loads a conversation and makes it the active one.

        Returns the messages for the dispatcher to hydrate from, or None if the
        load failed or a newer selection superseded it.
        """
        self._select_seq += 1
        seq = self._select_seq
        try:
            data = await self._fetch_detail(conversation_id)
            messages = [Message.from_server(m) for m in data.get("messages") or []]
        except (ParleyError, SchemaError, TypeError) as e:
            if seq == self._select_seq:
                self._fail(e, f"Error in select_conversation() - id: {conversation_id}")
            return None

        if seq != self._select_seq:
            logging.debug(f"Discarding stale load of conversation {conversation_id}")
            return None
        self.set_active(conversation_id)
        self.clear_search()
        self.last_error = None
        return messages

    # <~~EXPORT~~>
    @staticmethod
    def _format_timestamp(value: str | None) -> str:
        if not value:
            return ""
        try:
            stamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if stamp.tzinfo is not None:
            stamp = stamp.astimezone()
        return stamp.strftime("%Y-%m-%d %H:%M:%S")

    def render_transcript(self, detail: dict) -> str:
        """Plain-text transcript: title header, then type/time/content per message."""
        title = detail.get("title") or "Untitled"
        lines = [title, "=" * 50, ""]
        for msg in detail.get("messages") or []:
            kind = str(msg.get("message_type") or msg.get("type") or "").upper()
            lines.append(f"[{kind}] {self._format_timestamp(msg.get('timestamp'))}")
            lines.append(msg.get("content") or "")
            lines.append("")
        return "\n".join(lines) + "\n"

    async def export_conversation(self, conversation_id: int | str, fmt: str = "txt") -> str | None:
        """Writes a transcript into the exports directory and returns its path."""
        if fmt not in EXPORT_FORMATS:
            logging.info(f"Export format '{fmt}' is not supported")
            return None
        try:
            detail = await self._fetch_detail(conversation_id)
            title = detail.get("title") or f"conversation-{conversation_id}"
            file_name = UNSAFE_FILENAME.sub("_", title).strip() or "conversation"
            file_path = os.path.join(self.exports_dir, f"{file_name}.{fmt}")
            with open(file_path, "w", encoding="utf-8") as f:
                f.write(self.render_transcript(detail))
        except (ParleyError, TypeError, OSError) as e:
            self._fail(e, f"Error in export_conversation() - id: {conversation_id}")
            return None
        return file_path

    def reset(self):
        """Forgets everything. Pending responses become stale."""
        self._search_seq += 1
        self._select_seq += 1
        self.conversations = []
        self.search_results = []
        self.search_query = ""
        self.is_searching = False
        self.active_conversation_id = None
        self.last_error = None
