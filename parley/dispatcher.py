"""The chat message pipeline for the active conversation."""

import asyncio
import logging
from typing import Literal

from pydantic import ValidationError as SchemaError

from parley.conversations import ConversationStore
from parley.errors import ParleyError
from parley.globals import FALLBACK_REPLY, log_exception
from parley.models import Message, MessageSequence
from parley.session_manager import SessionManager

FeedbackKind = Literal["positive", "negative"]


class MessageDispatcher:
    """Owns the live message sequence.

    A send appends the user's message before the request goes out, then
    appends exactly one bot message: the server's reply or the fallback.
    Sends are serialized, so at most one reply is awaited at any time.
    """

    def __init__(self, session: SessionManager, conversations: ConversationStore):
        self.session = session
        self.conversations = conversations
        self.messages = MessageSequence()
        self.is_awaiting: bool = False
        self._send_lock = asyncio.Lock()
        # Bumped whenever the live sequence is swapped out
        self._generation: int = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def conversation_id(self) -> int | str | None:
        return self.conversations.active_conversation_id

    # <~~SENDING~~>
    async def send_message(self, text: str) -> Message | None:
        """Sends one user message and returns the bot message that answered it.

        Returns None for blank input, or when the chat was cleared or switched
        while the reply was in flight (the reply is then dropped).
        """
        if not text.strip():
            return None

        generation = self._generation
        # Uncontended acquire does not suspend, so the user message still lands
        # before any network activity
        async with self._send_lock:
            if generation != self._generation:
                logging.debug("Chat changed while queued, dropping send")
                return None
            self.messages.append_optimistic(text)
            self.is_awaiting = True
            try:
                reply, created_id = await self._dispatch(text, self.conversation_id)
            finally:
                self.is_awaiting = False

            if generation != self._generation:
                logging.debug("Chat changed while awaiting a reply, dropping it")
                return None
            if created_id is not None and self.conversation_id is None:
                self.conversations.set_active(created_id)
            self.messages.reconcile(reply)
            return reply

    async def _dispatch(
        self, text: str, conversation_id: int | str | None
    ) -> tuple[Message, int | str | None]:
        """One chat round-trip. Any failure turns into the fallback reply."""
        try:
            data = await self.session.request(
                "POST",
                "/chatbot/chat/",
                json={"message": text, "conversation_id": conversation_id},
            )
            if not isinstance(data, dict) or not data.get("success"):
                raise ParleyError(f"Chat request unsuccessful: {data!r}")
            reply = Message.from_bot_reply(data.get("bot_message") or {})
        except (ParleyError, SchemaError) as e:
            log_exception(e, "Error in send_message()")
            return Message(type="bot", content=FALLBACK_REPLY), None
        return reply, data.get("conversation_id")

    # <~~LIFECYCLE~~>
    def clear(self):
        """Empties the chat and forgets the active conversation. Idempotent."""
        self._generation += 1
        self.messages.clear()
        self.conversations.set_active(None)

    def hydrate(self, conversation_id: int | str, messages: list[Message]):
        """Replaces the live sequence with a loaded conversation."""
        self._generation += 1
        self.conversations.set_active(conversation_id)
        self.messages.replace(messages)

    async def open_conversation(self, conversation_id: int | str) -> bool:
        """Selects a conversation in the store and hydrates from it."""
        messages = await self.conversations.select_conversation(conversation_id)
        if messages is None:
            return False
        self.hydrate(conversation_id, messages)
        return True

    # <~~FEEDBACK~~>
    async def record_feedback(self, message_id: int | str | None, kind: FeedbackKind) -> bool:
        """Annotates a server message. Silently skipped without a server id."""
        if message_id is None:
            return False
        try:
            await self.session.request(
                "POST",
                "/analytics/feedback/",
                json={"message_id": message_id, "feedback_type": kind},
            )
        except ParleyError as e:
            log_exception(e, f"Error in record_feedback() - message: {message_id}")
            return False
        return True

    def submit_feedback(self, message_id: int | str | None, kind: FeedbackKind) -> asyncio.Task | None:
        """Fire-and-forget variant of record_feedback."""
        if message_id is None:
            return None
        task = asyncio.create_task(self.record_feedback(message_id, kind))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
