"""
Chat Store

Single source of truth for one client session's conversations:
- the conversation list of the open project
- the current conversation with its messages
- loading / streaming flags and the last error text

Every mutation goes through `_set`, which swaps in a new immutable
`ChatState` and notifies subscribers synchronously. The WebSocket session
and the SSE endpoint subscribe to push changes to the browser.

Error policy:
------------
Each action catches its own errors, logs them with action/metadata context
and stores the message text in `state.error`. Only `create_conversation`
re-raises so the caller can abort what it was doing.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.ai.llm.gemini_client import GeminiCompletionClient, get_completion_client
from app.ai.prompts.chat_prompts import build_system_prompt
from app.db.database import AsyncSessionLocal, bind_session_user
from app.models.conversation import DEFAULT_CONVERSATION_TITLE
from app.models.message import MessageRole
from app.schemas.completion import ChatMessage, CompletionOptions
from app.schemas.conversation import (
    ConversationCreate,
    ConversationResponse,
    ConversationWithMessages,
    MessageResponse,
)
from app.services.chat_service import ChatService

logger = logging.getLogger(__name__)

NO_CONVERSATION_SELECTED = "No conversation selected"
SEND_IN_PROGRESS = "A response is already being generated for this conversation"
EMPTY_MESSAGE = "Message cannot be empty"

TITLE_MAX_LENGTH = 50


def derive_title(content: str) -> str:
    """Conversation title taken from the first user message."""
    if len(content) > TITLE_MAX_LENGTH:
        return content[:TITLE_MAX_LENGTH] + "..."
    return content


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_text(error: Exception, fallback: str) -> str:
    return str(error) or fallback


# ============================================================
# STATE
# ============================================================

class ChatState(BaseModel):
    """Snapshot of the store. Treated as immutable; `_set` replaces it."""
    model_config = ConfigDict(frozen=True)

    conversations: List[ConversationResponse] = Field(default_factory=list)
    current_conversation: Optional[ConversationWithMessages] = None
    is_loading: bool = False
    is_streaming: bool = False
    error: Optional[str] = None


Listener = Callable[[ChatState, ChatState], None]


class SendGuard:
    """
    Tracks conversations with a send in flight.

    acquire() and release() never await, so on a single event loop the
    check-and-add is atomic.
    """

    def __init__(self):
        self._in_flight: Set[UUID] = set()

    def acquire(self, conversation_id: UUID) -> bool:
        if conversation_id in self._in_flight:
            return False
        self._in_flight.add(conversation_id)
        return True

    def release(self, conversation_id: UUID) -> None:
        self._in_flight.discard(conversation_id)

    def is_busy(self, conversation_id: UUID) -> bool:
        return conversation_id in self._in_flight


_send_guard = SendGuard()


def get_send_guard() -> SendGuard:
    """Process-wide guard shared by every store."""
    return _send_guard


# ============================================================
# STORE
# ============================================================

class ChatStore:
    """
    Conversation state container.

    Args:
        service: Persistence for conversations and messages
        completion_client: Language model client (created on first send if omitted)
        send_guard: Shared in-flight tracker (process-wide guard if omitted)
        completion_options: Model/temperature/max_tokens overrides
    """

    def __init__(
        self,
        service: ChatService,
        completion_client: Optional[GeminiCompletionClient] = None,
        send_guard: Optional[SendGuard] = None,
        completion_options: Optional[CompletionOptions] = None
    ):
        self._service = service
        self._completion_client = completion_client
        self._send_guard = send_guard or get_send_guard()
        self._options = completion_options
        self._state = ChatState()
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def completion_client(self) -> GeminiCompletionClient:
        if self._completion_client is None:
            self._completion_client = get_completion_client()
        return self._completion_client

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register `listener(state, previous)`; returns a function that removes it.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes: Any) -> None:
        previous = self._state
        self._state = previous.model_copy(update=changes)

        for listener in list(self._listeners):
            try:
                listener(self._state, previous)
            except Exception as e:
                logger.error(f"Chat store listener failed: {e}")

    def _fail(self, action: str, error: Exception, fallback: str, metadata: Dict[str, Any], **changes: Any) -> None:
        self._set(error=_error_text(error, fallback), **changes)
        logger.error(
            f"{action} failed: {error}",
            extra={"action": action, "metadata": metadata}
        )

    def _append_message(self, conversation_id: UUID, message: MessageResponse) -> None:
        current = self._state.current_conversation
        if current is None or current.id != conversation_id:
            return
        self._set(current_conversation=current.model_copy(
            update={"messages": [*current.messages, message]}
        ))

    def _replace_message(self, conversation_id: UUID, message_id: UUID, message: MessageResponse) -> None:
        current = self._state.current_conversation
        if current is None or current.id != conversation_id:
            return
        self._set(current_conversation=current.model_copy(update={
            "messages": [message if m.id == message_id else m for m in current.messages]
        }))

    # ------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------

    async def load_conversations(self, project_id: UUID) -> None:
        self._set(is_loading=True, error=None)
        try:
            conversations = await self._service.get_conversations(project_id)
            self._set(conversations=conversations, is_loading=False)
        except Exception as e:
            self._fail(
                "Load Conversations", e, "Failed to load conversations",
                {"project_id": str(project_id)}, is_loading=False
            )

    async def create_conversation(
        self,
        project_id: UUID,
        title: Optional[str] = None,
        context: Optional[str] = None
    ) -> ConversationResponse:
        """Create a conversation and put it at the top of the list."""
        self._set(is_loading=True, error=None)
        try:
            conversation = await self._service.create_conversation(ConversationCreate(
                project_id=project_id,
                title=title or DEFAULT_CONVERSATION_TITLE,
                context=context
            ))
        except Exception as e:
            self._fail(
                "Create Conversation", e, "Failed to create conversation",
                {"project_id": str(project_id), "title": title}, is_loading=False
            )
            raise

        self._set(conversations=[conversation, *self._state.conversations], is_loading=False)
        return conversation

    async def select_conversation(self, conversation_id: UUID) -> None:
        """Load a conversation with its full history and make it current."""
        self._set(is_loading=True, error=None)
        try:
            conversation = await self._service.get_conversation_with_messages(conversation_id)
            self._set(current_conversation=conversation, is_loading=False)
        except Exception as e:
            self._fail(
                "Select Conversation", e, "Failed to load conversation",
                {"conversation_id": str(conversation_id)}, is_loading=False
            )
            return

        await self._derive_title(conversation_id)

    async def update_conversation_title(self, conversation_id: UUID, title: str) -> None:
        self._set(error=None)
        try:
            await self._service.update_conversation(conversation_id, title=title)
        except Exception as e:
            self._fail(
                "Update Conversation Title", e, "Failed to update conversation title",
                {"conversation_id": str(conversation_id), "title": title}
            )
            return

        self._apply_title(conversation_id, title)

    def _apply_title(self, conversation_id: UUID, title: str) -> None:
        conversations = [
            c.model_copy(update={"title": title}) if c.id == conversation_id else c
            for c in self._state.conversations
        ]
        current = self._state.current_conversation
        if current is not None and current.id == conversation_id:
            current = current.model_copy(update={"title": title})
        self._set(conversations=conversations, current_conversation=current)

    async def _derive_title(self, conversation_id: UUID) -> None:
        """
        Replace the default title with one taken from the first user message.

        Runs right after the first user message is appended and when an
        untitled conversation is selected.
        """
        current = self._state.current_conversation
        if current is None or current.id != conversation_id:
            return
        if current.title != DEFAULT_CONVERSATION_TITLE:
            return

        first_user_message = next(
            (m for m in current.messages if m.role == MessageRole.USER),
            None
        )
        if first_user_message is None or not first_user_message.content:
            return

        await self.update_conversation_title(conversation_id, derive_title(first_user_message.content))

    async def delete_conversation(self, conversation_id: UUID) -> None:
        self._set(is_loading=True, error=None)
        try:
            await self._service.delete_conversation(conversation_id)
        except Exception as e:
            self._fail(
                "Delete Conversation", e, "Failed to delete conversation",
                {"conversation_id": str(conversation_id)}, is_loading=False
            )
            return

        conversations = [c for c in self._state.conversations if c.id != conversation_id]
        current = self._state.current_conversation
        if current is not None and current.id == conversation_id:
            current = None
        self._set(conversations=conversations, current_conversation=current, is_loading=False)

    async def delete_message(self, message_id: UUID) -> None:
        self._set(error=None)
        try:
            await self._service.delete_message(message_id)
        except Exception as e:
            self._fail(
                "Delete Message", e, "Failed to delete message",
                {"message_id": str(message_id)}
            )
            return

        current = self._state.current_conversation
        if current is not None:
            self._set(current_conversation=current.model_copy(update={
                "messages": [m for m in current.messages if m.id != message_id]
            }))

    # ------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------

    def _history(self, conversation_id: UUID, fallback: List[MessageResponse]) -> List[ChatMessage]:
        current = self._state.current_conversation
        messages = current.messages if current is not None and current.id == conversation_id else fallback
        return [
            ChatMessage(role=m.role.value, content=m.content)
            for m in messages
            if m.content
        ]

    async def send_message(self, content: str, use_streaming: bool = True) -> Optional[MessageResponse]:
        """
        Persist a user message, get the assistant reply and persist that.

        Returns the persisted assistant message, or None when no reply was
        saved. `state.error` can be set even when a reply is returned: a
        failed title update does not undo the exchange.

        Streaming replies are written into an empty placeholder message that
        is updated in place once the stream ends. If the stream breaks off,
        the placeholder keeps the partial text and is marked failed.
        """
        current = self._state.current_conversation
        if current is None:
            self._set(error=NO_CONVERSATION_SELECTED)
            return None

        if not content or not content.strip():
            self._set(error=EMPTY_MESSAGE)
            return None

        conversation_id = current.id
        if not self._send_guard.acquire(conversation_id):
            self._set(error=SEND_IN_PROGRESS)
            return None

        self._set(is_streaming=use_streaming, error=None)

        placeholder: Optional[MessageResponse] = None
        reply: Optional[MessageResponse] = None
        finalized = False
        chunks: List[str] = []

        try:
            user_message = await self._service.create_message(
                conversation_id,
                MessageRole.USER,
                content,
                {"timestamp": _now()}
            )
            self._append_message(conversation_id, user_message)
            await self._derive_title(conversation_id)

            history = self._history(conversation_id, [*current.messages, user_message])
            system_prompt = build_system_prompt(current.context)

            if use_streaming:
                placeholder = await self._service.create_message(
                    conversation_id,
                    MessageRole.ASSISTANT,
                    "",
                    {"timestamp": _now(), "streaming": True}
                )
                self._append_message(conversation_id, placeholder)

                def on_chunk(chunk: str) -> None:
                    chunks.append(chunk)
                    self._replace_message(
                        conversation_id,
                        placeholder.id,
                        placeholder.model_copy(update={"content": "".join(chunks)})
                    )

                await self.completion_client.create_streaming_chat_completion(
                    history,
                    on_chunk,
                    self._options,
                    system_prompt=system_prompt
                )

                final_message = await self._service.update_message(
                    placeholder.id,
                    content="".join(chunks),
                    metadata={"timestamp": _now(), "streaming": False, "final": True}
                )
                finalized = True
                reply = final_message
                self._replace_message(conversation_id, placeholder.id, final_message)

            else:
                result = await self.completion_client.create_chat_completion(
                    history,
                    self._options,
                    system_prompt=system_prompt
                )
                assistant_message = await self._service.create_message(
                    conversation_id,
                    MessageRole.ASSISTANT,
                    result.content,
                    {"timestamp": _now(), "usage": result.usage.model_dump()}
                )
                reply = assistant_message
                self._append_message(conversation_id, assistant_message)

        except asyncio.CancelledError:
            # Client went away mid-stream
            if placeholder is not None and not finalized:
                await self._mark_failed(conversation_id, placeholder, "".join(chunks), "Cancelled")
            raise
        except Exception as e:
            self._fail(
                "Send Message", e, "Failed to send message",
                {
                    "conversation_id": str(conversation_id),
                    "content": content[:100],
                    "use_streaming": use_streaming,
                }
            )
            if placeholder is not None and not finalized:
                await self._mark_failed(conversation_id, placeholder, "".join(chunks), _error_text(e, "Failed to send message"))
        finally:
            self._send_guard.release(conversation_id)
            self._set(is_streaming=False)

        return reply

    async def _mark_failed(
        self,
        conversation_id: UUID,
        placeholder: MessageResponse,
        partial: str,
        error: str
    ) -> None:
        """Persist what arrived before the stream broke and flag it."""
        metadata = {"timestamp": _now(), "streaming": False, "failed": True, "error": error}
        try:
            failed_message = await self._service.update_message(
                placeholder.id,
                content=partial,
                metadata=metadata
            )
        except Exception as e:
            logger.error(
                f"Could not persist partial reply {placeholder.id}: {e}",
                extra={"action": "Send Message", "metadata": {"conversation_id": str(conversation_id)}}
            )
            failed_message = placeholder.model_copy(update={"content": partial, "metadata": metadata})

        self._replace_message(conversation_id, placeholder.id, failed_message)

    # ------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------

    def clear_error(self) -> None:
        self._set(error=None)

    def reset(self) -> None:
        self._set(
            conversations=[],
            current_conversation=None,
            is_loading=False,
            is_streaming=False,
            error=None
        )


@asynccontextmanager
async def open_chat_store(user_id: UUID) -> AsyncIterator[ChatStore]:
    """
    Store bound to a fresh database session for the lifetime of the block.

    Used by long-lived connections (SSE, WebSocket) that outlive a request
    scoped session.
    """
    async with AsyncSessionLocal() as db:
        await bind_session_user(db, user_id)
        yield ChatStore(ChatService(db, user_id))
