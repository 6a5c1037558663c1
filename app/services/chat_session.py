"""
Chat Session

Drives one WebSocket connection: JSON actions from the browser are
dispatched into a ChatStore, and every store change is pushed back as a
`state` frame.

Frames sent to the client:
- connected: {"user_id": ...}
- state:     full ChatState snapshot
- error:     the action could not be parsed or is unknown

Three tasks share the connection:
- receiver: reads frames and queues them, so a disconnect is noticed at once
- worker:   runs queued actions one at a time (the store shares one
            database session)
- sender:   the only writer to the socket; state frames are collapsed to
            the latest snapshot

When the client goes away the worker is cancelled, which marks a reply
that is still streaming as failed.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type
from uuid import UUID

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from app.schemas.conversation import ChatRequest, ConversationCreate, ConversationUpdate
from app.services.chat_store import ChatState, ChatStore

logger = logging.getLogger(__name__)


# ============================================================
# Frames
# ============================================================

class FrameTypes:
    """WebSocket frame type constants."""
    CONNECTED = "connected"
    STATE = "state"
    ERROR = "error"


@dataclass
class SessionFrame:
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


class ActionError(Exception):
    """Malformed or unknown client action."""
    pass


def _uuid(payload: Dict[str, Any], key: str) -> UUID:
    try:
        return UUID(str(payload[key]))
    except (KeyError, ValueError):
        raise ActionError(f"'{key}' must be a UUID")


def _text(payload: Dict[str, Any], key: str, required: bool = True) -> Optional[str]:
    value = payload.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, str):
        raise ActionError(f"'{key}' must be a string")
    return value


def _validated(schema: Type[BaseModel], keys: Mapping[str, str], **values: Any) -> BaseModel:
    """
    Run action arguments through the schema the HTTP API uses for them.

    `keys` maps schema field names back to the action's key names for the
    error text.
    """
    try:
        return schema(**values)
    except ValidationError as e:
        error = e.errors()[0]
        name = str(error["loc"][0]) if error["loc"] else "payload"
        message = error["msg"].removeprefix("Value error, ")
        raise ActionError(f"Invalid '{keys.get(name, name)}': {message}")


# Queued in place of a state frame; the sender reads the latest snapshot
_STATE_PENDING = object()


# ============================================================
# Session
# ============================================================

class ChatSession:
    """One browser connection bound to one ChatStore."""

    def __init__(self, websocket: WebSocket, store: ChatStore, user_id: UUID):
        self.websocket = websocket
        self.store = store
        self.user_id = user_id
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._pending_state: Optional[ChatState] = None

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "load_conversations": self._load_conversations,
            "create_conversation": self._create_conversation,
            "select_conversation": self._select_conversation,
            "send_message": self._send_message,
            "delete_conversation": self._delete_conversation,
            "delete_message": self._delete_message,
            "update_conversation_title": self._update_conversation_title,
            "clear_error": self._clear_error,
        }

    # ------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------

    async def _load_conversations(self, payload):
        await self.store.load_conversations(_uuid(payload, "project_id"))

    async def _create_conversation(self, payload):
        data = _validated(
            ConversationCreate,
            {},
            project_id=_uuid(payload, "project_id"),
            title=_text(payload, "title", required=False),
            context=_text(payload, "context", required=False),
        )
        try:
            await self.store.create_conversation(data.project_id, title=data.title, context=data.context)
        except Exception as e:
            # The client learns about it through state.error
            logger.info(f"create_conversation over WebSocket failed: {e}")

    async def _select_conversation(self, payload):
        await self.store.select_conversation(_uuid(payload, "conversation_id"))

    async def _send_message(self, payload):
        use_streaming = payload.get("use_streaming", True)
        if not isinstance(use_streaming, bool):
            raise ActionError("'use_streaming' must be a boolean")
        data = _validated(ChatRequest, {"message": "content"}, message=_text(payload, "content"))
        await self.store.send_message(data.message, use_streaming=use_streaming)

    async def _delete_conversation(self, payload):
        await self.store.delete_conversation(_uuid(payload, "conversation_id"))

    async def _delete_message(self, payload):
        await self.store.delete_message(_uuid(payload, "message_id"))

    async def _update_conversation_title(self, payload):
        conversation_id = _uuid(payload, "conversation_id")
        data = _validated(ConversationUpdate, {}, title=_text(payload, "title"))
        await self.store.update_conversation_title(conversation_id, data.title)

    async def _clear_error(self, payload):
        self.store.clear_error()

    async def dispatch(self, raw: str) -> None:
        """Parse one client message and run the matching store action."""
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            raise ActionError("Invalid JSON")

        if not isinstance(payload, dict):
            raise ActionError("Expected a JSON object")

        action = payload.get("action")
        handler = self._handlers.get(action)
        if handler is None:
            raise ActionError(f"Unknown action: {action}")

        await handler(payload)

    # ------------------------------------------------------------
    # Outgoing frames
    # ------------------------------------------------------------

    def _queue_frame(self, frame: SessionFrame) -> None:
        self._outbox.put_nowait(frame)

    def _on_state(self, state: ChatState, previous: ChatState) -> None:
        # One marker per burst; later snapshots only replace the pending one
        already_queued = self._pending_state is not None
        self._pending_state = state
        if not already_queued:
            self._outbox.put_nowait(_STATE_PENDING)

    async def _sender(self) -> None:
        """Write queued frames in order; the only task that sends."""
        while True:
            item = await self._outbox.get()
            if item is _STATE_PENDING:
                state, self._pending_state = self._pending_state, None
                item = SessionFrame(type=FrameTypes.STATE, data=state.model_dump(mode="json"))
            await self.websocket.send_text(item.to_json())

    # ------------------------------------------------------------
    # Incoming frames
    # ------------------------------------------------------------

    async def _receiver(self) -> None:
        """Queue every client frame; raises WebSocketDisconnect when the client leaves."""
        while True:
            self._inbox.put_nowait(await self.websocket.receive_text())

    async def _worker(self) -> None:
        while True:
            raw = await self._inbox.get()
            try:
                await self.dispatch(raw)
            except ActionError as e:
                self._queue_frame(SessionFrame(type=FrameTypes.ERROR, data={"detail": str(e)}))
            except Exception as e:
                logger.error(
                    f"WebSocket action failed: {e}",
                    extra={"action": "chat-session", "metadata": {"user_id": str(self.user_id)}}
                )
                self._queue_frame(SessionFrame(type=FrameTypes.ERROR, data={"detail": "Action failed"}))

    # ------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------

    async def run(self) -> None:
        """Serve the connection until the client goes away."""
        unsubscribe = self.store.subscribe(self._on_state)

        self._queue_frame(SessionFrame(
            type=FrameTypes.CONNECTED,
            data={"user_id": str(self.user_id)}
        ))
        self._on_state(self.store.state, self.store.state)

        sender = asyncio.create_task(self._sender())
        worker = asyncio.create_task(self._worker())

        try:
            await self._receiver()
        except WebSocketDisconnect:
            logger.info(f"Chat session closed for user {self.user_id}")
        finally:
            unsubscribe()
            # Worker first: a send cut off here is persisted as cancelled
            for task in (worker, sender):
                task.cancel()
            for task in (worker, sender):
                try:
                    await task
                except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                    pass
