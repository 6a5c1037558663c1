"""
Conversation and Chat Endpoints

HTTP API for chat functionality.

Endpoints:
----------
Conversations:
- POST   /conversations                        - Create new conversation
- GET    /conversations?project_id=            - List user's conversations
- GET    /conversations/{id}                   - Get conversation with messages
- PATCH  /conversations/{id}                   - Rename conversation
- DELETE /conversations/{id}                   - Delete conversation
- DELETE /conversations?project_id=            - Delete all conversations of a project

Chat:
- GET    /conversations/{id}/messages          - List messages
- POST   /conversations/{id}/messages          - Send message (non-streaming)
- POST   /conversations/{id}/messages/stream   - Send message (streaming via SSE)
- DELETE /conversations/{id}/messages/{mid}    - Delete a message
- WS     /conversations/ws?token=              - Store session over WebSocket
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Query, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from app.db.database import get_db
from app.api.deps import get_current_user, get_chat_store_opener, get_websocket_user
from app.models import Profile, MessageRole
from app.schemas.conversation import (
    ConversationCreate,
    ConversationUpdate,
    ConversationResponse,
    ConversationWithMessages,
    ConversationListResponse,
    ChatRequest,
    ChatResponse,
    MessageResponse,
)
from app.services.chat_service import (
    ChatService,
    ChatServiceError,
    ConversationNotFoundError,
    MessageNotFoundError,
)
from app.services.chat_session import ChatSession
from app.services.chat_store import ChatState, get_send_guard, SEND_IN_PROGRESS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


# ============================================================
# HELPER
# ============================================================

def get_chat_service(
    current_user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ChatService:
    """Dependency that provides a ChatService bound to the current user."""
    return ChatService(db, current_user.id)


async def _ensure_can_send(service: ChatService, conversation_id: UUID) -> None:
    """404 for someone else's conversation, 409 while a reply is being generated."""
    try:
        await service.get_conversation(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )

    if get_send_guard().is_busy(conversation_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SEND_IN_PROGRESS
        )


# ============================================================
# CONVERSATION ENDPOINTS
# ============================================================

@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new conversation",
    description="""
    Create a new chat conversation inside one of your projects.

    The title defaults to "New Conversation" and is replaced by the start of
    the first message you send.
    """,
)
async def create_conversation(
    data: ConversationCreate,
    service: ChatService = Depends(get_chat_service),
):
    """Create a new conversation."""
    try:
        return await service.create_conversation(data)
    except ChatServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )


@router.get(
    "",
    response_model=ConversationListResponse,
    summary="List conversations",
    description="Conversations of the current user, most recent activity first.",
)
async def list_conversations(
    project_id: Optional[UUID] = Query(
        None,
        description="Filter by project ID"
    ),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    service: ChatService = Depends(get_chat_service),
):
    """List user's conversations."""
    conversations = await service.get_conversations(
        project_id=project_id,
        skip=skip,
        limit=limit
    )

    return ConversationListResponse(
        conversations=conversations,
        total=await service.count_conversations(project_id)
    )


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete all conversations of a project",
)
async def delete_project_conversations(
    project_id: UUID = Query(..., description="Project whose conversations are removed"),
    service: ChatService = Depends(get_chat_service),
):
    """Delete every conversation the user has in a project."""
    await service.delete_all_conversations_for_project(project_id)


@router.get(
    "/{conversation_id}",
    response_model=ConversationWithMessages,
    summary="Get conversation with messages",
    description="Get a conversation including all its messages.",
)
async def get_conversation(
    conversation_id: UUID,
    service: ChatService = Depends(get_chat_service),
):
    """Get a conversation with all messages."""
    try:
        return await service.get_conversation_with_messages(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )


@router.patch(
    "/{conversation_id}",
    response_model=ConversationResponse,
    summary="Rename conversation",
)
async def update_conversation(
    conversation_id: UUID,
    data: ConversationUpdate,
    service: ChatService = Depends(get_chat_service),
):
    """Update a conversation."""
    try:
        return await service.update_conversation(conversation_id, title=data.title)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )


@router.delete(
    "/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete conversation",
    description="Permanently delete a conversation and all its messages.",
)
async def delete_conversation(
    conversation_id: UUID,
    service: ChatService = Depends(get_chat_service),
):
    """Delete a conversation."""
    try:
        await service.delete_conversation(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )


# ============================================================
# CHAT ENDPOINTS
# ============================================================

@router.get(
    "/{conversation_id}/messages",
    response_model=List[MessageResponse],
    summary="List messages",
    description="Messages of a conversation, oldest first.",
)
async def list_messages(
    conversation_id: UUID,
    service: ChatService = Depends(get_chat_service),
):
    try:
        return await service.get_messages(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found"
        )


@router.post(
    "/{conversation_id}/messages",
    response_model=ChatResponse,
    summary="Send a message",
    description="""
    Send a message to the assistant and get the full reply at once.

    For real-time streaming, use the `/stream` endpoint.
    """,
    responses={
        404: {"description": "Conversation not found"},
        409: {"description": "A reply is already being generated"},
        502: {"description": "The language model call failed"},
    }
)
async def send_message(
    conversation_id: UUID,
    data: ChatRequest,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
    open_store=Depends(get_chat_store_opener),
):
    """Send a message and get the assistant's reply."""
    await _ensure_can_send(service, conversation_id)

    async with open_store(current_user.id) as store:
        await store.select_conversation(conversation_id)
        reply = await store.send_message(data.message, use_streaming=False)
        state = store.state

    if reply is None:
        if state.error == SEND_IN_PROGRESS:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=state.error)
        logger.error(f"Chat error: {state.error}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=state.error or "Failed to generate response"
        )

    if state.error:
        # The reply is saved; only a side effect such as the title update failed
        logger.warning(f"Reply {reply.id} saved with error: {state.error}")

    conversation = state.current_conversation
    user_message = next(m for m in reversed(conversation.messages) if m.role == MessageRole.USER)

    return ChatResponse(
        user_message=user_message,
        message=reply,
        conversation=ConversationResponse.model_validate(conversation.model_dump())
    )


def _stream_events(state: ChatState, sent: Dict[UUID, int]):
    """New text of every assistant message that is still streaming."""
    current = state.current_conversation
    if current is None:
        return

    for message in current.messages:
        if message.role != MessageRole.ASSISTANT or not message.metadata.get("streaming"):
            continue
        already = sent.get(message.id, 0)
        if len(message.content) > already:
            sent[message.id] = len(message.content)
            yield {
                "event": "content",
                "data": json.dumps({"text": message.content[already:]})
            }


@router.post(
    "/{conversation_id}/messages/stream",
    summary="Send a message (streaming)",
    description="""
    Send a message and receive the reply via Server-Sent Events (SSE).

    **Event types:**
    - `content`: Text chunks as they're generated
    - `done`: Completion signal with the persisted message ID
    - `error`: Error message if something goes wrong
    """,
    responses={
        200: {
            "description": "SSE stream of response chunks",
            "content": {"text/event-stream": {}}
        },
        404: {"description": "Conversation not found"},
        409: {"description": "A reply is already being generated"},
    }
)
async def send_message_stream(
    conversation_id: UUID,
    data: ChatRequest,
    current_user: Profile = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
    open_store=Depends(get_chat_store_opener),
):
    """Send a message and stream the assistant's reply."""
    await _ensure_can_send(service, conversation_id)

    # Captured before the generator runs; the request session is gone by then
    user_id = current_user.id
    message_content = data.message

    async def event_generator():
        """Generate SSE events from store changes."""
        # The store opens its own session so it stays alive while streaming
        async with open_store(user_id) as store:
            await store.select_conversation(conversation_id)
            if store.state.current_conversation is None:
                yield {"event": "error", "data": json.dumps({"error": store.state.error or "Conversation not found"})}
                return

            events: asyncio.Queue = asyncio.Queue()
            sent: Dict[UUID, int] = {}

            def on_state(state: ChatState, previous: ChatState) -> None:
                for event in _stream_events(state, sent):
                    events.put_nowait(event)

            unsubscribe = store.subscribe(on_state)
            logger.info(f"SSE: Starting stream for conversation {conversation_id}")

            task = asyncio.create_task(store.send_message(message_content, use_streaming=True))
            task.add_done_callback(lambda _: events.put_nowait(None))
            reply = None

            try:
                while True:
                    event = await events.get()
                    if event is None:
                        break
                    yield event
                reply = task.result()
            finally:
                unsubscribe()
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        logger.info(f"SSE: Client left, stream for {conversation_id} cancelled")

            error = store.state.error
            if reply is None:
                logger.error(f"SSE: Error event: {error}")
                yield {"event": "error", "data": json.dumps({"error": error or "Failed to generate response"})}
                return

            if error:
                logger.warning(f"SSE: Reply {reply.id} saved with error: {error}")
            yield {
                "event": "done",
                "data": json.dumps({"message_id": str(reply.id)})
            }

    return EventSourceResponse(event_generator())


@router.delete(
    "/{conversation_id}/messages/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a message",
)
async def delete_message(
    conversation_id: UUID,
    message_id: UUID,
    service: ChatService = Depends(get_chat_service),
):
    try:
        await service.delete_message(message_id)
    except MessageNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )


# ============================================================
# WEBSOCKET SESSION
# ============================================================

@router.websocket("/ws")
async def chat_websocket(
    websocket: WebSocket,
    current_user: Optional[Profile] = Depends(get_websocket_user),
    open_store=Depends(get_chat_store_opener),
):
    """
    Conversation store over a WebSocket.

    Send `{"action": "...", ...}` frames; every state change comes back as a
    `state` frame.
    """
    if current_user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    async with open_store(current_user.id) as store:
        session = ChatSession(websocket, store, current_user.id)
        await session.run()
