import asyncio
from uuid import uuid4

import pytest

from app.ai.prompts.chat_prompts import build_system_prompt
from app.models import MessageRole, DEFAULT_CONVERSATION_TITLE
from app.services.chat_store import (
    ChatStore,
    EMPTY_MESSAGE,
    NO_CONVERSATION_SELECTED,
    SEND_IN_PROGRESS,
    derive_title,
)


def _assistant_messages(state):
    return [m for m in state.current_conversation.messages if m.role == MessageRole.ASSISTANT]


# ============================================================
# Conversations
# ============================================================

@pytest.mark.asyncio
async def test_create_conversation_default_title_check(store):
    conversation = await store.create_conversation(uuid4())

    assert conversation.title == DEFAULT_CONVERSATION_TITLE
    assert store.state.conversations[0].id == conversation.id
    assert store.state.is_loading is False


@pytest.mark.asyncio
async def test_create_conversation_keeps_given_title_and_prepends_check(store, fake_service):
    project_id = uuid4()
    fake_service.add_conversation(project_id, title="Older")
    await store.load_conversations(project_id)

    conversation = await store.create_conversation(project_id, title="Search strategy")

    assert conversation.title == "Search strategy"
    assert [c.title for c in store.state.conversations] == ["Search strategy", "Older"]


@pytest.mark.asyncio
async def test_create_conversation_failure_reraises_check(store, fake_service):
    fake_service.fail["create_conversation"] = RuntimeError("Project not found")

    with pytest.raises(RuntimeError):
        await store.create_conversation(uuid4())

    assert store.state.error == "Project not found"
    assert store.state.is_loading is False


@pytest.mark.asyncio
async def test_load_conversations_failure_sets_error_check(store, fake_service):
    fake_service.fail["get_conversations"] = RuntimeError("")

    await store.load_conversations(uuid4())

    assert store.state.error == "Failed to load conversations"
    assert store.state.is_loading is False


@pytest.mark.asyncio
async def test_select_same_conversation_twice_is_stable_check(store, fake_service):
    conversation = fake_service.add_conversation(title="Screening")
    fake_service.add_message(conversation.id, MessageRole.USER, "Which databases?")
    fake_service.add_message(conversation.id, MessageRole.ASSISTANT, "PubMed and Scopus.")

    await store.select_conversation(conversation.id)
    first = store.state.current_conversation
    await store.select_conversation(conversation.id)

    assert store.state.current_conversation == first
    assert [m.content for m in first.messages] == ["Which databases?", "PubMed and Scopus."]


@pytest.mark.asyncio
async def test_select_missing_conversation_sets_error_check(store):
    await store.select_conversation(uuid4())

    assert store.state.error == "Conversation not found"
    assert store.state.current_conversation is None


@pytest.mark.asyncio
async def test_select_untitled_conversation_derives_title_check(store, fake_service):
    conversation = fake_service.add_conversation()
    fake_service.add_message(conversation.id, MessageRole.USER, "Inclusion criteria for RCTs")

    await store.select_conversation(conversation.id)

    assert store.state.current_conversation.title == "Inclusion criteria for RCTs"
    assert fake_service.conversations[conversation.id].title == "Inclusion criteria for RCTs"


@pytest.mark.asyncio
async def test_delete_active_conversation_clears_it_check(store, fake_service):
    project_id = uuid4()
    keep = fake_service.add_conversation(project_id, title="Keep")
    drop = fake_service.add_conversation(project_id, title="Drop")
    await store.load_conversations(project_id)
    await store.select_conversation(drop.id)

    await store.delete_conversation(drop.id)

    assert [c.id for c in store.state.conversations] == [keep.id]
    assert store.state.current_conversation is None


@pytest.mark.asyncio
async def test_delete_other_conversation_keeps_current_check(store, fake_service):
    project_id = uuid4()
    keep = fake_service.add_conversation(project_id, title="Keep")
    drop = fake_service.add_conversation(project_id, title="Drop")
    await store.load_conversations(project_id)
    await store.select_conversation(keep.id)

    await store.delete_conversation(drop.id)

    assert store.state.current_conversation.id == keep.id


@pytest.mark.asyncio
async def test_delete_message_removes_it_locally_check(store, fake_service):
    conversation = fake_service.add_conversation(title="Notes")
    message = fake_service.add_message(conversation.id, MessageRole.USER, "remove me")
    await store.select_conversation(conversation.id)

    await store.delete_message(message.id)

    assert store.state.current_conversation.messages == []


@pytest.mark.asyncio
async def test_update_title_updates_list_and_current_check(store, fake_service):
    project_id = uuid4()
    conversation = fake_service.add_conversation(project_id, title="Draft")
    await store.load_conversations(project_id)
    await store.select_conversation(conversation.id)

    await store.update_conversation_title(conversation.id, "PICO framing")

    assert store.state.conversations[0].title == "PICO framing"
    assert store.state.current_conversation.title == "PICO framing"


# ============================================================
# Sending
# ============================================================

@pytest.mark.asyncio
async def test_send_without_conversation_check(store, fake_service, fake_completion):
    await store.send_message("hello")

    assert store.state.error == NO_CONVERSATION_SELECTED
    assert fake_service.calls == []
    assert fake_completion.calls == []


@pytest.mark.asyncio
async def test_send_empty_message_check(store, fake_service, fake_completion):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)
    fake_service.calls.clear()

    await store.send_message("   ")

    assert store.state.error == EMPTY_MESSAGE
    assert fake_service.calls == []
    assert fake_completion.calls == []


@pytest.mark.asyncio
async def test_streaming_send_success_check(store, fake_service, send_guard):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    await store.send_message("What is a scoping review?")

    messages = store.state.current_conversation.messages
    assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT]
    assert messages[1].content == "Hello world"
    assert messages[1].metadata["final"] is True
    assert messages[1].metadata["streaming"] is False

    persisted = fake_service.messages[conversation.id]
    assert [m.content for m in persisted] == ["What is a scoping review?", "Hello world"]
    assert store.state.is_streaming is False
    assert store.state.error is None
    assert send_guard.is_busy(conversation.id) is False


@pytest.mark.asyncio
async def test_streaming_chunks_accumulate_check(store, fake_service):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)
    seen = []

    def on_state(state, previous):
        current = state.current_conversation
        assistant = [m for m in current.messages if m.role == MessageRole.ASSISTANT] if current else []
        if assistant and (not seen or seen[-1] != assistant[-1].content):
            seen.append(assistant[-1].content)

    store.subscribe(on_state)
    await store.send_message("hi")

    assert seen == ["", "Hel", "Hello ", "Hello world"]
    assert fake_service.messages[conversation.id][-1].content == "Hello world"


@pytest.mark.asyncio
async def test_first_send_sets_title_check(store, fake_service):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)
    content = "Help me design a search strategy for exercise therapy in chronic back pain"

    await store.send_message(content)

    expected = content[:50] + "..."
    assert store.state.current_conversation.title == expected
    assert fake_service.conversations[conversation.id].title == expected


@pytest.mark.asyncio
async def test_second_send_keeps_title_check(store, fake_service):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    await store.send_message("First question")
    await store.send_message("Second question")

    assert store.state.current_conversation.title == "First question"
    assert len(_assistant_messages(store.state)) == 2


def test_derive_title_check():
    assert derive_title("short") == "short"
    assert derive_title("x" * 50) == "x" * 50
    assert derive_title("x" * 51) == "x" * 50 + "..."


@pytest.mark.asyncio
async def test_send_uses_history_and_context_prompt_check(store, fake_service, fake_completion):
    conversation = fake_service.add_conversation(title="Meta-analysis", context="Focus on RCTs")
    fake_service.add_message(conversation.id, MessageRole.USER, "Earlier question")
    fake_service.add_message(conversation.id, MessageRole.ASSISTANT, "")
    await store.select_conversation(conversation.id)

    await store.send_message("Next question")

    call = fake_completion.calls[0]
    assert [m.content for m in call["messages"]] == ["Earlier question", "Next question"]
    assert call["system_prompt"] == build_system_prompt("Focus on RCTs")


@pytest.mark.asyncio
async def test_non_streaming_send_records_usage_check(store, fake_service):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    await store.send_message("hi", use_streaming=False)

    reply = _assistant_messages(store.state)[0]
    assert reply.content == "Hello world"
    assert reply.metadata["usage"]["total_tokens"] == 15
    assert "update_message" not in fake_service.calls


@pytest.mark.asyncio
async def test_send_rejected_while_in_flight_check(store, fake_service, fake_completion, send_guard):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)
    fake_service.calls.clear()
    send_guard.acquire(conversation.id)

    await store.send_message("again")

    assert store.state.error == SEND_IN_PROGRESS
    assert fake_service.calls == []
    assert fake_completion.calls == []


@pytest.mark.asyncio
async def test_concurrent_sends_only_one_runs_check(fake_service, completion_factory, send_guard):
    gate = asyncio.Event()
    completion = completion_factory(gate=gate)
    first = ChatStore(fake_service, completion_client=completion, send_guard=send_guard)
    second = ChatStore(fake_service, completion_client=completion, send_guard=send_guard)
    conversation = fake_service.add_conversation()
    await first.select_conversation(conversation.id)
    await second.select_conversation(conversation.id)

    task = asyncio.create_task(first.send_message("one"))
    while not send_guard.is_busy(conversation.id):
        await asyncio.sleep(0)

    await second.send_message("two")
    gate.set()
    await task

    assert second.state.error == SEND_IN_PROGRESS
    assert len(completion.calls) == 1
    assert send_guard.is_busy(conversation.id) is False


@pytest.mark.asyncio
async def test_stream_failure_keeps_partial_reply_check(fake_service, completion_factory, send_guard):
    completion = completion_factory(error=RuntimeError("quota exceeded"), fail_after=1)
    store = ChatStore(fake_service, completion_client=completion, send_guard=send_guard)
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    await store.send_message("hi")

    assert store.state.error == "quota exceeded"
    assert store.state.is_streaming is False
    reply = _assistant_messages(store.state)[0]
    assert reply.content == "Hel"
    assert reply.metadata["failed"] is True
    assert reply.metadata["error"] == "quota exceeded"
    assert fake_service.messages[conversation.id][-1].metadata["failed"] is True
    assert send_guard.is_busy(conversation.id) is False


@pytest.mark.asyncio
async def test_non_streaming_failure_sets_error_check(fake_service, completion_factory):
    store = ChatStore(fake_service, completion_client=completion_factory(error=RuntimeError("")))
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    await store.send_message("hi", use_streaming=False)

    assert store.state.error == "Failed to send message"
    # The user message stays, no assistant reply is stored
    assert [m.role for m in fake_service.messages[conversation.id]] == [MessageRole.USER]


@pytest.mark.asyncio
@pytest.mark.parametrize("use_streaming", [True, False])
async def test_send_returns_reply_when_title_update_fails_check(store, fake_service, use_streaming):
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)
    fake_service.fail["update_conversation"] = RuntimeError("title write failed")

    reply = await store.send_message("hi", use_streaming=use_streaming)

    assert reply is not None
    assert reply.content == "Hello world"
    assert reply.id == fake_service.messages[conversation.id][-1].id
    assert store.state.error == "title write failed"
    assert store.state.current_conversation.title == DEFAULT_CONVERSATION_TITLE


@pytest.mark.asyncio
async def test_send_returns_none_without_reply_check(fake_service, completion_factory):
    store = ChatStore(fake_service, completion_client=completion_factory(error=RuntimeError("quota exceeded")))
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    assert await store.send_message("hi", use_streaming=False) is None
    assert await store.send_message("   ") is None


@pytest.mark.asyncio
async def test_cancelled_stream_marks_reply_failed_check(fake_service, completion_factory, send_guard):
    gate = asyncio.Event()
    store = ChatStore(fake_service, completion_client=completion_factory(gate=gate), send_guard=send_guard)
    conversation = fake_service.add_conversation()
    await store.select_conversation(conversation.id)

    task = asyncio.create_task(store.send_message("hi"))
    while not _assistant_messages(store.state):
        await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    reply = fake_service.messages[conversation.id][-1]
    assert reply.metadata["failed"] is True
    assert reply.metadata["error"] == "Cancelled"
    assert store.state.is_streaming is False
    assert send_guard.is_busy(conversation.id) is False


# ============================================================
# Listeners
# ============================================================

@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications_check(store):
    received = []
    unsubscribe = store.subscribe(lambda state, previous: received.append(state))

    store.clear_error()
    unsubscribe()
    store.clear_error()

    assert len(received) == 1


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_store_check(store, fake_service):
    def broken(state, previous):
        raise ValueError("listener bug")

    store.subscribe(broken)
    conversation = fake_service.add_conversation(title="Still works")

    await store.select_conversation(conversation.id)

    assert store.state.current_conversation.title == "Still works"


def test_reset_check(store):
    store.reset()

    assert store.state.conversations == []
    assert store.state.current_conversation is None
    assert store.state.error is None
