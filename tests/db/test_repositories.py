"""
Repository queries against a real engine.

The schema is created on SQLite (aiosqlite), so these cover the SQL the
repositories build, not the PostgreSQL row level security policies.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.db.database import Base
from app.models import MessageRole, Profile, ProtocolStatus
from app.repositories import (
    ConversationRepository,
    MessageRepository,
    ProjectRepository,
    ProtocolRepository,
)
from app.services.chat_service import ChatService
from app.services.chat_store import ChatStore, SendGuard


def _at(day, hour=0):
    return datetime(2000, 1, day, hour, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'searchmatic.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


async def _user(db, email):
    profile = Profile(id=uuid4(), email=email)
    db.add(profile)
    await db.commit()
    return profile


async def _project(db, user):
    return await ProjectRepository(db).create(user_id=user.id, title="Yoga for back pain")


@pytest_asyncio.fixture
async def owner(db):
    return await _user(db, "owner@example.com")


@pytest_asyncio.fixture
async def stranger(db):
    return await _user(db, "stranger@example.com")


# ============================================================
# Ownership scoping
# ============================================================

@pytest.mark.asyncio
async def test_project_scoped_to_owner_check(db, owner, stranger):
    project = await _project(db, owner)
    repo = ProjectRepository(db)

    assert (await repo.get_for_user(project.id, owner.id)).id == project.id
    assert await repo.get_for_user(project.id, stranger.id) is None


@pytest.mark.asyncio
async def test_message_scoped_through_conversation_owner_check(db, owner, stranger):
    project = await _project(db, owner)
    conversation = await ConversationRepository(db).create(project_id=project.id, user_id=owner.id)
    message = await MessageRepository(db).create_message(conversation.id, MessageRole.USER, "hi")
    repo = MessageRepository(db)

    assert (await repo.get_for_user(message.id, owner.id)).content == "hi"
    assert await repo.get_for_user(message.id, stranger.id) is None


@pytest.mark.asyncio
async def test_delete_for_project_leaves_other_rows_check(db, owner, stranger):
    project = await _project(db, owner)
    other_project = await _project(db, owner)
    repo = ConversationRepository(db)
    await repo.create(project_id=project.id, user_id=owner.id)
    await repo.create(project_id=project.id, user_id=owner.id)
    kept = await repo.create(project_id=other_project.id, user_id=owner.id)
    # Same project id, different user
    foreign = await repo.create(project_id=project.id, user_id=stranger.id)

    deleted = await repo.delete_for_project(project.id, owner.id)

    assert deleted == 2
    assert [c.id for c in await repo.get_user_conversations(owner.id)] == [kept.id]
    assert [c.id for c in await repo.get_user_conversations(stranger.id)] == [foreign.id]


# ============================================================
# Ordering
# ============================================================

@pytest.mark.asyncio
async def test_messages_ordered_by_creation_check(db, owner):
    project = await _project(db, owner)
    conversation = await ConversationRepository(db).create(project_id=project.id, user_id=owner.id)
    repo = MessageRepository(db)
    for content, day in (("second", 2), ("third", 3), ("first", 1)):
        await repo.create(conversation_id=conversation.id, role=MessageRole.USER, content=content, created_at=_at(day))

    messages = await repo.get_conversation_messages(conversation.id)

    assert [m.content for m in messages] == ["first", "second", "third"]
    assert [m.content for m in await repo.get_conversation_messages(conversation.id, limit=2)] == ["first", "second"]


@pytest.mark.asyncio
async def test_touch_moves_conversation_to_top_check(db, owner):
    project = await _project(db, owner)
    repo = ConversationRepository(db)
    older = await repo.create(project_id=project.id, user_id=owner.id, title="Older", updated_at=_at(1))
    await repo.create(project_id=project.id, user_id=owner.id, title="Newer", updated_at=_at(2))

    assert [c.title for c in await repo.get_user_conversations(owner.id)] == ["Newer", "Older"]

    await repo.touch(older)

    assert [c.title for c in await repo.get_user_conversations(owner.id, project_id=project.id)] == ["Older", "Newer"]
    assert await repo.count_user_conversations(owner.id, project_id=project.id) == 2


@pytest.mark.asyncio
async def test_with_messages_loads_in_order_check(db, owner, stranger):
    project = await _project(db, owner)
    conversation = await ConversationRepository(db).create(project_id=project.id, user_id=owner.id)
    repo = MessageRepository(db)
    await repo.create(conversation_id=conversation.id, role=MessageRole.ASSISTANT, content="reply", created_at=_at(1, 10))
    await repo.create(conversation_id=conversation.id, role=MessageRole.USER, content="question", created_at=_at(1, 9))

    loaded = await ConversationRepository(db).get_with_messages(conversation.id, owner.id)

    assert [m.content for m in loaded.messages] == ["question", "reply"]
    assert await ConversationRepository(db).get_with_messages(conversation.id, stranger.id) is None


# ============================================================
# Protocols
# ============================================================

@pytest.mark.asyncio
async def test_protocol_round_trip_check(db, owner, stranger):
    project = await _project(db, owner)
    repo = ProtocolRepository(db)
    protocol = await repo.create(
        project_id=project.id,
        user_id=owner.id,
        title="Exercise protocol",
        research_question="Does exercise reduce back pain?",
        inclusion_criteria=["Randomised controlled trials"],
        search_strategy={"pubmed": "exercise[tiab] AND back pain[tiab]"},
        updated_at=_at(1),
    )
    later = await repo.create(
        project_id=project.id, user_id=owner.id, title="Later", research_question="Q", updated_at=_at(2)
    )

    loaded = await repo.get_for_user(protocol.id, project.id, owner.id)

    assert loaded.inclusion_criteria == ["Randomised controlled trials"]
    assert loaded.search_strategy == {"pubmed": "exercise[tiab] AND back pain[tiab]"}
    assert loaded.status == ProtocolStatus.DRAFT
    assert loaded.version == 1
    assert await repo.get_for_user(protocol.id, project.id, stranger.id) is None
    assert await repo.get_for_user(protocol.id, uuid4(), owner.id) is None
    assert [p.id for p in await repo.get_project_protocols(project.id, owner.id)] == [later.id, protocol.id]


# ============================================================
# Store over the real service
# ============================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("use_streaming", [False, True])
async def test_send_persists_one_reply_check(db, owner, completion_factory, use_streaming):
    project = await _project(db, owner)
    service = ChatService(db, owner.id)
    conversation = await service.conversation_repo.create(project_id=project.id, user_id=owner.id)
    store = ChatStore(service, completion_client=completion_factory(), send_guard=SendGuard())

    await store.select_conversation(conversation.id)
    reply = await store.send_message("Is yoga better than usual care?", use_streaming=use_streaming)

    rows = await MessageRepository(db).get_conversation_messages(conversation.id)
    assert sorted(m.role for m in rows) == sorted([MessageRole.USER, MessageRole.ASSISTANT])
    assert reply.content == "Hello world"
    assert [m.content for m in rows if m.role == MessageRole.ASSISTANT] == ["Hello world"]
    assert store.state.error is None
