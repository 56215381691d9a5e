"""Tests for the persistence adapter."""

import pytest
from sqlalchemy.exc import IntegrityError

from omega.db.adapter import DatabaseAdapter
from omega.db.database import Database
from omega.errors import ChatNotFoundError, ToolNameConflictError, ToolNotFoundError


@pytest.fixture
def store(database: Database) -> DatabaseAdapter:
    return DatabaseAdapter(database)


@pytest.mark.asyncio
async def test_messages_come_back_in_creation_order(store: DatabaseAdapter) -> None:
    chat = await store.create_chat(title="Ordered")
    for i in range(4):
        await store.create_message(chat.id, "user" if i % 2 == 0 else "assistant", content=str(i))

    loaded = await store.get_chat_with_messages(chat.id)

    assert [m.content for m in loaded.messages] == ["0", "1", "2", "3"]
    assert [m.content for m in await store.get_messages(chat.id, limit=2)] == ["0", "1"]


@pytest.mark.asyncio
async def test_new_message_bumps_chat_activity(store: DatabaseAdapter) -> None:
    chat = await store.create_chat(title="Busy")
    before = (await store.get_chat(chat.id)).updated_at

    await store.create_message(chat.id, "user", content="ping")

    assert (await store.get_chat(chat.id)).updated_at > before


@pytest.mark.asyncio
async def test_message_for_missing_chat_is_rejected(store: DatabaseAdapter) -> None:
    with pytest.raises(ChatNotFoundError):
        await store.create_message("missing", "user", content="orphan")


@pytest.mark.asyncio
async def test_delete_chat_cascades(store: DatabaseAdapter) -> None:
    chat = await store.create_chat(title="Gone")
    message = await store.create_message(chat.id, "user", content="bye")

    await store.delete_chat(chat.id)

    assert await store.get_chat(chat.id) is None
    assert await store.get_messages(chat.id) == []
    assert await store.delete_message(message.id) is False
    with pytest.raises(ChatNotFoundError):
        await store.delete_chat(chat.id)


@pytest.mark.asyncio
async def test_list_chats_counts_messages(store: DatabaseAdapter) -> None:
    quiet = await store.create_chat(title="Quiet", user_id="u1")
    chatty = await store.create_chat(title="Chatty", user_id="u1")
    await store.create_chat(title="Other user", user_id="u2")
    await store.create_message(chatty.id, "user", content="a")
    await store.create_message(chatty.id, "assistant", content="b")

    rows = await store.list_chats(user_id="u1")

    assert [(chat.title, count) for chat, count in rows] == [("Chatty", 2), ("Quiet", 0)]
    assert quiet.id in {chat.id for chat, _ in rows}
    assert len(await store.list_chats(limit=1)) == 1


@pytest.mark.asyncio
async def test_update_message_and_chat(store: DatabaseAdapter) -> None:
    chat = await store.create_chat(title="Draft")
    message = await store.create_message(chat.id, "assistant", content="typo")

    edited = await store.update_message(message.id, content="fixed", meta={"edited": True})
    renamed = await store.update_chat(chat.id, title="Final", temperature=0.0)

    assert (edited.content, edited.meta) == ("fixed", {"edited": True})
    assert (renamed.title, renamed.temperature) == ("Final", 0.0)
    assert await store.update_message("missing", content="x") is None
    with pytest.raises(ChatNotFoundError):
        await store.update_chat("missing", title="x")
    with pytest.raises(ValueError):
        await store.update_chat(chat.id, colour="blue")


@pytest.mark.asyncio
async def test_tool_names_are_unique(store: DatabaseAdapter) -> None:
    first = await store.create_tool(name="lookup")
    second = await store.create_tool(name="search")

    with pytest.raises(ToolNameConflictError):
        await store.create_tool(name="lookup")
    with pytest.raises(ToolNameConflictError):
        await store.update_tool(second.id, name="lookup")
    with pytest.raises(ToolNotFoundError):
        await store.delete_tool("missing")

    assert (await store.get_tool_by_name("lookup")).id == first.id


@pytest.mark.asyncio
async def test_other_integrity_errors_are_not_name_conflicts(store: DatabaseAdapter) -> None:
    tool = await store.create_tool(name="lookup")

    with pytest.raises(IntegrityError):
        await store.update_tool(tool.id, enabled=None)


@pytest.mark.asyncio
async def test_ensure_tools_only_inserts_missing(store: DatabaseAdapter) -> None:
    await store.create_tool(name="calculator", description="edited", enabled=False)

    inserted = await store.ensure_tools(
        [
            {"name": "calculator", "description": "Calculate"},
            {"name": "weather", "description": "Weather"},
        ]
    )

    assert inserted == 1
    kept = await store.get_tool_by_name("calculator")
    assert (kept.description, kept.enabled) == ("edited", False)
    assert [t.name for t in await store.list_tools()] == ["weather"]
    assert len(await store.list_tools(include_disabled=True)) == 2


@pytest.mark.asyncio
async def test_preferences_upsert(store: DatabaseAdapter) -> None:
    assert await store.get_user_preferences("u1") is None

    await store.update_user_preferences("u1", {"units": "metric"})
    await store.update_user_preferences("u1", {"units": "imperial"})

    assert (await store.get_user_preferences("u1")).preferences == {"units": "imperial"}
