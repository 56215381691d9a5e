"""Tests for the client-side store and its synchronisation with the API."""

import asyncio
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport

from conftest import ScriptedModelFactory, tool_call
from omega.client import ChatStore, ChatSync, OmegaClient
from omega.config import Settings
from omega.errors import ApiError


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _summary(chat_id: str, title: str, count: int = 0) -> dict:
    return {
        "id": chat_id,
        "title": title,
        "createdAt": "2024-01-01T00:00:00",
        "updatedAt": "2024-01-01T00:00:00",
        "messageCount": count,
    }


# ----------------------------------------------------------------------
# Store
# ----------------------------------------------------------------------


def test_store_operations_and_notifications() -> None:
    store = ChatStore()
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append(len(s.chats)))

    store.set_chats([_summary("a", "A")])
    store.add_chat(_summary("b", "B"))
    store.set_current_chat_id("b")
    store.increment_message_count("b")

    assert [c["id"] for c in store.chats] == ["b", "a"]
    assert store.get_current_chat()["messageCount"] == 1
    assert seen == [1, 2, 2, 2]

    unsubscribe()
    store.delete_chat("b")
    assert store.current_chat_id is None
    assert store.get_chat_by_id("b") is None
    assert len(seen) == 4


def test_store_message_operations() -> None:
    store = ChatStore()
    store.set_active_messages([{"id": "m1", "role": "user", "content": "Hi"}])
    store.add_message({"id": "m2", "role": "assistant", "content": "Hel"})
    store.update_message("m2", {"content": "Hello"})

    assert [m["content"] for m in store.active_messages] == ["Hi", "Hello"]


def test_recent_local_mutation_survives_contradicting_snapshot() -> None:
    clock = FakeClock()
    store = ChatStore(grace_period=5.0, clock=clock)
    store.set_chats([_summary("a", "A"), _summary("b", "B")])

    store.update_chat("a", {"title": "Renamed"})
    store.delete_chat("b")
    store.add_chat(_summary("c", "C"))

    clock.now += 1
    store.apply_snapshot([_summary("a", "A"), _summary("b", "B")])

    assert {c["id"]: c["title"] for c in store.chats} == {"c": "C", "a": "Renamed"}


def test_server_wins_once_mutation_is_older_than_grace_period() -> None:
    clock = FakeClock()
    store = ChatStore(grace_period=5.0, clock=clock)
    store.set_chats([_summary("a", "A"), _summary("b", "B")])

    store.update_chat("a", {"title": "Renamed"})
    store.delete_chat("b")
    store.add_chat(_summary("c", "C"))

    clock.now += 6
    store.apply_snapshot([_summary("a", "Server title"), _summary("b", "B")])

    assert [(c["id"], c["title"]) for c in store.chats] == [("a", "Server title"), ("b", "B")]


# ----------------------------------------------------------------------
# Sync against the API
# ----------------------------------------------------------------------


@pytest_asyncio.fixture
async def sync(app: FastAPI) -> AsyncGenerator[ChatSync, None]:
    client = OmegaClient("http://test/api", transport=ASGITransport(app=app))
    async with client:
        yield ChatSync(client, ChatStore(), poll_interval=0.01)


@pytest.mark.asyncio
async def test_create_load_and_delete(sync: ChatSync) -> None:
    chat = await sync.create_chat("Groceries")

    assert sync.store.current_chat_id == chat["id"]
    assert sync.store.is_creating_chat is False
    assert sync.store.chats[0]["title"] == "Groceries"

    await sync.load_chat(chat["id"])
    assert sync.store.active_messages == []

    await sync.delete_chat(chat["id"])
    assert sync.store.chats == []
    assert sync.store.current_chat_id is None

    with pytest.raises(ApiError) as excinfo:
        await sync.load_chat(chat["id"])
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_send_message_starts_a_chat(sync: ChatSync, models: ScriptedModelFactory) -> None:
    models.titles.add("Oslo Weather")
    models.chat.add(tool_call("weather", {"city": "Oslo"}), "It is mild in Oslo.")
    parts = []

    reply = await sync.send_message("Weather in Oslo?", on_part=lambda n, v: parts.append(n))

    assert reply["content"] == "It is mild in Oslo."
    assert reply["toolInvocations"][0]["state"] == "result"
    assert parts[-1] == "finish_message"

    chat_id = sync.store.current_chat_id
    assert chat_id is not None
    assert sync.store.get_chat_by_id(chat_id)["title"] == "Oslo Weather"
    assert [m["role"] for m in sync.store.active_messages] == ["user", "assistant"]

    detail = await sync.load_chat(chat_id)
    assert [m["role"] for m in detail["messages"]] == ["user", "assistant", "assistant"]
    assert sync.store.active_messages[1]["toolInvocations"][0]["toolName"] == "weather"


@pytest.mark.asyncio
async def test_send_message_continues_current_chat(
    sync: ChatSync, models: ScriptedModelFactory
) -> None:
    chat = await sync.create_chat("Notes")
    models.chat.add("First answer.", "Second answer.")

    await sync.send_message("one")
    await sync.send_message("two")

    # The second request carries the whole local history
    second_prompt = models.chat.prompts[1]
    assert [m.content for m in second_prompt[1:]] == ["one", "First answer.", "two"]
    assert sync.store.get_chat_by_id(chat["id"])["messageCount"] == 4


@pytest.mark.asyncio
async def test_polling_refreshes_chat_list(app: FastAPI, sync: ChatSync) -> None:
    await app.state.adapter.create_chat(title="Made elsewhere")

    await sync.start()
    assert sync.is_running
    for _ in range(100):
        if sync.store.chats:
            break
        await asyncio.sleep(0.01)
    await sync.stop()

    assert [c["title"] for c in sync.store.chats] == ["Made elsewhere"]
    assert not sync.is_running


@pytest.mark.asyncio
async def test_polling_survives_unexpected_responses() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text="<html>maintenance</html>")

    client = OmegaClient("http://test/api", transport=httpx.MockTransport(handler))
    async with client:
        sync = ChatSync(client, ChatStore(), poll_interval=0.01)
        await sync.start()
        for _ in range(100):
            if len(requests) >= 3:
                break
            await asyncio.sleep(0.01)

        assert len(requests) >= 3
        assert sync.is_running
        await sync.stop()

    assert sync.store.chats == []


@pytest.mark.asyncio
async def test_sync_from_settings() -> None:
    sync = ChatSync.from_settings(Settings(_env_file=None, poll_interval=2.5))
    async with sync.client:
        assert sync.poll_interval == 2.5
        assert sync.store.chats == []
