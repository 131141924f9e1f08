"""Conversation list, search ordering, selection and export."""

import asyncio

import httpx
import pytest

CONVERSATIONS = [
    {"id": 3, "title": "Recipes", "message_count": 4, "created_at": "2025-01-03T08:00:00Z"},
    {"id": 1, "title": "Trip ideas", "message_count": 2, "created_at": "2025-01-01T08:00:00Z"},
]


# 1. Listing


@pytest.mark.asyncio
async def test_list_replaces_wholesale(server, conversations, authenticate):
    await authenticate()
    server.on("GET", "/chatbot/conversations/", json=CONVERSATIONS)
    assert await conversations.list_conversations()
    assert [c.id for c in conversations.conversations] == [3, 1]

    server.on("GET", "/chatbot/conversations/", json=[{"id": 9, "title": "Fresh"}])
    assert await conversations.list_conversations()

    assert [c.id for c in conversations.conversations] == [9]


@pytest.mark.asyncio
async def test_failed_list_keeps_previous(server, conversations, authenticate):
    await authenticate()
    server.on("GET", "/chatbot/conversations/", json=CONVERSATIONS)
    await conversations.list_conversations()
    server.on("GET", "/chatbot/conversations/", status=500, json={})

    assert not await conversations.list_conversations()

    assert len(conversations.conversations) == 2
    assert conversations.last_error


@pytest.mark.asyncio
async def test_list_tolerates_null_fields(server, conversations, authenticate):
    await authenticate()
    server.on(
        "GET",
        "/chatbot/conversations/",
        json=[
            {"id": 1, "title": "ok", "message_count": 3},
            {"id": 2, "title": None, "message_count": None},
        ],
    )

    assert await conversations.list_conversations()

    assert [c.title for c in conversations.conversations] == ["ok", "Untitled"]
    assert conversations.conversations[1].message_count == 0


@pytest.mark.asyncio
async def test_search_tolerates_null_title(server, conversations, authenticate):
    await authenticate()
    server.on(
        "GET",
        "/chatbot/search/",
        json={"success": True, "results": [{"id": 4, "title": None, "matched_message": "hi"}]},
    )

    results = await conversations.search("hi there")

    assert [r.title for r in results] == ["Untitled"]


# 2. Search


@pytest.mark.asyncio
async def test_short_query_clears_results(server, conversations, authenticate):
    await authenticate()
    server.on(
        "GET",
        "/chatbot/search/",
        json={"success": True, "results": [{"id": 1, "title": "Trip ideas"}]},
    )
    await conversations.search("trip")
    assert conversations.is_searching
    before = len(server.requests)

    results = await conversations.search("t")

    assert results == []
    assert not conversations.is_searching
    assert conversations.displayed == conversations.conversations
    assert len(server.requests) == before


@pytest.mark.asyncio
async def test_search_sends_query(server, conversations, authenticate):
    await authenticate()
    server.on(
        "GET",
        "/chatbot/search/",
        json={
            "success": True,
            "results": [{"id": 1, "title": "Trip ideas", "matched_message": "Lisbon in May"}],
        },
    )

    results = await conversations.search("lisbon")

    assert [r.matched_message for r in results] == ["Lisbon in May"]
    assert server.sent("GET", "/chatbot/search/")[0].url.params["q"] == "lisbon"
    assert conversations.displayed == results


@pytest.mark.asyncio
async def test_stale_search_is_discarded(server, conversations, authenticate):
    await authenticate()
    release_first = asyncio.Event()

    async def search(request):
        query = request.url.params["q"]
        if query == "ca":
            await release_first.wait()
        return httpx.Response(
            200,
            json={"success": True, "results": [{"id": len(query), "title": query}]},
        )

    server.on("GET", "/chatbot/search/", handler=search)

    first = asyncio.create_task(conversations.search("ca"))
    while not server.sent("GET", "/chatbot/search/"):
        await asyncio.sleep(0)
    await conversations.search("cat")
    release_first.set()
    await first

    assert [r.title for r in conversations.search_results] == ["cat"]


@pytest.mark.asyncio
async def test_clear_search(server, conversations, authenticate):
    await authenticate()
    server.on("GET", "/chatbot/search/", json={"success": True, "results": [{"id": 1}]})
    await conversations.search("trip")

    conversations.clear_search()

    assert conversations.search_results == []
    assert conversations.search_query == ""
    assert not conversations.is_searching


# 3. Selection


@pytest.mark.asyncio
async def test_stale_selection_is_discarded(server, conversations, authenticate):
    await authenticate()
    release_first = asyncio.Event()

    async def first_detail(request):
        await release_first.wait()
        return httpx.Response(200, json={"id": 1, "messages": []})

    server.on("GET", "/chatbot/conversations/1/", handler=first_detail)
    server.on(
        "GET",
        "/chatbot/conversations/2/",
        json={"id": 2, "messages": [{"id": 5, "message_type": "user", "content": "hi"}]},
    )

    first = asyncio.create_task(conversations.select_conversation(1))
    while not server.sent("GET", "/chatbot/conversations/1/"):
        await asyncio.sleep(0)
    messages = await conversations.select_conversation(2)
    release_first.set()

    assert await first is None
    assert [m.content for m in messages] == ["hi"]
    assert conversations.active_conversation_id == 2


# 4. Export


@pytest.mark.asyncio
async def test_export_txt(server, conversations, authenticate, tmp_path):
    await authenticate()
    server.on(
        "GET",
        "/chatbot/conversations/1/",
        json={
            "id": 1,
            "title": "Trip: ideas?",
            "messages": [
                {"message_type": "user", "content": "Where to?", "timestamp": "2025-01-01T09:00:00"},
                {"message_type": "bot", "content": "Lisbon.", "timestamp": "2025-01-01T09:00:02"},
            ],
        },
    )

    path = await conversations.export_conversation(1, "txt")

    assert path == str(tmp_path / "Trip_ ideas_.txt")
    with open(path, encoding="utf-8") as f:
        lines = f.read().splitlines()
    assert lines[:3] == ["Trip: ideas?", "=" * 50, ""]
    assert lines[3] == "[USER] 2025-01-01 09:00:00"
    assert lines[4] == "Where to?"
    assert lines[6] == "[BOT] 2025-01-01 09:00:02"
    assert lines[7] == "Lisbon."


@pytest.mark.asyncio
async def test_export_unsupported_format(server, conversations, authenticate):
    await authenticate()
    before = len(server.requests)

    assert await conversations.export_conversation(1, "pdf") is None

    assert len(server.requests) == before


@pytest.mark.asyncio
async def test_export_failure(server, conversations, authenticate):
    await authenticate()
    server.on("GET", "/chatbot/conversations/1/", status=500, json={})

    assert await conversations.export_conversation(1) is None
    assert conversations.last_error
