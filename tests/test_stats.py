"""Dashboard statistics and the admin overview."""

import asyncio

import pytest

from parley.stats import AdminOverview, StatsStore

DASHBOARD = {
    "success": True,
    "stats": {
        "today": {"messages": 12, "active_users": 3},
        "overall": {"total_conversations": 40},
    },
}


@pytest.mark.asyncio
async def test_refresh_requires_a_session(server, session):
    stats = StatsStore(session)

    assert await stats.refresh() is None
    assert server.requests == []


@pytest.mark.asyncio
async def test_refresh(server, session, authenticate):
    await authenticate()
    server.on("GET", "/analytics/dashboard/", json=DASHBOARD)
    stats = StatsStore(session)

    result = await stats.refresh()

    assert result.today["messages"] == 12
    assert result.overall["total_conversations"] == 40


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_value(server, session, authenticate):
    await authenticate()
    server.on("GET", "/analytics/dashboard/", json=DASHBOARD)
    stats = StatsStore(session)
    await stats.refresh()
    server.on("GET", "/analytics/dashboard/", status=500, json={})

    result = await stats.refresh()

    assert result.today["active_users"] == 3


@pytest.mark.asyncio
async def test_polling_starts_and_stops(server, session, authenticate):
    await authenticate()
    server.on("GET", "/analytics/dashboard/", json=DASHBOARD)
    stats = StatsStore(session)

    stats.start_polling(interval=60)
    while stats.stats is None:
        await asyncio.sleep(0)
    stats.stop_polling()

    assert stats.stats is None
    assert len(server.sent("GET", "/analytics/dashboard/")) == 1


@pytest.mark.asyncio
async def test_admin_overview(server, session, authenticate):
    await authenticate(is_staff=True)
    server.on("GET", "/chatbot/api/admin/dashboard/", json={"total_users": 2, "total_messages": 9})
    server.on(
        "GET",
        "/chatbot/api/admin/users/",
        json={"users": [{"username": "alice", "is_staff": True}, {"username": "bob"}]},
    )
    admin = AdminOverview(session)

    assert await admin.load()

    assert admin.dashboard["total_users"] == 2
    assert [u["username"] for u in admin.users] == ["alice", "bob"]


@pytest.mark.asyncio
async def test_admin_overview_forbidden(server, session, authenticate):
    await authenticate()
    server.on("GET", "/chatbot/api/admin/dashboard/", status=403, json={})
    server.on("GET", "/chatbot/api/admin/users/", status=403, json={})

    assert not await AdminOverview(session).load()
