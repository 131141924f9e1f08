"""Usage statistics for the header line and the admin screen."""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError as SchemaError

from parley.errors import ParleyError
from parley.globals import log_exception
from parley.models import DashboardStats
from parley.session_manager import SessionManager


class StatsStore:
    """Dashboard counters, refreshed on demand or by a polling task."""

    def __init__(self, session: SessionManager):
        self.session = session
        self.stats: DashboardStats | None = None
        self._seq: int = 0
        self._poller: asyncio.Task | None = None

    async def refresh(self) -> DashboardStats | None:
        if not self.session.access_token:
            return None
        self._seq += 1
        seq = self._seq
        try:
            data = await self.session.request("GET", "/analytics/dashboard/")
            if not isinstance(data, dict) or not data.get("success"):
                return self.stats
            stats = DashboardStats.model_validate(data.get("stats") or {})
        except (ParleyError, SchemaError) as e:
            log_exception(e, "Error in StatsStore.refresh()")
            return self.stats
        if seq == self._seq:
            self.stats = stats
        return self.stats

    async def _poll(self, interval: float):
        while True:
            await self.refresh()
            await asyncio.sleep(interval)

    def start_polling(self, interval: float = 30):
        if self._poller and not self._poller.done():
            return
        self._poller = asyncio.create_task(self._poll(interval))

    def stop_polling(self):
        if self._poller:
            self._poller.cancel()
            self._poller = None
        self._seq += 1
        self.stats = None


class AdminOverview:
    """Read-only data behind the admin screen."""

    def __init__(self, session: SessionManager):
        self.session = session
        self.dashboard: dict[str, Any] = {}
        self.users: list[dict[str, Any]] = []

    async def load(self) -> bool:
        try:
            dashboard, users = await asyncio.gather(
                self.session.request("GET", "/chatbot/api/admin/dashboard/"),
                self.session.request("GET", "/chatbot/api/admin/users/"),
            )
        except ParleyError as e:
            log_exception(e, "Error in AdminOverview.load()")
            return False
        self.dashboard = dashboard if isinstance(dashboard, dict) else {}
        self.users = (users or {}).get("users", []) if isinstance(users, dict) else []
        logging.debug(f"Admin overview loaded with {len(self.users)} users")
        return True
