"""Pool managers that hand out browser sessions and track slot health."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from scrapedeck.browser.session import SessionLease, SlotStatus
from scrapedeck.errors import ScrapeDeckError


class PoolExhausted(ScrapeDeckError):
    """Raised when no slot became available before the wait deadline."""


@dataclass(slots=True)
class _Slot:
    slot_id: str
    endpoint: str
    status: SlotStatus = "idle"
    reason: str | None = None


class LocalBrowserPool:
    """In-process pool over a fixed list of CDP endpoints."""

    def __init__(self, endpoints: list[str], *, acquire_wait_ms: int = 30000):
        self._slots: dict[str, _Slot] = {}
        for index, endpoint in enumerate(dict.fromkeys(e for e in endpoints if e)):
            slot_id = f"slot-{index}"
            self._slots[slot_id] = _Slot(slot_id=slot_id, endpoint=endpoint)
        self.acquire_wait_ms = acquire_wait_ms
        self._cond = asyncio.Condition()

    async def get_available_session(self) -> SessionLease:
        if not self._slots:
            raise PoolExhausted("No browser endpoints configured")

        async with self._cond:
            try:
                await asyncio.wait_for(
                    self._cond.wait_for(self._has_candidate),
                    timeout=self.acquire_wait_ms / 1000,
                )
            except asyncio.TimeoutError as e:
                raise PoolExhausted(
                    f"No browser slot became available within {self.acquire_wait_ms}ms"
                ) from e

            slot = self._pick()
            if slot.status == "error":
                logger.info("Re-admitting slot {} after error: {}", slot.slot_id, slot.reason)
            slot.status = "busy"
            slot.reason = None
            return SessionLease(session_id=slot.endpoint, slot_id=slot.slot_id)

    async def report_slot_status(
        self, slot_id: str, status: SlotStatus, reason: str | None = None
    ) -> None:
        async with self._cond:
            slot = self._slots.get(slot_id)
            if slot is None:
                raise KeyError(f"unknown slot: {slot_id}")
            slot.status = status
            slot.reason = reason
            self._cond.notify_all()

    def stats(self) -> dict[str, int]:
        counts = {"idle": 0, "busy": 0, "error": 0}
        for slot in self._slots.values():
            counts[slot.status] += 1
        counts["total"] = len(self._slots)
        return counts

    def _has_candidate(self) -> bool:
        return any(slot.status != "busy" for slot in self._slots.values())

    def _pick(self) -> _Slot:
        for slot in self._slots.values():
            if slot.status == "idle":
                return slot
        return next(slot for slot in self._slots.values() if slot.status == "error")


class HttpPoolManager:
    """Pool manager reached over HTTP."""

    def __init__(self, base_url: str, *, token: str = "", timeout_s: float = 10.0):
        if not base_url:
            raise ValueError("pool.managerUrl must be set for http pool mode")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_s = timeout_s

    async def get_available_session(self) -> SessionLease:
        data = await self._post("/sessions/acquire", {})
        session_id = str(data.get("sessionId") or "")
        slot_id = str(data.get("slotId") or data.get("id") or "")
        if not session_id or not slot_id:
            raise ScrapeDeckError("pool manager returned no session")
        return SessionLease(session_id=session_id, slot_id=slot_id)

    async def report_slot_status(
        self, slot_id: str, status: SlotStatus, reason: str | None = None
    ) -> None:
        payload: dict[str, Any] = {"status": status}
        if reason:
            payload["reason"] = reason
        await self._post(f"/slots/{slot_id}/status", payload)

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=headers,
                timeout=self.timeout_s,
            )
            response.raise_for_status()
        if not response.content:
            return {}
        data = response.json()
        return data if isinstance(data, dict) else {}
