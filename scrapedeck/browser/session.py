"""Healthy browser session acquisition from a pool manager."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol

from loguru import logger

from scrapedeck.errors import SessionAcquisitionExhausted

if TYPE_CHECKING:
    from scrapedeck.config.schema import PoolConfig

SlotStatus = Literal["idle", "busy", "error"]


@dataclass(slots=True)
class SessionLease:
    """Candidate session handed out by a pool manager."""

    session_id: str
    slot_id: str


@dataclass(slots=True)
class BrowserSession:
    """Live remote browser connection bound to a pool slot."""

    session_id: str
    slot_id: str
    browser: Any
    status: SlotStatus = "busy"


class PoolManager(Protocol):
    async def get_available_session(self) -> SessionLease: ...

    async def report_slot_status(
        self, slot_id: str, status: SlotStatus, reason: str | None = None
    ) -> None: ...


class BrowserConnector(Protocol):
    async def connect(self, session_id: str) -> Any: ...


class PlaywrightConnector:
    """Connect to remote Chromium sessions over CDP."""

    def __init__(self, endpoint_template: str = "{session_id}"):
        self.endpoint_template = endpoint_template
        self._playwright: Any = None
        self._lock = asyncio.Lock()

    def endpoint_for(self, session_id: str) -> str:
        return self.endpoint_template.format(session_id=session_id)

    async def connect(self, session_id: str) -> Any:
        playwright = await self._ensure_started()
        return await playwright.chromium.connect_over_cdp(self.endpoint_for(session_id))

    async def close(self) -> None:
        async with self._lock:
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    async def _ensure_started(self) -> Any:
        async with self._lock:
            if self._playwright is None:
                from playwright.async_api import async_playwright

                self._playwright = await async_playwright().start()
            return self._playwright


async def probe_browser(browser: Any, timeout_ms: int) -> str:
    """Issue a cheap version handshake; raises when the session is stale."""

    async def _probe() -> str:
        cdp = await browser.new_browser_cdp_session()
        try:
            info = await cdp.send("Browser.getVersion")
        finally:
            await cdp.detach()
        return str(info.get("product", ""))

    return await asyncio.wait_for(_probe(), timeout=timeout_ms / 1000)


class SessionAcquirer:
    """Obtain probed browser sessions and report slot health back to the pool."""

    def __init__(
        self,
        pool: PoolManager,
        connector: BrowserConnector,
        config: "PoolConfig | None" = None,
    ):
        from scrapedeck.config.schema import PoolConfig

        self.pool = pool
        self.connector = connector
        self.config = config or PoolConfig()

    async def acquire(self) -> BrowserSession:
        """Return a session that answered the probe, retrying with exponential backoff."""
        attempts = max(1, self.config.acquire_attempts)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            lease: SessionLease | None = None
            browser: Any = None
            try:
                lease = await self.pool.get_available_session()
                browser = await self.connector.connect(lease.session_id)
                await probe_browser(browser, self.config.probe_timeout_ms)
                logger.info(
                    "Connected to slot {} on attempt {}/{}",
                    lease.slot_id,
                    attempt,
                    attempts,
                )
                return BrowserSession(
                    session_id=lease.session_id,
                    slot_id=lease.slot_id,
                    browser=browser,
                )
            except Exception as e:
                last_error = e
                slot = lease.slot_id if lease else "<none>"
                logger.warning(
                    "Connection test failed for slot {} on attempt {}/{}: {}",
                    slot,
                    attempt,
                    attempts,
                    str(e) or type(e).__name__,
                )
                if browser is not None:
                    await _disconnect_quietly(browser)
                if lease is not None:
                    await self.report_status(lease.slot_id, "error", "Connection test failed")

            if attempt < attempts:
                await asyncio.sleep(self.config.acquire_backoff_ms * 2 ** (attempt - 1) / 1000)

        logger.error("Exhausted all {} attempts to acquire a healthy browser session", attempts)
        raise SessionAcquisitionExhausted(
            f"Failed to acquire a healthy browser session after {attempts} attempts: {last_error}"
        ) from last_error

    async def report_status(
        self,
        slot_id: str,
        status: SlotStatus,
        reason: str | None = None,
    ) -> bool:
        """Report slot status with bounded retries. Returns False when every attempt failed."""
        attempts = max(1, self.config.status_attempts)
        for attempt in range(1, attempts + 1):
            try:
                await self.pool.report_slot_status(slot_id, status, reason)
                if reason:
                    logger.info("Slot {} marked {} (reason: {})", slot_id, status, reason)
                else:
                    logger.debug("Slot {} marked {}", slot_id, status)
                return True
            except Exception as e:
                if attempt == attempts:
                    logger.warning(
                        "Failed to mark slot {} as {} after {} attempts: {}",
                        slot_id,
                        status,
                        attempts,
                        e,
                    )
                    return False
                await asyncio.sleep(self.config.status_backoff_ms * 2 ** (attempt - 1) / 1000)
        return False


async def _disconnect_quietly(browser: Any) -> None:
    try:
        await browser.close()
    except Exception as e:
        logger.debug("Ignoring browser disconnect failure: {}", e)
