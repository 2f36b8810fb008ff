"""Operation runner: acquire, harden, execute under a deadline, report, release."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from loguru import logger

from scrapedeck.browser.hardening import context_options, harden_page
from scrapedeck.browser.session import BrowserSession, SessionAcquirer
from scrapedeck.errors import OperationTimeout

if TYPE_CHECKING:
    from scrapedeck.config.schema import RunnerConfig

T = TypeVar("T")

Operation = Callable[[Any], Awaitable[T]]


class TaskSpawner(Protocol):
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None: ...


class BackgroundTasks:
    """Detached task holder used for fire-and-forget status reports."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def __len__(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for all pending background tasks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task failed: {}", exc)


class BrowserRunner:
    """Run one page operation on a pooled browser session."""

    def __init__(
        self,
        acquirer: SessionAcquirer,
        config: "RunnerConfig | None" = None,
        *,
        hardener: Callable[[Any], Awaitable[Any]] = harden_page,
    ):
        from scrapedeck.config.schema import RunnerConfig

        self.acquirer = acquirer
        self.config = config or RunnerConfig()
        self.hardener = hardener

    async def run(
        self,
        operation: Operation[T],
        timeout_ms: int | None = None,
        background_scheduler: TaskSpawner | None = None,
    ) -> T:
        """Execute ``operation(page)`` and always release the page, its context and the connection.

        Status reports are awaited, or handed to ``background_scheduler`` when supplied.
        """
        deadline_ms = timeout_ms or self.config.operation_timeout_ms
        started_at = time.monotonic()
        session: BrowserSession | None = None
        context: Any = None
        page: Any = None

        try:
            session = await self.acquirer.acquire()
            context = await session.browser.new_context(**context_options())
            page = await context.new_page()
            await self.hardener(page)

            deadline = asyncio.timeout(deadline_ms / 1000)
            try:
                async with deadline:
                    result = await operation(page)
            except TimeoutError as e:
                if not deadline.expired():
                    raise
                raise OperationTimeout("Operation timeout", timeout_ms=deadline_ms) from e

            await self._report(session.slot_id, "idle", None, background_scheduler)
            logger.debug(
                "Operation on slot {} finished in {}ms",
                session.slot_id,
                int((time.monotonic() - started_at) * 1000),
            )
            return result
        except Exception as e:
            if session is not None:
                message = str(e) or type(e).__name__
                logger.error("Operation on slot {} failed: {}", session.slot_id, message)
                await self._report(session.slot_id, "error", message, background_scheduler)
            raise
        finally:
            if page is not None:
                await _close_page(page)
            if context is not None:
                await _close_context(context)
            if session is not None:
                await _disconnect(session.browser)

    async def _report(
        self,
        slot_id: str,
        status: str,
        reason: str | None,
        background_scheduler: TaskSpawner | None,
    ) -> None:
        report = self.acquirer.report_status(slot_id, status, reason)  # type: ignore[arg-type]
        if background_scheduler is not None:
            background_scheduler.spawn(report)
        else:
            await report


async def _close_page(page: Any) -> None:
    try:
        if not page.is_closed():
            await page.close()
    except Exception as e:
        logger.warning("Failed to close page: {}", e)


async def _close_context(context: Any) -> None:
    try:
        await context.close()
    except Exception as e:
        logger.warning("Failed to close browser context: {}", e)


async def _disconnect(browser: Any) -> None:
    # Closing a CDP-connected browser only drops the connection; the remote session survives.
    try:
        await browser.close()
    except Exception as e:
        logger.warning("Failed to disconnect browser: {}", e)
