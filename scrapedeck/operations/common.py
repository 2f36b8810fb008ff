"""Shared envelope and context helpers for page operations."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

from scrapedeck.browser.navigation import goto_with_retry
from scrapedeck.browser.routing import HEAVY_RESOURCES, block_resources, guard_requests
from scrapedeck.browser.safety import ensure_navigable
from scrapedeck.errors import (
    EngineBlocked,
    InvalidInput,
    NavigationFailed,
    OperationTimeout,
    SessionAcquisitionExhausted,
    StorageUnavailable,
)
from scrapedeck.utils.redaction import ErrorRedactor

if TYPE_CHECKING:
    from scrapedeck.browser.runner import BrowserRunner, TaskSpawner
    from scrapedeck.config.schema import Config
    from scrapedeck.storage.artifacts import ArtifactStore

OperationType = Literal[
    "screenshot",
    "markdown",
    "json_extraction",
    "content",
    "scrape",
    "links",
    "search",
    "pdf",
]

CREDIT_COSTS: dict[OperationType, int] = {
    "screenshot": 1,
    "markdown": 1,
    "json_extraction": 2,
    "content": 1,
    "scrape": 1,
    "links": 1,
    "search": 1,
    "pdf": 1,
}

_ERROR_CODES: tuple[tuple[type[BaseException], str], ...] = (
    (InvalidInput, "invalid_input"),
    (SessionAcquisitionExhausted, "session_unavailable"),
    (OperationTimeout, "operation_timeout"),
    (NavigationFailed, "navigation_failed"),
    (EngineBlocked, "blocked"),
    (StorageUnavailable, "storage_unavailable"),
)


@dataclass(slots=True)
class OperationContext:
    """Collaborators shared by operations."""

    runner: "BrowserRunner"
    config: "Config"
    redactor: ErrorRedactor = field(default_factory=ErrorRedactor)
    background_scheduler: "TaskSpawner | None" = None
    artifacts: "ArtifactStore | None" = None

    def check_url(self, url: str) -> str:
        return ensure_navigable(
            url,
            allow_private_network=self.config.security.allow_private_network,
            block_file_scheme=self.config.security.block_file_scheme,
        )

    async def run(self, operation: Callable[[Any], Awaitable[Any]], timeout_ms: int | None = None) -> Any:
        return await self.runner.run(
            operation,
            timeout_ms=timeout_ms,
            background_scheduler=self.background_scheduler,
        )


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def success(operation: OperationType, data: dict[str, Any]) -> dict[str, Any]:
    return {"success": True, "data": data, "creditsCost": CREDIT_COSTS[operation]}


def failure(message: str, *, code: str = "operation_failed") -> dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message},
        "creditsCost": 0,
    }


def failure_from_exception(
    operation: OperationType,
    exc: BaseException,
    redactor: ErrorRedactor | None = None,
) -> dict[str, Any]:
    """Build the failure envelope for an exception raised while running an operation."""
    code = next((c for kind, c in _ERROR_CODES if isinstance(exc, kind)), "operation_failed")
    message = str(exc) or type(exc).__name__
    if redactor is not None:
        message = redactor.redact(message)
    if code == "invalid_input":
        logger.warning("{} rejected: {}", operation, message)
    else:
        logger.error("{} failed: {}", operation, message)
    return failure(message, code=code)


async def settle_wait(page: Any, wait_ms: int | None) -> None:
    if wait_ms and wait_ms > 0:
        await page.wait_for_timeout(wait_ms)


async def open_target(
    ctx: OperationContext,
    page: Any,
    url: str,
    *,
    blocked_resources: frozenset[str] | None = HEAVY_RESOURCES,
    wait_until: str = "domcontentloaded",
    timeout_ms: int = 30000,
    wait_ms: int | None = None,
) -> None:
    """Install request guards, navigate with retry and apply the optional settle delay."""
    security = ctx.config.security
    await guard_requests(
        page,
        allow_private_network=security.allow_private_network,
        block_file_scheme=security.block_file_scheme,
    )
    if blocked_resources:
        await block_resources(page, blocked_resources)
    await goto_with_retry(
        page,
        url,
        wait_until=wait_until,
        timeout_ms=timeout_ms,
        max_attempts=ctx.config.navigation.max_attempts,
        backoff_ms=ctx.config.navigation.backoff_ms,
    )
    await settle_wait(page, wait_ms)


async def store_artifact(
    ctx: OperationContext,
    data: bytes,
    *,
    url: str,
    type: Literal["screenshot", "pdf"],
    user_id: str | None = None,
    format: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    if ctx.artifacts is None:
        raise StorageUnavailable("Artifact storage is not configured")
    stored = await ctx.artifacts.store(
        data,
        url=url,
        type=type,
        user_id=user_id or "anonymous",
        format=format,
        metadata=metadata,
    )
    return stored.to_dict()
