"""Screenshot capture."""

from __future__ import annotations

import base64
from typing import Any, Literal

from scrapedeck.errors import InvalidInput
from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    open_target,
    store_artifact,
    success,
    utc_timestamp,
)

ImageFormat = Literal["png", "jpeg"]

DEFAULT_VIEWPORT = {"width": 1366, "height": 768}


def _viewport(viewport: dict[str, int] | None) -> dict[str, int]:
    merged = {**DEFAULT_VIEWPORT, **(viewport or {})}
    width, height = merged.get("width"), merged.get("height")
    if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
        raise InvalidInput("viewport width and height must be positive integers")
    return {"width": width, "height": height}


def _capture_options(format: str, quality: int | None, full_page: bool) -> dict[str, Any]:
    if format not in ("png", "jpeg"):
        raise InvalidInput(f"unsupported image format: {format}")
    options: dict[str, Any] = {"type": format, "full_page": full_page}
    if quality is not None:
        if format != "jpeg":
            raise InvalidInput("quality is only supported for jpeg screenshots")
        if not 0 <= quality <= 100:
            raise InvalidInput("quality must be between 0 and 100")
        options["quality"] = quality
    return options


async def capture_screenshot(
    ctx: OperationContext,
    page: Any,
    url: str,
    *,
    viewport: dict[str, int],
    options: dict[str, Any],
    wait_time: int | None = None,
) -> bytes:
    await page.set_viewport_size(viewport)
    await open_target(
        ctx,
        page,
        url,
        blocked_resources=None,
        wait_until="networkidle",
        timeout_ms=30000,
        wait_ms=wait_time,
    )
    return await page.screenshot(**options)


async def take_screenshot(
    ctx: OperationContext,
    *,
    url: str,
    viewport: dict[str, int] | None = None,
    format: ImageFormat = "png",
    quality: int | None = None,
    full_page: bool = False,
    wait_time: int | None = None,
    store: bool = False,
    user_id: str | None = None,
) -> dict[str, Any]:
    """Capture ``url`` and return the image as a base64 string."""
    try:
        target = ctx.check_url(url)
        size = _viewport(viewport)
        options = _capture_options(format, quality, full_page)
        raw = await ctx.run(
            lambda page: capture_screenshot(ctx, page, target, viewport=size, options=options, wait_time=wait_time)
        )
        image = raw if isinstance(raw, (bytes, bytearray)) else base64.b64decode(raw)
        metadata: dict[str, Any] = {
            "width": size["width"],
            "height": size["height"],
            "format": format,
            "size": len(image),
            "url": target,
            "timestamp": utc_timestamp(),
        }
        data: dict[str, Any] = {
            "image": base64.b64encode(image).decode("ascii"),
            "metadata": metadata,
        }
        if store:
            data.update(
                await store_artifact(
                    ctx,
                    bytes(image),
                    url=target,
                    type="screenshot",
                    user_id=user_id,
                    format=format,
                    metadata=metadata,
                )
            )
        return success("screenshot", data)
    except Exception as e:
        return failure_from_exception("screenshot", e, ctx.redactor)
