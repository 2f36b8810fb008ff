"""PDF rendering with consent-banner suppression."""

from __future__ import annotations

import base64
from typing import Any

from loguru import logger
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scrapedeck.browser.routing import PDF_BLOCKED_RESOURCES
from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    open_target,
    settle_wait,
    store_artifact,
    success,
    utc_timestamp,
)

SELECTOR_WAIT_MS = 10000

PDF_MARGIN = {"top": "0.5in", "right": "0.5in", "bottom": "0.5in", "left": "0.5in"}

CONSENT_HIDING_CSS = """
#cookie-banner,
#cookieBanner,
.cookie-banner,
.cookie-consent,
.eu-cookie-compliance,
.gdpr,
.gdpr-banner,
.cmp-container,
.consent-modal,
.cookie-popup,
[role="dialog"][aria-label*="cookie"],
[aria-modal="true"][data-testid*="consent"],
body > *[style*="position:fixed"],
body > *[style*="position:sticky"] {
  top: 0 !important;
  left: 0 !important;
  width: 0 !important;
  height: 0 !important;
  max-height: 0 !important;
  overflow: hidden !important;
  visibility: hidden !important;
}
"""

CONSENT_PURGE_SCRIPT = """
() => {
  const killList = [
    '#cookie-banner',
    '.cookie-banner',
    '.cookie-consent',
    '.eu-cookie-compliance',
    '.cmp-container',
    '.consent-modal',
    '[role="dialog"][aria-label*="cookie"]',
    '[data-testid*="consent"]',
  ];
  killList.forEach((sel) => document.querySelectorAll(sel).forEach((el) => el.remove()));
  if (document.body) document.body.style.overflow = 'visible';
}
"""

# Keeps removing late-injected consent dialogs, then disconnects after 5s.
CONSENT_WATCH_SCRIPT = """
() => {
  const hide = (root) => {
    if (!root || !root.querySelectorAll) return;
    ['dialog', 'div', 'section'].forEach((tag) => {
      root.querySelectorAll(tag).forEach((el) => {
        const aria = (el.getAttribute('aria-label') || '').toLowerCase();
        const cls = (el.className || '').toString().toLowerCase();
        const id = (el.id || '').toLowerCase();
        if (
          aria.includes('cookie') ||
          aria.includes('consent') ||
          cls.includes('cookie') ||
          cls.includes('consent') ||
          id.includes('cookie')
        ) {
          el.remove();
        }
      });
    });
  };
  hide(document);
  if (!document.body) return;
  const observer = new MutationObserver((mutations) => mutations.forEach((m) => hide(m.target)));
  observer.observe(document.body, { childList: true, subtree: true });
  setTimeout(() => observer.disconnect(), 5000);
}
"""

FONTS_READY_SCRIPT = "() => document.fonts.ready.then(() => true)"

PRINT_COLOR_CSS = "html{-webkit-print-color-adjust:exact}"


async def suppress_consent_banners(page: Any) -> None:
    await page.add_style_tag(content=CONSENT_HIDING_CSS)
    await page.evaluate(CONSENT_PURGE_SCRIPT)
    await page.evaluate(CONSENT_WATCH_SCRIPT)


async def render_pdf(
    ctx: OperationContext,
    page: Any,
    url: str,
    *,
    wait_time: int | None = None,
    wait_selector: str | None = None,
) -> bytes:
    await open_target(
        ctx,
        page,
        url,
        blocked_resources=PDF_BLOCKED_RESOURCES,
        wait_until="networkidle",
        timeout_ms=30000,
    )
    if wait_selector:
        try:
            await page.wait_for_selector(wait_selector, timeout=SELECTOR_WAIT_MS)
        except PlaywrightTimeoutError:
            logger.debug("Selector {} not found before PDF render", wait_selector)
    await settle_wait(page, wait_time)

    await suppress_consent_banners(page)
    await page.evaluate(FONTS_READY_SCRIPT)
    await page.emulate_media(media="print", reduced_motion="reduce")
    await page.add_style_tag(content=PRINT_COLOR_CSS)

    return await page.pdf(
        print_background=True,
        prefer_css_page_size=True,
        margin=PDF_MARGIN,
    )


async def generate_pdf(
    ctx: OperationContext,
    *,
    url: str,
    wait_time: int | None = None,
    wait_selector: str | None = None,
    base64_encode: bool = False,
    store: bool = False,
    user_id: str | None = None,
) -> dict[str, Any]:
    """Render ``url`` to PDF.

    The payload is raw ``bytes`` unless ``base64_encode`` is set, in which
    case it is a base64 string of the same bytes. ``metadata.size`` is always
    the byte length of the binary document.
    """
    try:
        target = ctx.check_url(url)
        document: bytes = await ctx.run(
            lambda page: render_pdf(ctx, page, target, wait_time=wait_time, wait_selector=wait_selector)
        )
        metadata: dict[str, Any] = {
            "url": target,
            "timestamp": utc_timestamp(),
            "size": len(document),
        }
        data: dict[str, Any] = {
            "pdf": base64.b64encode(document).decode("ascii") if base64_encode else document,
            "metadata": metadata,
        }
        if store:
            data.update(
                await store_artifact(ctx, document, url=target, type="pdf", user_id=user_id, metadata=metadata)
            )
        return success("pdf", data)
    except Exception as e:
        return failure_from_exception("pdf", e, ctx.redactor)
