"""Hand-written stand-ins for Playwright pages, browsers and pool managers."""

from __future__ import annotations

from typing import Any

from scrapedeck.browser.session import SessionLease


class FakeContext:
    """Browser context; one created by ``browser.new_page()`` refuses further pages, as Playwright does."""

    def __init__(self, page_factory=None, options: dict[str, Any] | None = None):
        self.pages: list[FakePage] = []
        self.options = dict(options or {})
        self.owner_page: FakePage | None = None
        self.closed = False
        self._page_factory = page_factory or (lambda: FakePage())

    async def new_page(self) -> "FakePage":
        if self.owner_page is not None:
            raise RuntimeError("Please use browser.new_context()")
        page = self._page_factory()
        page.context = self
        if self.options.get("viewport"):
            page.viewport_size = dict(self.options["viewport"])
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakePage:
    def __init__(
        self,
        *,
        html: str = "<html><body></body></html>",
        title: str = "Example",
        url: str = "https://example.com/",
        goto_errors: list[Exception] | None = None,
        evaluate_result: Any = None,
        selector_results: dict[str, list[dict[str, Any]]] | None = None,
        screenshot_bytes: bytes = b"\x89PNG-fake-image",
        pdf_bytes: bytes = b"%PDF-1.7 fake document",
        context: FakeContext | None = None,
    ):
        self.html = html
        self.title_text = title
        self.url = url
        self.goto_errors = list(goto_errors or [])
        self.evaluate_result = evaluate_result
        self.selector_results = selector_results or {}
        self.screenshot_bytes = screenshot_bytes
        self.pdf_bytes = pdf_bytes
        self.context = context or FakeContext()
        self.calls: list[tuple[str, Any]] = []
        self.routes: list[tuple[str, Any]] = []
        self.viewport_size: dict[str, int] | None = None
        self.closed = False

    async def set_viewport_size(self, viewport: dict[str, int]) -> None:
        self.calls.append(("set_viewport_size", viewport))
        self.viewport_size = dict(viewport)

    async def set_extra_http_headers(self, headers: dict[str, str]) -> None:
        self.calls.append(("set_extra_http_headers", headers))

    async def add_init_script(self, script: str) -> None:
        self.calls.append(("add_init_script", script))

    async def route(self, pattern: str, handler: Any) -> None:
        self.calls.append(("route", pattern))
        self.routes.append((pattern, handler))

    async def goto(self, url: str, wait_until: str | None = None, timeout: int | None = None) -> None:
        self.calls.append(("goto", {"url": url, "wait_until": wait_until, "timeout": timeout}))
        if self.goto_errors:
            raise self.goto_errors.pop(0)
        self.url = url

    async def wait_for_timeout(self, ms: int) -> None:
        self.calls.append(("wait_for_timeout", ms))

    async def wait_for_selector(self, selector: str, timeout: int | None = None) -> None:
        self.calls.append(("wait_for_selector", selector))

    async def content(self) -> str:
        return self.html

    async def title(self) -> str:
        return self.title_text

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.calls.append(("evaluate", arg))
        if callable(self.evaluate_result):
            return self.evaluate_result(script, arg)
        return self.evaluate_result

    async def eval_on_selector_all(self, selector: str, script: str) -> list[dict[str, Any]]:
        self.calls.append(("eval_on_selector_all", selector))
        return self.selector_results.get(selector, [])

    async def screenshot(self, **options: Any) -> bytes:
        self.calls.append(("screenshot", options))
        return self.screenshot_bytes

    async def pdf(self, **options: Any) -> bytes:
        self.calls.append(("pdf", options))
        return self.pdf_bytes

    async def add_style_tag(self, content: str | None = None) -> None:
        self.calls.append(("add_style_tag", content))

    async def emulate_media(self, **options: Any) -> None:
        self.calls.append(("emulate_media", options))

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.calls.append(("close", None))
        self.closed = True

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeCDPSession:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.detached = False

    async def send(self, method: str) -> dict[str, str]:
        if self.error is not None:
            raise self.error
        return {"product": "Chrome/131.0.0.0"}

    async def detach(self) -> None:
        self.detached = True


class FakeBrowser:
    def __init__(self, page: FakePage | None = None, *, probe_error: Exception | None = None):
        self.page = page or FakePage()
        self.probe_error = probe_error
        self.close_calls = 0
        self.pages_opened = 0
        self.contexts: list[FakeContext] = []

    async def new_browser_cdp_session(self) -> FakeCDPSession:
        return FakeCDPSession(self.probe_error)

    def _next_page(self) -> FakePage:
        self.pages_opened += 1
        return self.page if self.pages_opened == 1 else FakePage()

    async def new_context(self, **options: Any) -> FakeContext:
        context = FakeContext(self._next_page, options)
        self.contexts.append(context)
        return context

    async def new_page(self) -> FakePage:
        context = FakeContext(self._next_page)
        page = await context.new_page()
        context.owner_page = page
        return page

    async def close(self) -> None:
        self.close_calls += 1


class FakePool:
    def __init__(self, leases: list[SessionLease] | None = None, *, report_failures: int = 0):
        self.leases = list(leases or [SessionLease(session_id="session-1", slot_id="slot-1")])
        self.reports: list[tuple[str, str, str | None]] = []
        self.report_failures = report_failures
        self.acquire_calls = 0

    async def get_available_session(self) -> SessionLease:
        self.acquire_calls += 1
        if len(self.leases) > 1:
            return self.leases.pop(0)
        return self.leases[0]

    async def report_slot_status(self, slot_id: str, status: str, reason: str | None = None) -> None:
        if self.report_failures > 0:
            self.report_failures -= 1
            raise RuntimeError("pool manager unavailable")
        self.reports.append((slot_id, status, reason))


class FakeConnector:
    def __init__(self, browsers: list[FakeBrowser]):
        self.browsers = list(browsers)
        self.connected: list[str] = []

    async def connect(self, session_id: str) -> FakeBrowser:
        self.connected.append(session_id)
        if len(self.browsers) > 1:
            return self.browsers.pop(0)
        return self.browsers[0]


class DirectRunner:
    """Runs operations straight on one page, skipping session acquisition."""

    def __init__(self, page: FakePage):
        self.page = page
        self.runs = 0

    async def run(self, operation, timeout_ms=None, background_scheduler=None):
        self.runs += 1
        return await operation(self.page)
