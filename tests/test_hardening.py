import json
import random

import pytest

from fakes import FakePage
from scrapedeck.browser.hardening import (
    BASELINE_FETCH_HEADERS,
    EXTRA_HEADERS,
    STEALTH_SCRIPT,
    USER_AGENT,
    VIEWPORTS,
    context_options,
    fill_fetch_headers,
    harden_page,
)


class FakeRoute:
    def __init__(self) -> None:
        self.continued: list[dict | None] = []

    async def continue_(self, headers: dict | None = None) -> None:
        self.continued.append(headers)


class FakeRequest:
    def __init__(self, headers: dict[str, str]):
        self.headers = headers


@pytest.mark.asyncio
async def test_harden_page_applies_fingerprint_before_navigation() -> None:
    page = FakePage()

    viewport = await harden_page(page, rng=random.Random(7))

    assert page.names() == ["set_viewport_size", "set_extra_http_headers", "add_init_script", "route"]
    assert (viewport["width"], viewport["height"]) in VIEWPORTS
    assert page.calls[1][1] == EXTRA_HEADERS
    assert page.calls[2][1] == STEALTH_SCRIPT
    assert "goto" not in page.names()


def test_stealth_script_covers_automation_signals() -> None:
    assert "webdriver" in STEALTH_SCRIPT
    assert "plugins" in STEALTH_SCRIPT
    assert "languages" in STEALTH_SCRIPT


def test_stealth_script_reports_the_desktop_user_agent_to_page_scripts() -> None:
    assert "__USER_AGENT__" not in STEALTH_SCRIPT
    assert f"'userAgent', {{ get: () => {json.dumps(USER_AGENT)} }}" in STEALTH_SCRIPT
    assert "'appVersion'" in STEALTH_SCRIPT
    assert "'userAgentData'" in STEALTH_SCRIPT
    assert "HeadlessChrome" not in STEALTH_SCRIPT


def test_frames_share_the_spoofed_navigator() -> None:
    assert "Object.defineProperty(win, 'navigator', { value: navigator" in STEALTH_SCRIPT


def test_context_options_carry_user_agent_and_viewport() -> None:
    options = context_options(random.Random(3))

    assert options["user_agent"] == USER_AGENT
    assert (options["viewport"]["width"], options["viewport"]["height"]) in VIEWPORTS
    assert options["locale"] == "en-US"


@pytest.mark.asyncio
async def test_harden_page_keeps_viewport_from_context() -> None:
    page = FakePage()
    page.viewport_size = {"width": 1440, "height": 900}

    viewport = await harden_page(page, rng=random.Random(7))

    assert viewport == {"width": 1440, "height": 900}
    assert page.calls[0] == ("set_viewport_size", {"width": 1440, "height": 900})


@pytest.mark.asyncio
async def test_fill_fetch_headers_adds_missing_headers() -> None:
    route = FakeRoute()

    await fill_fetch_headers(route, FakeRequest({"accept": "text/html", "sec-fetch-mode": "cors"}))

    sent = route.continued[0]
    assert sent["accept"] == "text/html"
    assert sent["sec-fetch-mode"] == "cors"
    assert sent["sec-fetch-dest"] == BASELINE_FETCH_HEADERS["sec-fetch-dest"]


@pytest.mark.asyncio
async def test_fill_fetch_headers_passes_complete_requests_through() -> None:
    route = FakeRoute()

    await fill_fetch_headers(route, FakeRequest(dict(BASELINE_FETCH_HEADERS)))

    assert route.continued == [None]
