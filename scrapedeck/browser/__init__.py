"""Browser session orchestration."""

from scrapedeck.browser.hardening import context_options, harden_page
from scrapedeck.browser.navigation import goto_with_retry
from scrapedeck.browser.pool import HttpPoolManager, LocalBrowserPool
from scrapedeck.browser.runner import BackgroundTasks, BrowserRunner, TaskSpawner
from scrapedeck.browser.session import (
    BrowserSession,
    PlaywrightConnector,
    PoolManager,
    SessionAcquirer,
    SessionLease,
)

__all__ = [
    "BackgroundTasks",
    "BrowserRunner",
    "BrowserSession",
    "HttpPoolManager",
    "LocalBrowserPool",
    "PlaywrightConnector",
    "PoolManager",
    "SessionAcquirer",
    "SessionLease",
    "TaskSpawner",
    "context_options",
    "goto_with_retry",
    "harden_page",
]
