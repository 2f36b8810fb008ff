"""Service facade wiring pools, runner, search and storage together."""

from __future__ import annotations

from typing import Any

from loguru import logger

from scrapedeck.browser.pool import HttpPoolManager, LocalBrowserPool
from scrapedeck.browser.runner import BrowserRunner, TaskSpawner
from scrapedeck.browser.session import BrowserConnector, PlaywrightConnector, PoolManager, SessionAcquirer
from scrapedeck.config.schema import Config
from scrapedeck.errors import StorageUnavailable
from scrapedeck.operations.common import OperationContext, failure_from_exception
from scrapedeck.operations.content import get_content
from scrapedeck.operations.json_extraction import ChatCompletionsClient, extract_json
from scrapedeck.operations.links import extract_links
from scrapedeck.operations.markdown import extract_markdown
from scrapedeck.operations.pdf import generate_pdf
from scrapedeck.operations.scrape import scrape_elements
from scrapedeck.operations.screenshot import take_screenshot
from scrapedeck.operations.search import run_search
from scrapedeck.search.orchestrator import MultiEngineSearch
from scrapedeck.search.rate_limit import EngineRateLimiter
from scrapedeck.storage.artifacts import ArtifactStore
from scrapedeck.utils.redaction import ErrorRedactor


def build_pool(config: Config) -> PoolManager:
    pool = config.pool
    if pool.mode == "http":
        return HttpPoolManager(pool.manager_url, token=pool.manager_token)
    return LocalBrowserPool(pool.endpoints, acquire_wait_ms=pool.acquire_wait_ms)


class WebService:
    """Entry point for every page operation, returning success/failure envelopes."""

    def __init__(
        self,
        config: Config | None = None,
        *,
        pool: PoolManager | None = None,
        connector: BrowserConnector | None = None,
        runner: BrowserRunner | None = None,
        searcher: MultiEngineSearch | None = None,
        artifacts: ArtifactStore | None = None,
        llm: ChatCompletionsClient | None = None,
        background_scheduler: TaskSpawner | None = None,
    ):
        self.config = config or Config()
        self.connector = connector or PlaywrightConnector(self.config.pool.endpoint_template)
        if runner is None:
            acquirer = SessionAcquirer(pool or build_pool(self.config), self.connector, self.config.pool)
            runner = BrowserRunner(acquirer, self.config.runner)
        self.runner = runner

        search_config = self.config.search
        self.searcher = searcher or MultiEngineSearch(
            search_config,
            rate_limiter=EngineRateLimiter(
                max_requests=search_config.rate_limit_max_requests,
                window_s=search_config.rate_limit_window_s,
            ),
        )
        if artifacts is None and self.config.storage.enabled:
            artifacts = ArtifactStore.from_config(self.config.storage)
        self.artifacts = artifacts
        self.llm = llm or ChatCompletionsClient(self.config.extraction)

        security = self.config.security
        self.redactor = ErrorRedactor(
            enabled=security.redact_errors,
            extra_secrets=[self.config.pool.manager_token, self.config.extraction.api_key],
        )
        self.context = OperationContext(
            runner=self.runner,
            config=self.config,
            redactor=self.redactor,
            background_scheduler=background_scheduler,
            artifacts=self.artifacts,
        )

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> "WebService":
        return cls(config, **kwargs)

    async def screenshot(self, *, url: str, **options: Any) -> dict[str, Any]:
        return await take_screenshot(self.context, url=url, **options)

    async def extract_markdown(self, *, url: str, wait_time: int | None = None) -> dict[str, Any]:
        return await extract_markdown(self.context, url=url, wait_time=wait_time)

    async def extract_json(self, *, url: str, **options: Any) -> dict[str, Any]:
        return await extract_json(self.context, url=url, client=self.llm, **options)

    async def get_content(self, *, url: str, wait_time: int | None = None) -> dict[str, Any]:
        return await get_content(self.context, url=url, wait_time=wait_time)

    async def scrape_elements(self, *, url: str, elements: list[dict[str, Any]], **options: Any) -> dict[str, Any]:
        return await scrape_elements(self.context, url=url, elements=elements, **options)

    async def extract_links(self, *, url: str, **options: Any) -> dict[str, Any]:
        return await extract_links(self.context, url=url, **options)

    async def search(
        self,
        *,
        query: str,
        limit: int | None = None,
        client_ip: str | None = None,
        include_debug: bool = True,
    ) -> dict[str, Any]:
        return await run_search(
            self.context,
            self.searcher,
            query=query,
            limit=limit,
            client_ip=client_ip,
            include_debug=include_debug,
        )

    async def pdf(self, *, url: str, **options: Any) -> dict[str, Any]:
        return await generate_pdf(self.context, url=url, **options)

    async def list_files(
        self, *, type: str | None = None, limit: int = 20, offset: int = 0
    ) -> dict[str, Any]:
        try:
            store = self._require_artifacts()
            records = await store.list_files(type, limit, offset)
            return {"success": True, "data": {"files": [r.to_dict() for r in records]}}
        except Exception as e:
            return self._file_failure(e)

    async def get_file(self, file_id: str) -> dict[str, Any]:
        try:
            record = await self._require_artifacts().get_file(file_id)
            if record is None:
                return {"success": False, "error": {"code": "not_found", "message": f"File not found: {file_id}"}}
            return {"success": True, "data": {"file": record.to_dict()}}
        except Exception as e:
            return self._file_failure(e)

    async def delete_file(self, file_id: str, *, delete_object: bool = False) -> dict[str, Any]:
        try:
            outcome = await self._require_artifacts().delete_file(file_id, delete_object=delete_object)
            if not outcome["deleted"]:
                return {"success": False, "error": {"code": "not_found", "message": f"File not found: {file_id}"}}
            return {"success": True, "data": {"fileId": file_id, **outcome}}
        except Exception as e:
            return self._file_failure(e)

    async def aclose(self) -> None:
        close = getattr(self.connector, "close", None)
        if close is not None:
            await close()
        logger.debug("Web service closed")

    def _require_artifacts(self) -> ArtifactStore:
        if self.artifacts is None:
            raise StorageUnavailable("Artifact storage is not configured")
        return self.artifacts

    def _file_failure(self, exc: Exception) -> dict[str, Any]:
        envelope = failure_from_exception("files", exc, self.redactor)
        envelope.pop("creditsCost", None)
        return envelope
