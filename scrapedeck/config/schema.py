"""Configuration schema using Pydantic."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

API_KEY_ENV = "SCRAPEDECK_LLM_API_KEY"


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PoolConfig(Base):
    """Browser pool settings."""

    mode: Literal["local", "http"] = "local"
    endpoints: list[str] = Field(default_factory=list)
    manager_url: str = ""
    manager_token: str = ""
    endpoint_template: str = "{session_id}"
    acquire_attempts: int = 5
    acquire_backoff_ms: int = 200
    status_attempts: int = 3
    status_backoff_ms: int = 200
    probe_timeout_ms: int = 5000
    acquire_wait_ms: int = 30000


class RunnerConfig(Base):
    """Operation runner settings."""

    operation_timeout_ms: int = 30000


class NavigationConfig(Base):
    """Navigation retry settings."""

    max_attempts: int = 3
    backoff_ms: int = 1000
    timeout_ms: int = 30000
    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "domcontentloaded"


class SearchConfig(Base):
    """Multi-engine search settings."""

    engine_timeout_ms: int = 8000
    navigation_timeout_ms: int = 10000
    selector_wait_ms: int = 1500
    extra_wait_ms: int = 400
    default_limit: int = 10
    max_limit: int = 50
    rate_limit_window_s: int = 60
    rate_limit_max_requests: int = 60


class StorageConfig(Base):
    """Artifact storage settings."""

    enabled: bool = False
    root_dir: str = "~/.scrapedeck/storage"
    public_base_url: str = "https://files.scrapedeck.local"
    salt: str = ""


class ExtractionConfig(Base):
    """LLM-backed JSON extraction settings.

    An empty ``api_key`` falls back to the ``SCRAPEDECK_LLM_API_KEY`` environment variable.
    """

    api_base: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    context_tokens: int = 24000
    max_output_tokens: int = 4096
    system_prompt_buffer: int = 500
    temperature: float = 0.1
    timeout_s: float = 60.0

    @model_validator(mode="after")
    def _api_key_from_env(self) -> "ExtractionConfig":
        if not self.api_key:
            self.api_key = os.environ.get(API_KEY_ENV, "")
        return self

    @property
    def max_input_tokens(self) -> int:
        return self.context_tokens - self.max_output_tokens - self.system_prompt_buffer


class SecurityConfig(Base):
    """Navigation target restrictions and output redaction."""

    allow_private_network: bool = False
    block_file_scheme: bool = True
    redact_errors: bool = True


class Config(Base):
    """Root configuration for scrapedeck."""

    pool: PoolConfig = Field(default_factory=PoolConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
