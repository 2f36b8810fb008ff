"""Configuration loading utilities."""

import json
from pathlib import Path

from loguru import logger

from scrapedeck.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".scrapedeck" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data = _migrate_config(data)
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Failed to load config from {}: {}", path, e)
            logger.warning("Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _migrate_config(data: dict) -> dict:
    """Migrate old config formats to current."""
    # Move flat operationTimeout -> runner.operationTimeoutMs
    runner_cfg = data.setdefault("runner", {})
    legacy_timeout = data.pop("operationTimeout", None)
    if legacy_timeout is not None and "operationTimeoutMs" not in runner_cfg:
        runner_cfg["operationTimeoutMs"] = legacy_timeout

    # Move flat browserEndpoints -> pool.endpoints
    pool_cfg = data.setdefault("pool", {})
    legacy_endpoints = data.pop("browserEndpoints", None)
    if legacy_endpoints and not pool_cfg.get("endpoints"):
        pool_cfg["endpoints"] = list(legacy_endpoints)

    # Move search.rateLimit.{windowMs,maxRequests} -> search.rateLimitWindowS/MaxRequests
    search_cfg = data.get("search", {})
    legacy_rate = search_cfg.pop("rateLimit", None) if isinstance(search_cfg, dict) else None
    if isinstance(legacy_rate, dict):
        if "windowMs" in legacy_rate and "rateLimitWindowS" not in search_cfg:
            search_cfg["rateLimitWindowS"] = max(1, int(legacy_rate["windowMs"]) // 1000)
        if "maxRequests" in legacy_rate and "rateLimitMaxRequests" not in search_cfg:
            search_cfg["rateLimitMaxRequests"] = legacy_rate["maxRequests"]

    return data

