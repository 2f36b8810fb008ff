"""Configuration module for scrapedeck."""

from scrapedeck.config.loader import get_config_path, load_config, save_config
from scrapedeck.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
