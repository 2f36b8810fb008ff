"""scrapedeck - pooled browser sessions, page operations and multi-engine search."""

__version__ = "0.1.0"
