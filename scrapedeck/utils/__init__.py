"""Utility helpers."""

from scrapedeck.utils.redaction import ErrorRedactor

__all__ = ["ErrorRedactor"]
