"""Redaction of internal identifiers from user-facing error messages."""

from __future__ import annotations

import re
from typing import Iterable


class ErrorRedactor:
    """Mask browser endpoints, credentials and private hosts in error text."""

    ENDPOINT_PLACEHOLDER = "[REDACTED_ENDPOINT]"
    SECRET_PLACEHOLDER = "[REDACTED_SECRET]"
    SESSION_PLACEHOLDER = "[REDACTED_SESSION]"

    _KV_SECRET_RE = re.compile(
        r'(?i)(["\']?(?:api[_-]?key|token|secret|password|authorization)["\']?\s*[:=]\s*["\']?)([^"\'\s,}\]]+)'
    )
    _BEARER_RE = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._~+/=\-]{8,}\b")
    _GENERIC_SK_RE = re.compile(r"\bsk-[A-Za-z0-9._=\-]{8,}\b")

    # Any websocket URL is a CDP/browser endpoint and never meant for callers.
    _WS_ENDPOINT_RE = re.compile(r"(?i)\bwss?://[^\s\"'`)]+")
    _SESSION_ID_RE = re.compile(r'(?i)(\bsession[_\s-]?id\b\s*[:=]\s*["\']?)([^"\'\s,}\]]+)')

    _PRIVATE_ENDPOINT_RE = re.compile(
        r"""(?ix)
        \bhttps?://
        (?:
            localhost |
            127(?:\.\d{1,3}){3} |
            0\.0\.0\.0 |
            10(?:\.\d{1,3}){3} |
            192\.168(?:\.\d{1,3}){2} |
            172\.(?:1[6-9]|2\d|3[0-1])(?:\.\d{1,3}){2}
        )
        (?::\d{1,5})?
        (?:/[^\s"'`)]*)?
        """
    )
    _PRIVATE_HOSTPORT_RE = re.compile(
        r"""(?ix)
        \b(?:
            localhost |
            127(?:\.\d{1,3}){3} |
            0\.0\.0\.0 |
            10(?:\.\d{1,3}){3} |
            192\.168(?:\.\d{1,3}){2} |
            172\.(?:1[6-9]|2\d|3[0-1])(?:\.\d{1,3}){2}
        ):\d{1,5}\b
        """
    )

    def __init__(self, enabled: bool = True, extra_secrets: Iterable[str] | None = None):
        self.enabled = enabled
        self._literal_secrets: set[str] = set()
        for raw in extra_secrets or ():
            value = str(raw or "").strip()
            if len(value) >= 6:
                self._literal_secrets.add(value)

    def redact(self, text: str) -> str:
        """Redact sensitive values from text."""
        if not self.enabled or not text:
            return text

        sanitized = text
        for value in sorted(self._literal_secrets, key=len, reverse=True):
            sanitized = sanitized.replace(value, self.SECRET_PLACEHOLDER)

        sanitized = self._WS_ENDPOINT_RE.sub(self.ENDPOINT_PLACEHOLDER, sanitized)
        sanitized = self._SESSION_ID_RE.sub(rf"\1{self.SESSION_PLACEHOLDER}", sanitized)
        sanitized = self._KV_SECRET_RE.sub(rf"\1{self.SECRET_PLACEHOLDER}", sanitized)
        sanitized = self._BEARER_RE.sub(f"Bearer {self.SECRET_PLACEHOLDER}", sanitized)
        sanitized = self._GENERIC_SK_RE.sub(self.SECRET_PLACEHOLDER, sanitized)
        sanitized = self._PRIVATE_ENDPOINT_RE.sub(self.ENDPOINT_PLACEHOLDER, sanitized)
        sanitized = self._PRIVATE_HOSTPORT_RE.sub(self.ENDPOINT_PLACEHOLDER, sanitized)
        return sanitized
