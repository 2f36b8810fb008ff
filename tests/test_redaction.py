from scrapedeck.utils.redaction import ErrorRedactor


def test_redacts_cdp_websocket_endpoints() -> None:
    redactor = ErrorRedactor()
    text = "connect_over_cdp failed for wss://pool.internal:9222/devtools/browser/abc-123"

    redacted = redactor.redact(text)

    assert "pool.internal" not in redacted
    assert "devtools/browser" not in redacted
    assert ErrorRedactor.ENDPOINT_PLACEHOLDER in redacted


def test_redacts_private_endpoints() -> None:
    redactor = ErrorRedactor()
    text = "http://127.0.0.1:8000/v1 and 192.168.1.23:9000 and http://10.0.0.5/manager"

    redacted = redactor.redact(text)

    assert "127.0.0.1" not in redacted
    assert "192.168.1.23:9000" not in redacted
    assert "10.0.0.5" not in redacted
    assert redacted.count(ErrorRedactor.ENDPOINT_PLACEHOLDER) >= 3


def test_redacts_secrets_sessions_and_tokens() -> None:
    redactor = ErrorRedactor(extra_secrets=["pool-manager-token"])
    text = (
        '{"api_key":"sk-live-secret-value-123456","token":"abcdef123456"} '
        "Authorization: Bearer abcdefghijklmnopqr "
        "session_id=f00dbabe and pool-manager-token"
    )

    redacted = redactor.redact(text)

    assert "sk-live-secret-value-123456" not in redacted
    assert "abcdef123456" not in redacted
    assert "abcdefghijklmnopqr" not in redacted
    assert "f00dbabe" not in redacted
    assert "pool-manager-token" not in redacted
    assert ErrorRedactor.SESSION_PLACEHOLDER in redacted


def test_public_urls_are_kept() -> None:
    redactor = ErrorRedactor()
    text = "net::ERR_NAME_NOT_RESOLVED at https://example.com/page"

    assert redactor.redact(text) == text


def test_disabled_redactor_returns_text_unchanged() -> None:
    redactor = ErrorRedactor(enabled=False)
    text = "ws://localhost:9222/devtools"

    assert redactor.redact(text) == text
