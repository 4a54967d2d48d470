import socket

import httpx
import pytest

from accessaudit.core.config import ScanConfig
from accessaudit.core.errors import NavigationError, classify_navigation_message
from accessaudit.core.models import Outcome, ScanTarget
from accessaudit.engine import preflight
from accessaudit.engine.orchestrator import run_scan_sync


def test_probe_returns_status_codes_without_judging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(preflight, "_head", lambda url, timeout_s, user_agent: 405)
    assert preflight.probe("https://example.com", 5.0, "ua") == 405


def test_dns_failure_is_not_retryable(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_head(url: str, timeout_s: float, user_agent: str) -> int:
        try:
            raise socket.gaierror(-2, "Name or service not known")
        except socket.gaierror as exc:
            raise httpx.ConnectError("[Errno -2] Name or service not known") from exc

    monkeypatch.setattr(preflight, "_head", fake_head)
    with pytest.raises(NavigationError) as info:
        preflight.probe("https://nope.invalid", 5.0, "ua")
    assert info.value.retryable is False


def test_refused_connection_is_retryable(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_head(url: str, timeout_s: float, user_agent: str) -> int:
        raise httpx.ConnectError("[Errno 111] Connection refused")

    monkeypatch.setattr(preflight, "_head", fake_head)
    with pytest.raises(NavigationError) as info:
        preflight.probe("https://example.com", 5.0, "ua")
    assert info.value.retryable is True


def test_read_timeout_is_retryable(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_head(url: str, timeout_s: float, user_agent: str) -> int:
        raise httpx.ReadTimeout("timed out")

    monkeypatch.setattr(preflight, "_head", fake_head)
    with pytest.raises(NavigationError) as info:
        preflight.probe("https://example.com", 5.0, "ua")
    assert info.value.retryable is True


@pytest.mark.parametrize(
    "message, retryable",
    [
        ("net::ERR_NAME_NOT_RESOLVED at https://x.test", False),
        ("net::ERR_CERT_AUTHORITY_INVALID at https://x.test", False),
        ("net::ERR_SSL_PROTOCOL_ERROR", False),
        ("net::ERR_CONNECTION_RESET at https://x.test", True),
        ("net::ERR_CONNECTION_REFUSED", True),
    ],
)
def test_classify_navigation_message(message: str, retryable: bool) -> None:
    error = classify_navigation_message(message)
    assert error.kind == "navigation"
    assert error.retryable is retryable


def _redirect_loop_head(url: str, timeout_s: float, user_agent: str) -> int:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": str(request.url)})

    with httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True) as client:
        return client.head(url).status_code


def test_redirect_loop_is_retryable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(preflight, "_head", _redirect_loop_head)
    with pytest.raises(NavigationError) as info:
        preflight.probe("https://example.com/loop", 5.0, "ua")
    assert info.value.retryable is True
    assert isinstance(info.value.__cause__, httpx.TooManyRedirects)


def test_redirect_loop_leaves_scan_to_browser(
    monkeypatch: pytest.MonkeyPatch, scripted, make_raw
) -> None:
    monkeypatch.setattr(preflight, "_head", _redirect_loop_head)
    factory = scripted([make_raw()])
    attempt = run_scan_sync(
        ScanTarget(url="https://example.com/loop"),
        ScanConfig(preflight=True, max_retries=0),
        session_factory=factory,
    )
    assert attempt.outcome is Outcome.SUCCEEDED
    assert factory.created == 1
