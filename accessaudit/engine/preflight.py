"""Reachability probe run before launching a browser."""
from __future__ import annotations

import socket
from typing import Optional

import httpx

from ..core.errors import NavigationError


def _dns_failure(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        text = str(current).lower()
        if "name or service not known" in text or "nodename nor servname" in text:
            return True
        if "getaddrinfo failed" in text or "name resolution" in text:
            return True
        current = current.__cause__ or current.__context__
    return False


def _head(url: str, timeout_s: float, user_agent: str) -> int:
    client = httpx.Client(
        headers={"User-Agent": user_agent},
        follow_redirects=True,
        timeout=timeout_s,
        verify=False,
    )
    try:
        response = client.head(url)
        return response.status_code
    finally:
        client.close()


def probe(url: str, timeout_s: float, user_agent: str) -> Optional[int]:
    """Check that ``url`` resolves and accepts connections.

    Returns the HTTP status of a HEAD request; status codes are never treated
    as failures because many sites reject HEAD while serving GET. DNS failures
    and invalid URLs raise a non-retryable :class:`NavigationError`; every
    other httpx error raises a retryable one.
    """

    try:
        return _head(url, timeout_s, user_agent)
    except httpx.InvalidURL as exc:
        raise NavigationError(f"Invalid URL {url!r}: {exc}", retryable=False) from exc
    except httpx.UnsupportedProtocol as exc:
        raise NavigationError(f"Unsupported protocol for {url!r}: {exc}", retryable=False) from exc
    except httpx.ConnectError as exc:
        if _dns_failure(exc):
            raise NavigationError(f"Host for {url!r} could not be resolved", retryable=False) from exc
        raise NavigationError(f"Connection to {url!r} failed: {exc}", retryable=True) from exc
    except httpx.TransportError as exc:
        raise NavigationError(f"Transport error reaching {url!r}: {exc}", retryable=True) from exc
    except httpx.HTTPError as exc:
        # Redirect loops and undecodable HEAD bodies; the browser decides.
        raise NavigationError(f"Probe of {url!r} failed: {exc}", retryable=True) from exc


__all__ = ["probe"]
