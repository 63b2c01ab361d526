# modtools/http/client.py
from __future__ import annotations
import logging
import random
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from modtools.core.errors import HTTPError

logger = logging.getLogger(__name__)

__all__ = ["RETRY_STATUSES", "request"]


RETRY_STATUSES = frozenset({408, 429, 500, 502, 503, 504})



def _parseRetryAfter(value: str | None) -> float | None:
    """Seconds to wait according to a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return seconds if seconds >= 0 else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())



def _backoffSeconds(attempt: int, baseMs: int, maxMs: int) -> float:
    delayMs = min(maxMs, baseMs * (2 ** attempt))
    return (delayMs + random.uniform(0, delayMs * 0.3)) / 1_000



def _toResult(resp: httpx.Response) -> dict[str, Any]:
    result: dict[str, Any] = {
        "status": resp.status_code,
        "headers": dict(resp.headers),
        "text": resp.text,
    }
    if "json" in resp.headers.get("Content-Type", ""):
        try:
            result["json"] = resp.json()
        except ValueError:
            logger.debug("Response from %s claims JSON but does not parse", resp.request.url)
    return result



def request(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    timeoutMs: int = 15_000,
    retries: int = 2,
    backoffBaseMs: int = 250,
    backoffMaxMs: int = 2_000,
) -> dict[str, Any]:
    """
    Blocking HTTP call used for the GitHub REST API.

    Transport errors and RETRY_STATUSES are retried up to `retries` times,
    waiting for Retry-After when the server sends one and exponential backoff
    with jitter otherwise.

    Returns {"status", "headers", "text"} plus "json" when the body is JSON.
    Raises HTTPError for a final status >= 400 and RuntimeError when the
    transport keeps failing.
    """
    timeout = httpx.Timeout(max(timeoutMs, 1) / 1_000)
    verb = str(method).upper()
    retries = max(0, retries)

    with httpx.Client(timeout=timeout, follow_redirects=True) as cli:
        for attempt in range(retries + 1):
            lastTry = attempt >= retries
            try:
                resp = cli.request(verb, url, headers=headers, params=params)
            except httpx.HTTPError as err:
                if lastTry:
                    raise RuntimeError(f"{verb} {url} failed: {err}") from err
                delay = _backoffSeconds(attempt, backoffBaseMs, backoffMaxMs)
                logger.debug("Transport error on %s %s (%s); retrying in %.2fs", verb, url, err, delay)
                time.sleep(delay)
                continue

            if resp.status_code in RETRY_STATUSES and not lastTry:
                delay = _parseRetryAfter(resp.headers.get("Retry-After"))
                if delay is None:
                    delay = _backoffSeconds(attempt, backoffBaseMs, backoffMaxMs)
                logger.debug("HTTP %d from %s; retrying in %.2fs", resp.status_code, url, delay)
                time.sleep(delay)
                continue

            if resp.status_code >= 400:
                raise HTTPError(resp.status_code, resp.text)
            return _toResult(resp)

    raise RuntimeError(f"{verb} {url} failed: retries exhausted")
