"""Probe executor — one synthetic GET against one endpoint, one Sample.

No retries: every call is exactly one probe, so a failure always counts
against the error rate.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

import httpx

from .models import NO_RESPONSE, ProbeError, ProbeTarget, Sample

logger = logging.getLogger(__name__)

USER_AGENT = "deploywatch/0.1"


def make_client(timeout_ms: int) -> httpx.Client:
    """HTTP client shared by every probe of a run."""
    return httpx.Client(
        timeout=timeout_ms / 1000,
        follow_redirects=False,
        headers={"User-Agent": USER_AGENT},
    )


def _fetch_status(client: httpx.Client, url: str, timeout_ms: int) -> int:
    """Return the response status code. Body is never read."""
    try:
        with client.stream("GET", url, timeout=timeout_ms / 1000) as resp:
            return resp.status_code
    except httpx.TimeoutException as e:
        raise ProbeError(f"Timed out after {timeout_ms}ms") from e
    except httpx.ConnectError as e:
        raise ProbeError(f"Connection error: {e}") from e
    except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
        raise ProbeError(f"{type(e).__name__}: {e}") from e


def probe(
    target: ProbeTarget,
    timeout_ms: int = 10_000,
    client: httpx.Client | None = None,
    timestamp: datetime | None = None,
) -> Sample:
    """Probe ``target`` once and normalize the outcome into a Sample.

    ``timestamp`` lets the scheduler stamp every probe of a tick with the
    tick time; otherwise the probe start time is used. A ``client`` is
    opened and closed here when none is supplied.
    """
    ts = timestamp or datetime.now(timezone.utc)
    own_client = client is None
    if own_client:
        client = make_client(timeout_ms)

    t0 = time.perf_counter()
    try:
        status_code = _fetch_status(client, target.url, timeout_ms)
        latency = (time.perf_counter() - t0) * 1000
        error = "" if status_code == 200 else f"Expected 200, got {status_code}"
    except ProbeError as e:
        latency = (time.perf_counter() - t0) * 1000
        status_code = NO_RESPONSE
        error = str(e)
        logger.debug("Probe %s failed: %s", target.url, error)
    finally:
        if own_client:
            client.close()

    return Sample(
        timestamp=ts,
        kind=target.kind,
        http_status=status_code,
        latency_ms=round(latency, 1),
        error=error,
    )
