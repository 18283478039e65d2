"""Connectivity prober.

Checks whether the host can reach the internet by issuing a GET request to
each configured endpoint in order. The first endpoint that answers makes the
whole probe succeed; the probe fails only when every endpoint fails.

Any HTTP response, whatever its status code, counts as reachable: the
request made it out and back, which is all the watchdog cares about.

Usage:
    from netwatchdog.prober import ConnectivityProber

    prober = ConnectivityProber(["https://www.google.com", " https://example.org "])
    result = prober.probe()
    if not result.reachable:
        print(result.error_summary())
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from netwatchdog.logging import get_logger

if TYPE_CHECKING:
    from netwatchdog.config import Config

logger = get_logger(__name__)

# Error reported when no usable endpoint is configured
NO_ENDPOINTS_ERROR = "no endpoints configured"


class ProbeOutcome(Enum):
    """Binary outcome of a probe."""

    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class EndpointFailure:
    """A single endpoint that could not be reached.

    Attributes:
        endpoint: The trimmed endpoint address.
        error: Human-readable cause of the failure.
        error_type: Exception class name, for structured logs.
    """

    endpoint: str
    error: str
    error_type: str = ""

    def __str__(self) -> str:
        return f"{self.endpoint}: {self.error}"


@dataclass(frozen=True)
class ProbeResult:
    """Result of one pass over the endpoint list.

    Attributes:
        outcome: Whether any endpoint was reachable.
        endpoint: The endpoint that answered, if any.
        failures: Endpoints that failed before success (or all of them on
            total failure), in probe order.
        latency_ms: Wall-clock duration of the whole probe.
    """

    outcome: ProbeOutcome
    endpoint: str | None = None
    failures: tuple[EndpointFailure, ...] = field(default_factory=tuple)
    latency_ms: float = 0.0

    @property
    def reachable(self) -> bool:
        return self.outcome is ProbeOutcome.REACHABLE

    def error_summary(self) -> str:
        """Describe why the probe failed, or an empty string on success."""
        if self.reachable:
            return ""
        if not self.failures:
            return NO_ENDPOINTS_ERROR
        return "all connection tests failed: " + "; ".join(str(f) for f in self.failures)


def normalize_endpoints(addresses: Iterable[str]) -> tuple[str, ...]:
    """Trim surrounding whitespace and drop empty entries.

    Args:
        addresses: Raw endpoint strings, possibly padded or blank.

    Returns:
        The usable endpoints, in their original order.
    """
    endpoints = []
    for address in addresses:
        endpoint = address.strip()
        if endpoint:
            endpoints.append(endpoint)
    return tuple(endpoints)


class ConnectivityProber:
    """Bounded-time reachability check over an ordered list of endpoints.

    Each call to :meth:`probe` makes at most one request per endpoint; there
    are no retries within a probe. Every request runs under a total deadline
    of ``timeout`` seconds, so a peer that trickles its response headers
    cannot hold the probe open past that limit.

    Attributes:
        endpoints: Trimmed endpoints, in probe order.
        timeout: Per-endpoint deadline in seconds.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        addresses: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the prober.

        Args:
            addresses: Endpoint URLs to check, in order. Surrounding
                whitespace is ignored.
            timeout: Per-endpoint deadline in seconds.
            transport: Optional transport for the HTTP client, e.g.
                ``httpx.MockTransport`` in tests. Defaults to the network.
        """
        self.endpoints = normalize_endpoints(addresses)
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: Config, transport: httpx.AsyncBaseTransport | None = None
    ) -> ConnectivityProber:
        """Create a prober from application Config."""
        return cls(
            addresses=config.watchdog.addresses,
            timeout=config.watchdog.probe_timeout,
            transport=transport,
        )

    def probe(self) -> ProbeResult:
        """Check the endpoints in order until one answers.

        Returns:
            ProbeResult with REACHABLE on the first endpoint that answers,
            otherwise UNREACHABLE with one failure per endpoint. An empty
            endpoint list is UNREACHABLE without any network call.
        """
        if not self.endpoints:
            logger.warning("Probe skipped: %s", NO_ENDPOINTS_ERROR)
            return ProbeResult(outcome=ProbeOutcome.UNREACHABLE)

        return asyncio.run(self._probe_endpoints())

    async def _probe_endpoints(self) -> ProbeResult:
        start_time = time.perf_counter()
        failures: list[EndpointFailure] = []

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=False,
        ) as client:
            for endpoint in self.endpoints:
                failure = await self._check_endpoint(client, endpoint)
                if failure is None:
                    latency_ms = (time.perf_counter() - start_time) * 1000
                    logger.debug("Endpoint %s reachable in %.2fms", endpoint, latency_ms)
                    return ProbeResult(
                        outcome=ProbeOutcome.REACHABLE,
                        endpoint=endpoint,
                        failures=tuple(failures),
                        latency_ms=latency_ms,
                    )
                logger.debug(
                    "Endpoint %s unreachable: %s",
                    endpoint,
                    failure.error,
                    extra={"endpoint": endpoint},
                )
                failures.append(failure)

        latency_ms = (time.perf_counter() - start_time) * 1000
        return ProbeResult(
            outcome=ProbeOutcome.UNREACHABLE,
            failures=tuple(failures),
            latency_ms=latency_ms,
        )

    async def _check_endpoint(
        self, client: httpx.AsyncClient, endpoint: str
    ) -> EndpointFailure | None:
        """Issue one GET request against an endpoint within the deadline.

        Only the response headers are read; the body is never downloaded.

        Returns:
            None if the endpoint answered, otherwise the failure.
        """
        try:
            await asyncio.wait_for(self._request_headers(client, endpoint), timeout=self.timeout)
            return None
        except TimeoutError as e:
            # Total deadline overrun; httpx only bounds each read separately
            return EndpointFailure(
                endpoint, f"timed out: no response within {self.timeout:g}s", type(e).__name__
            )
        except httpx.TimeoutException as e:
            return EndpointFailure(endpoint, f"timed out: {e}", type(e).__name__)
        except httpx.HTTPError as e:
            # Transport errors, unsupported schemes, protocol errors
            return EndpointFailure(endpoint, str(e) or type(e).__name__, type(e).__name__)
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            # Malformed address: a failure for this endpoint only
            return EndpointFailure(endpoint, f"invalid address: {e}", type(e).__name__)

    async def _request_headers(self, client: httpx.AsyncClient, endpoint: str) -> None:
        async with client.stream("GET", endpoint) as response:
            logger.debug("Endpoint %s answered HTTP %s", endpoint, response.status_code)
