"""Checker service - performs one HTTP probe for one monitor."""
import asyncio
import errno
import logging
import socket
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

ERROR_TIMEOUT = "timeout"
ERROR_DNS = "dns-failure"
ERROR_REFUSED = "connection-refused"
ERROR_RESET = "connection-reset"
ERROR_UNKNOWN = "unknown"

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo failed",
    "no address associated with hostname",
    "name resolution",
)


@dataclass
class CheckOutcome:
    """Result of a probe, before it is persisted."""
    status_code: int
    response_time_ms: int
    is_up: bool
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    response_headers: Dict[str, str] = field(default_factory=dict)


def is_up_status(status_code: int) -> bool:
    return 200 <= status_code < 400


def _exception_chain(exc: BaseException):
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def classify_error(exc: BaseException) -> str:
    """Map a transport exception onto the fixed error taxonomy."""
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ERROR_TIMEOUT

    for err in _exception_chain(exc):
        if isinstance(err, socket.gaierror):
            return ERROR_DNS
        if isinstance(err, ConnectionRefusedError):
            return ERROR_REFUSED
        if isinstance(err, ConnectionResetError):
            return ERROR_RESET
        if isinstance(err, OSError) and err.errno == errno.ECONNREFUSED:
            return ERROR_REFUSED
        if isinstance(err, OSError) and err.errno == errno.ECONNRESET:
            return ERROR_RESET

    message = str(exc).lower()
    if any(marker in message for marker in _DNS_MARKERS):
        return ERROR_DNS
    if "connection refused" in message:
        return ERROR_REFUSED
    if "connection reset" in message:
        return ERROR_RESET
    return ERROR_UNKNOWN


def describe_error(kind: str, exc: BaseException, url: str, timeout_ms: int) -> str:
    if kind == ERROR_TIMEOUT:
        return f"Request timed out after {timeout_ms}ms"
    if kind == ERROR_DNS:
        return f"DNS lookup failed for {url}"
    if kind == ERROR_REFUSED:
        return f"Connection refused by {url}"
    if kind == ERROR_RESET:
        return f"Connection reset by peer for {url}"
    return str(exc) or "Unknown error"


class CheckerService:
    """Performs HTTP probes. Never raises and never retries."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.verify = verify
        self.logger = logger or logging.getLogger(__name__)

    async def execute(self, monitor) -> CheckOutcome:
        """Probe `monitor.url` with its method, headers and body.

        Every status code is a normal response; up/down is decided here
        from the code. `timeout_ms` bounds the whole request, not just
        each network phase.
        """
        url = monitor.url
        method = (monitor.http_method or "GET").upper()
        timeout_ms = monitor.timeout_ms or settings.default_timeout_ms
        timeout = timeout_ms / 1000

        try:
            start = time.monotonic()
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                verify=self.verify,
                transport=self.transport,
            ) as client:
                response = await asyncio.wait_for(
                    client.request(
                        method,
                        url,
                        headers=monitor.headers or {},
                        content=monitor.body if monitor.body else None,
                    ),
                    timeout=timeout,
                )
            response_time = int((time.monotonic() - start) * 1000)
        except Exception as e:
            kind = classify_error(e)
            message = describe_error(kind, e, url, timeout_ms)
            self.logger.error(f"Monitor {url} failed: {message}")
            return CheckOutcome(
                status_code=0,
                response_time_ms=0,
                is_up=False,
                error_message=message,
                error_kind=kind,
            )

        self.logger.debug(f"Monitor {url} responded with status {response.status_code} in {response_time}ms")
        return CheckOutcome(
            status_code=response.status_code,
            response_time_ms=response_time,
            is_up=is_up_status(response.status_code),
            response_headers={key: str(value) for key, value in response.headers.items()},
        )


# Global instance
checker_service = CheckerService(verify=settings.verify_ssl)
