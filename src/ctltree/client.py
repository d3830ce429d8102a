"""Resolve a controller's published endpoints over HTTP."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from ctltree.models import Endpoint

logger = logging.getLogger(__name__)

ENDPOINTS_PATH = "/api/v1/bdc/endpoints"
DEFAULT_TIMEOUT = 30.0
REDACTED = "***REDACTED***"

_USERINFO_RE = re.compile(r"(?<=://)[^/@\s]+@")


def _sanitize_error(msg: str) -> str:
    """Strip ``user:password@`` credentials embedded in URLs."""
    return _USERINFO_RE.sub("***@", msg)


@dataclass(frozen=True)
class RequestDescriptor:
    """The request that produced a result, kept for diagnostics."""

    url: str
    username: str
    password: str = field(default=REDACTED, repr=False)
    method: str = "endPointsGet"


@dataclass(frozen=True)
class HttpFailure:
    """The controller answered with a non-success HTTP status."""

    status_code: int | None
    status_message: str
    url: str


@dataclass(frozen=True)
class TransportFailure:
    """The request never produced an HTTP response (DNS, TLS, timeout, ...)."""

    message: str
    address: str = ""
    code: str = ""
    errno: str = ""


Failure = HttpFailure | TransportFailure


class ControllerError(Exception):
    """Raised when endpoint resolution against a controller fails."""

    def __init__(
        self,
        message: str,
        address: str = "",
        code: str = "",
        errno: str = "",
        request: RequestDescriptor | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.address = address
        self.code = code
        self.errno = errno
        self.request = request


@dataclass(frozen=True)
class EndpointsResponse:
    """Successful resolution: the endpoints in the order the controller sent them."""

    endpoints: list[Endpoint]
    request: RequestDescriptor
    status_code: int = 200


def normalize_failure(failure: Failure, request: RequestDescriptor) -> ControllerError:
    """Collapse either failure shape into a single :class:`ControllerError`."""
    match failure:
        case HttpFailure(status_code=status, status_message=text, url=url):
            code = f"{status}" if status is not None else ""
            return ControllerError(text, address=url, code=code, errno=code, request=request)
        case TransportFailure(message=text, address=address, code=code, errno=errno):
            return ControllerError(text, address=address, code=code, errno=errno, request=request)
    raise TypeError(f"Unsupported failure shape: {type(failure).__name__}")


def _failure_from_exception(exc: httpx.HTTPError, url: str) -> Failure:
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return HttpFailure(
            status_code=response.status_code,
            status_message=response.reason_phrase,
            url=str(response.url),
        )
    cause = exc.__cause__ or exc.__context__
    errno = getattr(cause, "errno", None)
    return TransportFailure(
        message=_sanitize_error(str(exc)) or type(exc).__name__,
        address=url,
        code=type(exc).__name__,
        errno=f"{errno}" if errno is not None else "",
    )


def _parse_endpoints(body: Any) -> list[Endpoint]:
    if not isinstance(body, list):
        raise ValueError("expected a JSON list of endpoints")
    endpoints: list[Endpoint] = []
    for item in body:
        if not isinstance(item, dict):
            raise ValueError("expected each endpoint to be a JSON object")
        endpoints.append(
            Endpoint(
                role=str(item.get("name") or item.get("role") or ""),
                address=str(item.get("endpoint") or ""),
                description=str(item.get("description") or ""),
            )
        )
    return endpoints


async def resolve_endpoints(
    url: str | None,
    username: str | None,
    password: str | None,
    skip_certificate_validation: bool = False,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> EndpointsResponse | None:
    """Ask the controller at *url* for its endpoints.

    Exactly one request is made; there are no retries.

    Args:
        url: Base URL of the controller, e.g. ``https://10.0.0.1:30080``.
        username: Basic-auth user name.
        password: Basic-auth password.
        skip_certificate_validation: Disable TLS certificate checks.  Off by
            default; callers must opt in.
        timeout: Upper bound, in seconds, for the whole request.
        transport: Optional transport override (used by tests).

    Returns:
        An :class:`EndpointsResponse`, or ``None`` without touching the
        network when any of *url*, *username* or *password* is missing.

    Raises:
        ControllerError: On any HTTP or transport failure.
    """
    if not url or not username or not password:
        return None

    request = RequestDescriptor(url=url, username=username)
    target = url.rstrip("/") + ENDPOINTS_PATH
    logger.debug("Resolving endpoints for %s (%s)", url, username)

    # httpx.Timeout bounds each phase; asyncio.timeout bounds the whole call.
    try:
        async with asyncio.timeout(timeout):
            async with httpx.AsyncClient(
                auth=(username, password),
                verify=not skip_certificate_validation,
                timeout=httpx.Timeout(timeout),
                transport=transport,
            ) as client:
                response = await client.get(target, headers={"Accept": "application/json"})
                response.raise_for_status()
    except httpx.HTTPError as exc:
        error = normalize_failure(_failure_from_exception(exc, url), request)
        logger.warning(
            "Endpoint resolution failed for %s (%s): %s %s",
            url, username, error.code, error.message,
        )
        raise error from exc
    except TimeoutError as exc:
        error = normalize_failure(
            TransportFailure(
                message=f"Request timed out after {timeout:g}s",
                address=url,
                code="ETIMEDOUT",
            ),
            request,
        )
        logger.warning("Endpoint resolution failed for %s (%s): %s", url, username, error.message)
        raise error from exc

    try:
        endpoints = _parse_endpoints(response.json())
    except ValueError as exc:
        error = normalize_failure(
            TransportFailure(
                message=f"Invalid endpoint list from controller: {exc}",
                address=url,
                code="EBADRESPONSE",
            ),
            request,
        )
        logger.warning("Endpoint resolution failed for %s (%s): %s", url, username, error.message)
        raise error from exc

    logger.debug("Resolved %d endpoint(s) for %s (%s)", len(endpoints), url, username)
    return EndpointsResponse(endpoints=endpoints, request=request, status_code=response.status_code)
