"""Authenticated HTTP transport for the Langfuse public API.

One ``httpx.AsyncClient`` is opened per call, bounded by the configured
timeout.  Failures are logged server-side with a sanitized URL and surface
as :class:`TransportFailure` carrying only the operation label and status.
There are no retries.
"""

from __future__ import annotations

import base64
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx

from langfuse_analytics._logging import get_logger
from langfuse_analytics.config import EndpointConfig
from langfuse_analytics.errors import TransportFailure

logger = get_logger("LangfuseAnalytics.Transport")

REDACTED = "[REDACTED]"

# Pagination, sort and view selectors.  Every other query value may carry
# user data (ids, names, filters) and is redacted before logging.
SAFE_QUERY_PARAMS = frozenset(
    {"limit", "page", "view", "orderBy", "orderDirection", "order_by"}
)

QueryParams = Union[Mapping[str, Any], Sequence[tuple[str, Any]]]


def sanitize_url(url: str) -> str:
    """Return ``path?query`` with non-allow-listed query values redacted.

    The scheme and host are dropped; the path is kept as-is.
    """
    try:
        parts = urlsplit(url)
        pairs = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError:
        return "/api/[INVALID_URL]"

    cleaned = [
        (key, value if key in SAFE_QUERY_PARAMS else REDACTED)
        for key, value in pairs
    ]
    query = urlencode(cleaned, safe="[]")
    return f"{parts.path}?{query}" if query else parts.path


def basic_auth_header(public_key: str, secret_key: str) -> str:
    token = base64.b64encode(f"{public_key}:{secret_key}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _clean_params(params: Optional[QueryParams]) -> list[tuple[str, str]]:
    """Drop ``None`` values and stringify the rest, keeping repeated keys."""
    if not params:
        return []
    items: Iterable[tuple[str, Any]] = (
        params.items() if isinstance(params, Mapping) else params
    )
    cleaned: list[tuple[str, str]] = []
    for key, value in items:
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned.append((key, "true" if value else "false"))
        else:
            cleaned.append((key, str(value)))
    return cleaned


class AuthenticatedTransport:
    """Performs authenticated calls against one Langfuse project.

    Args:
        endpoint: The immutable endpoint configuration.
        transport: Optional ``httpx`` transport, used by tests to substitute
            ``httpx.MockTransport`` for the network.
    """

    def __init__(
        self,
        endpoint: EndpointConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint
        self._transport = transport

    @property
    def endpoint(self) -> EndpointConfig:
        return self._endpoint

    def _headers(self, authenticated: bool, has_body: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if authenticated:
            # Computed per call; never cached or logged.
            headers["Authorization"] = basic_auth_header(
                self._endpoint.public_key, self._endpoint.secret_key
            )
        if has_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def call(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[QueryParams] = None,
        json_body: Any = None,
        authenticated: bool = True,
    ) -> Any:
        """Perform one HTTP call and return the parsed JSON body.

        Raises:
            TransportFailure: non-2xx status, network error, timeout or an
                unparseable response body.
        """
        url = httpx.URL(self._endpoint.base_url + path, params=_clean_params(params))
        safe_url = sanitize_url(str(url))
        headers = self._headers(authenticated, json_body is not None)

        logger.debug("%s %s (%s)", method, safe_url, operation)

        try:
            async with httpx.AsyncClient(
                timeout=self._endpoint.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, url, headers=headers, json=json_body,
                )
        except httpx.TimeoutException:
            logger.error("%s API timeout after %d ms. URL: %s",
                         operation, self._endpoint.request_timeout_ms, safe_url)
            raise TransportFailure(operation, reason="request timed out") from None
        except httpx.HTTPError as exc:
            logger.error("%s API network error (%s). URL: %s",
                         operation, type(exc).__name__, safe_url)
            raise TransportFailure(operation, reason="network error") from None

        if not response.is_success:
            await self._handle_error(response, operation, safe_url)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            logger.error("%s API returned a non-JSON body. URL: %s", operation, safe_url)
            raise TransportFailure(operation, reason="invalid JSON response") from None

    async def _handle_error(
        self, response: httpx.Response, operation: str, safe_url: str
    ) -> None:
        try:
            body = response.text
        except Exception:
            body = "Unable to read error response"
        # The body itself stays out of the log; only its size is recorded.
        logger.error(
            "%s API error: %d %s. URL: %s. Response: [REDACTED for security, %d chars]",
            operation,
            response.status_code,
            response.reason_phrase,
            safe_url,
            len(body),
        )
        raise TransportFailure(operation, status_code=response.status_code)
