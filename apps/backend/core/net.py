"""
HTTP client for job-board APIs and HTML pages.

Every request carries a timeout. Transport failures (timeouts, connection errors,
protocol errors) surface as TransportError; non-2xx responses are returned to the
caller, which decides whether the status is fatal. There is no inline retry: a
failed source is retried on the next scheduled run.
"""
import os
import time
import base64
import logging
from typing import Optional, Dict, Tuple, Any

import httpx

from core.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_UA = "JobIngestBot/1.0 (+https://github.com/jobingest)"
DEFAULT_TIMEOUT = 30.0
MAX_BODY_KB = 4096


def describe_status(status: int, url: str) -> Tuple[str, str]:
    """
    Human-readable message and category for a non-success HTTP status.

    Returns:
        (message, category)
    """
    if status == 401:
        return f"Authentication failed (401) for {url} - check credentials", "authentication"
    if status == 403:
        return f"Access forbidden (403) for {url} - check permissions", "authorization"
    if status == 404:
        return f"Resource not found (404) for {url}", "not_found"
    if status == 429:
        return f"Rate limit exceeded (429) for {url}", "rate_limit"
    if status >= 500:
        return f"Server error ({status}) for {url} - upstream issue", "server_error"
    if status >= 400:
        return f"Client error ({status}) for {url}", "client_error"
    return f"Non-success status {status} for {url}", "unknown"


def build_auth(
    auth_config: Optional[Dict[str, Any]]
) -> Tuple[Optional[str], Optional[Dict[str, str]], Optional[Dict[str, str]]]:
    """
    Get authentication header, extra headers, and query parameters from a source's auth block.

    Supported types: none, header, query, bearer, basic.

    Returns:
        Tuple of (auth_header, auth_extra_headers, auth_query_params)
    """
    if not auth_config:
        return None, None, None

    auth_type = str(auth_config.get("type", "none")).lower()

    if auth_type == "header":
        header_name = auth_config.get("header_name", "Authorization")
        token = auth_config.get("token")
        if token:
            return None, {header_name: token}, None
    elif auth_type == "query":
        query_name = auth_config.get("query_name", "api_key")
        token = auth_config.get("token")
        if token:
            return None, None, {query_name: token}
    elif auth_type == "bearer":
        token = auth_config.get("token")
        if token:
            return f"Bearer {token}", None, None
    elif auth_type == "basic":
        username = auth_config.get("username")
        password = auth_config.get("password") or ""
        if username:
            encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
            return f"Basic {encoded}", None, None
    elif auth_type != "none":
        logger.warning(f"[net] Unsupported auth type '{auth_type}', sending request without auth")

    return None, None, None


class HTTPClient:
    """Async HTTP client with a fixed user agent and per-request timeout"""

    def __init__(self, user_agent: Optional[str] = None, timeout: Optional[float] = None):
        self.user_agent = user_agent or os.getenv("JOBINGEST_USER_AGENT", DEFAULT_UA)
        if timeout is None:
            timeout = float(os.getenv("JOBINGEST_HTTP_TIMEOUT", DEFAULT_TIMEOUT))
        self.timeout = httpx.Timeout(timeout)

    def _get_headers(
        self,
        custom_headers: Optional[Dict[str, str]] = None,
        auth_header: Optional[str] = None
    ) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json,text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }

        if custom_headers:
            headers.update(custom_headers)

        if auth_header:
            headers["Authorization"] = auth_header

        return headers

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        auth_header: Optional[str] = None,
        max_size_kb: int = MAX_BODY_KB
    ) -> Tuple[int, Dict[str, str], bytes, int]:
        """
        Fetch a URL once.

        Args:
            url: URL to fetch
            method: HTTP method (GET or HEAD)
            headers: Custom headers to add
            params: Query parameters
            auth_header: Authorization header value
            max_size_kb: Bodies larger than this are truncated

        Returns:
            (status_code, headers, body, content_length_bytes)

        Raises:
            TransportError: on timeout, connection failure or other transport errors
        """
        request_headers = self._get_headers(custom_headers=headers, auth_header=auth_header)

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            start_time = time.time()

            try:
                response = await client.request(method.upper(), url, headers=request_headers, params=params)
            except httpx.TimeoutException as e:
                logger.error(f"[net] Timeout fetching {url}: {e}")
                raise TransportError(f"Timeout fetching {url}", url=url) from e
            except httpx.ConnectError as e:
                logger.error(f"[net] Connection error fetching {url}: {e}")
                raise TransportError(f"Connection error fetching {url}: {e}", url=url) from e
            except httpx.HTTPError as e:
                logger.error(f"[net] HTTP error fetching {url}: {e}")
                raise TransportError(f"HTTP error fetching {url}: {e}", url=url) from e

            elapsed_ms = int((time.time() - start_time) * 1000)

            content_length = len(response.content)
            if content_length > max_size_kb * 1024:
                logger.warning(f"[net] Content too large: {content_length} bytes (limit: {max_size_kb}KB) - {url}")
                body = response.content[:max_size_kb * 1024]
            else:
                body = response.content

            logger.info(f"[net] {method.upper()} {response.status_code} {url} ({content_length} bytes, {elapsed_ms}ms)")

            return (
                response.status_code,
                dict(response.headers),
                body,
                content_length
            )
