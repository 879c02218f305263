"""
HTTP Client - Timeout-bounded async HTTP requests for nodes.

Every outbound call made by a node goes through HttpClient so that
a timeout is always applied and failures surface as node errors.
"""

from __future__ import annotations

import asyncio
import json as jsonlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import aiohttp

from eduflow.config import get_settings
from eduflow.errors import NodeApiError, NodeExecutionError


@dataclass
class HttpResponse:
    """
    Materialized HTTP response with convenient accessors.
    """
    status_code: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    url: str = ""
    method: str = "GET"

    @property
    def ok(self) -> bool:
        """True if status code is 2xx."""
        return 200 <= self.status_code < 300

    @property
    def is_json(self) -> bool:
        return "application/json" in self.headers.get("Content-Type", self.headers.get("content-type", ""))

    def json(self) -> Any:
        """Parse response as JSON."""
        return jsonlib.loads(self.text)

    def data(self) -> Any:
        """JSON body when the server says so, text otherwise."""
        if self.is_json and self.text:
            return self.json()
        return self.text

    def raise_for_status(self) -> None:
        """Raise NodeApiError if status code indicates error."""
        if not self.ok:
            raise NodeApiError(
                f"HTTP {self.status_code}: {self.reason}",
                status_code=self.status_code,
                response_body=self.text[:1000] if self.text else None,
            )


class HttpClient:
    """
    Async HTTP client with timeout enforcement and credential injection.

    Usage:
        client = HttpClient(base_url="https://api.example.com")
        response = await client.get("/users", params={"limit": 10})
        data = response.json()
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        auth: Optional[tuple] = None,
        bearer_token: Optional[str] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL for all requests
            default_headers: Headers to include in all requests
            timeout: Default timeout in seconds (settings value if omitted)
            auth: Basic auth tuple (username, password)
            bearer_token: Bearer token for Authorization header
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or get_settings().http_timeout_s
        self.auth = aiohttp.BasicAuth(*auth) if auth else None

        self.headers: Dict[str, str] = dict(default_headers or {})
        if bearer_token:
            self.headers["Authorization"] = f"Bearer {bearer_token}"

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Union[Dict[str, Any], str, bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Make HTTP request with timeout enforcement.

        Raises:
            NodeExecutionError: If the request times out or cannot be sent
        """
        url = f"{self.base_url}{endpoint}" if self.base_url else endpoint
        request_headers = {**self.headers, **(headers or {})}
        request_timeout = timeout or self.timeout

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=request_timeout),
            ) as session:
                async with session.request(
                    method.upper(),
                    url,
                    params=params,
                    json=json,
                    data=data,
                    headers=request_headers,
                    auth=self.auth,
                ) as response:
                    text = await response.text()
                    return HttpResponse(
                        status_code=response.status,
                        reason=response.reason or "",
                        headers=dict(response.headers),
                        text=text,
                        url=str(response.url),
                        method=method.upper(),
                    )

        except asyncio.TimeoutError as e:
            raise NodeExecutionError(
                f"HTTP request timed out after {request_timeout}s"
            ) from e

        except aiohttp.ClientError as e:
            raise NodeExecutionError(f"HTTP request failed: {e}") from e

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> HttpResponse:
        """Make GET request."""
        return await self.request("GET", endpoint, params=params, **kwargs)

    async def post(
        self,
        endpoint: str,
        json: Any = None,
        data: Optional[Union[Dict[str, Any], str, bytes]] = None,
        **kwargs: Any,
    ) -> HttpResponse:
        """Make POST request."""
        return await self.request("POST", endpoint, json=json, data=data, **kwargs)


__all__ = ["HttpClient", "HttpResponse"]
