"""HTTP Request node."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext
from eduflow.nodes.http import HttpClient


HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


class HttpRequestConfig(NodeConfig):
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    timeout: Optional[float] = Field(None, description="Timeout in milliseconds")

    @field_validator("url")
    @classmethod
    def url_required(cls, v: str) -> str:
        if not v:
            raise ValueError("URL is required")
        return v

    @field_validator("method")
    @classmethod
    def method_known(cls, v: str) -> str:
        method = (v or "GET").upper()
        if method not in HTTP_METHODS:
            raise ValueError("Invalid HTTP method")
        return method


class HttpRequestNode(BaseNode):
    """
    Calls an arbitrary HTTP endpoint.

    Any response (including 4xx/5xx) is returned as output; only
    transport errors and timeouts fail the node.
    """

    type = "http-request"
    description = {
        "label": "HTTP Request",
        "description": "Make HTTP requests to external APIs",
        "category": "Integration",
    }
    config_model = HttpRequestConfig

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: HttpRequestConfig = self.parsed_config
        timeout_s = config.timeout / 1000 if config.timeout else None

        client = HttpClient(default_headers={"Content-Type": "application/json", **config.headers})
        response = await client.request(
            config.method,
            config.url,
            json=config.body if config.body is not None else None,
            timeout=timeout_s,
        )

        return {
            "status": response.status_code,
            "statusText": response.reason,
            "headers": response.headers,
            "data": response.data(),
        }


__all__ = ["HttpRequestNode", "HTTP_METHODS"]
