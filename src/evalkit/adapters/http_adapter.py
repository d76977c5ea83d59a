"""Adapter for any agent accessible via HTTP API.

Communicates with the agent via a single REST endpoint:
  POST /process  - body {"role", "content", "metadata"}, reply the same shape

Usage::

    from evalkit.adapters.http_adapter import HttpAgent

    agent = HttpAgent(base_url="http://localhost:8000")
    reply = agent.process(Message(role="user", content="What is 2+2?"))
    print(reply.content)
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from ..errors import AgentError
from .base import Agent, Message

logger = logging.getLogger(__name__)


class HttpAgent(Agent):
    """Adapter for agents accessible via HTTP API.

    Uses urllib (no external dependencies) for HTTP communication.

    Args:
        base_url: Base URL of the agent API (e.g. "http://localhost:8000")
        process_path: Path for the process endpoint
        timeout: HTTP request timeout in seconds
        headers: Additional HTTP headers
    """

    def __init__(
        self,
        base_url: str,
        process_path: str = "/process",
        timeout: float = 120.0,
        headers: dict[str, str] | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._process_path = process_path
        self._timeout = timeout
        self._headers = headers or {}

    def _post(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        """Send a POST request and return the decoded JSON body."""
        url = f"{self._base_url}{path}"
        body = json.dumps(data).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            **self._headers,
        }
        req = Request(url, data=body, headers=headers, method="POST")

        try:
            with urlopen(req, timeout=self._timeout) as resp:
                response_body = resp.read().decode("utf-8")
        except URLError as e:
            logger.error("HTTP request failed for %s: %s", url, e)
            raise AgentError(f"HTTP request to {url} failed: {e}") from e

        if not response_body:
            return {}
        try:
            result = json.loads(response_body)
        except json.JSONDecodeError:
            logger.warning("Non-JSON response from %s", url)
            return {"content": response_body}
        if not isinstance(result, dict):
            raise AgentError(
                f"Expected a JSON object from {url}, got {type(result).__name__}"
            )
        return result

    def process(self, message: Message) -> Message:
        """Send one message to the agent over HTTP."""
        start = time.time()
        result = self._post(
            self._process_path,
            {"role": message.role, "content": message.content, "metadata": message.metadata},
        )
        elapsed = time.time() - start

        if "error" in result:
            raise AgentError(str(result["error"]))

        raw_metadata = result.get("metadata")
        metadata = dict(raw_metadata) if isinstance(raw_metadata, dict) else {}
        metadata.setdefault("elapsed_s", elapsed)
        return Message(
            role=str(result.get("role", "assistant")),
            content=str(result.get("content", "")),
            metadata=metadata,
        )

    @property
    def name(self) -> str:
        return f"HTTP({self._base_url})"


__all__ = ["HttpAgent"]
