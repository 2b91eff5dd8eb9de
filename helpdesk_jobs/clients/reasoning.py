"""
Reasoning service client.

Thin wrapper over the Anthropic Messages REST API. Handlers send a bounded
prompt and get back the model's text, from which they extract JSON.
"""

import json
import logging
import re
from typing import Any

import httpx

from helpdesk_jobs.config import Settings
from helpdesk_jobs.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "reasoning service"

_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY_PATTERN = re.compile(r"\[.*\]", re.DOTALL)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Parse the first {...} span in free text.

    Returns:
        The parsed object, or None if nothing parses to a JSON object.
    """
    match = _OBJECT_PATTERN.search(text)
    try:
        value = json.loads(match.group(0) if match else text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json_array(text: str) -> list[Any] | None:
    """
    Parse the first [...] span in free text.

    Returns:
        The parsed list, or None if nothing parses to a JSON array.
    """
    match = _ARRAY_PATTERN.search(text)
    if match is None:
        return None
    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None


class ReasoningClient:
    """
    Client for the reasoning service.

    Owns an httpx.AsyncClient; call aclose() on shutdown.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": api_version,
                "content-type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def complete(self, prompt: str, max_tokens: int) -> str:
        """
        Send a single-turn prompt and return the first text block.

        Args:
            prompt: The user prompt.
            max_tokens: Upper bound on the response length.

        Returns:
            The response text, or an empty string if the first block is not text.

        Raises:
            ExternalServiceError: On transport errors or non-2xx responses.
        """
        body = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        try:
            response = await self._client.post("/v1/messages", json=body)
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE_NAME, f"request failed: {e}") from e

        if not response.is_success:
            raise ExternalServiceError(
                SERVICE_NAME,
                f"HTTP {response.status_code}: {response.text[:500]}",
                {"status_code": response.status_code},
            )

        data = response.json()
        content = data.get("content") or []
        if not content or content[0].get("type") != "text":
            logger.warning("Reasoning response has no text block", extra={"model": self.model})
            return ""

        return content[0].get("text", "")

    async def aclose(self) -> None:
        await self._client.aclose()


def create_reasoning_client(settings: Settings) -> ReasoningClient | None:
    """
    Build the reasoning client from settings.

    Returns:
        The client, or None when no API key is configured.
    """
    if not settings.anthropic_api_key:
        logger.info("No reasoning API key configured, AI calls disabled")
        return None

    return ReasoningClient(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        base_url=settings.anthropic_base_url,
        api_version=settings.anthropic_version,
        timeout=settings.anthropic_timeout_seconds,
    )
