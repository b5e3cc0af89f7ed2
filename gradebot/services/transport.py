"""
Inference transports: how a correction request reaches a language model.

A transport answers with a TransportResponse (any status code) and raises
TransportError only when no response was obtained at all.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI
from pydantic import BaseModel, Field

from ..config import CORRECTION_PROVIDER
from ..errors import TransportError
from ..models import RequestConfig

log = logging.getLogger(__name__)

PROMPT_REQUIRED = "Prompt is required"


class TransportResponse(BaseModel):
    status_code: int
    reason: str = ""
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def missing_prompt_response() -> TransportResponse:
    return TransportResponse(status_code=400, reason="Bad Request", body={"error": PROMPT_REQUIRED})


class InferenceTransport(ABC):
    """A request/response channel to a remote model."""

    provider: str = "unknown"

    @abstractmethod
    async def send(self, prompt: str, config: RequestConfig, model: str) -> TransportResponse:
        ...

    async def close(self) -> None:
        return None


class OpenAITransport(InferenceTransport):
    """
    OpenAI-compatible Chat Completions (OpenAI itself, or OpenRouter via base_url).
    Success bodies are shaped like the correction endpoint's JSON.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        provider: str = CORRECTION_PROVIDER,
        client: Optional[AsyncOpenAI] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        # Retries and fallback belong to CorrectionClient, one request per attempt
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, max_retries=0, http_client=http_client,
        )
        self.provider = provider

    async def send(self, prompt: str, config: RequestConfig, model: str) -> TransportResponse:
        if not (prompt or "").strip():
            return missing_prompt_response()

        params: dict[str, Any] = {}
        if config.max_tokens is not None:
            params["max_tokens"] = config.max_tokens
        if config.temperature is not None:
            params["temperature"] = config.temperature

        started = time.monotonic()
        try:
            chat = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": config.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                **params,
            )
        except APIStatusError as e:
            return TransportResponse(
                status_code=e.status_code,
                reason=e.response.reason_phrase if e.response is not None else "",
                body={"error": e.message},
            )
        except APIConnectionError as e:
            raise TransportError(f"Cannot reach {self.provider}: {e}") from e

        latency = int(round((time.monotonic() - started) * 1000))
        usage = chat.usage
        return TransportResponse(
            status_code=200,
            reason="OK",
            body={
                "content": (chat.choices[0].message.content or "").strip(),
                "usage": {
                    "inputTokens": usage.prompt_tokens if usage else 0,
                    "outputTokens": usage.completion_tokens if usage else 0,
                    "totalTokens": usage.total_tokens if usage else 0,
                },
                "model": chat.model or model,
                "provider": self.provider,
                "latency": latency,
            },
        )

    async def close(self) -> None:
        await self.client.close()


class HttpTransport(InferenceTransport):
    """
    POSTs {prompt, config, model} as JSON to a correction endpoint.
    Non-JSON bodies come back as an empty dict so the caller falls back to the status line.
    """

    def __init__(
        self,
        endpoint_url: str,
        provider: str = CORRECTION_PROVIDER,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint_url = endpoint_url
        self.provider = provider
        # Per-attempt timeouts are enforced by CorrectionClient
        self.client = client or httpx.AsyncClient(timeout=None)

    async def send(self, prompt: str, config: RequestConfig, model: str) -> TransportResponse:
        if not (prompt or "").strip():
            return missing_prompt_response()

        payload = {
            "prompt": prompt,
            "config": config.model_dump(by_alias=True, exclude_none=True),
            "model": model,
        }
        try:
            response = await self.client.post(self.endpoint_url, json=payload)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out talking to {self.endpoint_url}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Cannot reach {self.endpoint_url}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            log.warning("Non-JSON reply from %s (HTTP %s)", self.endpoint_url, response.status_code)
            body = {}
        if not isinstance(body, dict):
            body = {}

        return TransportResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            body=body,
        )

    async def close(self) -> None:
        await self.client.aclose()
