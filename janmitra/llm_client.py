"""
Gemini generative model client.

Single-turn calls to the generateContent REST endpoint over a shared
httpx.AsyncClient. Each call has a timeout, and a semaphore bounds how many
calls are in flight at once.
"""

import asyncio
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from janmitra.config import Settings
from janmitra.errors import ExternalServiceUnavailable
from janmitra.metrics import observe_model_latency
from janmitra.schemas import GeminiError, GenerateContentResponse

logger = logging.getLogger(__name__)


def parse_generate_response(data: Any) -> GenerateContentResponse:
    """
    Build a GenerateContentResponse from a decoded JSON body.

    The error field is read on its own first, so a reported error survives
    a malformed candidates list. Any truthy error that is not an object
    becomes an error without code or message. Candidates that do not fit
    the schema are dropped, which leaves the reply text empty.
    """
    if not isinstance(data, dict):
        logger.warning(f"Unexpected Gemini response type: {type(data).__name__}")
        return GenerateContentResponse()

    error = None
    raw_error = data.get("error")
    if raw_error:
        try:
            error = GeminiError.model_validate(raw_error)
        except ValidationError as e:
            logger.warning(f"Unexpected Gemini error shape: {e}")
            error = GeminiError()

    try:
        candidates = GenerateContentResponse.model_validate(
            {"candidates": data.get("candidates") or []}
        ).candidates
    except ValidationError as e:
        logger.warning(f"Unexpected Gemini candidates shape: {e}")
        candidates = []

    return GenerateContentResponse(candidates=candidates, error=error)


class GeminiClient:
    """Async client for Gemini's generateContent endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str,
        timeout_seconds: float = 30.0,
        max_concurrency: int = 8,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self._http = httpx.AsyncClient(
            base_url=api_base,
            timeout=timeout_seconds,
            headers={"x-goog-api-key": api_key},
            transport=transport,
        )
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            api_base=settings.GEMINI_API_BASE,
            timeout_seconds=settings.MODEL_TIMEOUT_SECONDS,
            max_concurrency=settings.MODEL_MAX_CONCURRENCY,
        )

    async def generate(self, message: str, system_instruction: str) -> GenerateContentResponse:
        """
        Send one message with a system instruction and return the parsed reply.

        Error payloads from the service are returned, not raised; the caller
        decides what to do with response.error.

        Raises:
            ExternalServiceUnavailable: transport failure, timeout, or a body
                that is not JSON
        """
        payload = {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"parts": [{"text": message}]}],
        }

        async with self._semaphore:
            start_time = time.perf_counter()
            try:
                response = await self._http.post(
                    f"/models/{self.model}:generateContent",
                    json=payload,
                )
            except httpx.HTTPError as e:
                logger.error(f"Gemini API connection error: {e!r}")
                raise ExternalServiceUnavailable("Failed to connect to Gemini API.") from e
            finally:
                observe_model_latency(time.perf_counter() - start_time)

        logger.debug(f"Gemini API responded with HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Gemini API returned a non-JSON body (HTTP {response.status_code})")
            raise ExternalServiceUnavailable("Failed to connect to Gemini API.") from e

        return parse_generate_response(data)

    async def aclose(self) -> None:
        await self._http.aclose()
