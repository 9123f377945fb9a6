"""Google Gemini LLM provider using the google-genai SDK."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

from google import genai
from google.genai import types

from recall_engine.exceptions import (
    GenerationError,
    MalformedResultError,
    RecallEngineError,
    UpstreamTimeoutError,
)
from recall_engine.generation.rate_limiter import SlidingWindowRateLimiter
from recall_engine.observability.logger import get_logger

logger = get_logger("gemini")


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class GeminiProvider:
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        rate_limiter: SlidingWindowRateLimiter | None = None,
        timeout_s: float = 20.0,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._timeout_s = timeout_s

    @staticmethod
    def _config(
        system: str | None,
        temperature: float,
        max_tokens: int,
        json_output: bool = False,
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
        if system:
            config.system_instruction = system
        if json_output:
            config.response_mime_type = "application/json"
        return config

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> str:
        self._rate_limiter.acquire(self._model)
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=prompt,
                    config=self._config(system, temperature, max_tokens),
                ),
                timeout=self._timeout_s,
            )
            return response.text or ""
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(f"Gemini generation timed out after {self._timeout_s}s") from e
        except Exception as e:
            raise GenerationError(f"Gemini generation failed: {e}") from e

    async def generate_stream(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> AsyncIterator[str]:
        self._rate_limiter.acquire(self._model)
        try:
            stream = await asyncio.wait_for(
                self._client.aio.models.generate_content_stream(
                    model=self._model,
                    contents=prompt,
                    config=self._config(system, temperature, max_tokens),
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(f"Gemini stream timed out after {self._timeout_s}s") from e
        except Exception as e:
            raise GenerationError(f"Gemini stream failed: {e}") from e

        # Per-chunk deadline.
        chunks = stream.__aiter__()
        while True:
            try:
                chunk = await asyncio.wait_for(chunks.__anext__(), timeout=self._timeout_s)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError as e:
                raise UpstreamTimeoutError(f"Gemini stream stalled for {self._timeout_s}s") from e
            except RecallEngineError:
                raise
            except Exception as e:
                raise GenerationError(f"Gemini stream interrupted: {e}") from e
            if chunk.text:
                yield chunk.text

    async def generate_json(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 6000,
    ) -> dict:
        raw = await self._generate_json_text(prompt, system, temperature, max_tokens)
        try:
            data = json.loads(_strip_code_fence(raw))
        except json.JSONDecodeError as e:
            logger.warning("gemini_json_unparseable", preview=raw[:200])
            raise MalformedResultError(f"Gemini returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResultError("Gemini returned JSON that is not an object")
        return data

    async def _generate_json_text(
        self,
        prompt: str,
        system: str | None,
        temperature: float,
        max_tokens: int,
    ) -> str:
        self._rate_limiter.acquire(self._model)
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._model,
                    contents=prompt,
                    config=self._config(system, temperature, max_tokens, json_output=True),
                ),
                timeout=self._timeout_s,
            )
            return response.text or ""
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(f"Gemini structured generation timed out after {self._timeout_s}s") from e
        except Exception as e:
            raise GenerationError(f"Gemini structured generation failed: {e}") from e
