"""Provider adapters — one per AI vendor.

Both adapters take the same (ProviderSettings, RequestPayload) pair and return
plain text or raise a ProviderError subclass:

- Gemini: google-genai SDK, single generate_content call, native JSON mode.
- Bailian: OpenAI-compatible /chat/completions over httpx, response_format JSON.

An empty string is a valid answer, not an error. No retries here; fallback
between providers is the router's job.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

import httpx
from google import genai
from google.genai import types as genai_types

from config import settings
from models.ai_chat import RequestPayload
from models.ai_provider import BAILIAN, GEMINI, ProviderSettings
from services.ai_errors import CredentialMissingError, ProviderTransportError

logger = logging.getLogger("devcenter.ai_providers")

BAILIAN_SYSTEM_MESSAGE = "You are a helpful assistant."


class ProviderAdapter(Protocol):
    provider: str

    async def call(self, provider_settings: ProviderSettings, payload: RequestPayload) -> str: ...


# ---------------------------------------------------------------------------
# Gemini (SDK)
# ---------------------------------------------------------------------------
def _make_genai_client(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


class GeminiAdapter:
    provider = GEMINI

    def __init__(self, client_factory: Optional[Callable[[str], genai.Client]] = None):
        self._client_factory = client_factory or _make_genai_client

    @staticmethod
    def build_contents(payload: RequestPayload) -> str:
        if payload.context:
            return f"{payload.instruction}\n\nContext/Content:\n{payload.context}"
        return payload.instruction

    async def call(self, provider_settings: ProviderSettings, payload: RequestPayload) -> str:
        if not provider_settings.credential:
            raise CredentialMissingError(GEMINI, "Gemini API Key missing")

        model = provider_settings.model or settings.GEMINI_DEFAULT_MODEL
        config = genai_types.GenerateContentConfig(
            temperature=settings.AI_TEMPERATURE,
            response_mime_type="application/json" if payload.output_mode == "json" else None,
        )

        client = self._client_factory(provider_settings.credential)
        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=self.build_contents(payload),
                config=config,
            )
        except Exception as e:
            status_code = getattr(e, "code", None)
            raise ProviderTransportError(
                GEMINI,
                f"Gemini API Error: {e}",
                status_code=status_code if isinstance(status_code, int) else None,
            ) from e
        finally:
            # One client per call; release its connection pool either way.
            await client.aio.aclose()

        text = getattr(response, "text", None) or ""
        logger.debug("gemini (%s) response: %d chars", model, len(text))
        return text


# ---------------------------------------------------------------------------
# Bailian (OpenAI-compatible REST)
# ---------------------------------------------------------------------------
def _first_choice_content(data) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class BailianAdapter:
    provider = BAILIAN

    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        # Shared client is optional; without one each call opens its own.
        self._http = http

    @staticmethod
    def build_body(provider_settings: ProviderSettings, payload: RequestPayload) -> dict:
        user_content = payload.instruction
        if payload.context:
            user_content = f"{payload.instruction}\n\n{payload.context}"
        body = {
            "model": provider_settings.model or settings.BAILIAN_DEFAULT_MODEL,
            "messages": [
                {"role": "system", "content": BAILIAN_SYSTEM_MESSAGE},
                {"role": "user", "content": user_content},
            ],
            "temperature": settings.AI_TEMPERATURE,
        }
        if payload.output_mode == "json":
            body["response_format"] = {"type": "json_object"}
        return body

    async def _post(self, url: str, headers: dict, body: dict) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, headers=headers, json=body)
        async with httpx.AsyncClient(timeout=settings.AI_TIMEOUT) as http:
            return await http.post(url, headers=headers, json=body)

    async def call(self, provider_settings: ProviderSettings, payload: RequestPayload) -> str:
        if not provider_settings.credential:
            raise CredentialMissingError(BAILIAN, "Bailian API Key missing")

        base_url = provider_settings.endpoint or settings.BAILIAN_DEFAULT_BASE_URL
        url = f"{base_url.rstrip('/')}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {provider_settings.credential}",
        }

        try:
            resp = await self._post(url, headers, self.build_body(provider_settings, payload))
        except httpx.HTTPError as e:
            raise ProviderTransportError(BAILIAN, f"Bailian request failed: {e!r}") from e

        if not resp.is_success:
            raise ProviderTransportError(
                BAILIAN,
                f"Bailian API Error: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderTransportError(
                BAILIAN,
                "Bailian API Error: response is not JSON",
                status_code=resp.status_code,
                body=resp.text,
            ) from e

        return _first_choice_content(data)


def default_adapters() -> dict[str, ProviderAdapter]:
    return {GEMINI: GeminiAdapter(), BAILIAN: BailianAdapter()}
