"""Fallback router — runs one AI task against the configured provider chain.

For each provider in config.priority: skip it if disabled, otherwise call its
adapter. The first answer wins (an empty answer too); failures are collected
in attempt order and surfaced together when the chain is exhausted.

Each run works on its own configuration snapshot and never writes it back,
so concurrent runs do not interfere.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional

from config import settings
from models.ai_chat import RequestPayload
from models.ai_provider import AIConfiguration
from services.ai_config import ConfigStore, load_ai_config
from services.ai_errors import (
    AIDisabledError,
    AllProvidersFailedError,
    ProviderError,
    ProviderFailure,
    ProviderTransportError,
)
from services.ai_providers import ProviderAdapter, default_adapters

logger = logging.getLogger("devcenter.ai_router")

CONNECTION_CHECK_PROMPT = "Hello, reply with 'OK'."


class FallbackRouter:

    def __init__(
        self,
        store: ConfigStore,
        adapters: Optional[Mapping[str, ProviderAdapter]] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.adapters = dict(adapters) if adapters is not None else default_adapters()
        self.timeout = settings.AI_TIMEOUT if timeout is None else timeout

    async def _call_provider(self, provider: str, config: AIConfiguration, payload: RequestPayload) -> str:
        adapter = self.adapters.get(provider)
        provider_settings = config.settings_for(provider)
        if adapter is None or provider_settings is None:
            raise ProviderError(provider, f"Unknown AI provider: {provider}")

        try:
            return await asyncio.wait_for(
                adapter.call(provider_settings, payload), timeout=self.timeout or None
            )
        except asyncio.TimeoutError as e:
            raise ProviderTransportError(
                provider, f"{provider} did not answer within {self.timeout}s"
            ) from e

    async def run_with_config(
        self, task_name: str, payload: RequestPayload, config: AIConfiguration
    ) -> str:
        if not config.enabled:
            raise AIDisabledError()

        errors: list[ProviderFailure] = []
        for provider in config.priority:
            provider_settings = config.settings_for(provider)
            if provider_settings is None or not provider_settings.enabled:
                continue

            logger.info("Attempting %s with %s...", task_name, provider)
            try:
                result = await self._call_provider(provider, config, payload)
            except ProviderError as e:
                logger.warning("%s failed for %s: %s", provider, task_name, e)
                errors.append(ProviderFailure(provider=provider, message=str(e)))
                continue

            logger.info("%s answered %s: %d chars", provider, task_name, len(result))
            return result

        logger.error(
            "%s: no provider succeeded (%d attempted)", task_name, len(errors)
        )
        raise AllProvidersFailedError(errors)

    async def run(self, task_name: str, payload: RequestPayload) -> str:
        """Resolve a fresh config snapshot and walk the priority chain."""
        config = await load_ai_config(self.store)
        return await self.run_with_config(task_name, payload, config)

    async def check_connection(self, provider: str) -> bool:
        """Ping one provider by id, bypassing priority and enabled flags."""
        config = await load_ai_config(self.store)
        payload = RequestPayload(instruction=CONNECTION_CHECK_PROMPT, output_mode="text")
        try:
            result = await self._call_provider(provider, config, payload)
        except ProviderError as e:
            logger.error("Connection check failed for %s: %s", provider, e)
            return False
        return bool(result)
