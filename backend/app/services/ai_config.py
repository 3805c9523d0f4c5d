"""AI configuration resolver + configuration store access.

Turns whatever blob the store holds (nothing, garbage, or any historical
layout) into a current AIConfiguration. Migration is one pass, one direction:

    missing/unparseable → defaults
    flat apiKey layout   → per-provider sections, named provider first
    no priority layout   → merged over defaults, both providers enabled
    current layout       → merged over defaults

resolve() never raises. The store itself is an external key-value collaborator:
the whole blob is read and replaced at once (last write wins).
"""
from __future__ import annotations

import enum
import json
import logging
from typing import Any, Optional, Protocol

from pydantic import ValidationError
from redis.asyncio import Redis

from config import settings
from models.ai_provider import (
    BAILIAN,
    DEFAULT_PRIORITY,
    GEMINI,
    PROVIDER_IDS,
    AIConfiguration,
    FlatLegacyConfig,
    ProviderSettings,
    UnprioritizedLegacyConfig,
)

logger = logging.getLogger("devcenter.ai_config")


class ConfigShape(str, enum.Enum):
    missing = "missing"
    flat = "flat"
    unprioritized = "unprioritized"
    current = "current"


def default_config() -> AIConfiguration:
    return AIConfiguration(
        enabled=True,
        priority=list(DEFAULT_PRIORITY),
        providers={
            GEMINI: ProviderSettings(enabled=True),
            BAILIAN: ProviderSettings(
                enabled=True, endpoint=settings.BAILIAN_DEFAULT_BASE_URL
            ),
        },
    )


# ---------------------------------------------------------------------------
# Shape detection (oldest layout checked first)
# ---------------------------------------------------------------------------
def _parse_raw(raw: Any) -> Optional[dict]:
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None
    return raw if isinstance(raw, dict) else None


def detect_shape(data: Optional[dict]) -> ConfigShape:
    if not data:
        return ConfigShape.missing
    has_sections = any(isinstance(data.get(p), dict) for p in PROVIDER_IDS)
    if "apiKey" in data and not has_sections:
        return ConfigShape.flat
    if data.get("priority") is None:
        return ConfigShape.unprioritized
    return ConfigShape.current


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------
def _priority_naming_first(provider: Optional[str]) -> list[str]:
    if provider == BAILIAN:
        return [BAILIAN, GEMINI]
    return [GEMINI, BAILIAN]


def _merge_section(default: ProviderSettings, raw_section: Any, **overrides) -> ProviderSettings:
    merged = default.model_dump(by_alias=True)
    if isinstance(raw_section, dict):
        merged.update({k: v for k, v in raw_section.items() if v is not None})
    merged.update(overrides)
    return ProviderSettings.model_validate(merged)


def _normalize_priority(priority: Any) -> list[str]:
    if not isinstance(priority, (list, tuple)):
        return list(DEFAULT_PRIORITY)
    result: list[str] = []
    for provider in priority:
        if provider in PROVIDER_IDS and provider not in result:
            result.append(provider)
    return result


def _from_flat(data: dict) -> AIConfiguration:
    legacy = FlatLegacyConfig.model_validate(
        {k: v for k, v in data.items() if v is not None}
    )
    defaults = default_config()

    def section(provider: str) -> ProviderSettings:
        named = legacy.provider == provider
        return ProviderSettings(
            enabled=True,
            credential=legacy.apiKey if named else "",
            model=(legacy.model or "") if named else "",
            endpoint=defaults.providers[provider].endpoint,
        )

    providers = {GEMINI: section(GEMINI), BAILIAN: section(BAILIAN)}
    if legacy.baseURL:
        providers[BAILIAN].endpoint = legacy.baseURL
    return AIConfiguration(
        enabled=bool(legacy.enabled),
        priority=_priority_naming_first(legacy.provider),
        providers=providers,
    )


def _from_unprioritized(data: dict) -> AIConfiguration:
    legacy = UnprioritizedLegacyConfig.model_validate(
        {k: v for k, v in data.items() if v is not None}
    )
    defaults = default_config()
    return AIConfiguration(
        enabled=defaults.enabled if legacy.enabled is None else legacy.enabled,
        priority=_priority_naming_first(legacy.provider),
        providers={
            GEMINI: _merge_section(defaults.providers[GEMINI], legacy.gemini, enabled=True),
            BAILIAN: _merge_section(defaults.providers[BAILIAN], legacy.bailian, enabled=True),
        },
    )


def _from_current(data: dict) -> AIConfiguration:
    defaults = default_config()
    enabled = data.get("enabled")
    return AIConfiguration.model_validate({
        "enabled": defaults.enabled if enabled is None else enabled,
        "priority": _normalize_priority(data.get("priority")),
        "providers": {
            p: _merge_section(defaults.providers[p], data.get(p)) for p in PROVIDER_IDS
        },
    })


_MIGRATIONS = {
    ConfigShape.flat: _from_flat,
    ConfigShape.unprioritized: _from_unprioritized,
    ConfigShape.current: _from_current,
}


def resolve(raw: Any) -> AIConfiguration:
    """Resolve a stored blob (JSON text, bytes, dict or None) into the current schema."""
    data = _parse_raw(raw)
    shape = detect_shape(data)
    if shape is ConfigShape.missing:
        return default_config()

    try:
        config = _MIGRATIONS[shape](data)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning("Stored AI config is malformed (%s layout), using defaults: %s", shape.value, e)
        return default_config()

    if shape is not ConfigShape.current:
        logger.info("AI config migrated from %s layout", shape.value)
    return config


# ---------------------------------------------------------------------------
# Configuration store
# ---------------------------------------------------------------------------
class ConfigStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...


class MemoryConfigStore:
    """Process-local store (tests, single-process dev runs)."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value


class RedisConfigStore:
    """One Redis string key per blob."""

    def __init__(self, redis: Redis):
        self._redis = redis

    async def get(self, key: str) -> Optional[str]:
        value = await self._redis.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        return value

    async def set(self, key: str, value: str) -> None:
        await self._redis.set(key, value)


async def load_ai_config(store: ConfigStore, key: Optional[str] = None) -> AIConfiguration:
    """Fresh snapshot from the store. Store failures fall back to defaults."""
    try:
        raw = await store.get(key or settings.AI_CONFIG_KEY)
    except Exception as e:
        logger.warning("Could not read AI config from store: %s", e)
        return default_config()
    return resolve(raw)


async def save_ai_config(
    store: ConfigStore, config: AIConfiguration, key: Optional[str] = None
) -> None:
    await store.set(
        key or settings.AI_CONFIG_KEY,
        json.dumps(config.to_blob(), ensure_ascii=False),
    )
    logger.info(
        "AI config saved: enabled=%s, priority=%s",
        config.enabled, ",".join(config.priority) or "-",
    )


def mask_key(key: str) -> str:
    """Mask API key for safe display: 'sk-abc1...xyz4'."""
    if not key:
        return ""
    if len(key) <= 8:
        return key[:2] + "..." + key[-2:]
    return key[:6] + "..." + key[-4:]
