"""AI Provider Config — the persisted multi-provider settings blob.

One JSON blob per deployment (store key = settings.AI_CONFIG_KEY) holding the
global AI switch, the provider priority chain and per-provider settings.
Blob layout follows the admin CMS: {enabled, priority, gemini: {...}, bailian: {...}}
with camel-case wire names (apiKey, baseURL).
Keys are stored as plain text; the store is protected by the deployment.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

GEMINI = "gemini"      # SDK-style provider (Google GenAI)
BAILIAN = "bailian"    # OpenAI-compatible REST provider (DashScope)

PROVIDER_IDS = (GEMINI, BAILIAN)
DEFAULT_PRIORITY = [GEMINI, BAILIAN]


class ProviderSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = True
    credential: str = Field(default="", alias="apiKey")
    model: str = ""
    endpoint: Optional[str] = Field(default=None, alias="baseURL")  # REST providers only


class AIConfiguration(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    priority: list[str] = Field(default_factory=lambda: list(DEFAULT_PRIORITY))
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)

    def settings_for(self, provider: str) -> Optional[ProviderSettings]:
        return self.providers.get(provider)

    def to_blob(self) -> dict:
        """Serialize to the persisted blob layout (provider sections at top level)."""
        blob: dict = {"enabled": self.enabled, "priority": list(self.priority)}
        for provider, provider_settings in self.providers.items():
            section = provider_settings.model_dump(by_alias=True)
            if provider != BAILIAN:
                section.pop("baseURL", None)
            blob[provider] = section
        return blob


# ---------------------------------------------------------------------------
# Historical blob layouts (read-only input to migration)
# ---------------------------------------------------------------------------
class FlatLegacyConfig(BaseModel):
    """Oldest layout: one provider, one flat apiKey."""
    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    provider: str = GEMINI
    apiKey: str = ""
    model: str = ""
    baseURL: Optional[str] = None


class UnprioritizedLegacyConfig(BaseModel):
    """Intermediate layout: per-provider sections, no priority, no per-provider toggle."""
    model_config = ConfigDict(extra="ignore")

    enabled: Optional[bool] = None
    provider: Optional[str] = None
    gemini: dict = Field(default_factory=dict)
    bailian: dict = Field(default_factory=dict)
