from models.ai_provider import (
    BAILIAN,
    DEFAULT_PRIORITY,
    GEMINI,
    PROVIDER_IDS,
    AIConfiguration,
    ProviderSettings,
)
from models.ai_chat import ChatTurn, RequestPayload
from models.ai_knowledge import CorpusDocument, DocStatus, ImportedDoc

__all__ = [
    "BAILIAN",
    "DEFAULT_PRIORITY",
    "GEMINI",
    "PROVIDER_IDS",
    "AIConfiguration",
    "ProviderSettings",
    "ChatTurn",
    "RequestPayload",
    "CorpusDocument",
    "DocStatus",
    "ImportedDoc",
]
