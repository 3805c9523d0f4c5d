"""
AI API — admin configuration of the provider chain + AI tasks for the portal.

Configuration is one blob in the config store (see services.ai_config):
global switch, provider priority, per-provider key/model/endpoint.
Tasks run through the fallback router: first provider that answers wins.

GET  /api/ai/config                     — resolved config, keys masked
PUT  /api/ai/config                     — replace config blob
GET  /api/ai/health                     — enabled + configured providers
POST /api/ai/providers/{provider}/test  — single-provider connection check
POST /api/ai/suggest | translate | chat | import | import/file
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from config import settings
from models.ai_chat import ChatTurn
from models.ai_knowledge import ImportedDoc
from models.ai_provider import PROVIDER_IDS, AIConfiguration
from services.ai_agent import DocAssistant
from services.ai_config import ConfigStore, load_ai_config, mask_key, resolve, save_ai_config
from services.ai_errors import (
    AIDisabledError,
    AllProvidersFailedError,
    DocumentExtractionError,
    MalformedStructuredOutputError,
)
from services.ai_router import FallbackRouter
from services.knowledge_base import DocumentCorpus, group_by_category

router = APIRouter(prefix="/api/ai", tags=["ai"])
logger = logging.getLogger("devcenter.api.ai")


# ---------------------------------------------------------------------------
# Dependencies (app.state is populated in main.lifespan)
# ---------------------------------------------------------------------------
def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


def get_doc_corpus(request: Request) -> DocumentCorpus:
    return request.app.state.doc_corpus


def get_fallback_router(store: ConfigStore = Depends(get_config_store)) -> FallbackRouter:
    return FallbackRouter(store)


def get_assistant(
    fallback_router: FallbackRouter = Depends(get_fallback_router),
    corpus: DocumentCorpus = Depends(get_doc_corpus),
) -> DocAssistant:
    return DocAssistant(fallback_router, corpus)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProviderInfo(BaseModel):
    provider: str
    enabled: bool = True
    is_configured: bool = False
    model: str = ""
    base_url: Optional[str] = None
    api_key_masked: str = ""


class ConfigResponse(BaseModel):
    enabled: bool
    priority: list[str] = []
    providers: list[ProviderInfo] = []


class ProviderUpdate(BaseModel):
    enabled: bool = True
    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None


class ConfigUpdateRequest(BaseModel):
    enabled: bool = True
    priority: list[str] = Field(default_factory=lambda: list(PROVIDER_IDS))
    providers: dict[str, ProviderUpdate] = {}


class HealthResponse(BaseModel):
    enabled: bool
    configured: list[str] = []


class TestResponse(BaseModel):
    provider: str
    success: bool


class SuggestRequest(BaseModel):
    content: str = ""
    instruction: str


class TranslateRequest(BaseModel):
    text: str


class TextResponse(BaseModel):
    result: str


class ChatRequest(BaseModel):
    history: list[ChatTurn] = []
    message: str


class ChatResponse(BaseModel):
    answer: str


class ImportRequest(BaseModel):
    text: str


class ImportResponse(BaseModel):
    documents: list[ImportedDoc] = []
    categories: dict[str, int] = {}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _config_response(config: AIConfiguration) -> ConfigResponse:
    providers = []
    for provider, ps in config.providers.items():
        providers.append(ProviderInfo(
            provider=provider,
            enabled=ps.enabled,
            is_configured=bool(ps.credential),
            model=ps.model,
            base_url=ps.endpoint,
            api_key_masked=mask_key(ps.credential),
        ))
    return ConfigResponse(enabled=config.enabled, priority=config.priority, providers=providers)


def _raise_for_ai_error(exc: Exception) -> None:
    """Map AI errors to HTTP errors; anything else propagates."""
    if isinstance(exc, AIDisabledError):
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if isinstance(exc, AllProvidersFailedError):
        raise HTTPException(
            status_code=502,
            detail={
                "message": str(exc),
                "errors": [{"provider": e.provider, "message": e.message} for e in exc.errors],
            },
        ) from exc
    if isinstance(exc, MalformedStructuredOutputError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(exc, DocumentExtractionError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    raise exc


_AI_ERRORS = (
    AIDisabledError,
    AllProvidersFailedError,
    MalformedStructuredOutputError,
    DocumentExtractionError,
)


def _import_response(docs: list[ImportedDoc]) -> ImportResponse:
    groups = group_by_category(docs)
    return ImportResponse(
        documents=docs,
        categories={name: len(items) for name, items in groups.items()},
    )


# ---------------------------------------------------------------------------
# Configuration endpoints
# ---------------------------------------------------------------------------
@router.get("/config", response_model=ConfigResponse)
async def get_ai_config(store: ConfigStore = Depends(get_config_store)):
    config = await load_ai_config(store)
    return _config_response(config)


@router.put("/config", response_model=ConfigResponse)
async def put_ai_config(
    req: ConfigUpdateRequest,
    store: ConfigStore = Depends(get_config_store),
):
    """Replace the whole config. A masked key sent back unchanged keeps the stored key."""
    current = await load_ai_config(store)

    blob: dict = {"enabled": req.enabled, "priority": req.priority}
    for provider in PROVIDER_IDS:
        stored = current.providers[provider]
        update = req.providers.get(provider)
        if update is None:
            blob[provider] = stored.model_dump(by_alias=True)
            continue
        api_key = update.api_key.strip()
        if api_key and api_key == mask_key(stored.credential):
            api_key = stored.credential
        blob[provider] = {
            "enabled": update.enabled,
            "apiKey": api_key,
            "model": update.model.strip(),
            "baseURL": (update.base_url or "").strip() or stored.endpoint,
        }

    config = resolve(blob)
    await save_ai_config(store, config)
    return _config_response(config)


@router.get("/health", response_model=HealthResponse)
async def ai_health(store: ConfigStore = Depends(get_config_store)):
    config = await load_ai_config(store)
    configured = [
        p for p in config.priority
        if config.providers[p].enabled and config.providers[p].credential
    ]
    return HealthResponse(enabled=config.enabled, configured=configured)


@router.post("/providers/{provider}/test", response_model=TestResponse)
async def test_ai_provider(
    provider: str,
    fallback_router: FallbackRouter = Depends(get_fallback_router),
):
    if provider not in PROVIDER_IDS:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
    ok = await fallback_router.check_connection(provider)
    return TestResponse(provider=provider, success=ok)


# ---------------------------------------------------------------------------
# Task endpoints
# ---------------------------------------------------------------------------
@router.post("/suggest", response_model=TextResponse)
async def suggest_content(req: SuggestRequest, assistant: DocAssistant = Depends(get_assistant)):
    try:
        result = await assistant.suggest_content(req.content, req.instruction)
    except _AI_ERRORS as e:
        _raise_for_ai_error(e)
    return TextResponse(result=result)


@router.post("/translate", response_model=TextResponse)
async def translate_label(req: TranslateRequest, assistant: DocAssistant = Depends(get_assistant)):
    try:
        result = await assistant.translate_label(req.text)
    except _AI_ERRORS as e:
        _raise_for_ai_error(e)
    return TextResponse(result=result)


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, assistant: DocAssistant = Depends(get_assistant)):
    try:
        answer = await assistant.chat_with_docs(req.history, req.message)
    except _AI_ERRORS as e:
        _raise_for_ai_error(e)
    return ChatResponse(answer=answer)


@router.post("/import", response_model=ImportResponse)
async def import_document(req: ImportRequest, assistant: DocAssistant = Depends(get_assistant)):
    try:
        docs = await assistant.import_document(req.text)
    except _AI_ERRORS as e:
        _raise_for_ai_error(e)
    return _import_response(docs)


@router.post("/import/file", response_model=ImportResponse)
async def import_file(
    file: UploadFile = File(...),
    assistant: DocAssistant = Depends(get_assistant),
):
    """Upload PDF/DOCX/TXT → extract text → split into docs via AI."""
    filename = file.filename or "unknown"
    file_bytes = await file.read()
    if len(file_bytes) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large ({len(file_bytes) // 1024 // 1024} MB), "
                   f"limit is {settings.MAX_UPLOAD_SIZE // 1024 // 1024} MB",
        )

    logger.info("AI import upload: %s (%d bytes)", filename, len(file_bytes))
    try:
        docs = await assistant.import_file(file_bytes, filename)
    except _AI_ERRORS as e:
        _raise_for_ai_error(e)
    return _import_response(docs)
