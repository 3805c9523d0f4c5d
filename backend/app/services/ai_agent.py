"""
AI tasks for the documentation portal.

Each task builds one RequestPayload, hands it to the fallback router and
post-processes the text that comes back:

- suggest_content   — rewrite/generate Markdown for the editor (text)
- translate_label   — short Title-Case English label for a UI field (text)
- import_document   — split raw manual text into titled docs (JSON)
- chat_with_docs    — answer from published documentation only (text)

Provider selection, fallback and error aggregation live in ai_router.
"""
import json
import logging
import re
from typing import Iterable, Optional

from pydantic import ValidationError

from config import settings
from models.ai_chat import ChatTurn, RequestPayload
from models.ai_knowledge import ImportedDoc
from services.ai_errors import MalformedStructuredOutputError
from services.ai_router import FallbackRouter
from services.knowledge_base import (
    DocumentCorpus,
    MemoryDocumentCorpus,
    build_corpus_context,
    extract_text,
)

logger = logging.getLogger("devcenter.ai_agent")

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
SUGGESTION_PROMPT = """You are a technical documentation assistant.
Task: {instruction}
Return ONLY the revised or generated content in Markdown format. No commentary, no conversational filler."""

TRANSLATE_PROMPT = """Translate the following text to English for a technical documentation UI label.
Keep it concise and professional (Title Case).
Return ONLY the English translation. No quotes, no explanations.

Text: "{text}\""""

IMPORT_PROMPT = """You are a technical documentation expert.
Analyze the provided raw document text.
1. Split the content into logical documents (Overview, Quick Start, API, etc.).
2. Return a valid JSON array where each object has exactly these fields:
   - "title": string
   - "categoryName": string (group related docs)
   - "content": string (Markdown format)

Return ONLY valid JSON."""

CHAT_PROMPT = """You are the intelligent assistant for the "DevCenter" platform.
Your goal is to answer user questions based STRICTLY on the documentation provided in the context below.

Rules:
1. If the answer is found in the context, answer clearly and concisely in Markdown.
2. If the answer is NOT found in the context, politely state that the information is not available in the current documentation.
3. Be helpful and professional.

Documentation Context:
{context}

Chat History:
{history}

User Question: {message}"""

LABEL_QUOTES = "\"'`“”‘’"

_OPENING_FENCE = re.compile(r"^```[A-Za-z]*")
_CLOSING_FENCE = re.compile(r"```$")


# ---------------------------------------------------------------------------
# Payload builders + response post-processing
# ---------------------------------------------------------------------------
def build_suggestion_payload(current_content: str, instruction: str) -> RequestPayload:
    return RequestPayload(
        instruction=SUGGESTION_PROMPT.format(instruction=instruction),
        context=current_content or None,
        output_mode="text",
    )


def build_translate_payload(text: str) -> RequestPayload:
    return RequestPayload(instruction=TRANSLATE_PROMPT.format(text=text), output_mode="text")


def clean_label(raw: str) -> str:
    return (raw or "").strip().strip(LABEL_QUOTES).strip()


def build_import_payload(raw_text: str, max_chars: Optional[int] = None) -> RequestPayload:
    limit = settings.IMPORT_TEXT_MAX_CHARS if max_chars is None else max_chars
    if len(raw_text) > limit:
        logger.warning("Import text too long (%d chars), cutting to %d", len(raw_text), limit)
    return RequestPayload(
        instruction=IMPORT_PROMPT,
        context=f"DOCUMENT CONTENT:\n{raw_text[:limit]}",
        output_mode="json",
    )


def strip_code_fences(content: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one.

    Only the outermost fence is anchored, so code blocks inside document
    content survive.
    """
    content = (content or "").strip()
    content = _OPENING_FENCE.sub("", content)
    content = _CLOSING_FENCE.sub("", content)
    return content.strip()


def parse_imported_docs(raw: str) -> list[ImportedDoc]:
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        raise MalformedStructuredOutputError(raw) from e

    # JSON-object modes wrap the array: {"documents": [...]}
    if isinstance(data, dict):
        lists = [v for v in data.values() if isinstance(v, list)]
        if len(lists) != 1:
            raise MalformedStructuredOutputError(raw, "AI response is not a JSON array of documents")
        data = lists[0]

    if not isinstance(data, list):
        raise MalformedStructuredOutputError(raw, "AI response is not a JSON array of documents")
    try:
        return [ImportedDoc.model_validate(item) for item in data]
    except ValidationError as e:
        raise MalformedStructuredOutputError(raw, f"AI response has unexpected document fields: {e}") from e


def format_history(history: Iterable[ChatTurn]) -> str:
    return "\n".join(f"{turn.role}: {turn.content}" for turn in history)


def build_chat_payload(
    history: Iterable[ChatTurn],
    message: str,
    corpus_context: str,
) -> RequestPayload:
    return RequestPayload(
        instruction=CHAT_PROMPT.format(
            context=corpus_context,
            history=format_history(history),
            message=message,
        ),
        output_mode="text",
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------
class DocAssistant:
    """AI tasks bound to one router (and, for chat, one document corpus)."""

    def __init__(self, router: FallbackRouter, corpus: Optional[DocumentCorpus] = None):
        self.router = router
        self.corpus = corpus or MemoryDocumentCorpus()

    async def suggest_content(self, current_content: str, instruction: str) -> str:
        result = await self.router.run(
            "Generate Content", build_suggestion_payload(current_content, instruction)
        )
        return result.strip()

    async def translate_label(self, text: str) -> str:
        result = await self.router.run("Translate", build_translate_payload(text))
        return clean_label(result)

    async def import_document(self, raw_text: str) -> list[ImportedDoc]:
        """Split raw document text into titled sub-documents.

        Malformed JSON is raised as MalformedStructuredOutputError: the provider
        did answer, so it is not retried on the next one.
        """
        raw = await self.router.run("Analyze Document", build_import_payload(raw_text))
        docs = parse_imported_docs(raw)
        logger.info("Import: %d documents extracted", len(docs))
        return docs

    async def import_file(self, file_bytes: bytes, filename: str) -> list[ImportedDoc]:
        text = extract_text(file_bytes, filename)
        return await self.import_document(text)

    async def chat_with_docs(self, history: Iterable[ChatTurn], message: str) -> str:
        docs = await self.corpus.list_documents()
        context = build_corpus_context(docs, settings.CHAT_CONTEXT_MAX_CHARS)
        return await self.router.run(
            "Chat with Content", build_chat_payload(history, message, context)
        )
