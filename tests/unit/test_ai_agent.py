from __future__ import annotations

import json

import pytest

from config import settings
from models.ai_chat import ChatTurn
from models.ai_knowledge import CorpusDocument
from services.ai_agent import (
    DocAssistant,
    build_import_payload,
    build_suggestion_payload,
    build_translate_payload,
    clean_label,
    parse_imported_docs,
    strip_code_fences,
)
from services.ai_errors import (
    AllProvidersFailedError,
    MalformedStructuredOutputError,
    ProviderTransportError,
)
from services.ai_router import FallbackRouter
from services.knowledge_base import TRUNCATION_MARKER, MemoryDocumentCorpus

DOCS_JSON = json.dumps([
    {"title": "Overview", "categoryName": "Guide", "content": "# Overview\n\n```bash\nmake\n```"},
    {"title": "Token API", "categoryName": "API", "content": "POST /token"},
])


def _assistant(make_store, make_adapter, make_blob, result="ok", docs=(), **blob_kwargs):
    gemini = make_adapter("gemini", result=result)
    bailian = make_adapter("bailian", result=result)
    router = FallbackRouter(
        make_store(make_blob(**blob_kwargs)),
        adapters={"gemini": gemini, "bailian": bailian},
    )
    return DocAssistant(router, MemoryDocumentCorpus(docs)), gemini


# ---------------------------------------------------------------------------
# Content suggestion
# ---------------------------------------------------------------------------
def test_suggestion_payload_is_text_with_content_as_context():
    payload = build_suggestion_payload("# Title", "Add an intro")

    assert payload.output_mode == "text"
    assert payload.context == "# Title"
    assert "Task: Add an intro" in payload.instruction
    assert "Return ONLY the revised or generated content in Markdown" in payload.instruction


def test_suggestion_payload_without_content_has_no_context():
    assert build_suggestion_payload("", "Write a page").context is None


@pytest.mark.asyncio
async def test_suggest_content_trims(make_store, make_adapter, make_blob):
    assistant, _ = _assistant(make_store, make_adapter, make_blob, result="\n  ## Better\n\n")

    assert await assistant.suggest_content("## Old", "improve") == "## Better"


# ---------------------------------------------------------------------------
# Label translation
# ---------------------------------------------------------------------------
def test_translate_payload_quotes_the_text():
    payload = build_translate_payload("接入指南")

    assert payload.output_mode == "text"
    assert payload.context is None
    assert payload.instruction.endswith('Text: "接入指南"')
    assert "Title Case" in payload.instruction


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('"Integration Guide"', "Integration Guide"),
        ("`API Reference`\n", "API Reference"),
        ("  'Quick Start'  ", "Quick Start"),
        ("“User Manual”", "User Manual"),
        ("Plain", "Plain"),
        ("", ""),
    ],
)
def test_clean_label(raw, expected):
    assert clean_label(raw) == expected


@pytest.mark.asyncio
async def test_translate_label_strips_quotes(make_store, make_adapter, make_blob):
    assistant, _ = _assistant(make_store, make_adapter, make_blob, result=' "Token Management" ')

    assert await assistant.translate_label("令牌管理") == "Token Management"


# ---------------------------------------------------------------------------
# Structured extraction
# ---------------------------------------------------------------------------
def test_import_payload_is_json_and_cut_to_limit():
    payload = build_import_payload("x" * 50, max_chars=10)

    assert payload.output_mode == "json"
    assert payload.context == "DOCUMENT CONTENT:\n" + "x" * 10
    assert '"categoryName"' in payload.instruction


def test_import_payload_uses_settings_limit():
    payload = build_import_payload("y" * (settings.IMPORT_TEXT_MAX_CHARS + 5))

    assert payload.context.count("y") == settings.IMPORT_TEXT_MAX_CHARS


def test_strip_code_fences():
    assert strip_code_fences("```json\n[1]\n```") == "[1]"
    assert strip_code_fences("```\n{}\n```  ") == "{}"
    assert strip_code_fences("[2]") == "[2]"
    assert strip_code_fences('```json\n[{"a": 1}]```') == '[{"a": 1}]'
    assert strip_code_fences('```json [{"a": 1}]```') == '[{"a": 1}]'
    assert strip_code_fences("```JSON\n[3]\n```") == "[3]"


@pytest.mark.parametrize(
    "wrapped",
    [
        f"```json\n{DOCS_JSON}```",
        f"```json {DOCS_JSON}```",
        f"  ```\n{DOCS_JSON}\n```\n",
    ],
)
def test_parse_fence_variants(wrapped):
    docs = parse_imported_docs(wrapped)

    assert [d.title for d in docs] == ["Overview", "Token API"]
    assert "```bash\nmake\n```" in docs[0].content


def test_parse_fenced_json_keeps_inner_code_blocks():
    docs = parse_imported_docs(f"```json\n{DOCS_JSON}\n```")

    assert [d.title for d in docs] == ["Overview", "Token API"]
    assert docs[0].category_name == "Guide"
    assert "```bash" in docs[0].content


def test_parse_unwraps_single_array_object():
    docs = parse_imported_docs(json.dumps({"documents": json.loads(DOCS_JSON)}))

    assert len(docs) == 2


@pytest.mark.parametrize(
    "raw",
    ["not json", "```json\n[{broken\n```", "", '"just a string"', '{"a": [], "b": []}', "[1, 2]"],
)
def test_parse_rejects_malformed_output(raw):
    with pytest.raises(MalformedStructuredOutputError) as exc_info:
        parse_imported_docs(raw)
    assert exc_info.value.raw == raw


@pytest.mark.asyncio
async def test_import_document_parses_fenced_answer(make_store, make_adapter, make_blob):
    assistant, gemini = _assistant(
        make_store, make_adapter, make_blob, result=f"```json\n{DOCS_JSON}\n```"
    )

    docs = await assistant.import_document("raw manual text")

    assert len(docs) == 2
    assert gemini.calls[0][1].output_mode == "json"


@pytest.mark.asyncio
async def test_import_document_invalid_json_is_not_a_provider_failure(make_store, make_adapter, make_blob):
    assistant, gemini = _assistant(make_store, make_adapter, make_blob, result="Sorry, I can't")

    with pytest.raises(MalformedStructuredOutputError) as exc_info:
        await assistant.import_document("raw")

    assert not isinstance(exc_info.value, AllProvidersFailedError)
    assert len(gemini.calls) == 1


@pytest.mark.asyncio
async def test_import_document_provider_failures_propagate(make_store, make_adapter, make_blob):
    gemini = make_adapter("gemini", error=ProviderTransportError("gemini", "down"))
    bailian = make_adapter("bailian", error=ProviderTransportError("bailian", "down too"))
    router = FallbackRouter(make_store(make_blob()), adapters={"gemini": gemini, "bailian": bailian})

    with pytest.raises(AllProvidersFailedError):
        await DocAssistant(router).import_document("raw")


@pytest.mark.asyncio
async def test_import_file_extracts_text_first(make_store, make_adapter, make_blob):
    assistant, gemini = _assistant(make_store, make_adapter, make_blob, result=DOCS_JSON)

    docs = await assistant.import_file("Chapter 1\n\nInstall it.".encode("utf-8"), "manual.txt")

    assert len(docs) == 2
    assert "Chapter 1" in gemini.calls[0][1].context


# ---------------------------------------------------------------------------
# Grounded chat
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_chat_uses_only_published_docs_and_history(make_store, make_adapter, make_blob):
    docs = [
        CorpusDocument(title="Public", content="public body", status="PUBLISHED"),
        CorpusDocument(title="Secret", content="draft body", status="DRAFT"),
        CorpusDocument(title="Old", content="archived body", status="archived"),
    ]
    assistant, gemini = _assistant(
        make_store, make_adapter, make_blob, result="  raw answer\n", docs=docs
    )
    history = [
        ChatTurn(role="user", content="hi"),
        ChatTurn(role="assistant", content="hello"),
    ]

    answer = await assistant.chat_with_docs(history, "What is public?")

    assert answer == "  raw answer\n"
    payload = gemini.calls[0][1]
    assert payload.output_mode == "text"
    assert payload.context is None
    assert "DOCUMENT TITLE: Public\nCONTENT:\npublic body" in payload.instruction
    assert "draft body" not in payload.instruction
    assert "archived body" not in payload.instruction
    assert "user: hi\nassistant: hello" in payload.instruction
    assert payload.instruction.endswith("User Question: What is public?")


@pytest.mark.asyncio
async def test_chat_context_is_truncated(make_store, make_adapter, make_blob, monkeypatch):
    monkeypatch.setattr(settings, "CHAT_CONTEXT_MAX_CHARS", 100)
    docs = [CorpusDocument(title="Big", content="z" * 500, status="PUBLISHED")]
    assistant, gemini = _assistant(make_store, make_adapter, make_blob, docs=docs)

    await assistant.chat_with_docs([], "q")

    instruction = gemini.calls[0][1].instruction
    assert TRUNCATION_MARKER in instruction
    assert "z" * 200 not in instruction
