"""
Tests for app/utils/openai_client.py and app/services/extractor.py

Covers:
- chat_json request shape: model, JSON mode, temperature, max_tokens, auth
- fenced / prefixed JSON content parsed
- ExtractionError on missing key, non-200, transport failure, non-object JSON
- Extractor prompts: missing fields listed, content truncated

Called by: pytest tests/test_openai_client.py -v
"""

import json
import os

os.environ["TESTING"] = "1"

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.services.extractor import (
    PROPERTY_CONTENT_LIMIT,
    PROPERTY_SYSTEM_PROMPT,
    Extractor,
)
from app.utils.openai_client import ExtractionError, OpenAIClient, safe_json_parse


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


def _client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_chat_json_request_shape(settings):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"property_name": "Oak Ridge"}'))

    async with _client_for(handler) as http:
        data = await OpenAIClient(settings, client=http, log=MagicMock()).chat_json("sys", "user")

    assert data == {"property_name": "Oak Ridge"}
    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-4o-mini"
    assert seen["body"]["temperature"] == 0.1
    assert seen["body"]["max_tokens"] == 1000
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["messages"][0] == {"role": "system", "content": "sys"}


@pytest.mark.asyncio
async def test_chat_json_fenced_content(settings):
    content = '```json\n{"confidence": 0.8}\n```'
    async with _client_for(lambda r: httpx.Response(200, json=_completion(content))) as http:
        data = await OpenAIClient(settings, client=http, log=MagicMock()).chat_json("s", "u")
    assert data == {"confidence": 0.8}


@pytest.mark.asyncio
async def test_chat_json_missing_key(unconfigured_settings):
    with pytest.raises(ExtractionError, match="not configured"):
        await OpenAIClient(unconfigured_settings, client=MagicMock(), log=MagicMock()).chat_json("s", "u")


@pytest.mark.asyncio
async def test_chat_json_non_200(settings):
    async with _client_for(lambda r: httpx.Response(429, text="rate limited")) as http:
        with pytest.raises(ExtractionError, match="429"):
            await OpenAIClient(settings, client=http, log=MagicMock()).chat_json("s", "u")


@pytest.mark.asyncio
async def test_chat_json_transport_error(settings):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client_for(handler) as http:
        with pytest.raises(ExtractionError, match="request failed"):
            await OpenAIClient(settings, client=http, log=MagicMock()).chat_json("s", "u")


@pytest.mark.asyncio
async def test_chat_json_array_is_rejected(settings):
    async with _client_for(lambda r: httpx.Response(200, json=_completion("[1, 2]"))) as http:
        with pytest.raises(ExtractionError, match="not a JSON object"):
            await OpenAIClient(settings, client=http, log=MagicMock()).chat_json("s", "u")


def test_safe_json_parse_with_preamble():
    assert safe_json_parse('Here you go: {"a": 1} thanks') == {"a": 1}
    assert safe_json_parse("not json") is None
    assert safe_json_parse(None) is None


# ── Extractor ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_extract_property_fields_prompt():
    client = MagicMock()
    client.chat_json = AsyncMock(return_value={"extracted": {}})
    extractor = Extractor(client)

    await extractor.extract_property_fields(
        "z" * (PROPERTY_CONTENT_LIMIT + 500),
        "123 Oak Ridge Dr, San Antonio, TX",
        ["contact_phone", "amenities"],
        known_name="Oak Ridge Apartments",
    )

    system, user = client.chat_json.call_args.args
    assert system == PROPERTY_SYSTEM_PROMPT
    assert "- contact_phone: Leasing office phone" in user
    assert "- amenities: Property amenities" in user
    assert "Known Name: Oak Ridge Apartments" in user
    assert "z" * PROPERTY_CONTENT_LIMIT in user
    assert "z" * (PROPERTY_CONTENT_LIMIT + 1) not in user


@pytest.mark.asyncio
async def test_extract_search_result_propagates_errors():
    client = MagicMock()
    client.chat_json = AsyncMock(side_effect=ExtractionError("boom"))
    with pytest.raises(ExtractionError):
        await Extractor(client).extract_search_result("results", "123 Oak Ridge Dr")
