"""LLM analysis backends and their reply parsing"""
import base64

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.vision.client import AnalysisError
from src.vision.llm import media_type, parse_json_reply
from src.vision.types import ImageBytes, UrlImage

DESCRIBE_JSON = '{"captions": [{"text": "a red bicycle", "confidence": 0.8}], "tags": ["bike"]}'
OCR_JSON = '```json\n{"language": "de", "regions": [{"lines": [{"words": ["Guten", "Tag"]}]}]}\n```'


def claude_response(text: str) -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    return response


def openai_response(text: str) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=text))]
    return response


# ── helpers ───────────────────────────────────────────────────────────────────


def test_media_type_detects_png():
    assert media_type(b"\x89PNG\r\n\x1a\nrest") == "image/png"


def test_media_type_detects_webp():
    assert media_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"


def test_media_type_defaults_to_jpeg():
    assert media_type(b"\xff\xd8\xff") == "image/jpeg"


def test_parse_json_reply_strips_fence():
    assert parse_json_reply(OCR_JSON)["language"] == "de"


def test_parse_json_reply_rejects_prose():
    with pytest.raises(AnalysisError) as exc_info:
        parse_json_reply("I see a cat.")
    assert exc_info.value.status_code == 0


def test_parse_json_reply_rejects_array():
    with pytest.raises(AnalysisError):
        parse_json_reply("[1, 2]")


# ── Claude ────────────────────────────────────────────────────────────────────


async def test_claude_describe_sends_url_image_block():
    from src.vision.claude import ClaudeAnalysisClient

    client = ClaudeAnalysisClient(api_key="test-key")

    with patch("src.vision.claude.AsyncAnthropic") as mock_cls:
        mock_anthropic = AsyncMock()
        mock_anthropic.messages.create = AsyncMock(return_value=claude_response(DESCRIBE_JSON))
        mock_cls.return_value = mock_anthropic

        result = await client.describe(UrlImage("https://x.example/bike.jpg"))

    content = mock_anthropic.messages.create.call_args.kwargs["messages"][0]["content"]
    image = next(block for block in content if block["type"] == "image")
    assert image["source"] == {"type": "url", "url": "https://x.example/bike.jpg"}
    assert result.best_caption.text == "a red bicycle"
    assert result.tags == ("bike",)


async def test_claude_recognize_text_sends_base64_bytes():
    from src.vision.claude import ClaudeAnalysisClient

    client = ClaudeAnalysisClient(api_key="test-key")
    data = b"\x89PNG\r\n\x1a\nimage"

    with patch("src.vision.claude.AsyncAnthropic") as mock_cls:
        mock_anthropic = AsyncMock()
        mock_anthropic.messages.create = AsyncMock(return_value=claude_response(OCR_JSON))
        mock_cls.return_value = mock_anthropic

        result = await client.recognize_text(ImageBytes(data))

    content = mock_anthropic.messages.create.call_args.kwargs["messages"][0]["content"]
    source = content[0]["source"]
    assert source["type"] == "base64"
    assert source["media_type"] == "image/png"
    assert base64.standard_b64decode(source["data"]) == data
    assert result.language == "de"
    assert result.text == "Guten Tag"


async def test_claude_status_error_becomes_analysis_error():
    from anthropic import APIStatusError
    from src.vision.claude import ClaudeAnalysisClient

    client = ClaudeAnalysisClient(api_key="test-key")
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    error = APIStatusError("overloaded", response=httpx.Response(529, request=request), body=None)

    with patch("src.vision.claude.AsyncAnthropic") as mock_cls:
        mock_anthropic = AsyncMock()
        mock_anthropic.messages.create = AsyncMock(side_effect=error)
        mock_cls.return_value = mock_anthropic

        with pytest.raises(AnalysisError) as exc_info:
            await client.describe(UrlImage("https://x.example/bike.jpg"))

    assert exc_info.value.status_code == 529


async def test_claude_non_json_reply_raises():
    from src.vision.claude import ClaudeAnalysisClient

    client = ClaudeAnalysisClient(api_key="test-key")

    with patch("src.vision.claude.AsyncAnthropic") as mock_cls:
        mock_anthropic = AsyncMock()
        mock_anthropic.messages.create = AsyncMock(return_value=claude_response("a bicycle"))
        mock_cls.return_value = mock_anthropic

        with pytest.raises(AnalysisError):
            await client.describe(UrlImage("https://x.example/bike.jpg"))


# ── OpenAI ────────────────────────────────────────────────────────────────────


async def test_openai_describe_passes_url():
    from src.vision.openai import OpenAIAnalysisClient

    client = OpenAIAnalysisClient(api_key="test-key")

    with patch("src.vision.openai.AsyncOpenAI") as mock_cls:
        mock_openai = MagicMock()
        mock_openai.chat.completions.create = AsyncMock(return_value=openai_response(DESCRIBE_JSON))
        mock_cls.return_value = mock_openai

        result = await client.describe(UrlImage("https://x.example/bike.jpg"))

    content = mock_openai.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert content[0]["image_url"]["url"] == "https://x.example/bike.jpg"
    assert result.best_caption.text == "a red bicycle"


async def test_openai_recognize_text_sends_data_uri():
    from src.vision.openai import OpenAIAnalysisClient

    client = OpenAIAnalysisClient(api_key="test-key")

    with patch("src.vision.openai.AsyncOpenAI") as mock_cls:
        mock_openai = MagicMock()
        mock_openai.chat.completions.create = AsyncMock(return_value=openai_response(OCR_JSON))
        mock_cls.return_value = mock_openai

        result = await client.recognize_text(ImageBytes(b"\xff\xd8\xffjpeg"))

    content = mock_openai.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert content[0]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert result.text == "Guten Tag"


async def test_openai_empty_reply_raises():
    from src.vision.openai import OpenAIAnalysisClient

    client = OpenAIAnalysisClient(api_key="test-key")

    with patch("src.vision.openai.AsyncOpenAI") as mock_cls:
        mock_openai = MagicMock()
        mock_openai.chat.completions.create = AsyncMock(return_value=openai_response(None))
        mock_cls.return_value = mock_openai

        with pytest.raises(AnalysisError):
            await client.recognize_text(UrlImage("https://x.example/sign.png"))
