"""Anthropic Claude vision backend."""
import base64
import logging
from typing import Any

from anthropic import APIError, APIStatusError, AsyncAnthropic

from src.constants import (
    CLAUDE_VISION_MODEL,
    DEFAULT_DESCRIBE_LANGUAGE,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_OCR_LANGUAGE,
    LLM_DESCRIBE_PROMPT,
    LLM_MAX_TOKENS,
    LLM_OCR_PROMPT,
)
from src.vision.client import AnalysisClient, AnalysisError, shape_result
from src.vision.llm import as_describe_json, media_type, parse_json_reply
from src.vision.types import AnalysisRequest, DescribeResult, ImageBytes, TextResult, UrlImage

logger = logging.getLogger(__name__)


def _image_block(request: AnalysisRequest) -> dict[str, Any]:
    match request:
        case UrlImage(url=url):
            return {"type": "image", "source": {"type": "url", "url": url}}
        case ImageBytes(data=data):
            return {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type(data),
                    "data": base64.standard_b64encode(data).decode(),
                },
            }


class ClaudeAnalysisClient(AnalysisClient):

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    async def describe(
        self,
        request: AnalysisRequest,
        language: str = DEFAULT_DESCRIBE_LANGUAGE,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> DescribeResult:
        prompt = LLM_DESCRIBE_PROMPT % (max_candidates or DEFAULT_MAX_CANDIDATES, language)
        reply = await self._ask(request, prompt)
        return shape_result(DescribeResult.from_json, as_describe_json(parse_json_reply(reply)), reply)

    async def recognize_text(
        self, request: AnalysisRequest, language: str = DEFAULT_OCR_LANGUAGE
    ) -> TextResult:
        reply = await self._ask(request, LLM_OCR_PROMPT)
        return shape_result(TextResult.from_json, parse_json_reply(reply), reply)

    async def _ask(self, request: AnalysisRequest, prompt: str) -> str:
        client = AsyncAnthropic(api_key=self._api_key)
        try:
            message = await client.messages.create(
                model=CLAUDE_VISION_MODEL,
                max_tokens=LLM_MAX_TOKENS,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            _image_block(request),
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except APIStatusError as exc:
            logger.error("Claude vision returned %d: %s", exc.status_code, exc.message)
            raise AnalysisError(exc.status_code, exc.message) from exc
        except APIError as exc:
            logger.error("Claude vision request failed: %s", exc)
            raise AnalysisError(0, exc.message) from exc
        return message.content[0].text.strip()
