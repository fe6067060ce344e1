"""Shared helpers for the LLM-backed analysis clients."""
import json
import re
from typing import Any

from src.vision.client import AnalysisError

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

# (signature, offset, media type)
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"GIF8", 0, "image/gif"),
    (b"WEBP", 8, "image/webp"),
)


def media_type(data: bytes) -> str:
    """Media type label for base64 image blocks; defaults to JPEG."""
    for signature, offset, label in _SIGNATURES:
        if data[offset:offset + len(signature)] == signature:
            return label
    return "image/jpeg"


def parse_json_reply(text: str) -> dict[str, Any]:
    """Decode the model's JSON reply, tolerating a markdown code fence."""
    cleaned = _FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise AnalysisError(0, f"Model reply is not JSON: {exc}", raw_body=text) from exc
    match data:
        case dict():
            return data
        case _:
            raise AnalysisError(0, "Model reply is not a JSON object", raw_body=text)


def as_describe_json(reply: dict[str, Any]) -> dict[str, Any]:
    """Reshape {"captions", "tags"} into the service's describe layout."""
    return {
        "description": {
            "captions": reply.get("captions") or [],
            "tags": reply.get("tags") or [],
        }
    }
