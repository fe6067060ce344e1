"""Azure Computer Vision describe/OCR over REST."""
import json
import logging
from typing import Any, Optional

import httpx

from src.constants import (
    CONTENT_TYPE_OCTET_STREAM,
    DEFAULT_DESCRIBE_LANGUAGE,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_OCR_LANGUAGE,
    VISION_DESCRIBE_PATH,
    VISION_KEY_HEADER,
    VISION_OCR_PATH,
)
from src.vision.client import AnalysisClient, AnalysisError, shape_result
from src.vision.types import AnalysisRequest, DescribeResult, ImageBytes, TextResult, UrlImage

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Best detail the error body offers, else the status line. Never raises."""
    fallback = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        logger.debug("Error body is not JSON (%s): %r", exc, response.text[:200])
        return fallback
    match body:
        case {"error": {"message": str() as message}} if message:
            return message
        case {"message": str() as message} if message:
            return message
        case _:
            return fallback


class AzureVisionClient(AnalysisClient):

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = (
            endpoint.rstrip("/")
            if endpoint.startswith(("http://", "https://"))
            else f"https://{endpoint.rstrip('/')}"
        )
        self._access_key = access_key
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def describe(
        self,
        request: AnalysisRequest,
        language: str = DEFAULT_DESCRIBE_LANGUAGE,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> DescribeResult:
        params = {"maxCandidates": max_candidates or DEFAULT_MAX_CANDIDATES, "language": language}
        body = await self._post(VISION_DESCRIBE_PATH, params, request)
        return shape_result(DescribeResult.from_json, body, json.dumps(body))

    async def recognize_text(
        self, request: AnalysisRequest, language: str = DEFAULT_OCR_LANGUAGE
    ) -> TextResult:
        params = {"detectOrientation": "true", "language": language}
        body = await self._post(VISION_OCR_PATH, params, request)
        return shape_result(TextResult.from_json, body, json.dumps(body))

    async def aclose(self) -> None:
        match self._owns_client:
            case True:
                await self._http.aclose()
            case False:
                pass

    async def _post(
        self, path: str, params: dict[str, Any], request: AnalysisRequest
    ) -> dict[str, Any]:
        headers = {VISION_KEY_HEADER: self._access_key}
        match request:
            case UrlImage(url=url):
                kwargs: dict[str, Any] = {"json": {"url": url}}
            case ImageBytes(data=data):
                headers["Content-Type"] = CONTENT_TYPE_OCTET_STREAM
                kwargs = {"content": data}

        try:
            response = await self._http.post(
                f"{self._base_url}/{path}", params=params, headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            logger.error("Vision request to %s failed: %s", path, exc)
            raise AnalysisError(0, str(exc) or type(exc).__name__) from exc

        match response.status_code:
            case code if 200 <= code < 300:
                pass
            case code:
                message = _error_message(response)
                logger.error("Vision %s returned %d: %s", path, code, message)
                raise AnalysisError(code, message, raw_body=response.text)

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise AnalysisError(
                response.status_code, f"Malformed response: {exc}", raw_body=response.text
            ) from exc
