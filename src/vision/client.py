"""Abstract base for image analysis backends."""
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, TypeVar

from src.constants import DEFAULT_DESCRIBE_LANGUAGE, DEFAULT_MAX_CANDIDATES, DEFAULT_OCR_LANGUAGE
from src.vision.types import AnalysisRequest, DescribeResult, TextResult

R = TypeVar("R")


class AnalysisError(Exception):
    """The remote service answered with a non-success status, or could not be reached.

    status_code is 0 for transport faults.
    """

    def __init__(self, status_code: int, message: str, raw_body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.raw_body = raw_body

    def __repr__(self) -> str:
        return f"AnalysisError(status_code={self.status_code}, message={self.message!r})"


def shape_result(
    from_json: Callable[[Any], R], data: Any, raw_body: Optional[str], status_code: int = 0
) -> R:
    """Build a result from a decoded reply; a reply with the wrong field types raises AnalysisError."""
    try:
        return from_json(data)
    except (TypeError, AttributeError, ValueError) as exc:
        raise AnalysisError(status_code, f"Malformed response: {exc}", raw_body=raw_body) from exc


class AnalysisClient(ABC):
    @abstractmethod
    async def describe(
        self,
        request: AnalysisRequest,
        language: str = DEFAULT_DESCRIBE_LANGUAGE,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> DescribeResult:
        """Caption the image. Raises AnalysisError on failure."""
        ...

    @abstractmethod
    async def recognize_text(
        self, request: AnalysisRequest, language: str = DEFAULT_OCR_LANGUAGE
    ) -> TextResult:
        """Run OCR on the image. Raises AnalysisError on failure."""
        ...

    async def aclose(self) -> None:
        pass
