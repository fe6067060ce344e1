"""Analysis requests and results, shaped after the vision service's describe and OCR replies."""
from dataclasses import dataclass, field
from typing import Any, Union


# ── requests ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UrlImage:
    url: str


@dataclass(frozen=True)
class ImageBytes:
    data: bytes


AnalysisRequest = Union[UrlImage, ImageBytes]


# ── describe ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Caption:
    text: str
    confidence: float


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    format: str


@dataclass(frozen=True)
class DescribeResult:
    captions: tuple[Caption, ...]
    tags: tuple[str, ...] = ()
    request_id: str = ""
    metadata: ImageMetadata | None = None

    @property
    def best_caption(self) -> Caption | None:
        return self.captions[0] if self.captions else None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "DescribeResult":
        description = data.get("description") or {}
        captions = tuple(
            Caption(text=str(c.get("text", "")), confidence=float(c.get("confidence", 0.0)))
            for c in description.get("captions") or []
        )
        meta = data.get("metadata")
        return cls(
            captions=captions,
            tags=tuple(map(str, description.get("tags") or [])),
            request_id=str(data.get("requestId", "")),
            metadata=(
                ImageMetadata(
                    width=int(meta.get("width", 0)),
                    height=int(meta.get("height", 0)),
                    format=str(meta.get("format", "")),
                )
                if isinstance(meta, dict)
                else None
            ),
        )


# ── OCR ───────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Word:
    text: str
    bounding_box: str = ""


@dataclass(frozen=True)
class TextLine:
    words: tuple[Word, ...]
    bounding_box: str = ""

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.words)


@dataclass(frozen=True)
class TextRegion:
    lines: tuple[TextLine, ...]
    bounding_box: str = ""

    @property
    def text(self) -> str:
        return "\r\n".join(line.text for line in self.lines)


@dataclass(frozen=True)
class TextResult:
    language: str
    regions: tuple[TextRegion, ...] = field(default_factory=tuple)
    text_angle: float = 0.0
    orientation: str = "Up"

    @property
    def text(self) -> str:
        """Words joined by spaces, lines by CRLF, regions by a blank line."""
        return "\r\n\r\n".join(region.text for region in self.regions)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "TextResult":
        regions = tuple(
            TextRegion(
                bounding_box=str(r.get("boundingBox", "")),
                lines=tuple(
                    TextLine(
                        bounding_box=str(line.get("boundingBox", "")),
                        words=tuple(
                            _word(w) for w in line.get("words") or []
                        ),
                    )
                    for line in r.get("lines") or []
                ),
            )
            for r in data.get("regions") or []
        )
        return cls(
            language=str(data.get("language") or ""),
            regions=regions,
            text_angle=float(data.get("textAngle") or 0.0),
            orientation=str(data.get("orientation") or "Up"),
        )


def _word(raw: Any) -> Word:
    # LLM backends may return bare strings instead of word objects
    match raw:
        case str() as s:
            return Word(text=s)
        case dict():
            return Word(text=str(raw.get("text", "")), bounding_box=str(raw.get("boundingBox", "")))
        case _:
            return Word(text=str(raw))


AnalysisResult = Union[DescribeResult, TextResult]
