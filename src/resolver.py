"""Picks the one image source a message carries."""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from src.bot_client import BotClient
from src.constants import (
    IMAGE_SOURCE_FILE,
    IMAGE_SOURCE_INLINE,
    IMAGE_SOURCE_URL,
    IMAGE_URL_PATTERN,
)
from src.message_handler import Address, ChatMessage, FileAttachment, InlineImage
from src.vision.types import AnalysisRequest, ImageBytes, UrlImage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedUrl:
    request: UrlImage
    source: str
    name: Optional[str] = None


@dataclass(frozen=True)
class InlineImageRef:
    """Deferred source: bytes must be fetched with the bot's credential first."""
    content_url: str
    name: Optional[str] = None
    source: str = IMAGE_SOURCE_INLINE


ResolvedImage = Union[ResolvedUrl, InlineImageRef]


def _first_file(message: ChatMessage) -> Optional[FileAttachment]:
    return next((a for a in message.attachments if isinstance(a, FileAttachment)), None)


def _first_inline(message: ChatMessage) -> Optional[InlineImage]:
    return next((a for a in message.attachments if isinstance(a, InlineImage)), None)


def find_image_url(text: str) -> Optional[str]:
    match IMAGE_URL_PATTERN.search(text or ""):
        case None:
            return None
        case m:
            return m.group(0)


def resolve(message: ChatMessage) -> Optional[ResolvedImage]:
    """File attachment, then inline image, then an image URL in the text. First match wins."""
    match _first_file(message):
        case FileAttachment(name=name, download_url=url) if url:
            return ResolvedUrl(request=UrlImage(url), source=IMAGE_SOURCE_FILE, name=name)
        case _:
            pass

    match _first_inline(message):
        case InlineImage(content_url=url, name=name) if url:
            return InlineImageRef(content_url=url, name=name)
        case _:
            pass

    match find_image_url(message.text):
        case None:
            return None
        case url:
            return ResolvedUrl(request=UrlImage(url), source=IMAGE_SOURCE_URL)


async def materialize(resolved: ResolvedImage, bot: BotClient, address: Address) -> AnalysisRequest:
    """Turn a resolver hit into a request; inline images are downloaded here. Raises DownloadError."""
    match resolved:
        case ResolvedUrl(request=request):
            return request
        case InlineImageRef(content_url=url):
            data = await bot.download_authenticated(url, address)
            logger.debug("Downloaded %d bytes of inline image", len(data))
            return ImageBytes(data)
