from dataclasses import dataclass, field
from typing import Optional, Union
import logging

from src.constants import CONVERSATION_PERSONAL

logger = logging.getLogger(__name__)


@dataclass
class Address:
    """Where an activity came from and where replies go.

    Not frozen: the correlation id is attached after creation.
    """
    conversation_id: str
    user_id: str
    conversation_type: str = CONVERSATION_PERSONAL
    message_id: Optional[str] = None
    correlation_id: Optional[str] = None

    @property
    def is_personal(self) -> bool:
        return self.conversation_type == CONVERSATION_PERSONAL


@dataclass(frozen=True)
class FileAttachment:
    """A file whose download_url works without credentials for a few minutes."""
    name: str
    download_url: str
    file_type: str = ""


@dataclass(frozen=True)
class InlineImage:
    """Image content that can only be fetched with the bot's own credential."""
    content_url: str
    content_type: str = "image/*"
    name: Optional[str] = None


Attachment = Union[FileAttachment, InlineImage]


@dataclass(frozen=True)
class ChatMessage:
    address: Address
    text: str
    timestamp: int
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)
    # true when the bot was mentioned or replied to; group chats only get help then
    addressed: bool = False


@dataclass(frozen=True)
class InvokeEvent:
    """Out-of-band activity, e.g. the user's answer to a file consent card."""
    address: Address
    name: str
    value: dict
    reply_to_id: Optional[str] = None


@dataclass(frozen=True)
class MessageAction:
    should_respond: bool
    reason: Optional[str] = None


class MessageHandler:

    def __init__(self, allowed_chat_ids: tuple[str, ...]):
        self.allowed_chat_ids = frozenset(allowed_chat_ids)

    def should_process(self, address: Address) -> MessageAction:
        match (not self.allowed_chat_ids, address.conversation_id in self.allowed_chat_ids):
            case (True, _) | (_, True):
                return MessageAction(should_respond=True)
            case _:
                logger.debug(f"Blocked: {address.conversation_id}")
                return MessageAction(
                    should_respond=False,
                    reason=f"Unauthorized chat: {address.conversation_id}"
                )

