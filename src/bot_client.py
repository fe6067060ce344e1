"""Abstract interfaces for transport-agnostic bot clients."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from src.message_handler import Address, ChatMessage, InvokeEvent

OnMessage = Callable[[ChatMessage], Awaitable[None]]
OnInvoke = Callable[[InvokeEvent], Awaitable[None]]


class DownloadError(Exception):
    """Authenticated download of attachment content failed."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass(frozen=True)
class FileConsentCard:
    """Offer to send a file; the user's answer comes back as a fileConsent invoke.

    context is echoed back verbatim in the invoke's value["context"].
    """
    name: str
    description: str
    size_in_bytes: int
    context: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FileInfoCard:
    """Link to a file that was uploaded on the user's behalf."""
    content_url: str
    name: str
    unique_id: str
    file_type: str


Card = Union[FileConsentCard, FileInfoCard]


class BotClient(ABC):
    @abstractmethod
    def run(self, on_message: OnMessage, on_invoke: Optional[OnInvoke] = None) -> None: ...

    @abstractmethod
    async def send_text(self, to: Address, template: str, *args: object) -> bool: ...

    @abstractmethod
    async def send_typing(self, to: Address) -> None: ...

    @abstractmethod
    async def send_attachment(self, to: Address, card: Card) -> Optional[str]:
        """Send a card; returns the id of the sent message, or None on failure."""
        ...

    @abstractmethod
    async def delete_message(self, to: Address, message_id: str) -> bool:
        """Best-effort delete. Failures are logged and reported as False, never raised."""
        ...

    @abstractmethod
    async def download_authenticated(self, url: str, to: Address) -> bytes:
        """Fetch inline attachment content with the bot's credential. Raises DownloadError."""
        ...


class UnknownInvokeError(Exception):
    """Invoke the bot does not handle. The connector rejects it; nothing is posted to the chat."""
