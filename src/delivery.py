"""Offer recognized text as a file, upload it once the user accepts.

The offer and the answer are separate activities: ``propose`` stages the text
and sends a consent card, then returns. The answer arrives later as an invoke
and ``handle_decision`` picks the work up again from the conversation store,
matching the card's result id against whatever is staged now.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

import httpx

from src.bot_client import BotClient, FileConsentCard, FileInfoCard
from src.constants import (
    CONTENT_TYPE_OCTET_STREAM,
    LANGUAGE_NAMES,
    MSG_NO_UPLOAD_DESTINATION,
    MSG_OCR_FILE_DESCRIPTION,
    MSG_OCR_FILE_NAME,
    MSG_OCR_NO_TEXT_FOUND,
    MSG_OCR_RESULT_EXPIRED,
    MSG_OCR_TEXT_FOUND,
    MSG_OCR_UPLOAD_DECLINED,
    MSG_OCR_UPLOAD_ERROR,
)
from src.correlation import ensure_correlation_id, set_correlation_id
from src.message_handler import Address, InvokeEvent
from src.stager import ResultStager, StagedResult

logger = logging.getLogger(__name__)

UPLOAD_OK_STATUSES = (200, 201)


class DeliveryState(Enum):
    IDLE = "idle"
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    UPLOADING = "uploading"
    DELIVERED = "delivered"
    UPLOAD_FAILED = "upload_failed"
    DECLINED = "declined"
    EXPIRED = "expired"


# ── outcomes ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UploadInfo:
    upload_url: str
    content_url: str
    name: str
    unique_id: str
    file_type: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "UploadInfo":
        return cls(
            upload_url=str(data.get("uploadUrl", "")),
            content_url=str(data.get("contentUrl", "")),
            name=str(data.get("name", "")),
            unique_id=str(data.get("uniqueId", "")),
            file_type=str(data.get("fileType", "")),
        )

    def to_json(self) -> dict[str, str]:
        return {
            "uploadUrl": self.upload_url,
            "contentUrl": self.content_url,
            "name": self.name,
            "uniqueId": self.unique_id,
            "fileType": self.file_type,
        }


@dataclass(frozen=True)
class Declined:
    pass


@dataclass(frozen=True)
class Expired:
    pass


@dataclass(frozen=True)
class UploadFailed:
    reason: str


@dataclass(frozen=True)
class Delivered:
    upload_info: UploadInfo


DeliveryOutcome = Union[Declined, Expired, UploadFailed, Delivered]


def outcome_name(outcome: DeliveryOutcome) -> str:
    match outcome:
        case Declined():
            return DeliveryState.DECLINED.value
        case Expired():
            return DeliveryState.EXPIRED.value
        case UploadFailed():
            return DeliveryState.UPLOAD_FAILED.value
        case Delivered():
            return DeliveryState.DELIVERED.value


# ── consent payloads ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConsentContext:
    result_id: str
    correlation_id: str

    def to_payload(self) -> dict[str, str]:
        return {"resultId": self.result_id, "correlationId": self.correlation_id}

    @classmethod
    def from_payload(cls, payload: Any) -> "ConsentContext":
        match payload:
            case {"resultId": str() as result_id, **rest}:
                return cls(result_id=result_id, correlation_id=str(rest.get("correlationId") or ""))
            case _:
                return cls(result_id="", correlation_id="")


@dataclass(frozen=True)
class Decision:
    action: str
    context: ConsentContext
    upload_info: Optional[UploadInfo] = None

    @classmethod
    def parse(cls, value: dict[str, Any]) -> "Decision":
        """Parse a fileConsent invoke value. Raises ValueError on an unknown action."""
        action = value.get("action")
        match action:
            case "accept" | "decline":
                pass
            case _:
                raise ValueError(f"Unknown file consent action: {action!r}")
        raw_info = value.get("uploadInfo")
        return cls(
            action=action,
            context=ConsentContext.from_payload(value.get("context")),
            upload_info=UploadInfo.from_json(raw_info) if isinstance(raw_info, dict) else None,
        )


def content_range(size: int) -> str:
    """Content-Range for a single PUT of the whole body."""
    return f"bytes 0-{size - 1}/{size}"


def language_name(code: str) -> str:
    match code:
        case "" | "unk":
            return "an unknown language"
        case _:
            # "en-US", "PT" → base code when the exact tag is not listed
            return LANGUAGE_NAMES.get(code) or LANGUAGE_NAMES.get(code.split("-")[0].lower(), code)


# ── state machine ─────────────────────────────────────────────────────────────


class FileConsentDelivery:

    def __init__(self, bot: BotClient, stager: ResultStager, http_client: httpx.AsyncClient) -> None:
        self._bot = bot
        self._stager = stager
        self._http = http_client

    def _transition(self, address: Address, state: DeliveryState) -> None:
        logger.info("Delivery [%s] %s → %s", address.correlation_id, address.conversation_id, state.value)

    async def propose(
        self,
        address: Address,
        text: str,
        filename: Optional[str] = None,
        language: str = "",
    ) -> Optional[ConsentContext]:
        """Stage text and send the consent card. Returns None when there was nothing to offer."""
        self._transition(address, DeliveryState.IDLE)
        match text:
            case "":
                await self._bot.send_text(address, MSG_OCR_NO_TEXT_FOUND)
                return None
            case _:
                pass

        result_id = self._stager.stage(address.conversation_id, text)
        context = ConsentContext(result_id=result_id, correlation_id=ensure_correlation_id(address))
        card = FileConsentCard(
            name=filename or MSG_OCR_FILE_NAME,
            description=MSG_OCR_FILE_DESCRIPTION,
            size_in_bytes=len(text.encode("utf-8")),
            context=context.to_payload(),
        )
        await self._bot.send_text(address, MSG_OCR_TEXT_FOUND, language_name(language))
        await self._bot.send_attachment(address, card)
        self._transition(address, DeliveryState.PROPOSED)
        return context

    async def handle_decision(self, event: InvokeEvent) -> DeliveryOutcome:
        """Resolve a consent answer. Raises ValueError when the action is not accept/decline."""
        decision = Decision.parse(event.value)
        address = event.address
        match decision.context.correlation_id:
            case "":
                ensure_correlation_id(address)
            case correlation_id:
                set_correlation_id(address, correlation_id)

        conversation_key = address.conversation_id
        staged = self._stager.peek(conversation_key)
        match staged:
            case None:
                logger.info("No staged result in %s for %s", conversation_key, decision.context.result_id)
                return await self._expire(address)
            case _:
                pass

        match decision.action:
            case "decline":
                return await self._decline(event, staged, decision.context.result_id)
            case "accept":
                await self._bot.send_typing(address)
                match staged.result_id == decision.context.result_id:
                    case True:
                        pass
                    case False:
                        logger.info(
                            "Stale consent answer in %s: got %s, staged %s",
                            conversation_key, decision.context.result_id, staged.result_id,
                        )
                        return await self._expire(address)
                self._transition(address, DeliveryState.ACCEPTED)
                return await self._accept(event, staged.text, decision.upload_info)

    async def _decline(self, event: InvokeEvent, staged: StagedResult, result_id: str) -> Declined:
        """Decline always removes its own prompt; a newer staged result is left alone."""
        address = event.address
        self._transition(address, DeliveryState.DECLINED)
        await self._delete_prompt(event)
        match staged.result_id == result_id:
            case True:
                self._stager.clear(address.conversation_id)
            case False:
                logger.info(
                    "Declined superseded result %s in %s, keeping %s",
                    result_id, address.conversation_id, staged.result_id,
                )
        await self._bot.send_text(address, MSG_OCR_UPLOAD_DECLINED)
        return Declined()

    async def _accept(
        self, event: InvokeEvent, text: str, upload_info: Optional[UploadInfo]
    ) -> DeliveryOutcome:
        address = event.address
        match upload_info:
            case UploadInfo(upload_url=url) if url:
                pass
            case _:
                return await self._fail(address, MSG_NO_UPLOAD_DESTINATION)

        self._transition(address, DeliveryState.UPLOADING)
        reason = await self._upload(upload_info.upload_url, text)
        match reason:
            case None:
                pass
            case r:
                return await self._fail(address, r)

        self._transition(address, DeliveryState.DELIVERED)
        await self._delete_prompt(event)
        self._stager.clear(address.conversation_id)
        await self._bot.send_attachment(
            address,
            FileInfoCard(
                content_url=upload_info.content_url,
                name=upload_info.name,
                unique_id=upload_info.unique_id,
                file_type=upload_info.file_type,
            ),
        )
        return Delivered(upload_info)

    async def _upload(self, upload_url: str, text: str) -> Optional[str]:
        """PUT the text in one range. Returns None on success, else the failure reason."""
        body = text.encode("utf-8")
        headers = {
            "Content-Type": CONTENT_TYPE_OCTET_STREAM,
            "Content-Range": content_range(len(body)),
        }
        try:
            response = await self._http.put(upload_url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Error uploading file: %s", exc)
            return str(exc) or type(exc).__name__
        match response.status_code:
            case code if code in UPLOAD_OK_STATUSES:
                return None
            case code:
                logger.error("Error uploading file: statusCode:%d %s", code, response.text[:200])
                return response.reason_phrase or f"HTTP {code}"

    async def _fail(self, address: Address, reason: str) -> UploadFailed:
        self._transition(address, DeliveryState.UPLOAD_FAILED)
        await self._bot.send_text(address, MSG_OCR_UPLOAD_ERROR, reason)
        return UploadFailed(reason)

    async def _expire(self, address: Address) -> Expired:
        self._transition(address, DeliveryState.EXPIRED)
        await self._bot.send_text(address, MSG_OCR_RESULT_EXPIRED)
        return Expired()

    async def _delete_prompt(self, event: InvokeEvent) -> None:
        match event.reply_to_id:
            case None | "":
                pass
            case message_id:
                deleted = await self._bot.delete_message(event.address, message_id)
                match deleted:
                    case True:
                        pass
                    case False:
                        logger.warning("Failed to delete consent card %s", message_id)
