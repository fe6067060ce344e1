"""Caption and OCR bots: pure conversation logic, transport-agnostic."""
import logging
from typing import Optional

from src.bot_client import BotClient, DownloadError, UnknownInvokeError
from src.constants import (
    DEFAULT_DESCRIBE_LANGUAGE,
    DEFAULT_OCR_LANGUAGE,
    INVOKE_FILE_CONSENT,
    MSG_ANALYSIS_ERROR,
    MSG_IMAGE_CAPTION_HELP,
    MSG_IMAGE_CAPTION_HELP_PASTE,
    MSG_IMAGE_CAPTION_RESPONSE,
    MSG_IMAGE_NO_CAPTION_RESPONSE,
    MSG_IMAGE_NOT_CONFIGURED,
    MSG_OCR_HELP,
    MSG_OCR_HELP_PASTE,
    MSG_UNKNOWN_INVOKE,
    SCENARIO_CAPTION,
    SCENARIO_OCR,
    SCENARIO_OCR_SEND,
    SCENARIO_UNRECOGNIZED_INPUT,
)
from src.correlation import set_correlation_id
from src.delivery import ConsentContext, Delivered, FileConsentDelivery, UploadFailed, outcome_name
from src.message_handler import Address, ChatMessage, InvokeEvent
from src.resolver import ResolvedImage, materialize, resolve
from src.telemetry import track_scenario, track_scenario_start, track_scenario_stop
from src.vision.client import AnalysisClient, AnalysisError
from src.vision.types import AnalysisRequest

logger = logging.getLogger(__name__)


# ── pure helpers (module-level so tests can import them directly) ──────────────


def result_filename(name: Optional[str]) -> Optional[str]:
    """`photo.png` → `photo.png.txt`; no attachment name → None (use the default)."""
    match name:
        case str() as n if n.strip():
            return f"{n.strip()}.txt"
        case _:
            return None


# ── bots ──────────────────────────────────────────────────────────────────────


class ImageBot:
    """Resolve the image a message carries, analyze it, reply. Subclasses decide what analysis means."""

    scenario = ""
    help_personal = ""
    help_group = ""

    def __init__(self, bot: BotClient, vision: Optional[AnalysisClient], language: str) -> None:
        self._bot = bot
        self._vision = vision
        self._language = language

    async def handle_help(self, address: Address) -> None:
        await self._bot.send_text(
            address, self.help_personal if address.is_personal else self.help_group
        )

    async def handle_message(self, message: ChatMessage) -> None:
        address = message.address
        resolved = resolve(message)
        match (resolved, address.is_personal or message.addressed):
            case (None, True):
                track_scenario(SCENARIO_UNRECOGNIZED_INPUT, {}, address)
                await self.handle_help(address)
                return
            case (None, False):
                return
            case _:
                pass

        await self._bot.send_typing(address)

        match self._vision:
            case None:
                await self._bot.send_text(address, MSG_IMAGE_NOT_CONFIGURED)
                return
            case _:
                pass

        track_scenario_start(self.scenario, {"imageSource": resolved.source}, address)
        try:
            request = await materialize(resolved, self._bot, address)
            await self._analyze(address, request, resolved)
        except (AnalysisError, DownloadError) as exc:
            logger.error("Failed to analyze image: %s", exc.message)
            await self._bot.send_text(address, MSG_ANALYSIS_ERROR, exc.message)
            track_scenario_stop(self.scenario, {"success": False, "error": exc.message}, address)

    async def handle_invoke(self, event: InvokeEvent) -> None:
        raise UnknownInvokeError(MSG_UNKNOWN_INVOKE % event.name)

    async def _analyze(
        self, address: Address, request: AnalysisRequest, resolved: ResolvedImage
    ) -> None:
        raise NotImplementedError


class CaptionBot(ImageBot):
    scenario = SCENARIO_CAPTION
    help_personal = MSG_IMAGE_CAPTION_HELP
    help_group = MSG_IMAGE_CAPTION_HELP_PASTE

    def __init__(
        self,
        bot: BotClient,
        vision: Optional[AnalysisClient],
        language: str = DEFAULT_DESCRIBE_LANGUAGE,
    ) -> None:
        super().__init__(bot, vision, language)

    async def _analyze(
        self, address: Address, request: AnalysisRequest, resolved: ResolvedImage
    ) -> None:
        result = await self._vision.describe(request, language=self._language)
        match result.best_caption:
            case None:
                await self._bot.send_text(address, MSG_IMAGE_NO_CAPTION_RESPONSE)
                track_scenario_stop(self.scenario, {"success": True, "caption": False}, address)
            case caption:
                await self._bot.send_text(address, MSG_IMAGE_CAPTION_RESPONSE, caption.text)
                track_scenario_stop(self.scenario, {"success": True, "caption": True}, address)


class OcrBot(ImageBot):
    scenario = SCENARIO_OCR
    help_personal = MSG_OCR_HELP
    help_group = MSG_OCR_HELP_PASTE

    def __init__(
        self,
        bot: BotClient,
        vision: Optional[AnalysisClient],
        delivery: FileConsentDelivery,
        language: str = DEFAULT_OCR_LANGUAGE,
    ) -> None:
        super().__init__(bot, vision, language)
        self._delivery = delivery

    async def _analyze(
        self, address: Address, request: AnalysisRequest, resolved: ResolvedImage
    ) -> None:
        result = await self._vision.recognize_text(request, language=self._language)
        context = await self._delivery.propose(
            address,
            result.text,
            filename=result_filename(resolved.name),
            language=result.language,
        )
        track_scenario_stop(
            self.scenario, {"success": True, "text": context is not None}, address
        )

    async def handle_invoke(self, event: InvokeEvent) -> None:
        match event.name:
            case name if name == INVOKE_FILE_CONSENT:
                pass
            case name:
                raise UnknownInvokeError(MSG_UNKNOWN_INVOKE % name)

        match ConsentContext.from_payload(event.value.get("context")).correlation_id:
            case "":
                pass
            case correlation_id:
                set_correlation_id(event.address, correlation_id)
        track_scenario_start(SCENARIO_OCR_SEND, {"action": event.value.get("action")}, event.address)

        try:
            outcome = await self._delivery.handle_decision(event)
        except ValueError as exc:
            track_scenario_stop(SCENARIO_OCR_SEND, {"success": False, "error": str(exc)}, event.address)
            raise UnknownInvokeError(str(exc)) from exc

        props: dict = {"success": isinstance(outcome, Delivered), "outcome": outcome_name(outcome)}
        match outcome:
            case UploadFailed(reason=reason):
                props["error"] = reason
            case _:
                pass
        track_scenario_stop(SCENARIO_OCR_SEND, props, event.address)
