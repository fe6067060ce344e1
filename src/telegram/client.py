"""TelegramClient: event-driven transport via python-telegram-bot."""
import logging
import secrets
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

from telegram import Update
from telegram.constants import ChatAction, ChatType
from telegram.error import BadRequest, Forbidden, TelegramError
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes
from telegram.ext import MessageHandler as TGMessageHandler
from telegram.ext import filters

from src.bot_client import (
    BotClient,
    Card,
    DownloadError,
    FileConsentCard,
    FileInfoCard,
    OnInvoke,
    OnMessage,
    UnknownInvokeError,
)
from src.config import Config
from src.constants import (
    CONSENT_ACCEPT,
    CONVERSATION_GROUP,
    CONVERSATION_PERSONAL,
    FILE_INFO_TYPE_TXT,
    INVOKE_FILE_CONSENT,
    INVOKE_UNKNOWN,
    MSG_BLOCKED_CHAT,
    MSG_CONNECTED,
    MSG_OCR_FILE_NAME,
)
from src.message_handler import (
    Address,
    Attachment,
    ChatMessage,
    InlineImage,
    InvokeEvent,
    MessageHandler,
)
from src.telegram.cards import (
    consent_markup,
    consent_text,
    decode_consent,
    file_info_markup,
    file_info_text,
)
from src.telemetry import log_incoming_activity, log_outgoing_activity

logger = logging.getLogger(__name__)

OnShutdown = Callable[[], Awaitable[None]]


class TelegramClient(BotClient):

    def __init__(self, config: Config) -> None:
        self._token = config.telegram_bot_token
        self._filter = MessageHandler(config.allowed_chat_ids)
        self._upload_base_url = config.upload_base_url
        self._app: Optional[Application] = None
        # chat id → (message id, offered file name) of the latest consent card
        self._consent_names: dict[str, tuple[str, str]] = {}

    # ── BotClient interface ───────────────────────────────────────────────────

    def run(
        self,
        on_message: OnMessage,
        on_invoke: Optional[OnInvoke] = None,
        on_help: Optional[Callable[[Address], Awaitable[None]]] = None,
        on_shutdown: Optional[OnShutdown] = None,
    ) -> None:
        builder = Application.builder().token(self._token).post_init(self._on_connected)
        if on_shutdown is not None:
            builder = builder.post_shutdown(lambda _app: on_shutdown())
        self._app = builder.build()
        self._app.add_handler(
            TGMessageHandler(
                (filters.TEXT & ~filters.COMMAND) | filters.PHOTO | filters.Document.IMAGE,
                self._make_handler(on_message),
            )
        )
        if on_help is not None:
            self._app.add_handler(CommandHandler(["start", "help"], self._make_help_handler(on_help)))
        if on_invoke is not None:
            self._app.add_handler(CallbackQueryHandler(self._make_invoke_handler(on_invoke)))
        self._app.run_polling()

    async def send_text(self, to: Address, template: str, *args: object) -> bool:
        text = template % args if args else template
        return await self._send(to, text) is not None

    async def send_typing(self, to: Address) -> None:
        match self._app:
            case None:
                return
            case app:
                try:
                    await app.bot.send_chat_action(chat_id=int(to.conversation_id), action=ChatAction.TYPING)
                except TelegramError as exc:
                    logger.debug("Typing action failed: %s", exc)

    async def send_attachment(self, to: Address, card: Card) -> Optional[str]:
        match card:
            case FileConsentCard(name=name):
                message_id = await self._send(to, consent_text(card), consent_markup(card))
                match message_id:
                    case None:
                        pass
                    case mid:
                        self._consent_names[to.conversation_id] = (mid, name)
                return message_id
            case FileInfoCard():
                return await self._send(to, file_info_text(card), file_info_markup(card))

    async def delete_message(self, to: Address, message_id: str) -> bool:
        match self._consent_names.get(to.conversation_id):
            case (mid, _) if mid == message_id:
                del self._consent_names[to.conversation_id]
            case _:
                pass
        match self._app:
            case None:
                logger.error("delete_message called before run()")
                return False
            case app:
                try:
                    return await app.bot.delete_message(
                        chat_id=int(to.conversation_id), message_id=int(message_id)
                    )
                except TelegramError as exc:
                    logger.error("Failed to delete message %s: %s", message_id, exc)
                    return False

    async def download_authenticated(self, url: str, to: Address) -> bytes:
        match self._app:
            case None:
                raise DownloadError(0, "download_authenticated called before run()")
            case app:
                pass
        try:
            tg_file = await app.bot.get_file(url)
            return bytes(await tg_file.download_as_bytearray())
        except BadRequest as exc:
            raise DownloadError(400, exc.message) from exc
        except Forbidden as exc:
            raise DownloadError(403, exc.message) from exc
        except TelegramError as exc:
            raise DownloadError(0, exc.message) from exc

    # ── helpers (also used in tests) ─────────────────────────────────────────

    @staticmethod
    def _update_to_address(update: Update) -> Optional[Address]:
        chat = update.effective_chat
        if chat is None:
            return None
        user = update.effective_user
        message = update.effective_message
        return Address(
            conversation_id=str(chat.id),
            user_id=str(user.id) if user else "",
            conversation_type=CONVERSATION_PERSONAL if chat.type == ChatType.PRIVATE else CONVERSATION_GROUP,
            message_id=str(message.message_id) if message else None,
        )

    @staticmethod
    def _attachments(update: Update) -> tuple[Attachment, ...]:
        msg = update.message
        found: list[Attachment] = []
        if msg.photo:
            found.append(InlineImage(content_url=msg.photo[-1].file_id, content_type="image/jpeg"))
        document = msg.document
        if document is not None and (document.mime_type or "").startswith("image/"):
            found.append(
                InlineImage(
                    content_url=document.file_id,
                    content_type=document.mime_type,
                    name=document.file_name,
                )
            )
        return tuple(found)

    def _update_to_message(self, update: Update) -> Optional[ChatMessage]:
        if update.message is None:
            return None
        address = self._update_to_address(update)
        if address is None:
            return None
        msg = update.message
        text = (msg.text or msg.caption or "").strip()
        attachments = self._attachments(update)
        match (text, attachments):
            case ("", ()):
                return None
            case _:
                return ChatMessage(
                    address=address,
                    text=text,
                    timestamp=int(msg.date.timestamp()),
                    attachments=attachments,
                    addressed=self._addresses_bot(msg, address),
                )

    def _addresses_bot(self, msg, address: Address) -> bool:
        """Private chat, an @mention of the bot, or a reply to one of its messages."""
        match (address.is_personal, self._app):
            case (True, _):
                return True
            case (_, None):
                return False
            case (_, app):
                pass
        username = app.bot.username or ""
        mentioned = bool(username) and f"@{username}".lower() in (msg.text or msg.caption or "").lower()
        reply = msg.reply_to_message
        replied = reply is not None and reply.from_user is not None and reply.from_user.id == app.bot.id
        return mentioned or replied

    def _upload_info(self, chat_id: str, message_id: Optional[str]) -> Optional[dict[str, str]]:
        match self._upload_base_url:
            case None:
                return None
            case base:
                pass
        match self._consent_names.get(chat_id):
            case (mid, offered) if mid == message_id:
                name = offered
            case _:
                name = MSG_OCR_FILE_NAME
        unique_id = secrets.token_hex(8)
        url = f"{base}/{unique_id}/{quote(name)}"
        return {
            "uploadUrl": url,
            "contentUrl": url,
            "name": name,
            "uniqueId": unique_id,
            "fileType": FILE_INFO_TYPE_TXT,
        }

    def _callback_to_invoke(self, update: Update) -> Optional[InvokeEvent]:
        query = update.callback_query
        if query is None:
            return None
        address = self._update_to_address(update)
        if address is None:
            return None
        reply_to_id = str(query.message.message_id) if query.message else None
        answer = decode_consent(query.data)
        match answer:
            case None:
                return InvokeEvent(
                    address=address, name=INVOKE_UNKNOWN, value={"data": query.data}, reply_to_id=reply_to_id
                )
            case _:
                pass
        value: dict = {
            "action": answer.action,
            "context": {"resultId": answer.result_id, "correlationId": answer.correlation_id},
        }
        match (answer.action, self._upload_info(address.conversation_id, reply_to_id)):
            case (action, dict() as info) if action == CONSENT_ACCEPT:
                value["uploadInfo"] = info
            case _:
                pass
        return InvokeEvent(address=address, name=INVOKE_FILE_CONSENT, value=value, reply_to_id=reply_to_id)

    async def _send(self, to: Address, text: str, reply_markup=None) -> Optional[str]:
        match self._app:
            case None:
                logger.error("send called before run()")
                return None
            case app:
                try:
                    sent = await app.bot.send_message(
                        chat_id=int(to.conversation_id), text=text, reply_markup=reply_markup
                    )
                    log_outgoing_activity(to, "message")
                    return str(sent.message_id)
                except TelegramError as exc:
                    logger.error("Telegram send_message failed: %s", exc)
                    return None

    @staticmethod
    async def _answer(query, text: Optional[str] = None) -> None:
        try:
            await query.answer(text=text)
        except TelegramError as exc:
            logger.debug("Callback answer failed: %s", exc)

    async def _on_connected(self, app: Application) -> None:
        logger.info(MSG_CONNECTED)

    def _allowed(self, address: Address) -> bool:
        match self._filter.should_process(address).should_respond:
            case True:
                return True
            case False:
                logger.warning(MSG_BLOCKED_CHAT, address.conversation_id)
                return False

    # ── internal handler factory ──────────────────────────────────────────────

    def _make_handler(self, on_message: OnMessage) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            msg = self._update_to_message(update)
            match msg:
                case None:
                    return
                case message if not self._allowed(message.address):
                    return
                case message:
                    log_incoming_activity(message.address, "message")
                    try:
                        await on_message(message)
                    except Exception:
                        logger.exception("Message handling failed")

        return _handler

    def _make_help_handler(self, on_help: Callable[[Address], Awaitable[None]]) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            address = self._update_to_address(update)
            match address:
                case None:
                    return
                case a if not self._allowed(a):
                    return
                case a:
                    await on_help(a)

        return _handler

    def _make_invoke_handler(self, on_invoke: OnInvoke) -> Callable:
        async def _handler(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            event = self._callback_to_invoke(update)
            match event:
                case None:
                    return
                case e if not self._allowed(e.address):
                    await self._answer(update.callback_query)
                    return
                case _:
                    pass

            log_incoming_activity(event.address, "invoke", event.name)
            query = update.callback_query
            try:
                await on_invoke(event)
            except UnknownInvokeError as exc:
                logger.warning("Rejected invoke: %s", exc)
                await self._answer(query, str(exc))
                return
            except Exception:
                logger.exception("Invoke handling failed")
            await self._answer(query)

        return _handler
