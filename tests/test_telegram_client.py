"""TelegramClient: Update → message/invoke mapping, cards, allow-list"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from telegram.error import BadRequest, Forbidden

from src.bot_client import DownloadError, FileConsentCard, FileInfoCard, UnknownInvokeError
from src.config import Config
from src.message_handler import Address, InlineImage
from src.telegram.cards import (
    MAX_CALLBACK_BYTES,
    consent_markup,
    decode_consent,
    encode_consent,
    file_info_markup,
)
from src.telegram.client import TelegramClient


def make_config(*, chat_ids: tuple = ("123456789",), upload_base_url: str | None = None) -> Config:
    return Config(
        telegram_bot_token="test-token",
        bot_mode="ocr",
        allowed_chat_ids=chat_ids,
        log_level="INFO",
        vision_endpoint=None,
        vision_access_key=None,
        vision_language="en",
        vision_timeout=30.0,
        anthropic_api_key=None,
        openai_api_key=None,
        upload_base_url=upload_base_url,
        storage="memory",
        storage_path=".conversation_state.json",
    )


def make_update(*, chat_id: int = 123456789, text: str | None = "hi", chat_type: str = "private") -> MagicMock:
    """Build a minimal mock of a python-telegram-bot Update."""
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.effective_chat.type = chat_type
    update.effective_user.id = 42
    update.effective_message.message_id = 10
    update.message.text = text
    update.message.caption = None
    update.message.photo = []
    update.message.document = None
    update.message.date.timestamp.return_value = 1000.0
    return update


def make_callback(data: str, *, chat_id: int = 123456789, message_id: int = 77) -> MagicMock:
    update = make_update(chat_id=chat_id)
    update.callback_query.data = data
    update.callback_query.message.message_id = message_id
    update.callback_query.answer = AsyncMock()
    return update


def with_app(client: TelegramClient) -> MagicMock:
    app = MagicMock()
    app.bot.send_message = AsyncMock(return_value=MagicMock(message_id=501))
    app.bot.delete_message = AsyncMock(return_value=True)
    app.bot.send_chat_action = AsyncMock()
    client._app = app
    return app


CONTEXT = {"resultId": "a" * 16, "correlationId": "b" * 16}


# ── callback data ─────────────────────────────────────────────────────────────


def test_consent_callback_fits_telegram_limit():
    data = encode_consent("a", CONTEXT)
    assert len(data.encode("utf-8")) <= MAX_CALLBACK_BYTES


def test_consent_callback_too_long_raises():
    with pytest.raises(ValueError):
        encode_consent("a", {"resultId": "x" * 40, "correlationId": "y" * 40})


def test_decode_consent_reads_both_actions():
    assert decode_consent(encode_consent("a", CONTEXT)) == ("accept", "a" * 16, "b" * 16)
    assert decode_consent(encode_consent("d", CONTEXT)).action == "decline"


@pytest.mark.parametrize("data", [None, "", "fc:x:r:c", "other:a:r:c", "fc:a:r"])
def test_decode_consent_rejects_foreign_data(data):
    assert decode_consent(data) is None


def test_consent_markup_has_accept_and_decline():
    card = FileConsentCard(name="t.txt", description="d", size_in_bytes=3, context=CONTEXT)
    [[accept, decline]] = consent_markup(card).inline_keyboard
    assert decode_consent(accept.callback_data).action == "accept"
    assert decode_consent(decline.callback_data).action == "decline"


def test_file_info_markup_without_url_is_none():
    assert file_info_markup(FileInfoCard(content_url="", name="t", unique_id="u", file_type="txt")) is None


# ── allowed-chat filter ───────────────────────────────────────────────────────


def test_allowed_chat_id_passes_filter():
    client = TelegramClient(make_config())
    assert client._allowed(Address(conversation_id="123456789", user_id="42"))


def test_blocked_chat_id_fails_filter():
    client = TelegramClient(make_config())
    assert not client._allowed(Address(conversation_id="999999999", user_id="42"))


# ── Update → ChatMessage conversion ───────────────────────────────────────────


def test_update_converts_to_chat_message():
    client = TelegramClient(make_config())

    msg = client._update_to_message(make_update(text="hello"))

    assert msg.address.conversation_id == "123456789"
    assert msg.text == "hello"
    assert msg.timestamp == 1000
    assert msg.address.user_id == "42"
    assert msg.address.message_id == "10"
    assert msg.address.is_personal
    assert msg.attachments == ()


def test_group_chat_is_not_personal():
    client = TelegramClient(make_config())

    msg = client._update_to_message(make_update(chat_type="supergroup"))

    assert msg.address.conversation_type == "group"


def test_private_message_is_addressed():
    client = TelegramClient(make_config())
    assert client._update_to_message(make_update(text="hello")).addressed


@pytest.mark.parametrize(
    "text, replied_to, expected",
    [
        ("lunch anyone?", None, False),
        ("@VisionBot what is this", None, True),
        ("what is this", 7, True),
        ("what is this", 99, False),
    ],
)
def test_group_message_addressed_by_mention_or_reply(text, replied_to, expected):
    client = TelegramClient(make_config())
    app = with_app(client)
    app.bot.username = "visionbot"
    app.bot.id = 7
    update = make_update(text=text, chat_type="group")
    update.message.reply_to_message = None if replied_to is None else MagicMock(**{"from_user.id": replied_to})

    assert client._update_to_message(update).addressed is expected


def test_empty_message_text_returns_none():
    client = TelegramClient(make_config())
    assert client._update_to_message(make_update(text="   ")) is None


def test_photo_becomes_inline_image_with_caption_text():
    client = TelegramClient(make_config())
    update = make_update(text=None)
    update.message.caption = "what is this?"
    update.message.photo = [MagicMock(file_id="small"), MagicMock(file_id="large")]

    msg = client._update_to_message(update)

    assert msg.text == "what is this?"
    assert msg.attachments == (InlineImage(content_url="large", content_type="image/jpeg"),)


def test_image_document_keeps_file_name():
    client = TelegramClient(make_config())
    update = make_update(text=None)
    update.message.document = MagicMock(file_id="doc-1", mime_type="image/png", file_name="scan.png")

    msg = client._update_to_message(update)

    assert msg.attachments == (InlineImage(content_url="doc-1", content_type="image/png", name="scan.png"),)


def test_non_image_document_is_ignored():
    client = TelegramClient(make_config())
    update = make_update(text=None)
    update.message.document = MagicMock(file_id="doc-1", mime_type="application/pdf", file_name="a.pdf")

    assert client._update_to_message(update) is None


# ── callback → InvokeEvent conversion ─────────────────────────────────────────


def test_decline_callback_becomes_file_consent_invoke():
    client = TelegramClient(make_config(upload_base_url="https://files.example"))

    event = client._callback_to_invoke(make_callback(encode_consent("d", CONTEXT)))

    assert event.name == "fileConsent/invoke"
    assert event.reply_to_id == "77"
    assert event.value == {"action": "decline", "context": CONTEXT}


def test_accept_callback_carries_upload_info():
    client = TelegramClient(make_config(upload_base_url="https://files.example"))
    client._consent_names["123456789"] = ("77", "my scan.txt")

    event = client._callback_to_invoke(make_callback(encode_consent("a", CONTEXT)))

    info = event.value["uploadInfo"]
    assert info["name"] == "my scan.txt"
    assert info["uploadUrl"] == f"https://files.example/{info['uniqueId']}/my%20scan.txt"
    assert info["fileType"] == "txt"


def test_accept_callback_without_upload_base_has_no_upload_info():
    client = TelegramClient(make_config())

    event = client._callback_to_invoke(make_callback(encode_consent("a", CONTEXT)))

    assert "uploadInfo" not in event.value


def test_foreign_callback_becomes_unknown_invoke():
    client = TelegramClient(make_config())

    event = client._callback_to_invoke(make_callback("something-else"))

    assert event.name == "unknown"
    assert event.value == {"data": "something-else"}


# ── outbound ──────────────────────────────────────────────────────────────────


async def test_send_text_formats_template():
    client = TelegramClient(make_config())
    app = with_app(client)

    ok = await client.send_text(Address(conversation_id="123456789", user_id="42"), "I think it's %s.", "a cat")

    assert ok is True
    assert app.bot.send_message.call_args.kwargs["text"] == "I think it's a cat."


async def test_send_before_run_returns_false():
    client = TelegramClient(make_config())
    assert await client.send_text(Address(conversation_id="1", user_id="42"), "hi") is False


async def test_consent_card_name_is_remembered_until_deleted():
    client = TelegramClient(make_config())
    with_app(client)
    to = Address(conversation_id="123456789", user_id="42")
    card = FileConsentCard(name="t.txt", description="d", size_in_bytes=3, context=CONTEXT)

    message_id = await client.send_attachment(to, card)

    assert message_id == "501"
    assert client._consent_names["123456789"] == ("501", "t.txt")
    assert await client.delete_message(to, "501") is True
    assert "123456789" not in client._consent_names


async def test_only_latest_consent_card_per_chat_is_remembered():
    client = TelegramClient(make_config(upload_base_url="https://files.example"))
    app = with_app(client)
    to = Address(conversation_id="123456789", user_id="42")
    for n in range(100):
        app.bot.send_message = AsyncMock(return_value=MagicMock(message_id=n))
        card = FileConsentCard(name=f"scan-{n}.txt", description="d", size_in_bytes=3, context=CONTEXT)
        await client.send_attachment(to, card)

    assert client._consent_names == {"123456789": ("99", "scan-99.txt")}


async def test_superseded_card_gets_default_name_and_keeps_latest():
    client = TelegramClient(make_config(upload_base_url="https://files.example"))
    with_app(client)
    client._consent_names["123456789"] = ("78", "newer.txt")

    event = client._callback_to_invoke(make_callback(encode_consent("a", CONTEXT), message_id=77))
    assert await client.delete_message(Address(conversation_id="123456789", user_id="42"), "77") is True

    assert event.value["uploadInfo"]["name"] == "recognized-text.txt"
    assert client._consent_names["123456789"] == ("78", "newer.txt")


async def test_delete_failure_returns_false():
    client = TelegramClient(make_config())
    app = with_app(client)
    app.bot.delete_message = AsyncMock(side_effect=BadRequest("Message to delete not found"))

    assert await client.delete_message(Address(conversation_id="123456789", user_id="42"), "5") is False


async def test_download_maps_telegram_errors():
    client = TelegramClient(make_config())
    app = with_app(client)
    app.bot.get_file = AsyncMock(side_effect=Forbidden("bot was blocked"))

    with pytest.raises(DownloadError) as exc_info:
        await client.download_authenticated("file-id", Address(conversation_id="1", user_id="42"))

    assert exc_info.value.status_code == 403


async def test_download_returns_bytes():
    client = TelegramClient(make_config())
    app = with_app(client)
    tg_file = MagicMock()
    tg_file.download_as_bytearray = AsyncMock(return_value=bytearray(b"img"))
    app.bot.get_file = AsyncMock(return_value=tg_file)

    data = await client.download_authenticated("file-id", Address(conversation_id="1", user_id="42"))

    assert data == b"img"
    app.bot.get_file.assert_awaited_once_with("file-id")


# ── invoke handler ────────────────────────────────────────────────────────────


async def test_unknown_invoke_is_rejected_without_posting():
    client = TelegramClient(make_config())
    app = with_app(client)
    on_invoke = AsyncMock(side_effect=UnknownInvokeError("Unknown invoke type: unknown"))
    update = make_callback("something-else")

    await client._make_invoke_handler(on_invoke)(update, MagicMock())

    update.callback_query.answer.assert_awaited_once_with(text="Unknown invoke type: unknown")
    app.bot.send_message.assert_not_called()


async def test_invoke_from_blocked_chat_is_not_dispatched():
    client = TelegramClient(make_config())
    on_invoke = AsyncMock()
    update = make_callback(encode_consent("d", CONTEXT), chat_id=999)

    await client._make_invoke_handler(on_invoke)(update, MagicMock())

    on_invoke.assert_not_called()
    update.callback_query.answer.assert_awaited_once()


async def test_message_handler_survives_callback_errors():
    client = TelegramClient(make_config())
    on_message = AsyncMock(side_effect=RuntimeError("boom"))

    await client._make_handler(on_message)(make_update(text="hello"), MagicMock())

    on_message.assert_awaited_once()
