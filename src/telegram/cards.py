"""Render bot cards as Telegram messages and read consent answers back from callback data."""
from typing import NamedTuple, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from src.bot_client import FileConsentCard, FileInfoCard
from src.constants import (
    BUTTON_ACCEPT,
    BUTTON_DECLINE,
    BUTTON_OPEN_FILE,
    CALLBACK_ACCEPT,
    CALLBACK_CONSENT_PREFIX,
    CALLBACK_DECLINE,
    CALLBACK_SEPARATOR,
    CONSENT_ACCEPT,
    CONSENT_DECLINE,
    MSG_OCR_FILE_CONSENT,
    MSG_OCR_FILE_READY,
)

# Telegram rejects callback_data longer than this
MAX_CALLBACK_BYTES = 64


class ConsentAnswer(NamedTuple):
    action: str
    result_id: str
    correlation_id: str


def encode_consent(action_code: str, context: dict[str, str]) -> str:
    data = CALLBACK_SEPARATOR.join((
        CALLBACK_CONSENT_PREFIX,
        action_code,
        context.get("resultId", ""),
        context.get("correlationId", ""),
    ))
    match len(data.encode("utf-8")):
        case n if n > MAX_CALLBACK_BYTES:
            raise ValueError(f"Consent callback data is {n} bytes, Telegram allows {MAX_CALLBACK_BYTES}")
        case _:
            return data


def decode_consent(data: Optional[str]) -> Optional[ConsentAnswer]:
    """Parse `fc:<a|d>:<resultId>:<correlationId>`; anything else → None."""
    match (data or "").split(CALLBACK_SEPARATOR):
        case [prefix, code, result_id, correlation_id] if prefix == CALLBACK_CONSENT_PREFIX:
            match code:
                case c if c == CALLBACK_ACCEPT:
                    return ConsentAnswer(CONSENT_ACCEPT, result_id, correlation_id)
                case c if c == CALLBACK_DECLINE:
                    return ConsentAnswer(CONSENT_DECLINE, result_id, correlation_id)
                case _:
                    return None
        case _:
            return None


def consent_text(card: FileConsentCard) -> str:
    return MSG_OCR_FILE_CONSENT % (card.name, card.size_in_bytes, card.description)


def consent_markup(card: FileConsentCard) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton(BUTTON_ACCEPT, callback_data=encode_consent(CALLBACK_ACCEPT, card.context)),
        InlineKeyboardButton(BUTTON_DECLINE, callback_data=encode_consent(CALLBACK_DECLINE, card.context)),
    ]])


def file_info_text(card: FileInfoCard) -> str:
    return MSG_OCR_FILE_READY % card.name


def file_info_markup(card: FileInfoCard) -> Optional[InlineKeyboardMarkup]:
    match card.content_url:
        case "":
            return None
        case url:
            return InlineKeyboardMarkup([[InlineKeyboardButton(BUTTON_OPEN_FILE, url=url)]])
