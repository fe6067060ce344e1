from dataclasses import dataclass
from typing import Optional
import os
from dotenv import load_dotenv

from src.constants import (
    BOT_MODE_CAPTION,
    BOT_MODE_OCR,
    DEFAULT_DESCRIBE_LANGUAGE,
    DEFAULT_STORAGE_PATH,
    STORAGE_FILE,
    STORAGE_MEMORY,
    STORAGE_NULL,
)


@dataclass(frozen=True)
class Config:
    telegram_bot_token: str
    bot_mode: str
    allowed_chat_ids: tuple[str, ...]
    log_level: str
    vision_endpoint: Optional[str]
    vision_access_key: Optional[str]
    vision_language: str
    vision_timeout: float
    anthropic_api_key: Optional[str]
    openai_api_key: Optional[str]
    upload_base_url: Optional[str]
    storage: str
    storage_path: str

    @classmethod
    def from_env(cls) -> "Config":
        load_dotenv()

        token = os.getenv("TELEGRAM_BOT_TOKEN")
        bot_mode = os.getenv("BOT_MODE", BOT_MODE_OCR).strip().lower()
        raw_chat_ids = os.getenv("ALLOWED_CHAT_IDS", "")
        log_level = os.getenv("LOG_LEVEL", "INFO")
        vision_endpoint = os.getenv("VISION_ENDPOINT") or None
        vision_access_key = os.getenv("VISION_ACCESS_KEY") or None
        vision_language = os.getenv("VISION_LANGUAGE", DEFAULT_DESCRIBE_LANGUAGE)
        vision_timeout = os.getenv("VISION_TIMEOUT", "30")
        anthropic_api_key = os.getenv("ANTHROPIC_API_KEY") or None
        openai_api_key = os.getenv("OPENAI_API_KEY") or None
        upload_base_url = os.getenv("UPLOAD_BASE_URL") or None
        storage = os.getenv("STORAGE", STORAGE_MEMORY).strip().lower()
        storage_path = os.getenv("STORAGE_PATH", DEFAULT_STORAGE_PATH)

        chat_ids = tuple(c.strip() for c in raw_chat_ids.split(",") if c.strip())

        return cls._validate(
            telegram_bot_token=token,
            bot_mode=bot_mode,
            allowed_chat_ids=chat_ids,
            log_level=log_level,
            vision_endpoint=vision_endpoint,
            vision_access_key=vision_access_key,
            vision_language=vision_language,
            vision_timeout=float(vision_timeout),
            anthropic_api_key=anthropic_api_key,
            openai_api_key=openai_api_key,
            upload_base_url=upload_base_url.rstrip("/") if upload_base_url else None,
            storage=storage,
            storage_path=storage_path,
        )

    @staticmethod
    def _validate(
        telegram_bot_token: Optional[str],
        bot_mode: str,
        allowed_chat_ids: tuple[str, ...],
        log_level: str,
        vision_endpoint: Optional[str],
        vision_access_key: Optional[str],
        vision_language: str,
        vision_timeout: float,
        anthropic_api_key: Optional[str],
        openai_api_key: Optional[str],
        upload_base_url: Optional[str],
        storage: str,
        storage_path: str,
    ) -> "Config":
        match telegram_bot_token:
            case None | "":
                raise ValueError("TELEGRAM_BOT_TOKEN must be set in .env")
            case _:
                pass

        match bot_mode:
            case "ocr" | "caption":
                pass
            case _:
                raise ValueError(
                    f"BOT_MODE must be '{BOT_MODE_OCR}' or '{BOT_MODE_CAPTION}', got {bot_mode!r}"
                )

        match storage:
            case "memory" | "null" | "file":
                pass
            case _:
                raise ValueError(
                    f"STORAGE must be one of {STORAGE_MEMORY}, {STORAGE_NULL}, {STORAGE_FILE}"
                )

        match (vision_endpoint, vision_access_key):
            case (str(), None) | (None, str()):
                raise ValueError("VISION_ENDPOINT and VISION_ACCESS_KEY must be set together")
            case _:
                pass

        return Config(
            telegram_bot_token=telegram_bot_token,
            bot_mode=bot_mode,
            allowed_chat_ids=allowed_chat_ids,
            log_level=log_level,
            vision_endpoint=vision_endpoint,
            vision_access_key=vision_access_key,
            vision_language=vision_language,
            vision_timeout=vision_timeout,
            anthropic_api_key=anthropic_api_key,
            openai_api_key=openai_api_key,
            upload_base_url=upload_base_url,
            storage=storage,
            storage_path=storage_path,
        )
