"""Entry point: wires Config → TelegramClient → CaptionBot / OcrBot."""
import logging
from typing import Optional

import httpx
from rich.logging import RichHandler

from src.chat_store import create_store
from src.config import Config
from src.constants import BOT_MODE_CAPTION, DEFAULT_OCR_LANGUAGE, MSG_BOT_STARTING, MSG_VISION_BACKEND
from src.delivery import FileConsentDelivery
from src.router import CaptionBot, ImageBot, OcrBot
from src.stager import ResultStager
from src.telegram.client import TelegramClient
from src.vision.azure import AzureVisionClient
from src.vision.claude import ClaudeAnalysisClient
from src.vision.client import AnalysisClient
from src.vision.openai import OpenAIAnalysisClient


def _setup_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    list(map(root.removeHandler, root.handlers[:]))
    root.addHandler(RichHandler(rich_tracebacks=True))
    # httpx logs every request URL at INFO, query strings included
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_vision_client(config: Config, http: httpx.AsyncClient) -> Optional[AnalysisClient]:
    match (config.vision_endpoint, config.vision_access_key, config.anthropic_api_key, config.openai_api_key):
        case (str() as endpoint, str() as key, _, _):
            return AzureVisionClient(endpoint, key, http_client=http)
        case (_, _, str() as k, _) if k:
            return ClaudeAnalysisClient(k)
        case (_, _, _, str() as k) if k:
            return OpenAIAnalysisClient(k)
        case _:
            return None


def build_bot(config: Config, client: TelegramClient, http: httpx.AsyncClient) -> ImageBot:
    vision = build_vision_client(config, http)
    logging.getLogger(__name__).info(MSG_VISION_BACKEND, type(vision).__name__ if vision else "none")
    match config.bot_mode:
        case mode if mode == BOT_MODE_CAPTION:
            return CaptionBot(client, vision, language=config.vision_language)
        case _:
            stager = ResultStager(create_store(config.storage, config.storage_path))
            delivery = FileConsentDelivery(client, stager, http)
            return OcrBot(client, vision, delivery, language=DEFAULT_OCR_LANGUAGE)


def main() -> None:
    config = Config.from_env()
    _setup_logging(config.log_level)

    logger = logging.getLogger(__name__)
    logger.info(MSG_BOT_STARTING, config.bot_mode)

    http = httpx.AsyncClient(timeout=config.vision_timeout)
    client = TelegramClient(config)
    bot = build_bot(config, client, http)
    client.run(
        bot.handle_message,
        on_invoke=bot.handle_invoke,
        on_help=bot.handle_help,
        on_shutdown=http.aclose,
    )


if __name__ == "__main__":
    main()
