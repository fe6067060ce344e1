"""The one pending OCR result per conversation awaiting a consent answer."""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from src.chat_store import ConversationStore
from src.constants import RESULT_ID_BYTES, STAGE_KEY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StagedResult:
    result_id: str
    text: str
    conversation_key: str


class ResultStager:
    """Last stage() wins: staging again for a conversation silently supersedes the old id."""

    def __init__(self, store: ConversationStore) -> None:
        self._store = store

    def stage(self, conversation_key: str, text: str) -> str:
        result_id = secrets.token_urlsafe(RESULT_ID_BYTES)
        match self._store.get(conversation_key, STAGE_KEY):
            case {"resultId": str() as previous}:
                logger.info("Superseding staged result %s in %s", previous, conversation_key)
            case _:
                pass
        self._store.set(conversation_key, STAGE_KEY, {"resultId": result_id, "text": text})
        return result_id

    def peek(self, conversation_key: str) -> Optional[StagedResult]:
        match self._store.get(conversation_key, STAGE_KEY):
            case {"resultId": str() as result_id, "text": str() as text}:
                return StagedResult(
                    result_id=result_id, text=text, conversation_key=conversation_key
                )
            case _:
                return None

    def clear(self, conversation_key: str) -> None:
        self._store.delete(conversation_key, STAGE_KEY)
