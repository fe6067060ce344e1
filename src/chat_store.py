"""Per-conversation state stores: one small dict of values per conversation key."""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from src.constants import DEFAULT_STORAGE_PATH, STORAGE_FILE, STORAGE_MEMORY, STORAGE_NULL

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    @abstractmethod
    def get(self, conversation_key: str, name: str) -> Any | None: ...

    @abstractmethod
    def set(self, conversation_key: str, name: str, value: Any) -> None: ...

    @abstractmethod
    def delete(self, conversation_key: str, name: str) -> None: ...


class MemoryConversationStore(ConversationStore):

    def __init__(self) -> None:
        self._store: dict[str, dict[str, Any]] = {}

    def get(self, conversation_key: str, name: str) -> Any | None:
        return self._store.get(conversation_key, {}).get(name)

    def set(self, conversation_key: str, name: str, value: Any) -> None:
        self._store.setdefault(conversation_key, {})[name] = value

    def delete(self, conversation_key: str, name: str) -> None:
        data = self._store.get(conversation_key)
        match data:
            case None:
                pass
            case _:
                data.pop(name, None)
                match data:
                    case {}:
                        self._store.pop(conversation_key, None)
                    case _:
                        pass


class NullConversationStore(ConversationStore):
    """Remembers nothing. Every consent answer resolves as expired."""

    def get(self, conversation_key: str, name: str) -> Any | None:
        return None

    def set(self, conversation_key: str, name: str, value: Any) -> None:
        pass

    def delete(self, conversation_key: str, name: str) -> None:
        pass


class JsonConversationStore(MemoryConversationStore):
    """Memory store mirrored to a JSON file so staged results survive a restart."""

    def __init__(self, path: Path = Path(DEFAULT_STORAGE_PATH)) -> None:
        super().__init__()
        self._path = path
        self._load()

    def _load(self) -> None:
        match self._path.exists():
            case True:
                try:
                    with open(self._path) as f:
                        raw = json.load(f)
                    match raw:
                        case dict():
                            self._store = {
                                str(k): v for k, v in raw.items() if isinstance(v, dict)
                            }
                        case _:
                            logger.warning(f"Store {self._path.name} is not an object, starting fresh")
                except Exception as e:
                    logger.warning(f"Store load failed: {e}, starting fresh")
            case False:
                pass

    def _save(self) -> None:
        try:
            with open(self._path, "w") as f:
                json.dump(self._store, f, indent=2)
        except Exception as e:
            logger.warning(f"Store save failed: {e}")

    def set(self, conversation_key: str, name: str, value: Any) -> None:
        super().set(conversation_key, name, value)
        self._save()

    def delete(self, conversation_key: str, name: str) -> None:
        match self.get(conversation_key, name):
            case None:
                pass
            case _:
                super().delete(conversation_key, name)
                self._save()


def create_store(kind: str, path: str = DEFAULT_STORAGE_PATH) -> ConversationStore:
    match kind:
        case "memory":
            return MemoryConversationStore()
        case "null":
            return NullConversationStore()
        case "file":
            return JsonConversationStore(Path(path))
        case _:
            raise ValueError(
                f"Unknown storage type {kind!r} "
                f"(expected {STORAGE_MEMORY}, {STORAGE_NULL} or {STORAGE_FILE})"
            )
