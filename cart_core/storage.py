import logging
import os
from typing import Dict, Optional
from .domain import Cart
from .ftypes import Maybe
from .transforms import serialize_cart, deserialize_cart

logger = logging.getLogger(__name__)


class StorageError(OSError):
    """Запись в локальное хранилище не удалась"""


# ============ Хранилища ключ-значение ============


class MemoryStorage:
    """Хранилище в памяти (тесты, сессия без диска)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class LocalStorage:
    """
    Долговременное локальное хранилище: один JSON-файл на ключ в каталоге directory.
    Запись атомарная (временный файл + os.replace).
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return os.path.join(self.directory, f"{safe}.json")

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path + ".tmp"
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


# ============ Сохранение корзины ============


class CartPersistence:
    """
    Сохраняет корзину целиком под одним ключом и восстанавливает её при старте.
    Ошибки записи и чтения логируются и не выходят наружу.
    """

    def __init__(self, storage, key: str = "ha-food-cart"):
        self.storage = storage
        self.key = key

    def save(self, cart: Cart) -> bool:
        try:
            self.storage.set_item(self.key, serialize_cart(cart))
        except (OSError, TypeError, ValueError, OverflowError):
            logger.exception("Error saving cart to storage key %r", self.key)
            return False
        return True

    def load(self) -> Maybe[Cart]:
        """Нет ключа - пустая корзина, а не ошибка"""
        try:
            text = self.storage.get_item(self.key)
        except (OSError, UnicodeDecodeError):
            logger.exception("Error reading cart from storage key %r", self.key)
            return Maybe.nothing()

        if text is None:
            return Maybe.nothing()

        result = deserialize_cart(text)
        if result.is_left:
            logger.error("Error loading cart from storage: %s", result.value["error"])
            return Maybe.nothing()

        return Maybe.some(result.value)

    def __call__(self, cart: Cart) -> None:
        # подписчик CartStore
        self.save(cart)
