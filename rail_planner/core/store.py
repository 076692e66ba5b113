"""
Хранилище коллекций (склад, планы, наряды)

KeyValueStore хранит JSON-строку под ключом. Repository держит коллекцию в
памяти, сохраняет ее после каждого изменения и оповещает подписчиков.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Ключи коллекций в хранилище
RAILS_KEY = "rail-inventory"
PLANS_KEY = "plans"
WORK_ORDERS_KEY = "work-orders"


class KeyValueStore:
    """Базовое хранилище ключ-значение"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def put(self, key: str, value: str):
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Хранилище в памяти (для тестов и временной работы)"""

    def __init__(self, initial: Dict[str, str] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, value: str):
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """Хранилище в файлах: один <key>.json на коллекцию"""

    def __init__(self, directory):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding='utf-8')

    def put(self, key: str, value: str):
        path = self._path(key)
        tmp_path = path.with_suffix('.json.tmp')
        tmp_path.write_text(value, encoding='utf-8')
        os.replace(tmp_path, path)


class Repository(Generic[T]):
    """
    Коллекция сущностей поверх KeyValueStore

    Args:
        store: Хранилище
        key: Ключ коллекции
        encode: Сущность -> dict
        decode: dict -> сущность
    """

    def __init__(self, store: KeyValueStore, key: str,
                 encode: Callable[[T], Dict[str, Any]], decode: Callable[[Dict[str, Any]], T]):
        self.store = store
        self.key = key
        self._encode = encode
        self._decode = decode
        self._lock = threading.RLock()
        self._subscribers: List[Callable[[List[T]], None]] = []
        self._items: List[T] = self._load()

    def _load(self) -> List[T]:
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            return [self._decode(entry) for entry in json.loads(raw)]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(f"❌ Поврежденные данные в '{self.key}', начинаем с пустой коллекции: {e}")
            return []

    def all(self) -> List[T]:
        with self._lock:
            return list(self._items)

    def get(self, item_id: str) -> Optional[T]:
        with self._lock:
            return next((item for item in self._items if item.id == item_id), None)

    def put(self, item: T):
        """Добавить сущность или заменить существующую с тем же id"""
        with self._lock:
            for index, existing in enumerate(self._items):
                if existing.id == item.id:
                    self._items[index] = item
                    break
            else:
                self._items.append(item)
            self._save()

    def remove(self, item_id: str) -> bool:
        with self._lock:
            remaining = [item for item in self._items if item.id != item_id]
            if len(remaining) == len(self._items):
                return False
            self._items = remaining
            self._save()
            return True

    def replace_all(self, items: List[T]):
        with self._lock:
            self._items = list(items)
            self._save()

    def subscribe(self, callback: Callable[[List[T]], None]) -> Callable[[], None]:
        """Подписаться на изменения; возвращает функцию отписки"""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _save(self):
        payload = json.dumps([self._encode(item) for item in self._items], ensure_ascii=False, indent=2)
        self.store.put(self.key, payload)

        items = list(self._items)
        for callback in list(self._subscribers):
            try:
                callback(items)
            except Exception as e:
                logger.warning(f"⚠️ Ошибка подписчика коллекции '{self.key}': {e}")
