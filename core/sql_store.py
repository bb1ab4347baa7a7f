"""
SQLAlchemy 版的 Room Store

- 每份文件存成 documents 表的一列（JSON 內容）
- 每次 commit 之後，同步通知同一個 process 裡的訂閱者
- SQLAlchemy 的錯誤一律轉成 StoreUnavailable，原樣回報，不重試
"""
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, List, Tuple
import logging
import threading
import time

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import RoomNotFound, StoreUnavailable
from core.store import (
    SERVER_TIMESTAMP,
    CollectionCallback,
    DocumentCallback,
    RoomStore,
    Unsubscribe,
    parent_of,
)
from database import Base, Settings, create_db_engine, create_session_factory, transactional
from models import Document

logger = logging.getLogger(__name__)


@transactional
def _write_document(db: Session, key: str, data: Dict[str, Any], now: float) -> None:
    doc = db.get(Document, key)
    if doc is None:
        db.add(Document(key=key, parent=parent_of(key), data=data, updated_at=now))
    else:
        doc.data = data
        doc.updated_at = now


@transactional
def _merge_document(db: Session, key: str, partial: Dict[str, Any], now: float) -> Dict[str, Any]:
    doc = db.get(Document, key)
    if doc is None:
        raise RoomNotFound(key.rsplit("/", 1)[-1])
    # 重新指定整個 dict，SQLAlchemy 才會偵測到 JSON 欄位變更
    merged = {**doc.data, **partial}
    doc.data = merged
    doc.updated_at = now
    return merged


@transactional
def _delete_document(db: Session, key: str) -> bool:
    doc = db.get(Document, key)
    if doc is None:
        return False
    db.delete(doc)
    return True


class SqlRoomStore(RoomStore):
    """用一張 SQLAlchemy 資料表實作的 Room Store"""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)
        Base.metadata.create_all(bind=engine)

        self._listeners_lock = threading.Lock()
        self._doc_listeners: Dict[str, List[DocumentCallback]] = defaultdict(list)
        self._child_listeners: Dict[str, List[CollectionCallback]] = defaultdict(list)

        self._clock_lock = threading.Lock()
        self._last_time = 0.0

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            logger.error(f"Store operation failed: {e}", exc_info=True)
            raise StoreUnavailable(str(e)) from e
        finally:
            db.close()

    # ============ 讀取 ============

    def get(self, key: str) -> Tuple[bool, Dict[str, Any]]:
        with self._session() as db:
            doc = db.get(Document, key)
            if doc is None:
                return False, {}
            return True, dict(doc.data)

    def _children(self, parent_key: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._session() as db:
            docs = (
                db.query(Document)
                .filter(Document.parent == parent_key)
                .order_by(Document.key)
                .all()
            )
            return [(doc.key, dict(doc.data)) for doc in docs]

    def query_by_field(self, parent_key: str, field: str, value: Any) -> List[str]:
        # JSON 欄位的查詢語法各資料庫不同，這裡在 Python 端過濾
        return [key for key, data in self._children(parent_key) if data.get(field) == value]

    # ============ 寫入 ============

    def server_time(self) -> float:
        with self._clock_lock:
            now = max(time.time(), self._last_time + 1e-6)
            self._last_time = now
            return now

    def _resolve(self, value: Dict[str, Any], now: float) -> Dict[str, Any]:
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in value.items()}

    def set(self, key: str, value: Dict[str, Any]) -> None:
        now = self.server_time()
        data = self._resolve(value, now)
        with self._session() as db:
            _write_document(db, key, data, now)
        self._notify(key, True, data)

    def update(self, key: str, partial: Dict[str, Any]) -> None:
        now = self.server_time()
        with self._session() as db:
            merged = _merge_document(db, key, self._resolve(partial, now), now)
        self._notify(key, True, merged)

    def delete(self, key: str) -> None:
        with self._session() as db:
            deleted = _delete_document(db, key)
        if deleted:
            self._notify(key, False, {})

    # ============ 訂閱 ============

    def subscribe(self, key: str, on_change: DocumentCallback) -> Unsubscribe:
        with self._listeners_lock:
            self._doc_listeners[key].append(on_change)

        exists, value = self.get(key)
        self._deliver(on_change, exists, value)

        def unsubscribe():
            with self._listeners_lock:
                listeners = self._doc_listeners.get(key, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return unsubscribe

    def subscribe_children(self, parent_key: str, on_change: CollectionCallback) -> Unsubscribe:
        with self._listeners_lock:
            self._child_listeners[parent_key].append(on_change)

        self._deliver(on_change, self._children(parent_key))

        def unsubscribe():
            with self._listeners_lock:
                listeners = self._child_listeners.get(parent_key, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return unsubscribe

    def _notify(self, key: str, exists: bool, value: Dict[str, Any]) -> None:
        parent = parent_of(key)
        with self._listeners_lock:
            doc_listeners = list(self._doc_listeners.get(key, []))
            child_listeners = list(self._child_listeners.get(parent, []))

        for callback in doc_listeners:
            self._deliver(callback, exists, dict(value))

        if child_listeners:
            # 寫入已經 commit，重讀失敗只跳過這次集合通知
            try:
                rows = self._children(parent)
            except StoreUnavailable as e:
                logger.error(f"Could not refresh {parent} after writing {key}: {e}")
                return
            for callback in child_listeners:
                self._deliver(callback, list(rows))

    def _deliver(self, callback, *args) -> None:
        # 訂閱者的錯誤不能影響已經 commit 的寫入
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Subscriber {callback!r} failed")

    def close(self) -> None:
        with self._listeners_lock:
            self._doc_listeners.clear()
            self._child_listeners.clear()
        self.engine.dispose()


def create_store(settings: Settings) -> SqlRoomStore:
    """
    每個 process 建立一次，之後重複使用

    Settings 在建構時已驗證 database_url；連線失敗轉成 StoreUnavailable
    """
    try:
        engine = create_db_engine(settings.database_url)
        store = SqlRoomStore(engine)
    except SQLAlchemyError as e:
        raise StoreUnavailable(str(e)) from e
    logger.info(f"Room store ready ({engine.url.render_as_string(hide_password=True)})")
    return store
