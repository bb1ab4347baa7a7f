"""
身分服務：每個裝置固定的 id，以及匿名 session

這裡沒有任何驗證機制。裝置 id 只用來比對「是不是建立房間的那台裝置」（advisory），
匿名 session 只是一個讓 store 分辨 client 的 token。
"""
from pathlib import Path
from typing import Callable, Dict, List, Optional
import json
import logging
import secrets
import threading
import time

from database import get_settings

logger = logging.getLogger(__name__)

PLAYER_ID_KEY = "absurd_player_id"
HOST_ID_KEY = "absurd_host_id"


def new_device_id() -> str:
    """毫秒時間戳記 + 隨機 hex，例如 ``1760780000000_9f2c4a1b03de``"""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(6)}"


class DeviceIdentity:
    """
    存在 client 本機的持久 id

    第一次 get_or_create(key) 產生 id 並寫入檔案；
    同一台裝置（同一個儲存目錄）之後的呼叫都拿到同一個 id
    """

    FILENAME = "identity.json"

    def __init__(self, storage_dir):
        self.path = Path(storage_dir) / self.FILENAME
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable identity file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_or_create(self, key: str) -> str:
        with self._lock:
            ids = self._load()
            value = ids.get(key)
            if value:
                return value

            value = new_device_id()
            ids[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(ids, indent=2), encoding="utf-8")
            logger.info(f"Created device id for {key}")
            return value

    @property
    def player_id(self) -> str:
        return self.get_or_create(PLAYER_ID_KEY)

    @property
    def host_id(self) -> str:
        return self.get_or_create(HOST_ID_KEY)


class AnonymousSessionProvider:
    """每個 process 發一個臨時的匿名 session token"""

    def __init__(self):
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._callbacks: List[Callable[[str], None]] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    def on_session(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """
        註冊「session 已建立」的 callback

        已經有 session 時立刻呼叫一次。回傳移除這個 callback 的函式
        """
        with self._lock:
            self._callbacks.append(callback)
            token = self._token
        if token is not None:
            callback(token)

        def remove():
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return remove

    def ensure_anonymous_session(self) -> None:
        """冪等：只有第一次呼叫會登入並觸發 callback"""
        with self._lock:
            if self._token is not None:
                return
            self._token = secrets.token_urlsafe(16)
            callbacks = list(self._callbacks)

        logger.info("Anonymous session started")
        for callback in callbacks:
            callback(self._token)


def load_device_identity(settings=None) -> DeviceIdentity:
    """存在 settings.identity_dir 底下的 DeviceIdentity"""
    if settings is None:
        settings = get_settings()
    return DeviceIdentity(settings.identity_dir)
