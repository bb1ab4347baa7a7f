"""
Room Store 介面

Store 是唯一的資料來源與協調點，沒有額外的 lock service：
- 每個 key 的讀 / 寫 / merge
- 訂閱變更（訂閱當下先送一次目前值，之後每次 commit 都送）
- 在某個 parent 底下依欄位查詢 / 刪除

沒有跨 key 的 transaction，呼叫端必須能容忍中間狀態。
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Tuple

from core.exceptions import InvalidInput

# (exists, value)
DocumentCallback = Callable[[bool, Dict[str, Any]], None]
# [(key, value), ...]
CollectionCallback = Callable[[List[Tuple[str, Dict[str, Any]]]], None]
Unsubscribe = Callable[[], None]


class _ServerTimestamp:
    """寫入時由 store 換成伺服器時間"""

    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def _key_segment(value: str, label: str) -> str:
    """
    檢查要放進 key 的片段

    異常:
        InvalidInput: 含有 "/"（會讓文件落到別的 parent 底下）
    """
    if "/" in str(value):
        raise InvalidInput(f"{label} must not contain '/'")
    return value


def room_key(code: str) -> str:
    return f"rooms/{_key_segment(code, 'Room code')}"


def submissions_key(code: str) -> str:
    return f"{room_key(code)}/submissions"


def submission_id(round_number: int, player_id: str) -> str:
    """
    (round, playerId) 的自然 key

    同一個玩家同一回合重複提交只會覆寫同一份文件，不會產生第二份
    """
    return f"{round_number}_{_key_segment(player_id, 'Player device id')}"


def submission_key(code: str, round_number: int, player_id: str) -> str:
    return f"{submissions_key(code)}/{submission_id(round_number, player_id)}"


def parent_of(key: str) -> str:
    return key.rsplit("/", 1)[0] if "/" in key else ""


class RoomStore(ABC):
    """核心邏輯需要的文件 store 介面"""

    @abstractmethod
    def get(self, key: str) -> Tuple[bool, Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any]) -> None:
        """整份覆寫"""

    @abstractmethod
    def update(self, key: str, partial: Dict[str, Any]) -> None:
        """merge 進既有文件，文件不存在時丟 RoomNotFound"""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def query_by_field(self, parent_key: str, field: str, value: Any) -> List[str]:
        ...

    @abstractmethod
    def subscribe(self, key: str, on_change: DocumentCallback) -> Unsubscribe:
        ...

    @abstractmethod
    def subscribe_children(self, parent_key: str, on_change: CollectionCallback) -> Unsubscribe:
        ...

    @abstractmethod
    def server_time(self) -> float:
        """單調遞增的伺服器時間，用來換掉 SERVER_TIMESTAMP"""

    def close(self) -> None:
        pass
