"""
Round View：一個裝置看到的房間即時狀態

訂閱 Room 文件和作答集合，維護「目前快照」，每次 store 推送變更就通知 listener。
Player / Host 兩種畫面都只讀這裡的快照，再把使用者動作轉給 RoomManager。

中間狀態：
- nextRound 是「先刪作答、再更新 Room」兩步，其他裝置可能先看到作答消失
- 所以畫面上的作答一律用 room.current_round 過濾，phase 缺失時視為暫時狀態
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence
import logging
import random
import threading

from models import Phase, Room, Submission
from core.room_manager import RoomManager
from core.store import RoomStore, room_key, submissions_key
from database import Settings, get_settings
from services.deck_service import ANSWER_CARDS, build_share_text, pick_options

logger = logging.getLogger(__name__)


@dataclass
class RoundSnapshot:
    """某個時間點的房間畫面資料"""
    code: str
    room: Optional[Room] = None
    room_exists: bool = False
    submissions: List[Submission] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    my_pick: str = ""
    my_custom: str = ""

    @property
    def is_transient(self) -> bool:
        """Room 存在但 phase 讀不出來（寫到一半），畫面應該等下一次推送"""
        return self.room_exists and (self.room is None or self.room.phase is None)

    @property
    def round_submissions(self) -> List[Submission]:
        if self.room is None:
            return []
        return [s for s in self.submissions if s.round == self.room.current_round]

    @property
    def judging_choices(self) -> List[Submission]:
        """Host 只能在 judging 時從目前回合的作答裡選"""
        if self.room is None or self.room.phase != Phase.JUDGING:
            return []
        return self.round_submissions

    @property
    def winner(self) -> Optional[tuple]:
        if self.room is None or self.room.phase != Phase.REVEALED:
            return None
        return self.room.winner_name, self.room.winner_text


class RoundView:
    """
    一個裝置對某個房間的即時畫面

    選項在本機抽，只有觀察到 currentRound 改變時才重抽一次；
    重畫或其他欄位的推送都不會換掉選項
    """

    def __init__(
        self,
        store: RoomStore,
        code: str,
        player_id: Optional[str] = None,
        rng=random,
        option_pool: Sequence[str] = ANSWER_CARDS,
        options_count: Optional[int] = None,
    ):
        self.store = store
        self.code = code
        self.player_id = player_id
        self._rng = rng
        self._option_pool = option_pool
        self._options_count = options_count or get_settings().options_per_round

        self._lock = threading.RLock()
        self._listeners: List[Callable[[RoundSnapshot], None]] = []
        self._unsubscribers: List[Callable[[], None]] = []
        self._last_round: Optional[int] = None

        self._room: Optional[Room] = None
        self._room_exists = False
        self._submissions: List[Submission] = []
        self._options = pick_options(rng, option_pool, self._options_count)
        self._my_pick = ""
        self._my_custom = ""

    # ============ 訂閱生命週期 ============

    def start(self) -> "RoundView":
        if self._unsubscribers:
            return self
        self._unsubscribers = [
            self.store.subscribe(room_key(self.code), self._on_room),
            self.store.subscribe_children(submissions_key(self.code), self._on_submissions),
        ]
        return self

    def close(self) -> None:
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def add_listener(self, listener: Callable[[RoundSnapshot], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    # ============ store 推送 ============

    def _on_room(self, exists: bool, data: dict) -> None:
        with self._lock:
            self._room_exists = exists
            if not exists:
                self._room = None
            else:
                try:
                    self._room = Room.model_validate({**data, "code": data.get("code") or self.code})
                except ValueError as e:
                    logger.warning(f"Room {self.code} snapshot not readable yet: {e}")
                    self._room = None

            if self._room is not None and self._room.current_round != self._last_round:
                self._last_round = self._room.current_round
                self._my_pick = ""
                self._my_custom = ""
                self._options = pick_options(self._rng, self._option_pool, self._options_count)
        self._emit()

    def _on_submissions(self, rows) -> None:
        submissions = []
        for key, data in rows:
            try:
                submissions.append(Submission.model_validate({**data, "key": key}))
            except ValueError as e:
                logger.warning(f"Skipping unreadable submission {key}: {e}")
        submissions.sort(key=lambda s: s.sort_key)
        with self._lock:
            self._submissions = submissions
        self._emit()

    def _emit(self) -> None:
        snapshot = self.snapshot
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(snapshot)

    @property
    def snapshot(self) -> RoundSnapshot:
        with self._lock:
            return RoundSnapshot(
                code=self.code,
                room=self._room,
                room_exists=self._room_exists,
                submissions=list(self._submissions),
                options=list(self._options),
                my_pick=self._my_pick,
                my_custom=self._my_custom,
            )

    # ============ Player 動作 ============

    def choose_option(self, index: int) -> str:
        with self._lock:
            self._my_pick = self._options[index]
            self._my_custom = ""
            return self._my_pick

    def set_custom(self, text: str) -> None:
        with self._lock:
            self._my_custom = text
            self._my_pick = ""

    def resolve_choice(self) -> str:
        with self._lock:
            return (self._my_pick or self._my_custom).strip()

    @property
    def already_submitted(self) -> bool:
        if not self.player_id:
            return False
        return any(s.player_id == self.player_id for s in self.snapshot.round_submissions)

    def submit(self, player_name: str, settings: Optional[Settings] = None) -> Submission:
        """Player 提交目前選的選項或自己打的答案"""
        choice = self.resolve_choice()
        submission = RoomManager.submit(
            self.store, self.code, self.player_id, player_name, choice, settings or get_settings()
        )
        with self._lock:
            # 送出後保留選擇，畫面上顯示剛交出去的答案
            self._my_pick = choice
            self._my_custom = ""
        return submission

    def share_text(self) -> str:
        snapshot = self.snapshot
        if snapshot.room is None:
            return ""
        return build_share_text(
            snapshot.room.current_round, snapshot.room.code, snapshot.room.prompt, snapshot.options
        )
