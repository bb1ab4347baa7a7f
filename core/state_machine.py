"""
Room 狀態機：集中管理所有 phase 轉換

submitting -> judging -> revealed -> submitting (round + 1) -> ...

純邏輯：輸入 Room / Submission 文件和玩家動作，輸出新的文件或要 merge 的欄位。
不讀寫 store，也不管文件怎麼被取得（由 RoomManager 負責）。
"""
from typing import Dict, Optional, Tuple
import logging

from models import Phase, Room, Submission
from core.exceptions import InvalidInput, PermissionDenied, StateError
from services.naming_service import safe_name

logger = logging.getLogger(__name__)

CLEARED_WINNER = {"winnerName": "", "winnerText": ""}


class RoomStateMachine:
    """Room phase 轉換規則"""

    TRANSITIONS = {
        Phase.SUBMITTING: {Phase.JUDGING},
        Phase.JUDGING: {Phase.REVEALED},
        Phase.REVEALED: {Phase.SUBMITTING},
    }

    @classmethod
    def can_transition(cls, current: Optional[Phase], target: Phase) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @staticmethod
    def new_room(code: str, host_name: str, host_id: str, prompt: str) -> Room:
        """
        建立新房間的初始文件

        - host_name 空白時用預設值 "Host"
        - host_id 空白無法補預設值，直接拒絕

        異常：
            InvalidInput: host_id 空白
        """
        host_id = (host_id or "").strip()
        if not host_id:
            raise InvalidInput("Host device id is required to create a room")

        return Room(
            code=code,
            host_id=host_id,
            host_name=safe_name(host_name) or "Host",
            phase=Phase.SUBMITTING,
            current_round=1,
            prompt=prompt,
            winner_name="",
            winner_text="",
        )

    @classmethod
    def close_submissions(cls, room: Room, actor_host_id: str) -> Optional[Dict]:
        """
        關閉作答（submitting -> judging）

        前置條件：
        1. room.host_id 有值時必須等於 actor_host_id（advisory，只在 client 端檢查）
        2. phase 必須是 submitting；已經是 judging 時什麼都不做

        返回：
            要 merge 進 Room 的欄位；None 表示已經在 judging（no-op）

        異常：
            PermissionDenied: Host 身分不符
            StateError: phase 是 revealed 或未知
        """
        if room.host_id and room.host_id != actor_host_id:
            raise PermissionDenied(room.code)

        if room.phase == Phase.JUDGING:
            return None

        if not cls.can_transition(room.phase, Phase.JUDGING):
            raise StateError(
                f"Cannot close submissions in phase {cls._phase_name(room)}"
            )

        return {"phase": Phase.JUDGING.value, **CLEARED_WINNER}

    @classmethod
    def pick_winner(cls, room: Room, submission: Submission) -> Dict:
        """
        選出贏家（judging -> revealed）

        不檢查 submission 是否屬於目前回合：呼叫者要先用 current_round 過濾

        異常：
            StateError: phase 不是 judging
        """
        if not cls.can_transition(room.phase, Phase.REVEALED):
            raise StateError("Not in judging phase")

        return {
            "phase": Phase.REVEALED.value,
            "winnerName": submission.player_name,
            "winnerText": submission.text,
        }

    @classmethod
    def next_round(cls, room: Room, prompt: str) -> Tuple[int, Dict]:
        """
        進入下一回合（revealed -> submitting，round + 1）

        任何 phase 都允許（只記 warning），和原本的行為一致。

        返回：
            (剛結束的回合數, 要 merge 進 Room 的欄位)
        """
        if not cls.can_transition(room.phase, Phase.SUBMITTING):
            logger.warning(
                f"Advancing room {room.code} from phase {cls._phase_name(room)} "
                f"(expected {Phase.REVEALED.value})"
            )

        finished_round = room.current_round
        update = {
            "phase": Phase.SUBMITTING.value,
            "currentRound": finished_round + 1,
            "prompt": prompt,
            **CLEARED_WINNER,
        }
        return finished_round, update

    @staticmethod
    def new_submission(
        room: Room,
        player_id: str,
        player_name: str,
        choice_text: str,
        max_name_length: int = 20,
    ) -> Submission:
        """
        建立目前回合的作答文件

        前置條件：
        1. phase 必須是 submitting
        2. 玩家名稱（整理後）不可空白
        3. 作答內容（去頭尾空白後）不可空白
        4. player_id 不可含 "/"（會變成 submissions 底下的子路徑）

        異常：
            StateError: 作答已關閉
            InvalidInput: 名稱、內容或 player_id 空白，或 player_id 含 "/"
        """
        if room.phase != Phase.SUBMITTING:
            raise StateError("Submissions are closed")

        if not (player_id or "").strip():
            raise InvalidInput("Player device id is required")
        if "/" in player_id:
            raise InvalidInput("Player device id must not contain '/'")

        name = safe_name(player_name, max_name_length)
        if not name:
            raise InvalidInput("Add a nickname")

        text = (choice_text or "").strip()
        if not text:
            raise InvalidInput("Pick an option or type your own")

        return Submission(
            round=room.current_round,
            player_id=player_id,
            player_name=name,
            text=text,
        )

    @staticmethod
    def _phase_name(room: Room) -> str:
        return room.phase.value if room.phase else "unknown"
