"""
Room Manager：把狀態機的決定寫進 Room Store

職責：
1. 建立 Room
2. 加入房間（檢查代碼）
3. 作答（覆寫同一個 key）
4. 關閉作答 / 選贏家 / 下一回合

原則：
- 所有 phase 規則都在 RoomStateMachine，這裡只負責 讀取 -> 檢查 -> 寫入
- 沒有 lock：每個 key 只有一個寫入者，重複寫同一個 key 本身就是冪等的
- 不自動重試：任何錯誤都直接往上拋，由發起動作的使用者重新觸發
"""
from typing import List, Optional
import logging
import random

from models import Room, Submission
from core.exceptions import RoomCodeExhausted, RoomNotFound, StateError, SubmissionNotFound
from core.state_machine import RoomStateMachine
from core.store import (
    SERVER_TIMESTAMP,
    RoomStore,
    room_key,
    submission_id,
    submission_key,
    submissions_key,
)
from database import Settings, get_settings
from services.deck_service import pick_prompt
from services.naming_service import generate_room_code, normalize_room_code

logger = logging.getLogger(__name__)


def _apply(room: Room, update: dict) -> Room:
    return Room.model_validate({**room.to_document(), **update})


class RoomManager:
    """Room / Round 生命週期管理器"""

    @staticmethod
    def create_room(
        store: RoomStore,
        host_name: str,
        host_id: str,
        settings: Optional[Settings] = None,
        rng=random,
    ) -> Room:
        """
        建立新房間

        流程：
        1. 生成未被使用的房間代碼
        2. 抽一張 prompt
        3. 寫入 Room（phase=submitting, currentRound=1）

        異常：
            InvalidInput: host_id 空白
            RoomCodeExhausted: 連續 room_code_attempts 次都碰撞
            StoreUnavailable: store 失敗
        """
        settings = settings or get_settings()

        code = generate_room_code(rng)
        attempts = 1
        while store.get(room_key(code))[0]:
            if attempts >= settings.room_code_attempts:
                raise RoomCodeExhausted(attempts)
            logger.warning(f"Room code collision detected on {code}, regenerating")
            code = generate_room_code(rng)
            attempts += 1

        room = RoomStateMachine.new_room(code, host_name, host_id, pick_prompt(rng))
        store.set(room_key(code), {**room.to_document(), "createdAt": SERVER_TIMESTAMP})

        logger.info(f"Created room {code} for host {room.host_id}")
        return RoomManager.get_room_by_code(store, code)

    @staticmethod
    def get_room_by_code(store: RoomStore, code: str) -> Room:
        """
        透過房間代碼取得 Room

        異常：
            RoomNotFound: Room 不存在
            StateError: 文件內容無法解析（例如寫到一半或被手動改壞）
        """
        exists, data = store.get(room_key(code))
        if not exists:
            raise RoomNotFound(code)
        try:
            return Room.model_validate({**data, "code": data.get("code") or code})
        except ValueError as e:
            logger.warning(f"Room {code} document is not readable: {e}")
            raise StateError(f"Room {code} is not readable right now. Try again.") from e

    @staticmethod
    def join_room(store: RoomStore, raw_code: str) -> Room:
        """
        加入房間（player 或 host 都一樣）：先整理代碼，再確認房間存在

        異常：
            RoomNotFound: 代碼找不到房間
        """
        code = normalize_room_code(raw_code)
        if not code:
            raise RoomNotFound(raw_code)
        room = RoomManager.get_room_by_code(store, code)
        logger.info(f"Device joined room {code}")
        return room

    @staticmethod
    def get_submissions(store: RoomStore, code: str, round_number: int) -> List[Submission]:
        """
        取得某回合的所有作答，依 createdAt 排序（沒有時間戳記的排最前面）

        無法解析的文件會被略過（記 warning），不影響其他作答
        """
        submissions = []
        for key in store.query_by_field(submissions_key(code), "round", round_number):
            exists, data = store.get(key)
            if not exists:
                continue
            try:
                submissions.append(Submission.model_validate({**data, "key": key}))
            except ValueError as e:
                logger.warning(f"Skipping unreadable submission {key}: {e}")
        submissions.sort(key=lambda s: s.sort_key)
        return submissions

    @staticmethod
    def submit(
        store: RoomStore,
        code: str,
        player_id: str,
        player_name: str,
        choice_text: str,
        settings: Optional[Settings] = None,
    ) -> Submission:
        """
        提交作答

        key = <currentRound>_<playerId>，同一回合重複提交會覆寫（last-write-wins），
        不會產生第二份文件。「每回合只能交一次」只是 UI 慣例；
        allow_resubmission=False 時會先讀再寫，但這不是原子操作，只是盡力而為。

        異常：
            RoomNotFound: 房間不存在
            StateError: 作答已關閉 / 不允許重複提交
            InvalidInput: 名稱或內容空白
        """
        settings = settings or get_settings()
        room = RoomManager.get_room_by_code(store, code)
        submission = RoomStateMachine.new_submission(
            room, player_id, player_name, choice_text, settings.max_name_length
        )

        key = submission_key(code, submission.round, submission.player_id)
        if not settings.allow_resubmission and store.get(key)[0]:
            raise StateError("You already submitted this round")

        store.set(key, {**submission.to_document(), "createdAt": SERVER_TIMESTAMP})
        logger.info(
            f"Submission {submission_id(submission.round, submission.player_id)} "
            f"written in room {code}"
        )

        exists, data = store.get(key)
        if not exists:
            # 另一個裝置剛好執行 nextRound 把它清掉了
            return submission
        return Submission.model_validate({**data, "key": key})

    @staticmethod
    def close_submissions(store: RoomStore, code: str, actor_host_id: str) -> Room:
        """
        關閉作答（submitting -> judging）

        已經是 judging 時不寫入任何東西（冪等）

        異常：
            RoomNotFound / PermissionDenied / StateError
        """
        room = RoomManager.get_room_by_code(store, code)
        update = RoomStateMachine.close_submissions(room, actor_host_id)
        if update is None:
            logger.info(f"Room {code} already judging, close is a no-op")
            return room

        store.update(room_key(code), update)
        logger.info(f"Room {code} closed submissions for round {room.current_round}")
        return _apply(room, update)

    @staticmethod
    def pick_winner(store: RoomStore, code: str, submission: Submission) -> Room:
        """
        選出贏家（judging -> revealed）

        不檢查 submission 的回合，呼叫者要先依 current_round 過濾

        異常：
            RoomNotFound / StateError
        """
        room = RoomManager.get_room_by_code(store, code)
        update = RoomStateMachine.pick_winner(room, submission)

        store.update(room_key(code), update)
        logger.info(
            f"Room {code} round {room.current_round} winner: {submission.player_name}"
        )
        return _apply(room, update)

    @staticmethod
    def pick_winner_by_player(store: RoomStore, code: str, player_id: str) -> Room:
        """
        依 player_id 選出目前回合的贏家

        只查 <currentRound>_<playerId>，所以不可能選到舊回合的作答

        異常：
            RoomNotFound / SubmissionNotFound / StateError
        """
        room = RoomManager.get_room_by_code(store, code)
        key = submission_key(code, room.current_round, player_id)
        exists, data = store.get(key)
        if not exists:
            raise SubmissionNotFound(submission_id(room.current_round, player_id))

        try:
            submission = Submission.model_validate({**data, "key": key})
        except ValueError as e:
            logger.warning(f"Submission {key} is not readable: {e}")
            raise SubmissionNotFound(submission_id(room.current_round, player_id)) from e
        return RoomManager.pick_winner(store, code, submission)

    @staticmethod
    def next_round(
        store: RoomStore,
        code: str,
        actor_host_id: Optional[str] = None,
        rng=random,
    ) -> Room:
        """
        進入下一回合

        流程（兩個獨立的 store 操作，不是原子的）：
        1. 刪除剛結束回合的所有作答
        2. 更新 Room：currentRound + 1、新 prompt、phase=submitting、清空贏家

        如果 1 成功、2 失敗：房間停在舊的 phase / round，但作答已經被清掉。
        這是已知的中間狀態，由 host 再按一次 nextRound 解決。
        其他裝置在 1 和 2 之間可能看到「作答消失、Room 還沒更新」。

        異常：
            RoomNotFound / StoreUnavailable
        """
        room = RoomManager.get_room_by_code(store, code)
        finished_round, update = RoomStateMachine.next_round(room, pick_prompt(rng))

        stale_keys = store.query_by_field(submissions_key(code), "round", finished_round)
        for key in stale_keys:
            store.delete(key)
        logger.info(f"Room {code} purged {len(stale_keys)} submissions from round {finished_round}")

        store.update(room_key(code), update)
        logger.info(
            f"Room {code} advanced to round {update['currentRound']} "
            f"(by {actor_host_id or 'unknown host'})"
        )
        return _apply(room, update)
