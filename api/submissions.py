"""
Submission API Endpoints

職責：
1. 玩家提交（或重新提交）目前回合的作答
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from database import get_settings, get_store
from schemas import SubmissionCreate, SubmissionResponse
from core.exceptions import PartyGameException
from core.room_manager import RoomManager
from core.store import RoomStore
from api import http_error

router = APIRouter(prefix="/api/rooms", tags=["submissions"])
logger = logging.getLogger(__name__)


@router.post("/{code}/submissions", response_model=SubmissionResponse)
def submit_answer(code: str, data: SubmissionCreate, store: RoomStore = Depends(get_store)):
    """
    提交作答（Player endpoint）

    冪等：同一個玩家同一回合再交一次只會覆寫原本那份

    前置條件：
    - 房間存在，phase 是 submitting
    - 名稱、內容不可空白
    """
    try:
        submission = RoomManager.submit(
            store, code, data.player_id, data.player_name, data.text, get_settings()
        )
        return SubmissionResponse.from_submission(submission)

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to submit answer in room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
