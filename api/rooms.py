"""
Room API Endpoints

職責：
1. Host 建立房間
2. 玩家 / Host 用代碼加入房間
3. 取得房間目前狀態（含目前回合的作答）
4. Host 關閉作答、選贏家、進入下一回合
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from database import get_settings, get_store
from schemas import (
    HostAction,
    RoomCreate,
    RoomResponse,
    RoomStateResponse,
    SubmissionResponse,
    WinnerPick,
)
from core.exceptions import PartyGameException
from core.room_manager import RoomManager
from core.store import RoomStore
from api import http_error

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


@router.post("", response_model=RoomResponse)
def create_room(data: RoomCreate, store: RoomStore = Depends(get_store)):
    """
    建立房間（Host endpoint）

    返回：
        新房間（phase=submitting, current_round=1）
    """
    try:
        room = RoomManager.create_room(store, data.host_name, data.host_id, get_settings())
        return RoomResponse.from_room(room)

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}", response_model=RoomResponse)
def join_room(code: str, store: RoomStore = Depends(get_store)):
    """
    加入房間（Player / Host 都用這個）

    代碼會先整理成 4 位數字；找不到房間回 404，前端不能進入房間畫面
    """
    try:
        room = RoomManager.join_room(store, code)
        return RoomResponse.from_room(room)

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to join room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/state", response_model=RoomStateResponse)
def get_room_state(code: str, store: RoomStore = Depends(get_store)):
    """
    取得房間狀態（短輪詢用）

    只回傳目前回合的作答；nextRound 進行到一半時，舊回合的作答不會混進來
    """
    try:
        room = RoomManager.get_room_by_code(store, code)
        submissions = RoomManager.get_submissions(store, code, room.current_round)
        return RoomStateResponse(
            room=RoomResponse.from_room(room),
            submissions=[SubmissionResponse.from_submission(s) for s in submissions],
            submission_count=len(submissions),
        )

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to get room state {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/close", response_model=RoomResponse)
def close_submissions(code: str, data: HostAction, store: RoomStore = Depends(get_store)):
    """
    關閉作答（Host endpoint）

    前置條件：
    - phase 必須是 submitting（已經是 judging 時不做事）
    - host_id 必須和房間記錄的 Host 相同（advisory）
    """
    try:
        room = RoomManager.close_submissions(store, code, data.host_id)
        return RoomResponse.from_room(room)

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to close submissions in room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/winner", response_model=RoomResponse)
def pick_winner(code: str, data: WinnerPick, store: RoomStore = Depends(get_store)):
    """
    選出贏家（Host endpoint）

    只能選目前回合的作答（用 <currentRound>_<playerId> 查）
    """
    try:
        room = RoomManager.pick_winner_by_player(store, code, data.player_id)
        return RoomResponse.from_room(room)

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to pick winner in room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/next", response_model=RoomResponse)
def next_round(code: str, data: HostAction, store: RoomStore = Depends(get_store)):
    """
    進入下一回合（Host endpoint）

    失敗時（例如清掉作答後更新 Room 失敗）由 Host 再呼叫一次
    """
    try:
        room = RoomManager.next_round(store, code, data.host_id)
        return RoomResponse.from_room(room)

    except PartyGameException as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Failed to advance room {code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
