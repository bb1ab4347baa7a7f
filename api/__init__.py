"""
HTTP 介面層

把 Host / Player 的動作轉給 RoomManager，並把業務異常轉成 HTTP 狀態碼
"""
from fastapi import HTTPException

from core.exceptions import (
    PartyGameException,
    PermissionDenied,
    RoomNotFound,
    StoreUnavailable,
    SubmissionNotFound,
)


def http_error(e: PartyGameException) -> HTTPException:
    """
    業務異常 -> HTTPException

    - 找不到：404
    - Host 身分不符：403
    - Store 失敗：503（訊息原樣回報）
    - 其他（輸入錯誤、phase 不對、代碼用完）：400
    """
    if isinstance(e, (RoomNotFound, SubmissionNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PermissionDenied):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, StoreUnavailable):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))
