"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class PartyGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 輸入相關異常 ============

class InvalidInput(PartyGameException):
    """
    必填欄位空白或格式不合（無法用預設值補上）

    即 ValidationError 這一類錯誤；不沿用該名稱，以免和 pydantic.ValidationError 混淆
    """
    pass



# ============ Room 相關異常 ============

class RoomNotFound(PartyGameException):
    """房間不存在"""
    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} not found. Check the code.")


class RoomCodeExhausted(PartyGameException):
    """連續產生的房間代碼都已被使用"""
    def __init__(self, attempts):
        self.attempts = attempts
        super().__init__(f"Could not find a free room code after {attempts} attempts")


class PermissionDenied(PartyGameException):
    """
    Host 身分不符

    只是 client 端的建議性檢查（advisory），不是安全機制
    """
    def __init__(self, code):
        self.code = code
        super().__init__(
            f"Room {code} already has a different host on record. Use the original host device."
        )


# ============ 狀態轉換異常 ============

class StateError(PartyGameException):
    """在錯誤的 phase 執行動作"""
    pass


# ============ Submission 相關異常 ============

class SubmissionNotFound(PartyGameException):
    """作答不存在（或不屬於目前回合）"""
    def __init__(self, key):
        self.key = key
        super().__init__(f"Submission {key} not found")


# ============ Store 相關異常 ============

class StoreUnavailable(PartyGameException):
    """後端儲存失敗，原樣回報，不重試"""
    pass
