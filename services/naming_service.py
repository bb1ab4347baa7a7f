"""
命名服務：生成 Room Code、整理玩家名稱

純計算邏輯，不涉及狀態轉換
"""
import random
import re


def generate_room_code(rng=random) -> str:
    """
    生成隨機的 4 位數字房間代碼

    範例：4821, 1007

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 只有 9000 種可能，碰撞要由呼叫者重試
    """
    return str(rng.randrange(1000, 10000))


def normalize_room_code(value) -> str:
    """
    整理使用者輸入的房間代碼：只留數字，最多 4 位

    範例：" 48-21 " -> "4821"
    """
    return re.sub(r"\D", "", str(value or ""))[:4]


def safe_name(name, max_length: int = 20) -> str:
    """
    整理玩家名稱：去頭尾空白、截斷長度、連續空白合併成一個

    範例：
        "  Big   Tuna " -> "Big Tuna"
        None -> ""
    """
    return re.sub(r"\s+", " ", str(name or "").strip()[:max_length])
