"""
資料模型

- Document：Room Store 的底層資料表（一列 = 一份文件）
- Room / Submission：房間與作答文件的結構（camelCase 欄位，和儲存格式一致）
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Column, Float, JSON, String

from database import Base


class Phase(str, Enum):
    SUBMITTING = "submitting"
    JUDGING = "judging"
    REVEALED = "revealed"


class Document(Base):
    """
    一份文件

    key 是完整路徑（例如 rooms/4821/submissions/1_abc），
    parent 是所屬集合路徑（例如 rooms/4821/submissions），方便 query_by_field。
    """
    __tablename__ = "documents"

    key = Column(String, primary_key=True)
    parent = Column(String, index=True, nullable=False)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class Room(BaseModel):
    """Room 文件：每場遊戲一份，以房間代碼為 key"""
    model_config = ConfigDict(populate_by_name=True)

    code: str
    host_id: str = Field("", alias="hostId")
    host_name: str = Field("Host", alias="hostName")
    # None = 沒有或無法辨識的 phase（中間狀態，例如 nextRound 只完成一半）
    phase: Optional[Phase] = None
    current_round: int = Field(1, alias="currentRound", ge=1)
    prompt: str = ""
    winner_name: str = Field("", alias="winnerName")
    winner_text: str = Field("", alias="winnerText")
    created_at: Optional[float] = Field(None, alias="createdAt")

    @field_validator("phase", mode="before")
    @classmethod
    def tolerate_unknown_phase(cls, value: Any):
        if value in (None, ""):
            return None
        try:
            return Phase(value)
        except ValueError:
            return None

    @field_validator("current_round", mode="before")
    @classmethod
    def default_round(cls, value: Any):
        # 舊文件或寫到一半的文件沒有 currentRound，視為第 1 回合
        if value in (None, "", 0):
            return 1
        return value

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True, mode="json")
        if doc.get("createdAt") is None:
            doc.pop("createdAt", None)
        return doc


class Submission(BaseModel):
    """某個玩家在某一回合的作答"""
    model_config = ConfigDict(populate_by_name=True)

    round: int = Field(ge=1)
    player_id: str = Field(alias="playerId")
    player_name: str = Field("", alias="playerName")
    text: str
    created_at: Optional[float] = Field(None, alias="createdAt")
    # 文件 key 不存在文件內容裡，讀取時由 store 補上
    key: Optional[str] = Field(None, exclude=True)

    @property
    def sort_key(self) -> float:
        """沒有時間戳記的文件排在最前面"""
        return self.created_at or 0

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True, mode="json")
        if doc.get("createdAt") is None:
            doc.pop("createdAt", None)
        return doc
