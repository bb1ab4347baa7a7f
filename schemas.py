"""
API 請求 / 回應格式
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from models import Room, Submission


class RoomCreate(BaseModel):
    host_name: str = ""
    host_id: str


class HostAction(BaseModel):
    host_id: str = ""


class WinnerPick(BaseModel):
    player_id: str


class SubmissionCreate(BaseModel):
    player_id: str
    player_name: str
    text: str = Field(description="Chosen option or free-text answer")


class RoomResponse(BaseModel):
    code: str
    host_name: str
    phase: Optional[str]
    current_round: int
    prompt: str
    winner_name: str
    winner_text: str

    @classmethod
    def from_room(cls, room: Room) -> "RoomResponse":
        return cls(
            code=room.code,
            host_name=room.host_name,
            phase=room.phase.value if room.phase else None,
            current_round=room.current_round,
            prompt=room.prompt,
            winner_name=room.winner_name,
            winner_text=room.winner_text,
        )


class SubmissionResponse(BaseModel):
    round: int
    player_id: str
    player_name: str
    text: str
    created_at: Optional[float] = None

    @classmethod
    def from_submission(cls, submission: Submission) -> "SubmissionResponse":
        return cls(
            round=submission.round,
            player_id=submission.player_id,
            player_name=submission.player_name,
            text=submission.text,
            created_at=submission.created_at,
        )


class RoomStateResponse(BaseModel):
    room: RoomResponse
    submissions: List[SubmissionResponse]
    submission_count: int
