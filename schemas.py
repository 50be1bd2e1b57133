"""
Pydantic schemas：API 輸入 / 輸出格式

*Patch 類別明確列出每個操作可以修改的欄位，未知欄位直接拒絕（extra="forbid"），
不會把任意物件合併進資料庫。
"""
import datetime as dt
from typing import ClassVar, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import EventStatus, EventType, RegistrationStatus


class PatchModel(BaseModel):
    """部分更新的基類：只有明確給出的欄位會被套用"""
    model_config = ConfigDict(extra="forbid")

    # 不可以被設成 null 的欄位
    NOT_NULL: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_required(self):
        for field in self.model_fields_set & self.NOT_NULL:
            if getattr(self, field) is None:
                raise ValueError(f"Field '{field}' cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


# ============ Event ============

class EventCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    event_type: EventType
    team_ids: List[str] = Field(default_factory=list)
    participant_ids: List[str] = Field(default_factory=list)


class EventPatch(PatchModel):
    NOT_NULL: ClassVar[FrozenSet[str]] = frozenset(
        {"name", "date", "start_time", "end_time", "event_type", "team_ids", "participant_ids"}
    )

    name: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    event_type: Optional[EventType] = None
    team_ids: Optional[List[str]] = None
    participant_ids: Optional[List[str]] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    event_type: EventType
    status: EventStatus
    team_ids: List[str]
    participant_ids: List[str]
    mean_score: float
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


# ============ Team ============

class TeamCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    responsible_user_id: Optional[str] = None
    max_members: int = Field(default=0, ge=0)


class TeamPatch(PatchModel):
    NOT_NULL: ClassVar[FrozenSet[str]] = frozenset({"name", "max_members"})

    name: Optional[str] = None
    responsible_user_id: Optional[str] = None
    max_members: Optional[int] = Field(default=None, ge=0)


class MemberAdd(BaseModel):
    user_id: str


class TeamEventAdd(BaseModel):
    event_id: str


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    responsible_user_id: Optional[str] = None
    max_members: int
    member_ids: List[str]
    event_ids: List[str]
    mean_score: float
    mean_attendance: float


# ============ Evaluation ============

class EvaluationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    evaluator_id: str
    score: float
    comment: Optional[str] = None
    evaluated_at: Optional[dt.datetime] = None


class EvaluationPatch(PatchModel):
    NOT_NULL: ClassVar[FrozenSet[str]] = frozenset({"score", "evaluated_at"})

    score: Optional[float] = None
    comment: Optional[str] = None
    evaluated_at: Optional[dt.datetime] = None


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    evaluator_id: str
    score: float
    comment: Optional[str] = None
    evaluated_at: dt.datetime


class AverageScoreResponse(BaseModel):
    event_id: str
    mean_score: float


# ============ Registration ============

class RegistrationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str
    event_id: str
    # 用 str 接收，未知狀態由 RegistrationManager 回報 ValidationError
    status: str = RegistrationStatus.PENDING.value
    registered_at: Optional[dt.datetime] = None
    cancellation_reason: Optional[str] = None


class RegistrationStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str
    reason: Optional[str] = None


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    event_id: str
    status: RegistrationStatus
    cancellation_reason: Optional[str] = None
    registered_at: dt.datetime
