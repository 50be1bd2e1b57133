"""
資料模型（SQLAlchemy）

- Event：活動（排練、技術會議），狀態由 Scheduler 依時間推進
- Team：隊伍，成員數受 max_members 限制
- Evaluation：使用者對活動的評分，Event.mean_score 由此推導
- Registration：使用者對活動的報名紀錄
"""
import enum
import uuid

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _values(enum_cls):
    # 資料庫存的是 value（例如 "Em Andamento"），不是 member name
    return [member.value for member in enum_cls]


class EventStatus(str, enum.Enum):
    SCHEDULED = "Programado"
    IN_PROGRESS = "Em Andamento"
    COMPLETED = "Concluído"
    CANCELLED = "Cancelado"


class EventType(str, enum.Enum):
    SECTION_REHEARSAL = "Ensaio de Seção"
    FULL_REHEARSAL = "Ensaio Geral"
    TECHNICAL_MEETING = "Encontro Técnico"


class RegistrationStatus(str, enum.Enum):
    PENDING = "Pendente"
    CONFIRMED = "Confirmada"
    CANCELLED = "Cancelada"


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    title = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String(200), nullable=True)

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    # date + start_time / date + end_time，讓 Scheduler 只需要比較欄位
    starts_at = Column(DateTime, nullable=False, index=True)
    ends_at = Column(DateTime, nullable=False, index=True)

    event_type = Column(
        Enum(EventType, values_callable=_values, native_enum=False, length=40),
        nullable=False
    )
    status = Column(
        Enum(EventStatus, values_callable=_values, native_enum=False, length=20),
        nullable=False,
        default=EventStatus.SCHEDULED,
        index=True
    )

    team_ids = Column(JSON, nullable=False, default=list)
    participant_ids = Column(JSON, nullable=False, default=list)
    mean_score = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    evaluations = relationship("Evaluation", back_populates="event", passive_deletes=True)


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(100), nullable=False)
    responsible_user_id = Column(String(36), nullable=True)
    max_members = Column(Integer, nullable=False, default=0)  # 0 = 不限人數
    mean_score = Column(Float, nullable=False, default=0.0)
    mean_attendance = Column(Float, nullable=False, default=0.0)  # 百分比

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    members = relationship(
        "TeamMember",
        back_populates="team",
        order_by="TeamMember.id",
        cascade="all, delete-orphan"
    )
    events = relationship(
        "TeamEvent",
        back_populates="team",
        order_by="TeamEvent.id",
        cascade="all, delete-orphan"
    )

    @property
    def member_ids(self) -> list:
        return [m.user_id for m in self.members]

    @property
    def event_ids(self) -> list:
        return [e.event_id for e in self.events]


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False)
    joined_at = Column(DateTime, server_default=func.now())

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="unique_member_per_team"),
    )


class TeamEvent(Base):
    __tablename__ = "team_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(String(36), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(String(36), nullable=False)

    team = relationship("Team", back_populates="events")

    __table_args__ = (
        UniqueConstraint("team_id", "event_id", name="unique_event_per_team"),
    )


class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    evaluator_id = Column(String(36), nullable=False)
    score = Column(Float, nullable=False)
    comment = Column(Text, nullable=True)
    evaluated_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    event = relationship("Event", back_populates="evaluations")

    __table_args__ = (
        UniqueConstraint("event_id", "evaluator_id", name="unique_evaluation_per_evaluator"),
    )


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    event_id = Column(String(36), nullable=False, index=True)
    status = Column(
        Enum(RegistrationStatus, values_callable=_values, native_enum=False, length=20),
        nullable=False,
        default=RegistrationStatus.PENDING
    )
    cancellation_reason = Column(Text, nullable=True)
    registered_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="unique_registration_per_user"),
    )
