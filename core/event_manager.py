"""
Event Manager：活動資料的建立 / 修改 / 取消

狀態只能透過 EventStateMachine 改變：
- 開始 / 結束由 EventStatusScheduler 依時間推進
- 取消由 cancel_event 觸發
mean_score 只由 EvaluationManager 維護
"""
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Event, EventStatus
from schemas import EventCreate, EventPatch
from core.state_machine import EventStateMachine
from core.locks import with_event_lock
from core.exceptions import EventNotFound, InvalidStateTransition
from services.schedule_service import event_window
from database import transactional

logger = logging.getLogger(__name__)


class EventManager:
    """Event 生命週期管理器"""

    @staticmethod
    @transactional
    def create_event(db: Session, data: EventCreate) -> Event:
        """
        建立新活動（狀態為 Programado，mean_score = 0）

        異常：
            InvalidTimeWindow: end_time 沒有晚於 start_time
        """
        starts_at, ends_at = event_window(data.date, data.start_time, data.end_time)

        event = Event(
            name=data.name,
            title=data.title,
            description=data.description,
            location=data.location,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            starts_at=starts_at,
            ends_at=ends_at,
            event_type=data.event_type,
            status=EventStatus.SCHEDULED,
            team_ids=list(data.team_ids),
            participant_ids=list(data.participant_ids),
            mean_score=0.0
        )
        db.add(event)
        db.flush()

        logger.info(f"Created event {event.id} ({data.name}) at {starts_at} - {ends_at}")
        return event

    @staticmethod
    @transactional
    def update_event(db: Session, event_id: str, patch: EventPatch) -> Event:
        """
        修改活動（只接受 EventPatch 列出的欄位）

        規則：
        - 終態（Concluído / Cancelado）的活動不能修改
        - 修改日期或時間時重新計算 starts_at / ends_at

        異常：
            EventNotFound: 活動不存在
            InvalidStateTransition: 活動已在終態
            InvalidTimeWindow: 新的時間區間不合法
        """
        event = with_event_lock(event_id, db).first()
        if not event:
            raise EventNotFound(event_id)

        if EventStateMachine.is_terminal(event.status):
            raise InvalidStateTransition(
                f"Event {event_id} is {event.status.value} and cannot be modified"
            )

        changes = patch.changes()
        if not changes:
            return event

        starts_at, ends_at = event_window(
            changes.get("date", event.date),
            changes.get("start_time", event.start_time),
            changes.get("end_time", event.end_time),
        )

        for field, value in changes.items():
            setattr(event, field, value)
        event.starts_at = starts_at
        event.ends_at = ends_at
        db.flush()

        logger.info(f"Updated event {event_id}: {sorted(changes)}")
        return event

    @staticmethod
    @transactional
    def cancel_event(db: Session, event_id: str) -> Event:
        """
        取消活動（Programado / Em Andamento -> Cancelado）

        異常：
            EventNotFound: 活動不存在
            InvalidStateTransition: 活動已結束或已取消
        """
        return EventStateMachine.transition(event_id, EventStatus.CANCELLED, db)

    @staticmethod
    def get_event(db: Session, event_id: str) -> Event:
        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            raise EventNotFound(event_id)
        return event

    @staticmethod
    def list_events(db: Session, status: Optional[EventStatus] = None) -> List[Event]:
        query = db.query(Event)
        if status is not None:
            query = query.filter(Event.status == status)
        return query.order_by(Event.starts_at).all()
