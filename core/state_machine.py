"""
狀態機：集中管理 Event 和 Registration 的狀態轉換

Event：
    Programado -> Em Andamento -> Concluído
    Programado / Em Andamento -> Cancelado
    Concluído、Cancelado 是終態

Registration：
    Pendente -> Confirmada / Cancelada
    Confirmada <-> Cancelada（取消後可以重新確認）
"""
from sqlalchemy.orm import Session
import logging

from models import Event, EventStatus, RegistrationStatus
from core.locks import with_event_lock
from core.exceptions import EventNotFound, InvalidStateTransition, InvalidStatus

logger = logging.getLogger(__name__)


class EventStateMachine:
    """Event 狀態機"""

    TRANSITIONS = {
        EventStatus.SCHEDULED: {EventStatus.IN_PROGRESS, EventStatus.CANCELLED},
        EventStatus.IN_PROGRESS: {EventStatus.COMPLETED, EventStatus.CANCELLED},
        EventStatus.COMPLETED: set(),
        EventStatus.CANCELLED: set(),
    }

    @classmethod
    def can_transition(cls, current: EventStatus, target: EventStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, status: EventStatus) -> bool:
        return not cls.TRANSITIONS.get(status)

    @classmethod
    def transition(cls, event_id: str, new_status: EventStatus, db: Session) -> Event:
        """
        轉換 Event 狀態（會鎖定 Event）

        參數：
            event_id: Event ID
            new_status: 目標狀態
            db: SQLAlchemy Session

        返回：
            更新後的 Event（尚未 commit，由呼叫者的 transaction 處理）

        異常：
            EventNotFound: Event 不存在
            InvalidStateTransition: 不允許的轉換（包含從終態離開）
        """
        event = with_event_lock(event_id, db).first()
        if not event:
            raise EventNotFound(event_id)

        if not cls.can_transition(event.status, new_status):
            raise InvalidStateTransition(
                f"Cannot transition event {event_id} from "
                f"{event.status.value} to {new_status.value}"
            )

        old_status = event.status
        event.status = new_status
        db.flush()

        logger.info(f"Event {event_id}: {old_status.value} -> {new_status.value}")
        return event


class RegistrationStateMachine:
    """Registration 狀態機（不碰資料庫，只檢查規則）"""

    TRANSITIONS = {
        RegistrationStatus.PENDING: {
            RegistrationStatus.PENDING,
            RegistrationStatus.CONFIRMED,
            RegistrationStatus.CANCELLED,
        },
        RegistrationStatus.CONFIRMED: {
            RegistrationStatus.CONFIRMED,
            RegistrationStatus.CANCELLED,
        },
        RegistrationStatus.CANCELLED: {
            RegistrationStatus.CANCELLED,
            RegistrationStatus.CONFIRMED,
        },
    }

    @staticmethod
    def parse(value) -> RegistrationStatus:
        """
        把輸入轉成 RegistrationStatus

        只接受 enum 本身或三個狀態值（"Pendente"、"Confirmada"、"Cancelada"），大小寫需一致

        異常：
            InvalidStatus: 不是三種狀態之一
        """
        if isinstance(value, RegistrationStatus):
            return value
        try:
            return RegistrationStatus(value)
        except ValueError:
            raise InvalidStatus(f"Unrecognized registration status: {value!r}")

    @classmethod
    def check(cls, current: RegistrationStatus, target: RegistrationStatus) -> None:
        if target not in cls.TRANSITIONS.get(current, set()):
            raise InvalidStateTransition(
                f"Cannot transition registration from {current.value} to {target.value}"
            )
