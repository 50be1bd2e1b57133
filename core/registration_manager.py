"""
Registration Manager：使用者報名狀態流程

狀態：
    Pendente -> Confirmada / Cancelada
    Confirmada <-> Cancelada

規則：
- 同一個 (user_id, event_id) 只能有一筆報名
- 只有 Cancelada 會保存取消原因，離開 Cancelada 時原因會被清掉
- 刪除報名不會影響 Event / Team 的統計資料
"""
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Registration, RegistrationStatus
from core.state_machine import RegistrationStateMachine
from core.locks import with_registration_lock
from core.exceptions import RegistrationAlreadyExists, RegistrationNotFound
from database import transactional

logger = logging.getLogger(__name__)


class RegistrationManager:
    """Registration 生命週期管理器"""

    @staticmethod
    def create_registration(
        db: Session,
        user_id: str,
        event_id: str,
        initial_status=RegistrationStatus.PENDING,
        registered_at: Optional[datetime] = None,
        cancellation_reason: Optional[str] = None
    ) -> Registration:
        """
        建立報名

        參數：
            db: SQLAlchemy Session
            user_id: 使用者 ID
            event_id: Event ID
            initial_status: 初始狀態（預設 Pendente）
            registered_at: 報名時間（預設現在）
            cancellation_reason: 只有初始狀態是 Cancelada 時才會保存

        返回：
            新的 Registration

        異常：
            InvalidStatus: 無法辨識的狀態
            RegistrationAlreadyExists: 已經報名過
        """
        status = RegistrationStateMachine.parse(initial_status)

        try:
            return RegistrationManager._insert(
                db,
                user_id,
                event_id,
                status,
                registered_at or datetime.now(),
                cancellation_reason if status == RegistrationStatus.CANCELLED else None
            )
        except IntegrityError as e:
            logger.info(f"Duplicate registration rejected by constraint: {e.orig}")
            raise RegistrationAlreadyExists(user_id, event_id) from e

    @staticmethod
    @transactional
    def _insert(
        db: Session,
        user_id: str,
        event_id: str,
        status: RegistrationStatus,
        registered_at: datetime,
        cancellation_reason: Optional[str]
    ) -> Registration:
        existing = db.query(Registration.id).filter(
            Registration.user_id == user_id,
            Registration.event_id == event_id
        ).first()
        if existing:
            raise RegistrationAlreadyExists(user_id, event_id)

        registration = Registration(
            user_id=user_id,
            event_id=event_id,
            status=status,
            registered_at=registered_at,
            cancellation_reason=cancellation_reason
        )
        db.add(registration)
        db.flush()

        logger.info(f"User {user_id} registered for event {event_id} ({status.value})")
        return registration

    @staticmethod
    @transactional
    def update_status(
        db: Session,
        registration_id: str,
        new_status,
        reason: Optional[str] = None
    ) -> Registration:
        """
        更新報名狀態

        參數：
            db: SQLAlchemy Session
            registration_id: Registration ID
            new_status: 新狀態（RegistrationStatus 或字串）
            reason: 取消原因，只有 new_status 是 Cancelada 時才會保存

        返回：
            更新後的 Registration

        異常：
            InvalidStatus: 無法辨識的狀態
            RegistrationNotFound: 報名不存在
            InvalidStateTransition: 不允許的轉換（例如 Confirmada -> Pendente）
        """
        status = RegistrationStateMachine.parse(new_status)

        registration = with_registration_lock(registration_id, db).first()
        if not registration:
            raise RegistrationNotFound(registration_id)

        RegistrationStateMachine.check(registration.status, status)

        old_status = registration.status
        registration.status = status
        registration.cancellation_reason = reason if status == RegistrationStatus.CANCELLED else None
        db.flush()

        logger.info(
            f"Registration {registration_id}: {old_status.value} -> {status.value}"
        )
        return registration

    @staticmethod
    @transactional
    def delete(db: Session, registration_id: str) -> None:
        """
        刪除報名（沒有連帶效果）

        異常：
            RegistrationNotFound: 報名不存在
        """
        registration = with_registration_lock(registration_id, db).first()
        if not registration:
            raise RegistrationNotFound(registration_id)

        db.delete(registration)
        logger.info(f"Registration {registration_id} deleted")

    @staticmethod
    def get_registration(db: Session, registration_id: str) -> Registration:
        registration = db.query(Registration).filter(Registration.id == registration_id).first()
        if not registration:
            raise RegistrationNotFound(registration_id)
        return registration

    @staticmethod
    def list_registrations(
        db: Session,
        event_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status=None
    ) -> List[Registration]:
        """
        查詢報名（可依 event / user / status 過濾）

        異常：
            InvalidStatus: status 無法辨識
        """
        query = db.query(Registration)
        if event_id:
            query = query.filter(Registration.event_id == event_id)
        if user_id:
            query = query.filter(Registration.user_id == user_id)
        if status is not None:
            query = query.filter(Registration.status == RegistrationStateMachine.parse(status))
        return query.order_by(Registration.registered_at).all()
