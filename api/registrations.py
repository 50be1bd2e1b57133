"""
Registration API Endpoints

職責：
1. 報名 / 查詢報名
2. 更新報名狀態（Pendente / Confirmada / Cancelada）
3. 刪除報名
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from schemas import RegistrationCreate, RegistrationResponse, RegistrationStatusUpdate
from core.registration_manager import RegistrationManager
from core.exceptions import (
    Conflict,
    RegistrationNotFound,
    TransientStorageError,
    ValidationError,
)

router = APIRouter(prefix="/api/registrations", tags=["registrations"])
logger = logging.getLogger(__name__)


@router.post("", response_model=RegistrationResponse, status_code=201)
def create_registration(data: RegistrationCreate, db: Session = Depends(get_db)):
    """
    報名活動

    - 同一使用者重複報名同一活動：409 "Registration already exists"
    - 未知狀態：400
    """
    try:
        registration = RegistrationManager.create_registration(
            db,
            user_id=data.user_id,
            event_id=data.event_id,
            initial_status=data.status,
            registered_at=data.registered_at,
            cancellation_reason=data.cancellation_reason
        )
        return RegistrationResponse.model_validate(registration)

    except Conflict:
        raise HTTPException(status_code=409, detail="Registration already exists")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to create registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[RegistrationResponse])
def list_registrations(
    event_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    try:
        registrations = RegistrationManager.list_registrations(
            db, event_id=event_id, user_id=user_id, status=status
        )
        return [RegistrationResponse.model_validate(r) for r in registrations]

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to list registrations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{registration_id}", response_model=RegistrationResponse)
def get_registration(registration_id: str, db: Session = Depends(get_db)):
    try:
        registration = RegistrationManager.get_registration(db, registration_id)
        return RegistrationResponse.model_validate(registration)

    except RegistrationNotFound:
        raise HTTPException(status_code=404, detail="Registration not found")
    except Exception as e:
        logger.error(f"Failed to get registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{registration_id}/status", response_model=RegistrationResponse)
def update_registration_status(
    registration_id: str,
    data: RegistrationStatusUpdate,
    db: Session = Depends(get_db)
):
    """
    更新報名狀態

    reason 只有在 status = Cancelada 時保存，其他狀態會清除原因
    """
    try:
        registration = RegistrationManager.update_status(
            db, registration_id, data.status, data.reason
        )
        return RegistrationResponse.model_validate(registration)

    except RegistrationNotFound:
        raise HTTPException(status_code=404, detail="Registration not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to update registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{registration_id}", status_code=204)
def delete_registration(registration_id: str, db: Session = Depends(get_db)):
    try:
        RegistrationManager.delete(db, registration_id)

    except RegistrationNotFound:
        raise HTTPException(status_code=404, detail="Registration not found")
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to delete registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
