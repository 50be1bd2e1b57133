"""
Event API Endpoints

職責：
1. 建立 / 修改 / 查詢活動
2. 取消活動

開始 / 結束不提供 endpoint，由 EventStatusScheduler 依時間推進
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database import get_db
from models import EventStatus
from schemas import EventCreate, EventPatch, EventResponse
from core.event_manager import EventManager
from core.exceptions import EventNotFound, TransientStorageError, ValidationError

router = APIRouter(prefix="/api/events", tags=["events"])
logger = logging.getLogger(__name__)


@router.post("", response_model=EventResponse, status_code=201)
def create_event(data: EventCreate, db: Session = Depends(get_db)):
    """
    建立活動

    - end_time 必須晚於 start_time（同一天），否則 400
    - 狀態固定從 Programado 開始
    """
    try:
        return EventResponse.model_validate(EventManager.create_event(db, data))

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to create event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[EventResponse])
def list_events(status: Optional[EventStatus] = Query(None), db: Session = Depends(get_db)):
    try:
        return [EventResponse.model_validate(e) for e in EventManager.list_events(db, status)]

    except Exception as e:
        logger.error(f"Failed to list events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: str, db: Session = Depends(get_db)):
    try:
        return EventResponse.model_validate(EventManager.get_event(db, event_id))

    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except Exception as e:
        logger.error(f"Failed to get event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{event_id}", response_model=EventResponse)
def update_event(event_id: str, patch: EventPatch, db: Session = Depends(get_db)):
    """修改活動（status、mean_score 不在 EventPatch 內，傳入會回 422）"""
    try:
        return EventResponse.model_validate(EventManager.update_event(db, event_id, patch))

    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to update event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{event_id}/cancel", response_model=EventResponse)
def cancel_event(event_id: str, db: Session = Depends(get_db)):
    """取消活動（Concluído / Cancelado 不能取消：400）"""
    try:
        return EventResponse.model_validate(EventManager.cancel_event(db, event_id))

    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to cancel event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
