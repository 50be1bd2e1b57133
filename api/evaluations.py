"""
Evaluation API Endpoints

- /api/events/{event_id}/evaluations：新增 / 查詢某活動的評分
- /api/events/{event_id}/evaluations/average：直接從評分計算的平均
- /api/evaluations/{evaluation_id}：查詢 / 修改 / 刪除單一評分

每次寫入都會在同一個 transaction 內重算 Event.mean_score
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import (
    AverageScoreResponse,
    EvaluationCreate,
    EvaluationPatch,
    EvaluationResponse,
)
from core.evaluation_manager import EvaluationManager
from core.event_manager import EventManager
from core.exceptions import (
    Conflict,
    EvaluationNotFound,
    EventNotFound,
    TransientStorageError,
    ValidationError,
)

router = APIRouter(prefix="/api", tags=["evaluations"])
logger = logging.getLogger(__name__)


@router.post(
    "/events/{event_id}/evaluations",
    response_model=EvaluationResponse,
    status_code=201
)
def create_evaluation(event_id: str, data: EvaluationCreate, db: Session = Depends(get_db)):
    """
    新增評分

    - 分數不在 0-10：400
    - 同一評分者重複評分：409 "Evaluation already exists"
    """
    try:
        evaluation = EvaluationManager.create_evaluation(
            db,
            event_id=event_id,
            evaluator_id=data.evaluator_id,
            score=data.score,
            comment=data.comment,
            evaluated_at=data.evaluated_at
        )
        return EvaluationResponse.model_validate(evaluation)

    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except Conflict:
        raise HTTPException(status_code=409, detail="Evaluation already exists")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to create evaluation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/events/{event_id}/evaluations", response_model=List[EvaluationResponse])
def list_evaluations(event_id: str, db: Session = Depends(get_db)):
    try:
        EventManager.get_event(db, event_id)
        evaluations = EvaluationManager.list_for_event(db, event_id)
        return [EvaluationResponse.model_validate(e) for e in evaluations]

    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except Exception as e:
        logger.error(f"Failed to list evaluations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/events/{event_id}/evaluations/average", response_model=AverageScoreResponse)
def get_average_score(event_id: str, db: Session = Depends(get_db)):
    """活動平均分數（沒有評分時為 0），和 Event.mean_score 使用相同的進位規則"""
    try:
        EventManager.get_event(db, event_id)
        return AverageScoreResponse(
            event_id=event_id,
            mean_score=EvaluationManager.get_average_score(db, event_id)
        )

    except EventNotFound:
        raise HTTPException(status_code=404, detail="Event not found")
    except Exception as e:
        logger.error(f"Failed to compute average score: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/evaluations/{evaluation_id}", response_model=EvaluationResponse)
def get_evaluation(evaluation_id: str, db: Session = Depends(get_db)):
    try:
        evaluation = EvaluationManager.get_evaluation(db, evaluation_id)
        return EvaluationResponse.model_validate(evaluation)

    except EvaluationNotFound:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    except Exception as e:
        logger.error(f"Failed to get evaluation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/evaluations/{evaluation_id}", response_model=EvaluationResponse)
def update_evaluation(evaluation_id: str, patch: EvaluationPatch, db: Session = Depends(get_db)):
    """修改評分（score、comment、evaluated_at）"""
    try:
        evaluation = EvaluationManager.update_evaluation(db, evaluation_id, patch)
        return EvaluationResponse.model_validate(evaluation)

    except EvaluationNotFound:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to update evaluation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/evaluations/{evaluation_id}", status_code=204)
def delete_evaluation(evaluation_id: str, db: Session = Depends(get_db)):
    try:
        EvaluationManager.delete_evaluation(db, evaluation_id)

    except EvaluationNotFound:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to delete evaluation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
