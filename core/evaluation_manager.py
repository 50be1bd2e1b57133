"""
Evaluation Manager：評分的新增 / 修改 / 刪除，並維持 Event.mean_score 一致

職責：
1. 驗證分數範圍（寫入前）
2. 每個操作都在同一個 transaction 內完成「評分寫入 + 平均重算」
3. 先鎖定 Event，同一個 Event 的並發評分依序執行，平均值不會漏算

一致性：
    任何評分操作 commit 之後，
    Event.mean_score == 該 Event 所有 Evaluation.score 的平均（沒有評分時為 0）
"""
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Evaluation
from schemas import EvaluationPatch
from core.locks import with_evaluation_lock, with_event_lock
from core.exceptions import (
    EvaluationAlreadyExists,
    EvaluationNotFound,
    EventNotFound,
    InvalidScore,
)
from services.score_service import (
    get_average_score,
    is_valid_score,
    recompute_event_mean_score,
)
from database import transactional

logger = logging.getLogger(__name__)


class EvaluationManager:
    """Evaluation 生命週期 + 平均分數維護"""

    @staticmethod
    def create_evaluation(
        db: Session,
        event_id: str,
        evaluator_id: str,
        score: float,
        comment: Optional[str] = None,
        evaluated_at: Optional[datetime] = None
    ) -> Evaluation:
        """
        新增評分並重算 Event 平均

        流程：
        1. 驗證分數（0-10），不合法直接拋出，不寫入任何東西
        2. 鎖定 Event
        3. 檢查 (event_id, evaluator_id) 是否已評分
        4. 寫入 Evaluation + 重算 mean_score（同一個 transaction）

        參數：
            db: SQLAlchemy Session
            event_id: Event ID
            evaluator_id: 評分者 ID
            score: 分數（0-10，可以是小數）
            comment: 評語（可省略）
            evaluated_at: 評分時間（預設現在）

        返回：
            新的 Evaluation

        異常：
            InvalidScore: 分數不在 0-10
            EventNotFound: Event 不存在
            EvaluationAlreadyExists: 同一評分者已評過（全部 rollback）
        """
        if not is_valid_score(score):
            raise InvalidScore(score)

        try:
            return EvaluationManager._insert_and_recompute(
                db, event_id, evaluator_id, score, comment, evaluated_at or datetime.now()
            )
        except IntegrityError as e:
            # 兩個請求同時通過檢查時，由 unique constraint 擋下（transaction 已 rollback）
            logger.info(f"Duplicate evaluation rejected by constraint: {e.orig}")
            raise EvaluationAlreadyExists(event_id, evaluator_id) from e

    @staticmethod
    @transactional
    def _insert_and_recompute(
        db: Session,
        event_id: str,
        evaluator_id: str,
        score: float,
        comment: Optional[str],
        evaluated_at: datetime
    ) -> Evaluation:
        event = with_event_lock(event_id, db).first()
        if not event:
            raise EventNotFound(event_id)

        existing = db.query(Evaluation.id).filter(
            Evaluation.event_id == event_id,
            Evaluation.evaluator_id == evaluator_id
        ).first()
        if existing:
            raise EvaluationAlreadyExists(event_id, evaluator_id)

        evaluation = Evaluation(
            event_id=event_id,
            evaluator_id=evaluator_id,
            score=score,
            comment=comment,
            evaluated_at=evaluated_at
        )
        db.add(evaluation)

        mean = recompute_event_mean_score(event_id, db)
        logger.info(
            f"Evaluation by {evaluator_id} on event {event_id}: score={score}, mean={mean}"
        )
        return evaluation

    @staticmethod
    @transactional
    def update_evaluation(db: Session, evaluation_id: str, patch: EvaluationPatch) -> Evaluation:
        """
        修改評分（只接受 EvaluationPatch 列出的欄位）並重算 Event 平均

        event_id、evaluator_id 不可修改

        異常：
            EvaluationNotFound: 評分不存在
            InvalidScore: 新分數不在 0-10
        """
        changes = patch.changes()
        if "score" in changes and not is_valid_score(changes["score"]):
            raise InvalidScore(changes["score"])

        evaluation = db.query(Evaluation).filter(Evaluation.id == evaluation_id).first()
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)

        # 先鎖 Event 再鎖 Evaluation，和 create / delete 的順序一致，避免 deadlock
        with_event_lock(evaluation.event_id, db).first()
        evaluation = with_evaluation_lock(evaluation_id, db).populate_existing().first()
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)

        if not changes:
            return evaluation

        for field, value in changes.items():
            setattr(evaluation, field, value)

        mean = recompute_event_mean_score(evaluation.event_id, db)
        logger.info(f"Evaluation {evaluation_id} updated ({sorted(changes)}), mean={mean}")
        return evaluation

    @staticmethod
    @transactional
    def delete_evaluation(db: Session, evaluation_id: str) -> str:
        """
        刪除評分並重算 Event 平均

        重算失敗時整個 transaction rollback，評分不會被刪除

        返回：
            被刪除評分所屬的 event_id

        異常：
            EvaluationNotFound: 評分不存在
        """
        evaluation = db.query(Evaluation).filter(Evaluation.id == evaluation_id).first()
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)

        event_id = evaluation.event_id
        with_event_lock(event_id, db).first()
        evaluation = with_evaluation_lock(evaluation_id, db).first()
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)

        db.delete(evaluation)

        mean = recompute_event_mean_score(event_id, db)
        logger.info(f"Evaluation {evaluation_id} deleted, event {event_id} mean={mean}")
        return event_id

    @staticmethod
    def get_evaluation(db: Session, evaluation_id: str) -> Evaluation:
        evaluation = db.query(Evaluation).filter(Evaluation.id == evaluation_id).first()
        if not evaluation:
            raise EvaluationNotFound(evaluation_id)
        return evaluation

    @staticmethod
    def list_for_event(db: Session, event_id: str) -> List[Evaluation]:
        return db.query(Evaluation).filter(
            Evaluation.event_id == event_id
        ).order_by(Evaluation.evaluated_at).all()

    @staticmethod
    def get_average_score(db: Session, event_id: str) -> float:
        return get_average_score(event_id, db)
