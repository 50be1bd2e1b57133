"""
評分服務：Event.mean_score 的計算

mean_score 是 Evaluation.score 的算術平均（沒有評分時為 0），
由資料庫在同一個 UPDATE 裡計算，必須在呼叫者的 transaction 內執行。
"""
from sqlalchemy import Numeric, cast, func, select, update
from sqlalchemy.orm import Session

from models import Evaluation, Event

SCORE_MIN = 0
SCORE_MAX = 10
MEAN_PRECISION = 2


def is_valid_score(score) -> bool:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return False
    return SCORE_MIN <= score <= SCORE_MAX


def _rounded_mean(event_id: str):
    # 寫入和查詢共用同一個 SQL 運算式，進位規則（ROUND）才會一致
    average = (
        select(func.coalesce(func.avg(Evaluation.score), 0))
        .where(Evaluation.event_id == event_id)
        .scalar_subquery()
    )
    return func.round(cast(average, Numeric), MEAN_PRECISION)


def recompute_event_mean_score(event_id: str, db: Session) -> float:
    """
    重新計算 Event 的平均分數

    等同於：
        UPDATE events
        SET mean_score = ROUND(COALESCE((SELECT AVG(score) FROM evaluations WHERE event_id = :id), 0), 2)
        WHERE id = :id

    參數：
        event_id: Event ID
        db: SQLAlchemy Session

    返回：
        新的 mean_score

    注意：
        - 不 commit，交由外層 transaction 處理
        - 呼叫前應先用 with_event_lock 鎖定 Event，
          同一個 Event 的並發評分才會依序計算，不會漏掉已 commit 的評分
    """
    # session 是 autoflush=False，先把尚未寫出的 Evaluation 變更送到資料庫
    db.flush()

    db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(mean_score=_rounded_mean(event_id))
        .execution_options(synchronize_session=False)
    )
    # UPDATE 沒有同步 session 內的物件，重新讀取 mean_score
    event = db.get(Event, event_id)
    if event is None:
        return 0.0
    db.refresh(event, attribute_names=["mean_score"])
    return float(event.mean_score)


def get_average_score(event_id: str, db: Session) -> float:
    """
    直接從 Evaluation 計算平均分數（不寫入 Event）

    用途：
        查詢 / 驗證 mean_score 是否一致

    返回：
        平均分數，沒有評分時為 0
    """
    average = db.execute(select(_rounded_mean(event_id))).scalar()
    return float(average) if average is not None else 0.0
