"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 會忽略 FOR UPDATE，但它本身只允許單一 writer，
所以「檢查 + 寫入」必須另外寫成單一 SQL（見 append_member_if_room）
"""
from sqlalchemy import and_, exists, func, insert, literal, or_, select
from sqlalchemy.orm import Session, Query

from models import Event, Evaluation, Registration, Team, TeamEvent, TeamMember


def with_event_lock(event_id: str, db: Session) -> Query:
    """
    鎖定一個 Event（行級鎖）

    使用場景：
    - 新增 / 修改 / 刪除 Evaluation 並重算 mean_score 時
      （同一個 Event 的評分寫入必須排隊，否則平均值會漏算）
    - 修改 Event 狀態時

    範例：
        event = with_event_lock(event_id, db).first()
        if not event:
            raise EventNotFound(event_id)

    參數：
        event_id: Event ID
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Event).filter(
        Event.id == event_id
    ).with_for_update(nowait=False)


def with_team_lock(team_id: str, db: Session) -> Query:
    """
    鎖定一個 Team（行級鎖）

    使用場景：
    - 新增成員（容量檢查 + 新增必須是同一個原子操作）
    - 修改 max_members / 負責人

    參數：
        team_id: Team ID
        db: SQLAlchemy Session

    返回：
        Query object
    """
    return db.query(Team).filter(
        Team.id == team_id
    ).with_for_update(nowait=False)


def with_evaluation_lock(evaluation_id: str, db: Session) -> Query:
    """
    鎖定一個 Evaluation（行級鎖）

    參數：
        evaluation_id: Evaluation ID
        db: SQLAlchemy Session

    返回：
        Query object
    """
    return db.query(Evaluation).filter(
        Evaluation.id == evaluation_id
    ).with_for_update(nowait=False)


def with_registration_lock(registration_id: str, db: Session) -> Query:
    """
    鎖定一個 Registration（行級鎖）

    參數：
        registration_id: Registration ID
        db: SQLAlchemy Session

    返回：
        Query object
    """
    return db.query(Registration).filter(
        Registration.id == registration_id
    ).with_for_update(nowait=False)


def append_member_if_room(team_id: str, user_id: str, db: Session) -> int:
    """
    條件式新增成員：只有在「尚未是成員」且「人數未滿（或 max_members = 0）」時才寫入

    容量檢查和新增在同一個 INSERT ... SELECT 內完成，
    資料庫在寫入的同時計算人數，不會有 check-then-write 的空窗。

    等同於：
        INSERT INTO team_members (team_id, user_id)
        SELECT teams.id, :user_id FROM teams
        WHERE teams.id = :team_id
          AND NOT EXISTS (SELECT 1 FROM team_members WHERE team_id = :team_id AND user_id = :user_id)
          AND (teams.max_members = 0
               OR (SELECT COUNT(*) FROM team_members WHERE team_id = :team_id) < teams.max_members)

    參數：
        team_id: Team ID
        user_id: 使用者 ID
        db: SQLAlchemy Session

    返回：
        寫入的列數（0 表示已經是成員或人數已滿，由呼叫者判斷）
    """
    member_count = (
        select(func.count(TeamMember.id))
        .where(TeamMember.team_id == team_id)
        .scalar_subquery()
    )
    already_member = exists().where(
        TeamMember.team_id == team_id,
        TeamMember.user_id == user_id
    )
    source = select(Team.id, literal(user_id)).where(
        and_(
            Team.id == team_id,
            ~already_member,
            or_(Team.max_members == 0, member_count < Team.max_members)
        )
    )
    result = db.execute(
        insert(TeamMember.__table__).from_select(["team_id", "user_id"], source)
    )
    return result.rowcount


def link_event_if_absent(team_id: str, event_id: str, db: Session) -> int:
    """
    條件式關聯活動：(team_id, event_id) 不存在才寫入

    返回：
        寫入的列數（0 表示已關聯或隊伍不存在）
    """
    already_linked = exists().where(
        TeamEvent.team_id == team_id,
        TeamEvent.event_id == event_id
    )
    source = select(Team.id, literal(event_id)).where(
        and_(Team.id == team_id, ~already_linked)
    )
    result = db.execute(
        insert(TeamEvent.__table__).from_select(["team_id", "event_id"], source)
    )
    return result.rowcount
