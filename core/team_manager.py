"""
Team Manager：管理隊伍成員與容量限制

職責：
1. 建立 / 修改隊伍
2. 新增成員（容量檢查 + 新增是同一個原子操作）
3. 移除成員（冪等）
4. 關聯活動（冪等）

不變條件：
- max_members > 0 時，成員數 <= max_members
- 成員不重複
- 負責人（若有）一定是成員
"""
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from models import Team, TeamMember
from schemas import TeamPatch
from core.locks import append_member_if_room, link_event_if_absent, with_team_lock
from core.exceptions import CapacityExceeded, TeamNotFound, ValidationError
from database import transactional

logger = logging.getLogger(__name__)


class TeamManager:
    """Team 成員管理器"""

    @staticmethod
    @transactional
    def create_team(
        db: Session,
        name: str,
        responsible_user_id: Optional[str] = None,
        max_members: int = 0
    ) -> Team:
        """
        建立新隊伍

        負責人會自動成為第一位成員（max_members = 0 表示不限人數）

        異常：
            ValidationError: max_members < 0
        """
        if max_members < 0:
            raise ValidationError(f"max_members must be >= 0, got {max_members}")

        team = Team(
            name=name,
            responsible_user_id=responsible_user_id,
            max_members=max_members
        )
        db.add(team)
        db.flush()

        if responsible_user_id:
            db.add(TeamMember(team_id=team.id, user_id=responsible_user_id))

        logger.info(f"Created team {team.id} ({name}), max_members={max_members}")
        return team

    @staticmethod
    @transactional
    def update_team(db: Session, team_id: str, patch: TeamPatch) -> Team:
        """
        修改隊伍（只接受 TeamPatch 列出的欄位）

        規則：
        - max_members 不能小於目前成員數
        - 新的負責人會被加入成員（受容量限制）

        異常：
            TeamNotFound: 隊伍不存在
            ValidationError: max_members 小於目前成員數
            CapacityExceeded: 新負責人無法加入（隊伍已滿）
        """
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        changes = patch.changes()

        if "max_members" in changes:
            member_count = TeamManager._count_members(db, team_id)
            new_max = changes["max_members"]
            if new_max > 0 and new_max < member_count:
                raise ValidationError(
                    f"max_members ({new_max}) cannot be lower than current member count ({member_count})"
                )

        for field, value in changes.items():
            setattr(team, field, value)
        db.flush()

        responsible = changes.get("responsible_user_id")
        if responsible and append_member_if_room(team_id, responsible, db) == 0:
            if not TeamManager._is_member(db, team_id, responsible):
                raise CapacityExceeded(team_id, team.max_members)

        db.refresh(team)
        logger.info(f"Updated team {team_id}: {sorted(changes)}")
        return team

    @staticmethod
    @transactional
    def add_member(db: Session, team_id: str, user_id: str) -> Team:
        """
        新增成員

        流程：
        1. 鎖定 Team（PostgreSQL 下同一隊伍的新增會排隊）
        2. 已經是成員 -> 直接成功（no-op）
        3. 條件式 INSERT：人數未滿且尚未是成員才寫入
        4. 沒寫入 -> CapacityExceeded

        參數：
            db: SQLAlchemy Session
            team_id: Team ID
            user_id: 使用者 ID

        返回：
            更新後的 Team

        異常：
            TeamNotFound: 隊伍不存在
            CapacityExceeded: 隊伍已滿，成員不變
        """
        # 1. 取得並鎖定 Team
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        # 2. 已經是成員（包含負責人）
        if TeamManager._is_member(db, team_id, user_id):
            logger.debug(f"User {user_id} already in team {team_id}")
            return team

        # 3. 條件式新增（未滿且尚未是成員才寫入）
        inserted = append_member_if_room(team_id, user_id, db)

        # 4. 沒寫入：可能是同時被加入，否則就是容量已滿
        if inserted == 0:
            if TeamManager._is_member(db, team_id, user_id):
                db.refresh(team)
                return team
            logger.info(f"Team {team_id} is full, rejected user {user_id}")
            raise CapacityExceeded(team_id, team.max_members)

        db.refresh(team)
        logger.info(f"User {user_id} joined team {team_id}")
        return team

    @staticmethod
    @transactional
    def remove_member(db: Session, team_id: str, user_id: str) -> Team:
        """
        移除成員（冪等：不是成員也算成功）

        注意：
            移除負責人只會移除成員資格，responsible_user_id 不會被清掉，
            需要由呼叫者另外更新
        """
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise TeamNotFound(team_id)

        removed = db.query(TeamMember).filter(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id
        ).delete(synchronize_session=False)

        if removed:
            logger.info(f"User {user_id} left team {team_id}")
        db.flush()
        db.refresh(team)
        return team

    @staticmethod
    @transactional
    def add_event(db: Session, team_id: str, event_id: str) -> Team:
        """
        關聯活動到隊伍（冪等：已關聯則不變）

        異常：
            TeamNotFound: 隊伍不存在
        """
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise TeamNotFound(team_id)

        if link_event_if_absent(team_id, event_id, db):
            logger.info(f"Linked event {event_id} to team {team_id}")

        db.refresh(team)
        return team

    @staticmethod
    def get_team(db: Session, team_id: str) -> Team:
        """
        透過 ID 取得 Team

        異常：
            TeamNotFound: 隊伍不存在
        """
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise TeamNotFound(team_id)
        return team

    @staticmethod
    @transactional
    def delete_team(db: Session, team_id: str) -> None:
        """
        刪除隊伍（成員與活動關聯一併刪除，Event 本身不受影響）

        異常：
            TeamNotFound: 隊伍不存在
        """
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

        db.delete(team)
        logger.info(f"Team {team_id} deleted")

    @staticmethod
    def list_teams(db: Session) -> List[Team]:
        return db.query(Team).order_by(Team.name, Team.id).all()

    @staticmethod
    def get_member_ids(db: Session, team_id: str) -> List[str]:
        return TeamManager.get_team(db, team_id).member_ids

    @staticmethod
    def _is_member(db: Session, team_id: str, user_id: str) -> bool:
        return db.query(TeamMember.id).filter(
            TeamMember.team_id == team_id,
            TeamMember.user_id == user_id
        ).first() is not None

    @staticmethod
    def _count_members(db: Session, team_id: str) -> int:
        return db.query(TeamMember).filter(TeamMember.team_id == team_id).count()
