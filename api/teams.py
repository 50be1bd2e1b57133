"""
Team API Endpoints

職責：
1. 建立 / 修改 / 查詢隊伍
2. 新增 / 移除成員
3. 關聯活動
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import MemberAdd, TeamCreate, TeamEventAdd, TeamPatch, TeamResponse
from core.team_manager import TeamManager
from core.exceptions import (
    CapacityExceeded,
    TeamNotFound,
    TransientStorageError,
    ValidationError,
)

router = APIRouter(prefix="/api/teams", tags=["teams"])
logger = logging.getLogger(__name__)


@router.post("", response_model=TeamResponse, status_code=201)
def create_team(team_data: TeamCreate, db: Session = Depends(get_db)):
    """建立隊伍（負責人會自動成為成員）"""
    try:
        team = TeamManager.create_team(
            db,
            name=team_data.name,
            responsible_user_id=team_data.responsible_user_id,
            max_members=team_data.max_members
        )
        return TeamResponse.model_validate(team)

    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to create team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[TeamResponse])
def list_teams(db: Session = Depends(get_db)):
    try:
        return [TeamResponse.model_validate(t) for t in TeamManager.list_teams(db)]

    except Exception as e:
        logger.error(f"Failed to list teams: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{team_id}", response_model=TeamResponse)
def get_team(team_id: str, db: Session = Depends(get_db)):
    try:
        return TeamResponse.model_validate(TeamManager.get_team(db, team_id))

    except TeamNotFound:
        raise HTTPException(status_code=404, detail="Team not found")
    except Exception as e:
        logger.error(f"Failed to get team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.patch("/{team_id}", response_model=TeamResponse)
def update_team(team_id: str, patch: TeamPatch, db: Session = Depends(get_db)):
    """
    修改隊伍

    只接受 name、responsible_user_id、max_members，其他欄位會回 422
    """
    try:
        return TeamResponse.model_validate(TeamManager.update_team(db, team_id, patch))

    except TeamNotFound:
        raise HTTPException(status_code=404, detail="Team not found")
    except CapacityExceeded as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to update team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{team_id}/members", response_model=TeamResponse)
def add_member(team_id: str, member: MemberAdd, db: Session = Depends(get_db)):
    """
    新增成員

    - 已經是成員：200，不變
    - 隊伍已滿：409 "Team is full"
    """
    try:
        team = TeamManager.add_member(db, team_id, member.user_id)
        return TeamResponse.model_validate(team)

    except TeamNotFound:
        raise HTTPException(status_code=404, detail="Team not found")
    except CapacityExceeded:
        raise HTTPException(status_code=409, detail="Team is full")
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to add member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{team_id}/members/{user_id}", response_model=TeamResponse)
def remove_member(team_id: str, user_id: str, db: Session = Depends(get_db)):
    """移除成員（冪等）"""
    try:
        team = TeamManager.remove_member(db, team_id, user_id)
        return TeamResponse.model_validate(team)

    except TeamNotFound:
        raise HTTPException(status_code=404, detail="Team not found")
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to remove member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{team_id}/events", response_model=TeamResponse)
def add_event(team_id: str, link: TeamEventAdd, db: Session = Depends(get_db)):
    """關聯活動（冪等）"""
    try:
        team = TeamManager.add_event(db, team_id, link.event_id)
        return TeamResponse.model_validate(team)

    except TeamNotFound:
        raise HTTPException(status_code=404, detail="Team not found")
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to link event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{team_id}", status_code=204)
def delete_team(team_id: str, db: Session = Depends(get_db)):
    """刪除隊伍（成員與活動關聯一併移除）"""
    try:
        TeamManager.delete_team(db, team_id)

    except TeamNotFound:
        raise HTTPException(status_code=404, detail="Team not found")
    except TransientStorageError:
        raise HTTPException(status_code=503, detail="Storage unavailable, retry later")
    except Exception as e:
        logger.error(f"Failed to delete team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
