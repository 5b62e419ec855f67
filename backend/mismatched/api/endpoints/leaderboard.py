"""Leaderboard API endpoint."""
from typing import List
from fastapi import APIRouter, Depends

from mismatched.api.dependencies import get_score_store
from mismatched.core.config import settings
from mismatched.schemas.game import LeaderboardEntry
from mismatched.services.score_store import ScoreRecordStore

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=List[LeaderboardEntry])
async def get_leaderboard(store: ScoreRecordStore = Depends(get_score_store)):
    """Top players by total points. Public."""
    return await store.get_leaderboard(settings.LEADERBOARD_LIMIT)
