"""Profile API endpoints.

Users can only read their own stats and game history.
"""
from typing import List
from fastapi import APIRouter, Depends

from mismatched.api.dependencies import get_current_user, get_score_store
from mismatched.core.config import settings
from mismatched.core.exceptions import ForbiddenError
from mismatched.schemas.game import StoredGame, UserStats
from mismatched.services.score_store import ScoreRecordStore

router = APIRouter(prefix="/profile", tags=["profile"])


def _ensure_own_profile(user_id: str, current_user: dict) -> None:
    if str(current_user["user_id"]) != user_id:
        raise ForbiddenError("Forbidden: You can only view your own profile")


@router.get("/{user_id}/stats", response_model=UserStats)
async def get_user_stats(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    store: ScoreRecordStore = Depends(get_score_store),
):
    """Aggregate stats of the current user."""
    _ensure_own_profile(user_id, current_user)
    return await store.get_user_stats(user_id)


@router.get("/{user_id}/games", response_model=List[StoredGame])
async def get_user_games(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    store: ScoreRecordStore = Depends(get_score_store),
):
    """Most recent games of the current user, newest first."""
    _ensure_own_profile(user_id, current_user)
    games = await store.get_user_games(user_id, settings.USER_GAMES_LIMIT)
    return [StoredGame.model_validate(g) for g in games]
