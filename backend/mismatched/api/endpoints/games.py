"""Game session API endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, status

from mismatched.api.dependencies import (
    get_client_ip,
    get_current_user,
    get_game_session_service,
    get_score_store,
)
from mismatched.schemas.game import GameStartResponse, StoredGame
from mismatched.services.game_session_service import GameSessionService, extract_session_id
from mismatched.services.score_store import ScoreRecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])


@router.post("/start", response_model=GameStartResponse)
async def start_game(
    request: Request,
    current_user: dict = Depends(get_current_user),
    service: GameSessionService = Depends(get_game_session_service),
):
    """
    Start a timed game session.

    Requires: JWT authentication
    Returns: session id to send back with the score, and its expiry
    """
    return service.start(current_user["user_id"], get_client_ip(request))


@router.post("", response_model=StoredGame, status_code=status.HTTP_201_CREATED)
async def submit_game(
    request: Request,
    payload: Any = Body(None),
    current_user: dict = Depends(get_current_user),
    service: GameSessionService = Depends(get_game_session_service),
    store: ScoreRecordStore = Depends(get_score_store),
):
    """
    Submit the outcome of a game started with /games/start.

    The body is validated by the session service rather than by FastAPI so
    that session checks run before payload checks.

    Requires: JWT authentication
    Returns: the stored, server-sanitized game
    """
    game = await service.submit(
        current_user["user_id"],
        get_client_ip(request),
        extract_session_id(payload),
        payload,
        store,
    )
    return StoredGame.model_validate(game)
