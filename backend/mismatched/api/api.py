"""API router aggregation."""
from fastapi import APIRouter

from mismatched.api.endpoints import games, leaderboard, profile

api_router = APIRouter(prefix="/api")
api_router.include_router(games.router)
api_router.include_router(leaderboard.router)
api_router.include_router(profile.router)
