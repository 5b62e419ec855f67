"""Persistence and aggregate queries for finished games.

Uses SQLAlchemy 2.0 async API; one instance wraps one request's session.
"""
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select

from mismatched.models.game import Game
from mismatched.models.user import User
from mismatched.schemas.game import LeaderboardEntry, UserStats


class ScoreRecordStore:
    """Store for sanitized game results."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_game(self, result) -> Game:
        """
        Persist a GameResult.

        The row is flushed and committed here so that a storage failure
        surfaces before the caller reports success.

        Args:
            result: GameResult produced by GameSessionService

        Returns:
            The stored Game row
        """
        game = Game(
            user_id=result.user_id,
            score=result.score,
            bonus=result.bonus,
            total_points=result.total_points,
            time_remaining=result.time_remaining,
            matches_found=result.matches_found,
            completed_at=result.completed_at,
        )
        self.db.add(game)
        await self.db.commit()
        await self.db.refresh(game)
        return game

    async def get_user_games(self, user_id: str, limit: int = 50) -> List[Game]:
        """Most recent games of user_id, newest first."""
        stmt = (
            select(Game)
            .where(Game.user_id == user_id)
            .order_by(Game.completed_at.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        """Top users by summed total points. Users without games are left out."""
        total_points = func.sum(Game.total_points).label("total_points")
        stmt = (
            select(
                User.id,
                User.username,
                User.wallet_address,
                User.profile_image_url,
                total_points,
                func.count(Game.id).label("games_played"),
                func.max(Game.total_points).label("best_score"),
            )
            .join(Game, Game.user_id == User.id)
            .group_by(User.id, User.username, User.wallet_address, User.profile_image_url)
            .order_by(total_points.desc())
            .limit(limit)
        )
        rows = (await self.db.execute(stmt)).all()

        return [
            LeaderboardEntry(
                user_id=user_id,
                username=username,
                wallet_address=wallet_address,
                profile_image_url=profile_image_url,
                total_points=int(points or 0),
                games_played=int(played or 0),
                best_score=int(best or 0),
            )
            for user_id, username, wallet_address, profile_image_url, points, played, best in rows
        ]

    async def get_user_stats(self, user_id: str) -> UserStats:
        """Aggregates over all games of user_id; zeros when there are none."""
        stmt = select(
            func.coalesce(func.sum(Game.total_points), 0),
            func.count(Game.id),
            func.coalesce(func.avg(Game.total_points), 0),
            func.coalesce(func.max(Game.total_points), 0),
            func.coalesce(func.sum(Game.matches_found), 0),
        ).where(Game.user_id == user_id)
        total, played, average, best, matches = (await self.db.execute(stmt)).one()

        return UserStats(
            total_points=int(total),
            games_played=int(played),
            average_score=round(float(average), 2),
            best_score=int(best),
            total_matches=int(matches),
        )
