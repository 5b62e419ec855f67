"""create users and games

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    """Create users and games tables."""
    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("wallet_address", sa.String(length=42), nullable=False),
            sa.Column("username", sa.String(length=20), nullable=False),
            sa.Column("profile_image_url", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("username", name="uq_users_username"),
        )
        op.create_index("ix_users_wallet_address", "users", ["wallet_address"], unique=True)

    if not _table_exists("games"):
        op.create_table(
            "games",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("score", sa.Integer(), nullable=False),
            sa.Column("bonus", sa.Integer(), nullable=False),
            sa.Column("total_points", sa.Integer(), nullable=False),
            sa.Column("time_remaining", sa.Integer(), nullable=False),
            sa.Column("matches_found", sa.Integer(), nullable=False),
            sa.Column("completed_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_games_user_id", "games", ["user_id"], unique=False)
        op.create_index("idx_games_user_completed", "games", ["user_id", "completed_at"], unique=False)


def downgrade() -> None:
    """Drop games and users tables."""
    op.drop_index("idx_games_user_completed", table_name="games")
    op.drop_index("ix_games_user_id", table_name="games")
    op.drop_table("games")

    op.drop_index("ix_users_wallet_address", table_name="users")
    op.drop_table("users")
