"""create friendtime tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-16 23:58:41.102934

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    friendship_status = sa.Enum("PENDING", "ACCEPTED", "REJECTED", name="friendshipstatus")
    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_low", sa.Integer(), nullable=False),
        sa.Column("user_high", sa.Integer(), nullable=False),
        sa.Column("status", friendship_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_low", "user_high", name="uq_friendship_pair"),
        sa.CheckConstraint("user_low < user_high", name="ck_friendship_pair_order"),
    )
    op.create_index("ix_friendships_recipient_status", "friendships", ["recipient_id", "status"])

    op.create_table(
        "positions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_positions_user_id", "positions", ["user_id"], unique=True)
    op.create_index("ix_positions_recorded_at", "positions", ["recorded_at"])

    op.create_table(
        "time_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_low", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_high", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint("user_low < user_high", name="ck_time_sessions_pair_order"),
    )
    # at most one active session per pair
    op.create_index(
        "uq_time_sessions_active_pair",
        "time_sessions",
        ["user_low", "user_high"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_index("ix_time_sessions_low_started", "time_sessions", ["user_low", "started_at"])
    op.create_index("ix_time_sessions_high_started", "time_sessions", ["user_high", "started_at"])
    op.create_index("ix_time_sessions_active", "time_sessions", ["is_active"])


def downgrade() -> None:
    op.drop_table("time_sessions")
    op.drop_table("positions")
    op.drop_table("friendships")
    op.execute("DROP TYPE IF EXISTS friendshipstatus;")
    op.drop_table("users")
