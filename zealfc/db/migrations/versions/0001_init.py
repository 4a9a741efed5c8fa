"""init league schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("identity_sub", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("phone_number", sa.String(length=32), server_default="", nullable=False),
        sa.Column("position", sa.String(length=30), server_default="Unknown", nullable=False),
        sa.Column("games_played", sa.Integer(), server_default="0", nullable=False),
        sa.Column("goals", sa.Integer(), server_default="0", nullable=False),
        sa.Column("assists", sa.Integer(), server_default="0", nullable=False),
        sa.Column("yellow_cards", sa.Integer(), server_default="0", nullable=False),
        sa.Column("red_cards", sa.Integer(), server_default="0", nullable=False),
        sa.Column("points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("wins", sa.Integer(), server_default="0", nullable=False),
        sa.Column("losses", sa.Integer(), server_default="0", nullable=False),
        sa.Column("draws", sa.Integer(), server_default="0", nullable=False),
        sa.Column("attendance_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("late_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("absence_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("identity_sub"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_identity_sub", "users", ["identity_sub"])
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("identity_sub", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("role", sa.String(length=20), server_default="admin", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("identity_sub"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_admins_identity_sub", "admins", ["identity_sub"])

    op.create_table(
        "stadiums",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
    )

    op.create_table(
        "credit_lots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=20), server_default="subscription", nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_credit_lots_user_id", "credit_lots", ["user_id"])

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="upcoming", nullable=False),
        sa.Column("team_size", sa.Integer(), nullable=False),
        sa.Column("stadium_id", sa.Integer(), nullable=True),
        sa.Column("stadium_name", sa.String(length=120), nullable=False),
        sa.Column("stadium_address", sa.String(length=255), nullable=False),
        sa.Column("stadium_capacity", sa.Integer(), nullable=False),
        sa.Column("host_admin_id", sa.Integer(), nullable=True),
        sa.Column("host_email", sa.String(length=255), nullable=False),
        sa.Column("host_first_name", sa.String(length=80), nullable=False),
        sa.Column("host_last_name", sa.String(length=80), nullable=False),
        sa.Column("host_phone_number", sa.String(length=32), nullable=False),
        sa.Column("host_identity_sub", sa.String(length=128), nullable=False),
        sa.Column("team1_goals", sa.Integer(), server_default="0", nullable=False),
        sa.Column("team2_goals", sa.Integer(), server_default="0", nullable=False),
        sa.Column("outcome", sa.String(length=20), server_default="Draw", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_games_date", "games", ["date"])

    op.create_table(
        "game_players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("team_index", sa.Integer(), nullable=False),
        sa.Column("slot_index", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("position", sa.String(length=30), server_default="Unknown", nullable=False),
        sa.Column("goals", sa.Integer(), server_default="0", nullable=False),
        sa.Column("assists", sa.Integer(), server_default="0", nullable=False),
        sa.Column("yellow_cards", sa.Integer(), server_default="0", nullable=False),
        sa.Column("red_cards", sa.Integer(), server_default="0", nullable=False),
        sa.Column("attendance", sa.String(length=20), server_default="registered", nullable=False),
        sa.Column("used_credits", sa.JSON(), nullable=False),
        sa.UniqueConstraint("game_id", "team_index", "slot_index"),
        sa.UniqueConstraint("game_id", "email"),
    )
    op.create_index("ix_game_players_game_id", "game_players", ["game_id"])

    op.create_table(
        "game_waitlist",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=False),
        sa.Column("last_name", sa.String(length=80), nullable=False),
        sa.Column("position", sa.String(length=30), server_default="Unknown", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("game_id", "email"),
    )
    op.create_index("ix_game_waitlist_game_id", "game_waitlist", ["game_id"])

    op.create_table(
        "user_games",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("stadium", sa.String(length=120), nullable=False),
        sa.Column("goals", sa.Integer(), server_default="0", nullable=False),
        sa.Column("assists", sa.Integer(), server_default="0", nullable=False),
        sa.Column("yellow_cards", sa.Integer(), server_default="0", nullable=False),
        sa.Column("red_cards", sa.Integer(), server_default="0", nullable=False),
        sa.Column("attendance", sa.String(length=20), server_default="absent", nullable=False),
        sa.Column("points_earned", sa.Integer(), server_default="0", nullable=False),
        sa.Column("result", sa.String(length=10), nullable=True),
        sa.Column("team_index", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="upcoming", nullable=False),
        sa.Column("aggregated", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    )

    op.create_table(
        "action_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("actor_admin_id", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("games.id"), nullable=True),
        sa.Column("target_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_action_logs_category", "action_logs", ["category"])
    op.create_index("ix_action_logs_game_id", "action_logs", ["game_id"])


def downgrade() -> None:
    op.drop_index("ix_action_logs_game_id", table_name="action_logs")
    op.drop_index("ix_action_logs_category", table_name="action_logs")
    op.drop_table("action_logs")
    op.drop_table("user_games")
    op.drop_index("ix_game_waitlist_game_id", table_name="game_waitlist")
    op.drop_table("game_waitlist")
    op.drop_index("ix_game_players_game_id", table_name="game_players")
    op.drop_table("game_players")
    op.drop_index("ix_games_date", table_name="games")
    op.drop_table("games")
    op.drop_index("ix_credit_lots_user_id", table_name="credit_lots")
    op.drop_table("credit_lots")
    op.drop_table("stadiums")
    op.drop_index("ix_admins_identity_sub", table_name="admins")
    op.drop_table("admins")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_identity_sub", table_name="users")
    op.drop_table("users")
