"""initial schema

Revision ID: 3f9c2a7d51be
Revises:
Create Date: 2025-11-04 19:30:12.418203

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9c2a7d51be"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "guild_settings",
        sa.Column("guild_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("registration_channel_id", sa.BigInteger(), nullable=True),
        sa.Column(
            "verification_enabled",
            sa.Boolean(),
            server_default=sa.false(),
            nullable=False,
        ),
        sa.Column("review_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("approved_role_id", sa.BigInteger(), nullable=True),
        sa.Column("approved_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("guild_id", name=op.f("pk_guild_settings")),
    )

    op.create_table(
        "panel",
        sa.Column("handle", sa.String(), nullable=False),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("queue_type", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("handle", name=op.f("pk_panel")),
        sa.UniqueConstraint("guild_id", "queue_type", name=op.f("uq_panel_guild_id")),
    )
    with op.batch_alter_table("panel", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_panel_guild_id"), ["guild_id"], unique=False)

    op.create_table(
        "player_registration",
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("ingame_name", sa.String(), nullable=False),
        sa.Column("ingame_uid", sa.String(), nullable=False),
        sa.Column("gear_score", sa.Integer(), nullable=False),
        sa.Column("primary_weapon", sa.String(), nullable=False),
        sa.Column("secondary_weapon", sa.String(), nullable=False),
        sa.Column("arena_rank", sa.String(), nullable=True),
        sa.Column(
            "approval_status",
            sa.String(),
            server_default=sa.text("'pending'"),
            nullable=False,
        ),
        sa.Column("review_message_id", sa.BigInteger(), nullable=True),
        sa.Column("reviewed_by", sa.BigInteger(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_player_registration")),
        sa.UniqueConstraint(
            "guild_id", "user_id", name=op.f("uq_player_registration_guild_id")
        ),
    )
    with op.batch_alter_table("player_registration", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_player_registration_guild_id"), ["guild_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_player_registration_user_id"), ["user_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_player_registration_approval_status"),
            ["approval_status"],
            unique=False,
        )
        batch_op.create_index(
            batch_op.f("ix_player_registration_review_message_id"),
            ["review_message_id"],
            unique=False,
        )

    op.create_table(
        "queue",
        sa.Column("handle", sa.String(), nullable=False),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("queue_type", sa.String(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column(
            "status", sa.String(), server_default=sa.text("'open'"), nullable=False
        ),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("handle", name=op.f("pk_queue")),
    )
    with op.batch_alter_table("queue", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_queue_guild_id"), ["guild_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_queue_status"), ["status"], unique=False)
        batch_op.create_index(
            batch_op.f("ix_queue_expires_at"), ["expires_at"], unique=False
        )
        batch_op.create_index(
            "uq_queue_open_type",
            ["guild_id", "queue_type"],
            unique=True,
            sqlite_where=sa.text("status = 'open'"),
            postgresql_where=sa.text("status = 'open'"),
        )

    op.create_table(
        "player_active_queue",
        sa.Column("guild_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("player_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("queue_handle", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(
            ["queue_handle"],
            ["queue.handle"],
            name=op.f("fk_player_active_queue_queue_handle_queue"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "guild_id", "player_id", name=op.f("pk_player_active_queue")
        ),
    )
    with op.batch_alter_table("player_active_queue", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_player_active_queue_queue_handle"),
            ["queue_handle"],
            unique=False,
        )

    op.create_table(
        "queue_player",
        sa.Column("queue_handle", sa.String(), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.Column("id", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(
            ["queue_handle"],
            ["queue.handle"],
            name=op.f("fk_queue_player_queue_handle_queue"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_queue_player")),
        sa.UniqueConstraint(
            "queue_handle", "player_id", name=op.f("uq_queue_player_queue_handle")
        ),
    )
    with op.batch_alter_table("queue_player", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_queue_player_queue_handle"), ["queue_handle"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_queue_player_player_id"), ["player_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_queue_player_joined_at"), ["joined_at"], unique=False
        )


def downgrade():
    op.drop_table("queue_player")
    op.drop_table("player_active_queue")
    with op.batch_alter_table("queue", schema=None) as batch_op:
        batch_op.drop_index("uq_queue_open_type")
    op.drop_table("queue")
    op.drop_table("player_registration")
    op.drop_table("panel")
    op.drop_table("guild_settings")
