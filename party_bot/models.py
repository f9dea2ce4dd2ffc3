from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import registry, sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import expression
from sqlalchemy.sql.schema import ForeignKey, MetaData

import party_bot.config as config
from party_bot.utils import utc_now_naive


if config.DATABASE_URI:
    db_url = config.DATABASE_URI
else:
    db_url = f"sqlite:///{config.DB_NAME}.db"

if db_url.startswith("postgresql://"):
    engine = create_engine(db_url, echo=False, pool_size=20, max_overflow=20)
    async_engine = create_async_engine(
        db_url.replace("postgresql://", "postgresql+asyncpg://", 1),
        echo=False,
        pool_size=20,
        max_overflow=20,
    )
else:
    engine = create_engine(db_url, echo=False, connect_args={"timeout": 15})
    # Pooled aiosqlite connections would outlive the event loop that opened
    # them, so every async session gets a fresh connection instead
    async_engine = create_async_engine(
        db_url.replace("sqlite://", "sqlite+aiosqlite://", 1),
        echo=False,
        connect_args={"timeout": 15},
        poolclass=NullPool,
    )

    def _on_sqlite_connect(dbapi_connection, connection_record):
        # the driver's own BEGIN is disabled, see _on_sqlite_begin
        dbapi_connection.isolation_level = None
        # membership rows rely on ON DELETE CASCADE
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    def _on_sqlite_begin(conn):
        # Take the write lock up front. A deferred transaction that reads and
        # then writes fails immediately with "database is locked" when another
        # connection got there first, instead of waiting for the busy timeout.
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    # https://docs.sqlalchemy.org/en/20/dialects/sqlite.html#serializable-isolation-savepoints-transactional-ddl
    for _engine in (engine, async_engine.sync_engine):
        event.listen(_engine, "connect", _on_sqlite_connect)
        event.listen(_engine, "begin", _on_sqlite_begin)

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
mapper_registry = registry(metadata=MetaData(naming_convention=naming_convention))
Base = mapper_registry.generate_base()


"""
Python dataclasses mixed with SQLAlchemy using the method here:
https://docs.sqlalchemy.org/en/20/orm/dataclasses.html#mapping-pre-existing-dataclasses-using-declarative-style-fields
"""


@mapper_registry.mapped
@dataclass
class GuildSettings:
    """
    Per guild settings for the registration workflow

    :verification_enabled: When set, new registrations wait in the review
    channel until an admin approves or rejects them
    :approved_role_id: Discord role granted to a player once approved
    :approved_channel_id: Channel the player is pinged in once approved
    """

    __sa_dataclass_metadata_key__ = "sa"
    __tablename__ = "guild_settings"

    guild_id: int = field(
        metadata={"sa": Column(BigInteger, primary_key=True, autoincrement=False)}
    )
    registration_channel_id: int | None = field(
        default=None, metadata={"sa": Column(BigInteger, nullable=True)}
    )
    verification_enabled: bool = field(
        default=False,
        metadata={
            "sa": Column(Boolean, nullable=False, server_default=expression.false())
        },
    )
    review_channel_id: int | None = field(
        default=None, metadata={"sa": Column(BigInteger, nullable=True)}
    )
    approved_role_id: int | None = field(
        default=None, metadata={"sa": Column(BigInteger, nullable=True)}
    )
    approved_channel_id: int | None = field(
        default=None, metadata={"sa": Column(BigInteger, nullable=True)}
    )
    updated_at: datetime = field(
        default_factory=utc_now_naive,
        metadata={"sa": Column(DateTime, nullable=False)},
    )


@mapper_registry.mapped
@dataclass
class Panel:
    """
    A persistent message with a button that opens a queue of one type in the
    panel's channel

    :handle: Discord id of the panel message
    """

    __sa_dataclass_metadata_key__ = "sa"
    __tablename__ = "panel"
    __table_args__ = (UniqueConstraint("guild_id", "queue_type"),)

    handle: str = field(metadata={"sa": Column(String, primary_key=True)})
    guild_id: int = field(
        metadata={"sa": Column(BigInteger, nullable=False, index=True)}
    )
    channel_id: int = field(metadata={"sa": Column(BigInteger, nullable=False)})
    queue_type: str = field(metadata={"sa": Column(String, nullable=False)})
    created_at: datetime = field(
        default_factory=utc_now_naive,
        init=False,
        metadata={"sa": Column(DateTime, nullable=False)},
    )


@mapper_registry.mapped
@dataclass
class PlayerActiveQueue:
    """
    The single open queue a player occupies in a guild. The primary key
    rejects a second claim in the same guild, including one from a concurrent
    join to a different queue.
    """

    __sa_dataclass_metadata_key__ = "sa"
    __tablename__ = "player_active_queue"

    guild_id: int = field(
        metadata={"sa": Column(BigInteger, primary_key=True, autoincrement=False)}
    )
    player_id: int = field(
        metadata={"sa": Column(BigInteger, primary_key=True, autoincrement=False)}
    )
    queue_handle: str = field(
        metadata={
            "sa": Column(
                String,
                ForeignKey("queue.handle", ondelete="CASCADE"),
                nullable=False,
                index=True,
            )
        }
    )


@mapper_registry.mapped
@dataclass
class PlayerRegistration:
    """
    A player's in-game profile for one guild

    :gear_score: Stored as a whole number, e.g. 16280
    :review_message_id: Message in the review channel carrying the approve
    and reject buttons while the registration is pending
    """

    __sa_dataclass_metadata_key__ = "sa"
    __tablename__ = "player_registration"
    __table_args__ = (UniqueConstraint("guild_id", "user_id"),)

    guild_id: int = field(
        metadata={"sa": Column(BigInteger, nullable=False, index=True)}
    )
    user_id: int = field(
        metadata={"sa": Column(BigInteger, nullable=False, index=True)}
    )
    ingame_name: str = field(metadata={"sa": Column(String, nullable=False)})
    ingame_uid: str = field(metadata={"sa": Column(String, nullable=False)})
    gear_score: int = field(metadata={"sa": Column(Integer, nullable=False)})
    primary_weapon: str = field(metadata={"sa": Column(String, nullable=False)})
    secondary_weapon: str = field(metadata={"sa": Column(String, nullable=False)})
    arena_rank: str | None = field(
        default=None, metadata={"sa": Column(String, nullable=True)}
    )
    approval_status: str = field(
        default="pending",
        metadata={
            "sa": Column(
                String, nullable=False, index=True, server_default=text("'pending'")
            )
        },
    )
    review_message_id: int | None = field(
        default=None, metadata={"sa": Column(BigInteger, nullable=True, index=True)}
    )
    reviewed_by: int | None = field(
        default=None, metadata={"sa": Column(BigInteger, nullable=True)}
    )
    reviewed_at: datetime | None = field(
        default=None, metadata={"sa": Column(DateTime, nullable=True)}
    )
    created_at: datetime = field(
        default_factory=utc_now_naive,
        init=False,
        metadata={"sa": Column(DateTime, nullable=False)},
    )
    updated_at: datetime = field(
        default_factory=utc_now_naive,
        metadata={"sa": Column(DateTime, nullable=False)},
    )
    id: str = field(
        init=False,
        default_factory=lambda: str(uuid4()),
        metadata={"sa": Column(String, primary_key=True)},
    )


@mapper_registry.mapped
@dataclass
class Queue:
    """
    One party being formed

    :handle: Discord id of the message rendering the queue. Only ever used as
    an opaque key here.
    :capacity: Copied from the queue type when the queue is created
    :expires_at: When an open queue gets closed automatically
    """

    __sa_dataclass_metadata_key__ = "sa"
    __tablename__ = "queue"
    __table_args__ = (
        # at most one open queue per type per guild
        Index(
            "uq_queue_open_type",
            "guild_id",
            "queue_type",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
    )

    handle: str = field(metadata={"sa": Column(String, primary_key=True)})
    guild_id: int = field(
        metadata={"sa": Column(BigInteger, nullable=False, index=True)}
    )
    channel_id: int = field(metadata={"sa": Column(BigInteger, nullable=False)})
    queue_type: str = field(metadata={"sa": Column(String, nullable=False)})
    capacity: int = field(metadata={"sa": Column(Integer, nullable=False)})
    status: str = field(
        default="open",
        metadata={
            "sa": Column(
                String, nullable=False, index=True, server_default=text("'open'")
            )
        },
    )
    expires_at: datetime | None = field(
        default=None, metadata={"sa": Column(DateTime, nullable=True, index=True)}
    )
    created_at: datetime = field(
        default_factory=utc_now_naive,
        metadata={"sa": Column(DateTime, nullable=False)},
    )


@mapper_registry.mapped
@dataclass
class QueuePlayer:
    """
    A player holding a role in a queue

    :display_name: Snapshot of the player's name when they joined
    """

    __sa_dataclass_metadata_key__ = "sa"
    __tablename__ = "queue_player"
    __table_args__ = (UniqueConstraint("queue_handle", "player_id"),)

    queue_handle: str = field(
        metadata={
            "sa": Column(
                String,
                ForeignKey("queue.handle", ondelete="CASCADE"),
                nullable=False,
                index=True,
            )
        },
    )
    player_id: int = field(
        metadata={"sa": Column(BigInteger, nullable=False, index=True)}
    )
    display_name: str = field(metadata={"sa": Column(String, nullable=False)})
    role: str = field(metadata={"sa": Column(String, nullable=False)})
    joined_at: datetime = field(
        default_factory=utc_now_naive,
        metadata={"sa": Column(DateTime, nullable=False, index=True)},
    )
    id: str = field(
        init=False,
        default_factory=lambda: str(uuid4()),
        metadata={"sa": Column(String, primary_key=True)},
    )


Session: sessionmaker = sessionmaker(bind=engine)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)
