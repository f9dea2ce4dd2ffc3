"""
The queue entity: one queue's identity plus every membership and status
operation on it.

A QueueEntity only carries fields that never change for the life of a queue.
Every operation opens its own session and commits before returning, so two
entities loaded for the same handle never disagree about anything but their
identity, which is immutable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import and_, func, insert, literal, select, update
from sqlalchemy.exc import IntegrityError

from party_bot.async_db_utils import (
    async_count,
    async_delete_where,
    async_query_all,
    async_query_first,
    async_session,
)
from party_bot.constants import (
    QUEUE_CONFIGS,
    PlayerRole,
    QueueStatus,
    QueueType,
)
from party_bot.exceptions import (
    PlayerInAnotherQueue,
    QueueAlreadyExists,
    QueueClosed,
    QueueFull,
    QueueHandleExists,
    QueueNotFound,
)
from party_bot.models import PlayerActiveQueue, Queue, QueuePlayer
from party_bot.utils import utc_now_naive

_log = logging.getLogger(__name__)


class JoinResult(str, Enum):
    JOINED = "joined"
    SWITCHED = "switched"


@dataclass(frozen=True)
class JoinOutcome:
    """
    :is_full: The join filled the last slot, the caller should run queue full
    handling
    """

    result: JoinResult
    is_full: bool = False


@dataclass(frozen=True)
class QueueMember:
    player_id: int
    display_name: str
    role: PlayerRole
    joined_at: datetime


@dataclass(frozen=True)
class QueueState:
    """
    Snapshot of a queue handed to the presentation layer
    """

    handle: str
    guild_id: int
    channel_id: int
    queue_type: QueueType
    capacity: int
    status: QueueStatus
    expires_at: datetime | None
    created_at: datetime
    members: tuple[QueueMember, ...]

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def is_closed(self) -> bool:
        return self.status == QueueStatus.CLOSED

    @property
    def is_full(self) -> bool:
        return self.member_count >= self.capacity

    @property
    def available_slots(self) -> int:
        return max(self.capacity - self.member_count, 0)

    @property
    def progress_fraction(self) -> float:
        return min(self.member_count / self.capacity, 1.0)

    @property
    def player_ids(self) -> list[int]:
        return [member.player_id for member in self.members]

    def members_with_role(self, role: PlayerRole) -> list[QueueMember]:
        return [member for member in self.members if member.role == role]


class QueueEntity:
    def __init__(
        self,
        handle: str,
        guild_id: int,
        channel_id: int,
        queue_type: QueueType,
        capacity: int,
        created_at: datetime,
    ):
        self.handle = handle
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.queue_type = queue_type
        self.capacity = capacity
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"QueueEntity(handle={self.handle!r}, queue_type={self.queue_type.value!r})"

    @classmethod
    def _from_record(cls, record: Queue) -> QueueEntity:
        return cls(
            handle=record.handle,
            guild_id=record.guild_id,
            channel_id=record.channel_id,
            queue_type=QueueType(record.queue_type),
            capacity=record.capacity,
            created_at=record.created_at,
        )

    @classmethod
    async def create(
        cls,
        handle: str,
        guild_id: int,
        channel_id: int,
        queue_type: QueueType | str,
        expires_at: datetime | None = None,
    ) -> QueueEntity:
        """
        Persist a new open queue. Capacity comes from the queue type.

        :raises QueueHandleExists: a queue already uses this handle
        :raises QueueAlreadyExists: an open queue of this type already exists
        in the guild
        """
        queue_type = QueueType(queue_type)
        record = Queue(
            handle=handle,
            guild_id=guild_id,
            channel_id=channel_id,
            queue_type=queue_type.value,
            capacity=QUEUE_CONFIGS[queue_type].capacity,
            status=QueueStatus.OPEN.value,
            expires_at=expires_at,
        )
        async with async_session() as session:
            if await session.get(Queue, handle) is not None:
                raise QueueHandleExists()
            session.add(record)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                if await session.get(Queue, handle) is not None:
                    raise QueueHandleExists()
                raise QueueAlreadyExists()
        _log.info(
            f"[create] Created {queue_type.value} queue {handle} in guild {guild_id}"
        )
        return cls._from_record(record)

    @classmethod
    async def load(cls, handle: str) -> QueueEntity | None:
        async with async_session() as session:
            record = await session.get(Queue, handle)
            return cls._from_record(record) if record else None

    @classmethod
    async def load_open_by_type(
        cls, guild_id: int, queue_type: QueueType | str
    ) -> QueueEntity | None:
        async with async_session() as session:
            record = await async_query_first(
                session,
                Queue,
                Queue.guild_id == guild_id,
                Queue.queue_type == QueueType(queue_type).value,
                Queue.status == QueueStatus.OPEN.value,
            )
            return cls._from_record(record) if record else None

    @classmethod
    async def load_by_type(
        cls, guild_id: int, queue_type: QueueType | str
    ) -> QueueEntity | None:
        """
        The open queue of this type, or failing that the most recently created
        closed one
        """
        queue = await cls.load_open_by_type(guild_id, queue_type)
        if queue:
            return queue
        async with async_session() as session:
            record = await async_query_first(
                session,
                Queue,
                Queue.guild_id == guild_id,
                Queue.queue_type == QueueType(queue_type).value,
                order_by=(Queue.created_at.desc(),),
            )
            return cls._from_record(record) if record else None

    @classmethod
    async def load_all_for_guild(cls, guild_id: int) -> list[QueueEntity]:
        async with async_session() as session:
            records = await async_query_all(session, Queue, Queue.guild_id == guild_id)
            return [cls._from_record(record) for record in records]

    @classmethod
    async def load_all(cls, status: QueueStatus | None = None) -> list[QueueEntity]:
        async with async_session() as session:
            if status is None:
                records = await async_query_all(session, Queue)
            else:
                records = await async_query_all(
                    session, Queue, Queue.status == status.value
                )
            return [cls._from_record(record) for record in records]

    async def _get_status(self, session) -> QueueStatus | None:
        status = await session.scalar(
            select(Queue.status).where(Queue.handle == self.handle)
        )
        return QueueStatus(status) if status else None

    async def add_member(
        self, player_id: int, display_name: str, role: PlayerRole | str
    ) -> JoinOutcome:
        """
        Put a player in the queue with the given role. Checked in this order:

        1. closed queue: QueueClosed
        2. already a member: the role is switched in place
        3. no free slot: QueueFull
        4. member of another open queue in the guild: PlayerInAnotherQueue

        The membership is inserted only while the queue is open and below
        capacity, and together with the player's claim row, so neither limit
        can be exceeded by concurrent joins.
        """
        role = PlayerRole(role)
        async with async_session() as session:
            status = await self._get_status(session)
            if status is None:
                raise QueueNotFound()
            if status == QueueStatus.CLOSED:
                raise QueueClosed()

            queue_is_open = (
                select(Queue.handle)
                .where(
                    Queue.handle == self.handle,
                    Queue.status == QueueStatus.OPEN.value,
                )
                .exists()
            )
            switched = await session.execute(
                update(QueuePlayer)
                .where(
                    QueuePlayer.queue_handle == self.handle,
                    QueuePlayer.player_id == player_id,
                    queue_is_open,
                )
                .values(role=role.value)
                .execution_options(synchronize_session=False)
            )
            if switched.rowcount:
                await session.commit()
                _log.info(
                    f"[add_member] Player {player_id} switched to {role.value} in queue {self.handle}"
                )
                return JoinOutcome(JoinResult.SWITCHED)

            member_count = await async_count(
                session, QueuePlayer, QueuePlayer.queue_handle == self.handle
            )
            if member_count >= self.capacity:
                raise QueueFull()

            claim = await session.get(PlayerActiveQueue, (self.guild_id, player_id))
            if claim is not None and claim.queue_handle != self.handle:
                raise PlayerInAnotherQueue(claim.queue_handle)

            member_id = str(uuid4())
            current_count = (
                select(func.count())
                .select_from(QueuePlayer.__table__)
                .where(QueuePlayer.__table__.c.queue_handle == self.handle)
                .correlate(None)
                .scalar_subquery()
            )
            conditional_insert = insert(QueuePlayer.__table__).from_select(
                ["id", "queue_handle", "player_id", "display_name", "role", "joined_at"],
                select(
                    literal(member_id),
                    literal(self.handle),
                    literal(player_id),
                    literal(display_name),
                    literal(role.value),
                    literal(utc_now_naive()),
                ).where(and_(current_count < self.capacity, queue_is_open)),
            )
            try:
                if claim is None:
                    session.add(
                        PlayerActiveQueue(
                            guild_id=self.guild_id,
                            player_id=player_id,
                            queue_handle=self.handle,
                        )
                    )
                    await session.flush()
                await session.execute(conditional_insert)
            except IntegrityError:
                await session.rollback()
                raise PlayerInAnotherQueue(
                    await self.get_other_open_queue_handle(player_id)
                )

            inserted = await session.scalar(
                select(QueuePlayer.id).where(QueuePlayer.id == member_id)
            )
            if inserted is None:
                status = await self._get_status(session)
                await session.rollback()
                if status != QueueStatus.OPEN:
                    raise QueueClosed()
                raise QueueFull()

            member_count = await async_count(
                session, QueuePlayer, QueuePlayer.queue_handle == self.handle
            )
            await session.commit()

        _log.info(
            f"[add_member] Player {player_id} joined queue {self.handle} as {role.value} ({member_count}/{self.capacity})"
        )
        return JoinOutcome(JoinResult.JOINED, is_full=member_count >= self.capacity)

    async def remove_member(self, player_id: int) -> bool:
        """
        :returns: whether the player was in the queue
        :raises QueueClosed: memberships of a closed queue are frozen
        """
        async with async_session() as session:
            status = await self._get_status(session)
            if status is None:
                raise QueueNotFound()
            if status == QueueStatus.CLOSED:
                raise QueueClosed()
            deleted = await async_delete_where(
                session,
                QueuePlayer,
                QueuePlayer.queue_handle == self.handle,
                QueuePlayer.player_id == player_id,
            )
            await async_delete_where(
                session,
                PlayerActiveQueue,
                PlayerActiveQueue.guild_id == self.guild_id,
                PlayerActiveQueue.player_id == player_id,
                PlayerActiveQueue.queue_handle == self.handle,
            )
            await session.commit()
        if deleted:
            _log.info(f"[remove_member] Player {player_id} left queue {self.handle}")
        return deleted > 0

    async def has_member(self, player_id: int) -> bool:
        async with async_session() as session:
            count = await async_count(
                session,
                QueuePlayer,
                QueuePlayer.queue_handle == self.handle,
                QueuePlayer.player_id == player_id,
            )
            return count > 0

    async def get_other_open_queue_handle(self, player_id: int) -> str | None:
        """
        The handle of a different open queue in this guild the player belongs to
        """
        async with async_session() as session:
            return await session.scalar(
                select(PlayerActiveQueue.queue_handle)
                .join(Queue, Queue.handle == PlayerActiveQueue.queue_handle)
                .where(
                    PlayerActiveQueue.guild_id == self.guild_id,
                    PlayerActiveQueue.player_id == player_id,
                    PlayerActiveQueue.queue_handle != self.handle,
                    Queue.status == QueueStatus.OPEN.value,
                )
            )

    async def get_member_count(self) -> int:
        async with async_session() as session:
            return await async_count(
                session, QueuePlayer, QueuePlayer.queue_handle == self.handle
            )

    async def is_full(self) -> bool:
        return await self.get_member_count() >= self.capacity

    async def is_closed(self) -> bool:
        """A queue that no longer exists counts as closed"""
        async with async_session() as session:
            return await self._get_status(session) != QueueStatus.OPEN

    async def get_available_slots(self) -> int:
        return max(self.capacity - await self.get_member_count(), 0)

    async def get_progress_fraction(self) -> float:
        return min(await self.get_member_count() / self.capacity, 1.0)

    async def get_expires_at(self) -> datetime | None:
        async with async_session() as session:
            return await session.scalar(
                select(Queue.expires_at).where(Queue.handle == self.handle)
            )

    async def clear(self) -> int:
        """
        Remove every member. The status is left as it is.
        """
        async with async_session() as session:
            deleted = await async_delete_where(
                session, QueuePlayer, QueuePlayer.queue_handle == self.handle
            )
            await async_delete_where(
                session,
                PlayerActiveQueue,
                PlayerActiveQueue.queue_handle == self.handle,
            )
            await session.commit()
        _log.info(f"[clear] Removed {deleted} player(s) from queue {self.handle}")
        return deleted

    async def reopen(self, expires_at: datetime | None) -> None:
        """
        Mark the queue open with a new deadline. Reopening an open queue only
        moves its deadline.

        Members get their claims back. A member who joined another queue of
        this guild while this one was closed is removed from this queue.

        :raises QueueAlreadyExists: another queue of this type has been opened
        in the meantime
        """
        async with async_session() as session:
            try:
                result = await session.execute(
                    update(Queue)
                    .where(Queue.handle == self.handle)
                    .values(status=QueueStatus.OPEN.value, expires_at=expires_at)
                    .execution_options(synchronize_session=False)
                )
            except IntegrityError:
                await session.rollback()
                raise QueueAlreadyExists()
            if not result.rowcount:
                await session.rollback()
                raise QueueNotFound()

            claimed_elsewhere = select(PlayerActiveQueue.player_id).where(
                PlayerActiveQueue.guild_id == self.guild_id,
                PlayerActiveQueue.queue_handle != self.handle,
            )
            evicted = await async_delete_where(
                session,
                QueuePlayer,
                QueuePlayer.queue_handle == self.handle,
                QueuePlayer.player_id.in_(claimed_elsewhere),
            )
            members = QueuePlayer.__table__.c
            claimed = select(PlayerActiveQueue.player_id).where(
                PlayerActiveQueue.guild_id == self.guild_id
            )
            await session.execute(
                insert(PlayerActiveQueue.__table__).from_select(
                    ["guild_id", "player_id", "queue_handle"],
                    select(
                        literal(self.guild_id),
                        members.player_id,
                        literal(self.handle),
                    ).where(
                        members.queue_handle == self.handle,
                        members.player_id.not_in(claimed),
                    ),
                )
            )
            await session.commit()
        if evicted:
            _log.info(
                f"[reopen] Removed {evicted} player(s) from queue {self.handle}, "
                "they joined another queue while it was closed"
            )

    async def close(self) -> bool:
        """
        Close the queue and release its players to join other queues.

        :returns: whether this call closed the queue. False when it was already
        closed or no longer exists.
        """
        async with async_session() as session:
            result = await session.execute(
                update(Queue)
                .where(
                    Queue.handle == self.handle,
                    Queue.status == QueueStatus.OPEN.value,
                )
                .values(status=QueueStatus.CLOSED.value)
                .execution_options(synchronize_session=False)
            )
            await async_delete_where(
                session,
                PlayerActiveQueue,
                PlayerActiveQueue.queue_handle == self.handle,
            )
            await session.commit()
        closed = result.rowcount > 0
        if closed:
            _log.info(f"[close] Closed queue {self.handle}")
        return closed

    async def delete(self) -> None:
        async with async_session() as session:
            await async_delete_where(
                session, QueuePlayer, QueuePlayer.queue_handle == self.handle
            )
            await async_delete_where(
                session,
                PlayerActiveQueue,
                PlayerActiveQueue.queue_handle == self.handle,
            )
            await async_delete_where(session, Queue, Queue.handle == self.handle)
            await session.commit()
        _log.info(f"[delete] Deleted queue {self.handle}")

    async def get_state(self) -> QueueState:
        async with async_session() as session:
            record = await session.get(Queue, self.handle)
            if record is None:
                raise QueueNotFound()
            players = await async_query_all(
                session,
                QueuePlayer,
                QueuePlayer.queue_handle == self.handle,
                order_by=(QueuePlayer.joined_at, QueuePlayer.id),
            )
            return QueueState(
                handle=record.handle,
                guild_id=record.guild_id,
                channel_id=record.channel_id,
                queue_type=QueueType(record.queue_type),
                capacity=record.capacity,
                status=QueueStatus(record.status),
                expires_at=record.expires_at,
                created_at=record.created_at,
                members=tuple(
                    QueueMember(
                        player_id=player.player_id,
                        display_name=player.display_name,
                        role=PlayerRole(player.role),
                        joined_at=player.joined_at,
                    )
                    for player in players
                ),
            )
