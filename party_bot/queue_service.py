"""
Queue creation, membership changes and teardown.

Every flow that mutates one queue runs under that queue's lock, including the
expiry timer, so a join that fills the last slot has closed the queue before
the next click on it is looked at. Creating a queue is serialized per guild and
queue type instead, since there is no handle yet.

Rendering and notifying go through the QueueRenderer and QueueNotifier
protocols so this module never talks to Discord itself.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from sqlalchemy.exc import IntegrityError

import party_bot.config as config
from party_bot.async_db_utils import (
    async_delete_where,
    async_query_all,
    async_query_first,
    async_session,
)
from party_bot.constants import QUEUE_CONFIGS, PlayerRole, QueueStatus, QueueType
from party_bot.exceptions import (
    ArtifactMissing,
    PanelAlreadyExists,
    PanelNotFound,
    PlayerNotInQueue,
    QueueAlreadyExists,
    QueueClosed,
    QueueNotFound,
)
from party_bot.locks import KeyedLocks
from party_bot.models import Panel, PlayerActiveQueue
from party_bot.queue_entity import (
    JoinOutcome,
    QueueEntity,
    QueueState,
)
from party_bot.timers import QueueTimerManager
from party_bot.utils import utc_now_naive

_log = logging.getLogger(__name__)


class QueueRenderer(Protocol):
    async def create(self, channel_id: int, state: QueueState) -> str:
        """
        Post a new queue message and return its handle. state.handle is empty
        since the queue does not exist yet.
        """
        ...

    async def edit(self, state: QueueState, interactive: bool) -> None:
        """:raises ArtifactMissing:"""
        ...

    async def delete(self, channel_id: int, handle: str) -> None:
        """:raises ArtifactMissing:"""
        ...

    async def create_panel(self, channel_id: int, queue_type: QueueType) -> str:
        ...

    async def exists(self, channel_id: int, handle: str) -> bool:
        ...


class QueueNotifier(Protocol):
    async def notify(
        self, channel_id: int, player_ids: list[int], template_key: str, **context
    ) -> None:
        ...


@dataclass(frozen=True)
class ReconcileSummary:
    rendered: int
    removed: int
    restored: int
    expired: int
    panels_removed: int


class QueueService:
    def __init__(
        self,
        renderer: QueueRenderer,
        notifier: QueueNotifier,
        expiration: timedelta | None = None,
        locks: KeyedLocks | None = None,
    ):
        self.renderer = renderer
        self.notifier = notifier
        self.expiration = expiration or timedelta(
            minutes=config.QUEUE_EXPIRATION_MINUTES
        )
        self.locks = locks if locks is not None else KeyedLocks()
        self.timers = QueueTimerManager(on_expired=self._on_expired, locks=self.locks)

    def _new_deadline(self):
        return utc_now_naive() + self.expiration

    async def _load(self, handle: str) -> QueueEntity:
        queue = await QueueEntity.load(handle)
        if queue is None:
            raise QueueNotFound()
        return queue

    async def create_queue(
        self, guild_id: int, channel_id: int, queue_type: QueueType | str
    ) -> QueueEntity:
        """
        Post the queue message first and persist the queue second. If the
        second step fails the message is removed again, best effort.

        :raises QueueAlreadyExists:
        """
        queue_type = QueueType(queue_type)
        async with self.locks(("create", guild_id, queue_type.value)):
            if await QueueEntity.load_open_by_type(guild_id, queue_type):
                raise QueueAlreadyExists()
            expires_at = self._new_deadline()
            draft = QueueState(
                handle="",
                guild_id=guild_id,
                channel_id=channel_id,
                queue_type=queue_type,
                capacity=QUEUE_CONFIGS[queue_type].capacity,
                status=QueueStatus.OPEN,
                expires_at=expires_at,
                created_at=utc_now_naive(),
                members=(),
            )
            handle = await self.renderer.create(channel_id, draft)
            try:
                queue = await QueueEntity.create(
                    handle, guild_id, channel_id, queue_type, expires_at
                )
            except Exception:
                try:
                    await self.renderer.delete(channel_id, handle)
                except Exception:
                    _log.exception(
                        f"[create_queue] Failed to remove orphaned queue message {handle}"
                    )
                raise
            await self.timers.start(queue)
            return queue

    async def join(
        self, handle: str, player_id: int, display_name: str, role: PlayerRole | str
    ) -> JoinOutcome:
        async with self.locks(handle):
            queue = await self._load(handle)
            outcome = await queue.add_member(player_id, display_name, role)
            if outcome.is_full:
                await self._on_queue_full(queue)
            else:
                await self._refresh(queue)
            return outcome

    async def leave(self, handle: str, player_id: int) -> None:
        """:raises PlayerNotInQueue:"""
        async with self.locks(handle):
            queue = await self._load(handle)
            if not await queue.remove_member(player_id):
                raise PlayerNotInQueue()
            await self._refresh(queue)

    async def reset_queue(self, handle: str) -> QueueEntity:
        """
        Empty the queue and open it again with a fresh deadline.

        :raises QueueAlreadyExists: the queue is closed and another queue of
        its type has been opened since
        """
        async with self.locks(handle):
            queue = await self._load(handle)
            other = await QueueEntity.load_open_by_type(queue.guild_id, queue.queue_type)
            if other is not None and other.handle != handle:
                raise QueueAlreadyExists()
            # the timer has to be gone before the status changes, or a stale
            # fire could close the freshly reopened queue
            self.timers.cancel(handle)
            await queue.clear()
            await queue.reopen(self._new_deadline())
            await self.timers.start(queue)
            await self._refresh(queue)
            return queue

    async def close_queue(self, handle: str) -> None:
        """
        Delete the queue and its message for good
        """
        async with self.locks(handle):
            queue = await self._load(handle)
            self.timers.cancel(handle)
            try:
                await self.renderer.delete(queue.channel_id, handle)
            except ArtifactMissing:
                _log.warning(f"[close_queue] Message for queue {handle} was already gone")
            except Exception:
                _log.exception(f"[close_queue] Failed to delete message for queue {handle}")
            await queue.delete()

    async def on_queue_full(self, queue: QueueEntity) -> bool:
        async with self.locks(queue.handle):
            return await self._on_queue_full(queue)

    async def _on_queue_full(self, queue: QueueEntity) -> bool:
        """
        :returns: whether this call closed the queue. The full notification is
        only sent in that case.
        """
        self.timers.cancel(queue.handle)
        closed = await queue.close()
        state = await queue.get_state()
        if not await self._render(queue, state, interactive=False):
            return closed
        if closed:
            _log.info(f"[on_queue_full] Queue {queue.handle} is full")
            await self._notify(state, "queue_full")
        return closed

    async def _on_expired(self, queue: QueueEntity, state: QueueState) -> None:
        # runs inside the timer's fire(), which already holds the queue lock
        if not await self._render(queue, state, interactive=False):
            return
        if state.members:
            await self._notify(state, "queue_expired")

    async def _refresh(self, queue: QueueEntity) -> bool:
        state = await queue.get_state()
        return await self._render(queue, state, interactive=not state.is_closed)

    async def _render(
        self, queue: QueueEntity, state: QueueState, interactive: bool
    ) -> bool:
        """
        Edit the queue message. A queue whose message is gone is deleted.

        :returns: False if the queue was deleted
        """
        try:
            await self.renderer.edit(state, interactive=interactive)
        except ArtifactMissing:
            _log.warning(
                f"[_render] Message for queue {queue.handle} is gone, deleting the queue"
            )
            self.timers.cancel(queue.handle)
            await queue.delete()
            return False
        except Exception:
            _log.exception(f"[_render] Failed to update message for queue {queue.handle}")
        return True

    async def _notify(self, state: QueueState, template_key: str) -> None:
        try:
            await self.notifier.notify(
                state.channel_id,
                state.player_ids,
                template_key,
                queue_name=QUEUE_CONFIGS[state.queue_type].display_name,
            )
        except Exception:
            _log.exception(
                f"[_notify] Failed to send {template_key} notification for queue {state.handle}"
            )

    async def get_state(self, handle: str) -> QueueState:
        queue = await self._load(handle)
        return await queue.get_state()

    async def list_queues(self, guild_id: int) -> list[QueueState]:
        states = []
        for queue in await QueueEntity.load_all_for_guild(guild_id):
            try:
                states.append(await queue.get_state())
            except QueueNotFound:
                # deleted while listing
                continue
        return sorted(states, key=lambda state: state.created_at)

    async def refresh_guild(self, guild_id: int) -> int:
        """
        Re-render every queue in the guild

        :returns: number of queues still present afterwards
        """
        refreshed = 0
        for queue in await QueueEntity.load_all_for_guild(guild_id):
            async with self.locks(queue.handle):
                try:
                    if await self._refresh(queue):
                        refreshed += 1
                except QueueNotFound:
                    continue
        return refreshed

    async def reconcile(self) -> ReconcileSummary:
        """
        Bring the database back in line with Discord after a restart. Queues
        and panels whose message is gone are deleted, the remaining queues are
        re-rendered and their timers restored.
        """
        rendered = removed = 0
        for queue in await QueueEntity.load_all():
            async with self.locks(queue.handle):
                try:
                    if await self._refresh(queue):
                        rendered += 1
                    else:
                        removed += 1
                except QueueNotFound:
                    continue
        panels_removed = await self._prune_panels()
        restored, expired = await self.timers.restore_all()
        summary = ReconcileSummary(
            rendered=rendered,
            removed=removed,
            restored=restored,
            expired=expired,
            panels_removed=panels_removed,
        )
        _log.info(f"[reconcile] {summary}")
        return summary

    async def _prune_panels(self) -> int:
        pruned = 0
        async with async_session() as session:
            panels = await async_query_all(session, Panel)
        for panel in panels:
            try:
                exists = await self.renderer.exists(panel.channel_id, panel.handle)
            except Exception:
                _log.exception(f"[_prune_panels] Could not check panel {panel.handle}")
                continue
            if not exists:
                _log.warning(f"[_prune_panels] Panel message {panel.handle} is gone")
                await self._delete_panel_record(panel.handle)
                pruned += 1
        return pruned

    async def _delete_panel_record(self, handle: str) -> None:
        async with async_session() as session:
            await async_delete_where(session, Panel, Panel.handle == handle)
            await session.commit()

    async def get_panel(self, guild_id: int, queue_type: QueueType | str) -> Panel | None:
        async with async_session() as session:
            return await async_query_first(
                session,
                Panel,
                Panel.guild_id == guild_id,
                Panel.queue_type == QueueType(queue_type).value,
            )

    async def create_panel(
        self, guild_id: int, channel_id: int, queue_type: QueueType | str
    ) -> Panel:
        """
        Post a panel message with a button that starts a queue of this type.
        A panel whose message was deleted is replaced.

        :raises PanelAlreadyExists:
        """
        queue_type = QueueType(queue_type)
        async with self.locks(("panel", guild_id, queue_type.value)):
            existing = await self.get_panel(guild_id, queue_type)
            if existing is not None:
                if await self.renderer.exists(existing.channel_id, existing.handle):
                    raise PanelAlreadyExists()
                await self._delete_panel_record(existing.handle)

            handle = await self.renderer.create_panel(channel_id, queue_type)
            panel = Panel(
                handle=handle,
                guild_id=guild_id,
                channel_id=channel_id,
                queue_type=queue_type.value,
            )
            async with async_session() as session:
                session.add(panel)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    try:
                        await self.renderer.delete(channel_id, handle)
                    except Exception:
                        _log.exception(
                            f"[create_panel] Failed to remove orphaned panel message {handle}"
                        )
                    raise PanelAlreadyExists()
            _log.info(
                f"[create_panel] Created {queue_type.value} panel {handle} in guild {guild_id}"
            )
            return panel

    async def delete_panel(self, guild_id: int, queue_type: QueueType | str) -> None:
        """:raises PanelNotFound:"""
        panel = await self.get_panel(guild_id, queue_type)
        if panel is None:
            raise PanelNotFound()
        try:
            await self.renderer.delete(panel.channel_id, panel.handle)
        except ArtifactMissing:
            _log.warning(f"[delete_panel] Panel message {panel.handle} was already gone")
        except Exception:
            _log.exception(f"[delete_panel] Failed to delete panel message {panel.handle}")
        await self._delete_panel_record(panel.handle)

    async def start_from_panel(self, panel_handle: str) -> QueueEntity:
        """
        Start a queue in the panel's channel, of the panel's type

        :raises PanelNotFound:
        :raises QueueAlreadyExists:
        """
        async with async_session() as session:
            panel = await session.get(Panel, panel_handle)
        if panel is None:
            raise PanelNotFound()
        return await self.create_queue(panel.guild_id, panel.channel_id, panel.queue_type)

    async def remove_departed_member(self, guild_id: int, player_id: int) -> bool:
        """
        Take a member who left the server out of their open queue, if any
        """
        async with async_session() as session:
            claim = await session.get(PlayerActiveQueue, (guild_id, player_id))
        if claim is None:
            return False
        try:
            await self.leave(claim.queue_handle, player_id)
        except (QueueNotFound, QueueClosed, PlayerNotInQueue):
            return False
        return True

    def shutdown(self) -> int:
        return self.timers.shutdown()
