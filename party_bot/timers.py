"""
Expiration timers for open queues.

One asyncio task per queue handle sleeps until the queue's deadline and then
closes it. The task map is runtime state only: after a restart it is rebuilt
from the expires_at column by restore_all().
"""

import asyncio
import logging
from typing import Awaitable, Callable

from party_bot.constants import QueueStatus
from party_bot.locks import KeyedLocks
from party_bot.queue_entity import QueueEntity, QueueState
from party_bot.utils import utc_now_naive

_log = logging.getLogger(__name__)

ExpiredCallback = Callable[[QueueEntity, QueueState], Awaitable[None]]


class QueueTimerManager:
    def __init__(
        self,
        on_expired: ExpiredCallback | None = None,
        locks: KeyedLocks | None = None,
    ):
        """
        :on_expired: Called after a queue was closed by its timer, with the
        state right after closing. Failures are logged, the close stands.
        :locks: Per handle locks shared with whoever else mutates queues
        """
        self.on_expired = on_expired
        self.locks = locks if locks is not None else KeyedLocks()
        self._timers: dict[str, asyncio.Task] = {}

    @property
    def active_count(self) -> int:
        return len(self._timers)

    def is_scheduled(self, handle: str) -> bool:
        task = self._timers.get(handle)
        return task is not None and not task.done()

    async def start(self, queue: QueueEntity) -> bool:
        """
        Schedule the queue to close at its deadline, replacing any timer it
        already has. Nothing is scheduled for a closed queue or one without a
        future deadline.

        :returns: whether a timer was scheduled
        """
        expires_at = await queue.get_expires_at()
        closed = await queue.is_closed()
        # no await between cancelling the old task and registering the new one
        self.cancel(queue.handle)
        if expires_at is None or closed:
            return False
        delay = (expires_at - utc_now_naive()).total_seconds()
        if delay <= 0:
            return False
        self._timers[queue.handle] = asyncio.create_task(
            self._expire_later(queue.handle, delay),
            name=f"queue-expiry-{queue.handle}",
        )
        _log.debug(f"[start] Queue {queue.handle} expires in {delay:.0f}s")
        return True

    def cancel(self, handle: str) -> bool:
        """
        Drop the timer for this handle, if any. Safe to call from inside the
        timer's own task.

        :returns: whether a timer was removed
        """
        task = self._timers.pop(handle, None)
        if task is None:
            return False
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
        return True

    async def _expire_later(self, handle: str, delay: float):
        await asyncio.sleep(delay)
        try:
            await self.fire(handle)
        except Exception:
            _log.exception(f"[_expire_later] Failed to expire queue {handle}")

    async def fire(self, handle: str) -> bool:
        """
        Close the queue if it is still open and run the expiry callback. The
        queue is loaded fresh since it may have been reset, closed or deleted
        after the timer was scheduled.

        :returns: whether this call closed the queue
        """
        async with self.locks(handle):
            task = self._timers.get(handle)
            if task is asyncio.current_task():
                del self._timers[handle]
            else:
                self.cancel(handle)

            queue = await QueueEntity.load(handle)
            if queue is None:
                _log.warning(f"[fire] Queue {handle} no longer exists, nothing to expire")
                return False
            if not await queue.close():
                return False
            _log.info(f"[fire] Queue {handle} expired")
            state = await queue.get_state()
            if self.on_expired is not None:
                try:
                    await self.on_expired(queue, state)
                except Exception:
                    _log.exception(f"[fire] Expiry callback failed for queue {handle}")
            return True

    async def restore_all(self) -> tuple[int, int]:
        """
        Rebuild timers from the database: overdue queues are expired right away,
        the rest are scheduled.

        :returns: (timers scheduled, queues expired)
        """
        restored = expired = 0
        now = utc_now_naive()
        for queue in await QueueEntity.load_all(QueueStatus.OPEN):
            expires_at = await queue.get_expires_at()
            if expires_at is None:
                continue
            if expires_at <= now:
                if await self.fire(queue.handle):
                    expired += 1
            elif await self.start(queue):
                restored += 1
        _log.info(f"[restore_all] Restored {restored} timer(s), expired {expired} queue(s)")
        return restored, expired

    def shutdown(self) -> int:
        """
        Cancel every pending timer

        :returns: number of timers cancelled
        """
        handles = list(self._timers)
        for handle in handles:
            self.cancel(handle)
        if handles:
            _log.info(f"[shutdown] Cancelled {len(handles)} timer(s)")
        return len(handles)
