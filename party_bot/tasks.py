import logging

from discord.ext import tasks

from .bot import bot

_log = logging.getLogger(__name__)


@tasks.loop(count=1)
async def restore_queues_task():
    """
    Runs once after login: drop queues and panels whose message was deleted
    while the bot was offline, redraw the rest and restart their timers
    """
    summary = await bot.queue_service.reconcile()
    _log.info(
        f"[restore_queues_task] {summary.rendered} queue(s) restored, {summary.removed} removed, {summary.expired} expired"
    )


@restore_queues_task.before_loop
async def before_restore_queues_task():
    await bot.wait_until_ready()


@restore_queues_task.error
async def restore_queues_task_error(error: BaseException):
    _log.error("[restore_queues_task] Failed to restore queues", exc_info=error)
