"""
Async database helpers shared by the queue engine and the registration workflow.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, TypeVar

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AsyncSessionLocal

T = TypeVar("T")


def _where(query, *conditions):
    if conditions:
        if len(conditions) == 1:
            query = query.where(conditions[0])
        else:
            query = query.where(and_(*conditions))
    return query


@asynccontextmanager
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions. The session is rolled back if
    the block raises, and always closed.

    Usage:
        async with async_session() as session:
            result = await session.execute(select(Queue).where(Queue.handle == "1"))
            queue = result.scalar_one_or_none()
    """
    if not AsyncSessionLocal:
        raise RuntimeError("Async database not configured - check your DATABASE_URI")

    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def async_query_first(
    session: AsyncSession, model_class: type[T], *conditions, order_by=None
) -> Optional[T]:
    """
    Fetch the first record matching every condition, or None.

    Examples:
        async with async_session() as session:
            queue = await async_query_first(session, Queue, Queue.handle == "123")
            queue = await async_query_first(
                session,
                Queue,
                Queue.guild_id == 1,
                Queue.status == QueueStatus.OPEN.value,
            )
    """
    query = _where(select(model_class), *conditions)
    if order_by is not None:
        query = query.order_by(*order_by)
    result = await session.scalars(query)  # Use scalars for ORM objects over execute
    return result.first()


async def async_query_all(
    session: AsyncSession, model_class: type[T], *conditions, order_by=None
) -> list[T]:
    """
    Fetch every record matching the conditions (all records when none are given).

    Examples:
        async with async_session() as session:
            queues = await async_query_all(session, Queue)
            members = await async_query_all(
                session,
                QueuePlayer,
                QueuePlayer.queue_handle == "123",
                order_by=(QueuePlayer.joined_at,),
            )
    """
    query = _where(select(model_class), *conditions)
    if order_by is not None:
        query = query.order_by(*order_by)
    result = await session.scalars(query)
    return list(result.all())


async def async_count(session: AsyncSession, model_class: type, *conditions) -> int:
    query = _where(select(func.count()).select_from(model_class), *conditions)
    result = await session.scalar(query)
    return result or 0


async def async_delete_where(
    session: AsyncSession, model_class: type, *conditions
) -> int:
    """
    Delete the records matching the conditions.

    Returns:
        The number of rows deleted

    Example:
        async with async_session() as session:
            deleted = await async_delete_where(
                session, QueuePlayer, QueuePlayer.queue_handle == "123"
            )
            await session.commit()
    """
    result = await session.execute(_where(delete(model_class), *conditions))
    return result.rowcount
