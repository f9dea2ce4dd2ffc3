import asyncio
from datetime import timedelta

import pytest
from pytest import fixture

from party_bot.constants import PlayerRole, QueueStatus, QueueType
from party_bot.exceptions import (
    PanelAlreadyExists,
    PanelNotFound,
    PlayerInAnotherQueue,
    PlayerNotInQueue,
    QueueAlreadyExists,
    QueueClosed,
    QueueFull,
    QueueHandleExists,
    QueueNotFound,
)
from party_bot.queue_entity import JoinResult, QueueEntity
from party_bot.utils import utc_now_naive

from .fixtures import (
    CHANNEL_ID,
    GUILD_ID,
    OTHER_CHANNEL_ID,
    make_service,
    next_handle,
    setup_tests,
)


# Runs around each test
@fixture(autouse=True)
def run_around_tests():
    setup_tests()


async def fill(service, handle: str, count: int, first_player_id: int = 1):
    for player_id in range(first_player_id, first_player_id + count):
        await service.join(handle, player_id, f"player{player_id}", PlayerRole.DPS)


async def wait_for(predicate, timeout: float = 5) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if await predicate():
            return True
        await asyncio.sleep(0.05)
    return False


@pytest.mark.asyncio
async def test_create_queue_renders_then_persists():
    service, renderer, _ = make_service()

    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    assert len(renderer.created) == 1
    channel_id, draft = renderer.created[0]
    assert channel_id == CHANNEL_ID
    assert draft.handle == ""
    assert draft.capacity == 5
    state = await service.get_state(queue.handle)
    assert state.status == QueueStatus.OPEN
    assert state.expires_at > utc_now_naive() + timedelta(minutes=59)
    assert service.timers.is_scheduled(queue.handle)
    service.shutdown()


@pytest.mark.asyncio
async def test_create_queue_when_type_already_open_should_raise():
    service, renderer, _ = make_service()
    await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    with pytest.raises(QueueAlreadyExists):
        await service.create_queue(GUILD_ID, OTHER_CHANNEL_ID, QueueType.SWORD_TRIAL)

    # nothing was posted for the rejected queue
    assert len(renderer.created) == 1
    service.shutdown()


@pytest.mark.asyncio
async def test_concurrent_create_queue_opens_one_queue():
    service, renderer, _ = make_service()

    results = await asyncio.gather(
        service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM),
        service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, QueueEntity)) == 1
    assert sum(1 for r in results if isinstance(r, QueueAlreadyExists)) == 1
    assert len(renderer.created) == 1
    service.shutdown()


@pytest.mark.asyncio
async def test_create_queue_removes_message_when_persisting_fails():
    service, renderer, _ = make_service()
    existing = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    async def create_with_taken_handle(channel_id, state):
        return existing.handle

    renderer.create = create_with_taken_handle

    with pytest.raises(QueueHandleExists):
        await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.GUILD_WAR)

    assert renderer.deleted == [existing.handle]
    assert await QueueEntity.load_open_by_type(GUILD_ID, QueueType.GUILD_WAR) is None
    service.shutdown()


@pytest.mark.asyncio
async def test_filling_queue_closes_it_and_notifies_once():
    service, renderer, notifier = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    roles = [
        PlayerRole.TANK,
        PlayerRole.HEALER,
        PlayerRole.DPS,
        PlayerRole.DPS,
        PlayerRole.DPS,
    ]

    for player_id, role in enumerate(roles, start=1):
        await service.join(queue.handle, player_id, f"player{player_id}", role)

    state = await service.get_state(queue.handle)
    assert state.status == QueueStatus.CLOSED
    assert await queue.get_member_count() == 5
    full = notifier.of_kind("queue_full")
    assert len(full) == 1
    assert full[0].channel_id == CHANNEL_ID
    assert full[0].player_ids == [1, 2, 3, 4, 5]
    assert full[0].context == {"queue_name": "Sword Trial"}
    last_state, interactive = renderer.last_edit
    assert last_state.is_full
    assert not interactive
    assert not service.timers.is_scheduled(queue.handle)

    # running full handling again does not notify twice
    assert not await service.on_queue_full(queue)
    assert len(notifier.of_kind("queue_full")) == 1


@pytest.mark.asyncio
async def test_concurrent_joins_for_last_slot_notify_once():
    service, _, notifier = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await fill(service, queue.handle, 4)

    results = await asyncio.gather(
        *[
            service.join(queue.handle, player_id, f"player{player_id}", PlayerRole.DPS)
            for player_id in range(5, 9)
        ],
        return_exceptions=True,
    )

    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert all(
        isinstance(r, (QueueFull, QueueClosed))
        for r in results
        if isinstance(r, Exception)
    )
    assert await queue.get_member_count() == 5
    assert len(notifier.of_kind("queue_full")) == 1


@pytest.mark.asyncio
async def test_join_second_queue_in_guild_should_raise():
    service, _, _ = make_service()
    sword_trial = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    hero_realm = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM)
    await service.join(sword_trial.handle, 1, "izza", PlayerRole.TANK)

    with pytest.raises(PlayerInAnotherQueue):
        await service.join(hero_realm.handle, 1, "izza", PlayerRole.TANK)

    assert await hero_realm.get_member_count() == 0
    service.shutdown()


@pytest.mark.asyncio
async def test_join_same_queue_again_switches_role():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await service.join(queue.handle, 1, "izza", PlayerRole.DPS)

    outcome = await service.join(queue.handle, 1, "izza", PlayerRole.HEALER)

    assert outcome.result == JoinResult.SWITCHED
    state, interactive = renderer.last_edit
    assert interactive
    assert state.member_count == 1
    assert state.members[0].role == PlayerRole.HEALER
    service.shutdown()


@pytest.mark.asyncio
async def test_join_unknown_queue_should_raise():
    service, _, _ = make_service()

    with pytest.raises(QueueNotFound):
        await service.join(next_handle(), 1, "izza", PlayerRole.TANK)


@pytest.mark.asyncio
async def test_leave_rerenders_queue():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    await service.leave(queue.handle, 1)

    state, interactive = renderer.last_edit
    assert state.members == ()
    assert interactive
    with pytest.raises(PlayerNotInQueue):
        await service.leave(queue.handle, 1)
    service.shutdown()


@pytest.mark.asyncio
async def test_queue_expires_and_notifies_members():
    service, renderer, notifier = make_service(expiration=timedelta(seconds=1))
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)
    await service.join(queue.handle, 2, "lyon", PlayerRole.HEALER)

    async def expired_notification_sent():
        return bool(notifier.of_kind("queue_expired"))

    assert await wait_for(expired_notification_sent)

    assert await queue.is_closed()
    expired = notifier.of_kind("queue_expired")
    assert len(expired) == 1
    assert expired[0].player_ids == [1, 2]
    state, interactive = renderer.last_edit
    assert state.is_closed
    assert not interactive
    assert service.timers.active_count == 0


@pytest.mark.asyncio
async def test_expired_empty_queue_does_not_notify():
    service, renderer, notifier = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    assert await service.timers.fire(queue.handle)

    assert notifier.sent == []
    state, interactive = renderer.last_edit
    assert state.is_closed
    assert not interactive


@pytest.mark.asyncio
async def test_manual_close_before_timer_fires_is_harmless():
    service, _, notifier = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    assert await queue.close()
    assert not await service.timers.fire(queue.handle)

    assert notifier.of_kind("queue_expired") == []
    assert service.timers.active_count == 0


@pytest.mark.asyncio
async def test_reset_full_queue_reopens_it():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM)
    await fill(service, queue.handle, 10)
    old_deadline = await queue.get_expires_at()
    assert await queue.is_closed()

    await service.reset_queue(queue.handle)

    state = await service.get_state(queue.handle)
    assert state.status == QueueStatus.OPEN
    assert state.member_count == 0
    assert state.expires_at > old_deadline
    assert service.timers.active_count == 1
    assert service.timers.is_scheduled(queue.handle)
    _, interactive = renderer.last_edit
    assert interactive

    outcome = await service.join(queue.handle, 11, "player11", PlayerRole.TANK)
    assert outcome.result == JoinResult.JOINED
    service.shutdown()


@pytest.mark.asyncio
async def test_reset_releases_players_to_join_elsewhere():
    service, _, _ = make_service()
    sword_trial = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    hero_realm = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM)
    await service.join(sword_trial.handle, 1, "izza", PlayerRole.TANK)

    await service.reset_queue(sword_trial.handle)

    await service.join(hero_realm.handle, 1, "izza", PlayerRole.TANK)
    assert await hero_realm.has_member(1)
    service.shutdown()


@pytest.mark.asyncio
async def test_reset_closed_queue_when_type_reopened_should_raise():
    service, _, _ = make_service()
    first = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await fill(service, first.handle, 5)
    await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    with pytest.raises(QueueAlreadyExists):
        await service.reset_queue(first.handle)

    # untouched
    assert await first.get_member_count() == 5
    assert await first.is_closed()
    service.shutdown()


@pytest.mark.asyncio
async def test_close_queue_deletes_queue_and_message():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    await service.close_queue(queue.handle)

    assert renderer.deleted == [queue.handle]
    assert await QueueEntity.load(queue.handle) is None
    assert service.timers.active_count == 0
    assert queue.handle not in service.locks
    # the player is free again
    other = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM)
    await service.join(other.handle, 1, "izza", PlayerRole.TANK)
    service.shutdown()


@pytest.mark.asyncio
async def test_close_queue_with_missing_message_still_deletes_queue():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    renderer.missing.add(queue.handle)

    await service.close_queue(queue.handle)

    assert await QueueEntity.load(queue.handle) is None


@pytest.mark.asyncio
async def test_missing_message_deletes_queue_on_render():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    renderer.missing.add(queue.handle)

    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    assert await QueueEntity.load(queue.handle) is None
    assert not service.timers.is_scheduled(queue.handle)


@pytest.mark.asyncio
async def test_locks_are_released_for_unknown_and_deleted_queues():
    service, renderer, _ = make_service()
    for i in range(50):
        with pytest.raises(QueueNotFound):
            await service.join(f"gone-{i}", 1, "izza", PlayerRole.TANK)
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    renderer.missing.add(queue.handle)
    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    assert await QueueEntity.load(queue.handle) is None
    assert len(service.locks) == 0
    assert service.timers.locks is service.locks
    service.shutdown()


@pytest.mark.asyncio
async def test_join_accepts_role_name():
    service, _, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    await service.join(queue.handle, 1, "izza", "healer")

    state = await service.get_state(queue.handle)
    assert state.members[0].role == PlayerRole.HEALER
    service.shutdown()


@pytest.mark.asyncio
async def test_failing_render_keeps_queue():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    renderer.fail_edits = True

    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    assert await queue.has_member(1)
    service.shutdown()


@pytest.mark.asyncio
async def test_failing_notifier_does_not_undo_close():
    service, _, notifier = make_service()
    notifier.fail = True
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    await fill(service, queue.handle, 5)

    assert await queue.is_closed()
    assert await queue.get_member_count() == 5


@pytest.mark.asyncio
async def test_reconcile_expires_overdue_queue_and_removes_orphans():
    service, renderer, notifier = make_service()
    overdue = await QueueEntity.create(
        next_handle(),
        GUILD_ID,
        CHANNEL_ID,
        QueueType.SWORD_TRIAL,
        utc_now_naive() - timedelta(minutes=5),
    )
    await overdue.add_member(1, "izza", PlayerRole.TANK)
    pending = await QueueEntity.create(
        next_handle(),
        GUILD_ID,
        CHANNEL_ID,
        QueueType.HERO_REALM,
        utc_now_naive() + timedelta(hours=1),
    )
    orphan = await QueueEntity.create(
        next_handle(),
        GUILD_ID,
        CHANNEL_ID,
        QueueType.GUILD_WAR,
        utc_now_naive() + timedelta(hours=1),
    )
    renderer.missing.add(orphan.handle)
    panel = await service.create_panel(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    renderer.missing.add(panel.handle)

    summary = await service.reconcile()

    assert summary.rendered == 2
    assert summary.removed == 1
    assert summary.restored == 1
    assert summary.expired == 1
    assert summary.panels_removed == 1
    assert await overdue.is_closed()
    assert [n.player_ids for n in notifier.of_kind("queue_expired")] == [[1]]
    assert service.timers.is_scheduled(pending.handle)
    assert await QueueEntity.load(orphan.handle) is None
    assert await service.get_panel(GUILD_ID, QueueType.SWORD_TRIAL) is None
    service.shutdown()


@pytest.mark.asyncio
async def test_list_queues_in_creation_order():
    service, _, _ = make_service()
    first = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.GUILD_WAR)
    second = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    states = await service.list_queues(GUILD_ID)

    assert [state.handle for state in states] == [first.handle, second.handle]
    service.shutdown()


@pytest.mark.asyncio
async def test_refresh_guild_rerenders_every_queue():
    service, renderer, _ = make_service()
    await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.GUILD_WAR)
    await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)

    assert await service.refresh_guild(GUILD_ID) == 2
    assert len(renderer.edits) == 2
    service.shutdown()


@pytest.mark.asyncio
async def test_panel_lifecycle():
    service, renderer, _ = make_service()

    panel = await service.create_panel(GUILD_ID, CHANNEL_ID, QueueType.HERO_REALM)
    with pytest.raises(PanelAlreadyExists):
        await service.create_panel(GUILD_ID, OTHER_CHANNEL_ID, QueueType.HERO_REALM)

    queue = await service.start_from_panel(panel.handle)
    assert queue.channel_id == CHANNEL_ID
    assert queue.queue_type == QueueType.HERO_REALM
    with pytest.raises(QueueAlreadyExists):
        await service.start_from_panel(panel.handle)

    await service.delete_panel(GUILD_ID, QueueType.HERO_REALM)
    assert renderer.deleted == [panel.handle]
    with pytest.raises(PanelNotFound):
        await service.delete_panel(GUILD_ID, QueueType.HERO_REALM)
    with pytest.raises(PanelNotFound):
        await service.start_from_panel(panel.handle)
    service.shutdown()


@pytest.mark.asyncio
async def test_create_panel_replaces_panel_with_missing_message():
    service, renderer, _ = make_service()
    old = await service.create_panel(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    renderer.missing.add(old.handle)

    new = await service.create_panel(GUILD_ID, OTHER_CHANNEL_ID, QueueType.SWORD_TRIAL)

    current = await service.get_panel(GUILD_ID, QueueType.SWORD_TRIAL)
    assert current.handle == new.handle
    assert current.channel_id == OTHER_CHANNEL_ID


@pytest.mark.asyncio
async def test_remove_departed_member():
    service, renderer, _ = make_service()
    queue = await service.create_queue(GUILD_ID, CHANNEL_ID, QueueType.SWORD_TRIAL)
    await service.join(queue.handle, 1, "izza", PlayerRole.TANK)

    assert await service.remove_departed_member(GUILD_ID, 1)
    assert not await service.remove_departed_member(GUILD_ID, 1)

    assert not await queue.has_member(1)
    state, _ = renderer.last_edit
    assert state.members == ()
    service.shutdown()
