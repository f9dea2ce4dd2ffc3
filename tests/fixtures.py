# this file contains fixtures for tests

# this import allows classes to reference each other in fields
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from itertools import count
from math import floor
from random import random

from party_bot.constants import QueueType
from party_bot.exceptions import ArtifactMissing
from party_bot.models import (
    Base,
    GuildSettings,
    Panel,
    PlayerActiveQueue,
    PlayerRegistration,
    Queue,
    QueuePlayer,
    Session,
    engine,
)
from party_bot.queue_entity import QueueState
from party_bot.queue_service import QueueService

GUILD_ID = 1000
OTHER_GUILD_ID = 2000
CHANNEL_ID = 1001
OTHER_CHANNEL_ID = 1002

_handles = count(floor(random() * 2**32))


def next_handle() -> str:
    return str(next(_handles))


# Fake collaborators so the queue engine can be driven without Discord
@dataclass
class FakeRenderer:
    created: list[tuple[int, QueueState]] = field(default_factory=list)
    edits: list[tuple[QueueState, bool]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    panels: list[tuple[int, QueueType, str]] = field(default_factory=list)
    # handles whose message has been deleted out from under the bot
    missing: set[str] = field(default_factory=set)
    fail_edits: bool = False

    async def create(self, channel_id: int, state: QueueState) -> str:
        handle = next_handle()
        self.created.append((channel_id, state))
        return handle

    async def edit(self, state: QueueState, interactive: bool) -> None:
        if state.handle in self.missing:
            raise ArtifactMissing(state.handle)
        if self.fail_edits:
            raise RuntimeError("Discord is down")
        self.edits.append((state, interactive))

    async def delete(self, channel_id: int, handle: str) -> None:
        if handle in self.missing:
            raise ArtifactMissing(handle)
        self.deleted.append(handle)

    async def create_panel(self, channel_id: int, queue_type: QueueType) -> str:
        handle = next_handle()
        self.panels.append((channel_id, queue_type, handle))
        return handle

    async def exists(self, channel_id: int, handle: str) -> bool:
        return handle not in self.missing

    @property
    def last_edit(self) -> tuple[QueueState, bool]:
        return self.edits[-1]


@dataclass
class Notification:
    channel_id: int
    player_ids: list[int]
    template_key: str
    context: dict


@dataclass
class FakeNotifier:
    sent: list[Notification] = field(default_factory=list)
    fail: bool = False

    async def notify(
        self, channel_id: int, player_ids: list[int], template_key: str, **context
    ) -> None:
        if self.fail:
            raise RuntimeError("Discord is down")
        self.sent.append(Notification(channel_id, list(player_ids), template_key, context))

    def of_kind(self, template_key: str) -> list[Notification]:
        return [n for n in self.sent if n.template_key == template_key]


def make_service(
    expiration: timedelta = timedelta(minutes=60),
) -> tuple[QueueService, FakeRenderer, FakeNotifier]:
    renderer = FakeRenderer()
    notifier = FakeNotifier()
    return QueueService(renderer, notifier, expiration=expiration), renderer, notifier


# Mock discord models for the embed tests
@dataclass
class Avatar:
    url: str = "https://cdn.discordapp.com/embed/avatars/0.png"


@dataclass
class User:
    name: str
    id: int = field(default_factory=lambda: floor(random() * 2**32))
    display_avatar: Avatar = field(default_factory=Avatar)

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


def setup_tests():
    Base.metadata.create_all(engine)
    with Session() as session:
        session.query(QueuePlayer).delete()
        session.query(PlayerActiveQueue).delete()
        session.query(Queue).delete()
        session.query(Panel).delete()
        session.query(PlayerRegistration).delete()
        session.query(GuildSettings).delete()
        session.commit()
