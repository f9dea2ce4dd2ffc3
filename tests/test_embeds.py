from datetime import datetime, timedelta

from party_bot.constants import PlayerRole, QueueStatus, QueueType
from party_bot.embeds import (
    create_profile_embed,
    create_queue_embed,
    format_weapon,
    progress_bar,
)
from party_bot.models import PlayerRegistration
from party_bot.queue_entity import QueueMember, QueueState

from .fixtures import CHANNEL_ID, GUILD_ID, User

NOW = datetime(2025, 11, 4, 19, 30)


def make_state(
    members: list[tuple[str, PlayerRole]],
    status: QueueStatus = QueueStatus.OPEN,
    queue_type: QueueType = QueueType.SWORD_TRIAL,
) -> QueueState:
    return QueueState(
        handle="1",
        guild_id=GUILD_ID,
        channel_id=CHANNEL_ID,
        queue_type=queue_type,
        capacity=5,
        status=status,
        expires_at=NOW + timedelta(hours=1),
        created_at=NOW,
        members=tuple(
            QueueMember(i, name, role, NOW + timedelta(seconds=i))
            for i, (name, role) in enumerate(members, start=1)
        ),
    )


def field_values(embed) -> dict[str, str]:
    return {field.name: field.value for field in embed.fields}


def test_progress_bar():
    assert progress_bar(0) == "⬛" * 10
    assert progress_bar(0.4) == "🟩" * 4 + "⬛" * 6
    assert progress_bar(1) == "🟩" * 10


def test_empty_queue_embed():
    embed = create_queue_embed(make_state([]))

    assert embed.title == "🗡️ Sword Trial Queue"
    assert "Players: 0/5" in embed.description
    assert "No players in queue yet." in embed.description
    assert "Roles" not in field_values(embed)
    assert "Expires" in field_values(embed)
    assert embed.footer.text == "5 slot(s) left • Pick a role to join"


def test_queue_embed_lists_members_and_empty_slots():
    embed = create_queue_embed(
        make_state([("izza", PlayerRole.TANK), ("lyon", PlayerRole.DPS)])
    )

    lines = embed.description.splitlines()
    assert "Players: 2/5" in lines[0]
    assert "`1.` 🛡️ izza" in lines
    assert "`2.` ⚔️ lyon" in lines
    assert "`5.` ⬜ *Empty*" in lines
    roles = field_values(embed)["Roles"]
    assert "🛡️ Tank: 1" in roles
    assert "💚 Healer: 0" in roles
    assert "⚔️ DPS: 1" in roles
    assert embed.footer.text == "3 slot(s) left • Pick a role to join"


def test_full_queue_embed():
    members = [(f"player{i}", PlayerRole.DPS) for i in range(5)]
    embed = create_queue_embed(make_state(members, QueueStatus.CLOSED))

    assert embed.footer.text == "🎉 Queue is full!"
    assert "Expires" not in field_values(embed)


def test_closed_queue_embed():
    embed = create_queue_embed(
        make_state([("izza", PlayerRole.TANK)], QueueStatus.CLOSED)
    )

    assert embed.footer.text == "This queue is closed"
    assert "Expires" not in field_values(embed)


def test_member_names_are_escaped():
    embed = create_queue_embed(make_state([("*izza*", PlayerRole.HEALER)]))

    assert "\\*izza\\*" in embed.description


def test_format_weapon():
    assert format_weapon("panacea_fan") == "🪭 Panacea Fan"
    assert format_weapon("retired_weapon") == "retired_weapon"


def test_profile_embed_marks_pending_registration():
    registration = PlayerRegistration(
        guild_id=GUILD_ID,
        user_id=1,
        ingame_name="Izza",
        ingame_uid="12345678",
        gear_score=16280,
        primary_weapon="strategic_sword",
        secondary_weapon="panacea_fan",
    )

    embed = create_profile_embed(registration, User("izza"))

    fields = field_values(embed)
    assert fields["Gear score"] == "**16.28**"
    assert fields["Arena rank"] == "N/A"
    assert embed.footer.text == "Discord: @izza • Pending"
