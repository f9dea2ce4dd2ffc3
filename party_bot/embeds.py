from datetime import timezone

import discord
from discord import Colour, Embed

from party_bot.constants import (
    EMPTY_SLOT_EMOJI,
    QUEUE_CONFIGS,
    ROLE_CONFIGS,
    WEAPON_CONFIGS,
    ApprovalStatus,
    PlayerRole,
    QueueType,
    Weapon,
)
from party_bot.models import PlayerRegistration
from party_bot.queue_entity import QueueMember, QueueState
from party_bot.registration import format_gear_score

PROGRESS_BAR_LENGTH = 10


def progress_bar(fraction: float) -> str:
    filled = round(fraction * PROGRESS_BAR_LENGTH)
    return "🟩" * filled + "⬛" * (PROGRESS_BAR_LENGTH - filled)


def format_member_slot(member: QueueMember | None, slot: int) -> str:
    if member is None:
        return f"`{slot}.` {EMPTY_SLOT_EMOJI} *Empty*"
    role = ROLE_CONFIGS[member.role]
    return f"`{slot}.` {role.emoji} {discord.utils.escape_markdown(member.display_name)}"


def create_queue_embed(state: QueueState) -> Embed:
    queue_config = QUEUE_CONFIGS[state.queue_type]
    embed = Embed(
        title=f"{queue_config.emoji} {queue_config.display_name} Queue",
        colour=Colour(queue_config.colour),
    )
    lines = [
        f"**Players: {state.member_count}/{state.capacity}**",
        progress_bar(state.progress_fraction),
        "",
    ]
    if not state.members:
        lines.append("*No players in queue yet.*")
        if not state.is_closed:
            lines.append("*Click a role button below to join!*")
    else:
        for i in range(state.capacity):
            member = state.members[i] if i < state.member_count else None
            lines.append(format_member_slot(member, i + 1))
    embed.description = "\n".join(lines)

    # Role breakdown only makes sense once someone has joined
    if state.members:
        counts = []
        for role in PlayerRole:
            role_config = ROLE_CONFIGS[role]
            counts.append(
                f"{role_config.emoji} {role_config.display_name}: {len(state.members_with_role(role))}"
            )
        embed.add_field(name="Roles", value="\n".join(counts), inline=True)

    if state.is_full:
        embed.set_footer(text="🎉 Queue is full!")
    elif state.is_closed:
        embed.set_footer(text="This queue is closed")
    else:
        if state.expires_at:
            expires_at = state.expires_at.replace(tzinfo=timezone.utc)
            embed.add_field(
                name="Expires",
                value=discord.utils.format_dt(expires_at, style="R"),
                inline=True,
            )
        embed.set_footer(
            text=f"{state.available_slots} slot(s) left • Pick a role to join"
        )
    return embed


def create_panel_embed(queue_type: QueueType) -> Embed:
    queue_config = QUEUE_CONFIGS[queue_type]
    return Embed(
        title=f"{queue_config.emoji} {queue_config.display_name}",
        description=(
            f"Looking for a group of **{queue_config.capacity}**?\n"
            "Click the button below to start a new queue in this channel."
        ),
        colour=Colour(queue_config.colour),
    )


def format_weapon(weapon: str) -> str:
    try:
        weapon_config = WEAPON_CONFIGS[Weapon(weapon)]
    except ValueError:
        return weapon
    return f"{weapon_config.emoji} {weapon_config.display_name}"


def _add_registration_fields(embed: Embed, registration: PlayerRegistration):
    embed.add_field(
        name="In-game name", value=f"`{registration.ingame_name}`", inline=True
    )
    embed.add_field(name="UID", value=f"`{registration.ingame_uid}`", inline=True)
    embed.add_field(
        name="Gear score",
        value=f"**{format_gear_score(registration.gear_score)}**",
        inline=True,
    )
    embed.add_field(
        name="Arena rank", value=registration.arena_rank or "N/A", inline=True
    )
    embed.add_field(
        name="Weapons",
        value=(
            f"**Primary:** {format_weapon(registration.primary_weapon)}\n"
            f"**Secondary:** {format_weapon(registration.secondary_weapon)}"
        ),
        inline=False,
    )


def create_profile_embed(
    registration: PlayerRegistration, user: discord.abc.User
) -> Embed:
    embed = Embed(title="Player Profile", colour=Colour.blurple())
    embed.set_thumbnail(url=user.display_avatar.url)
    _add_registration_fields(embed, registration)
    status = ApprovalStatus(registration.approval_status)
    footer = f"Discord: @{user.name}"
    if status != ApprovalStatus.APPROVED:
        footer += f" • {status.value.capitalize()}"
    embed.set_footer(text=footer)
    return embed


def create_review_embed(
    registration: PlayerRegistration, user: discord.abc.User
) -> Embed:
    embed = Embed(title="Pending Registration", colour=Colour.orange())
    embed.set_thumbnail(url=user.display_avatar.url)
    _add_registration_fields(embed, registration)
    embed.set_footer(text=f"Discord: @{user.name} ({user.id}) • Awaiting review")
    return embed


def create_reviewed_embed(
    registration: PlayerRegistration, reviewer: discord.abc.User
) -> Embed:
    approved = registration.approval_status == ApprovalStatus.APPROVED.value
    embed = Embed(
        title="Registration Approved" if approved else "Registration Rejected",
        colour=Colour.green() if approved else Colour.red(),
    )
    _add_registration_fields(embed, registration)
    embed.set_footer(
        text=f"{'Approved' if approved else 'Rejected'} by {reviewer.display_name}"
    )
    return embed
