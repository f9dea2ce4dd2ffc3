# Misc helper functions
import logging
from datetime import datetime, timezone
from typing import Iterable

from discord import (
    AllowedMentions,
    Colour,
    DMChannel,
    Embed,
    GroupChannel,
    Interaction,
    Message,
    Object,
    TextChannel,
)

_log = logging.getLogger(__name__)


def utc_now_naive() -> datetime:
    """
    Naive UTC timestamp. Every DateTime column is stored without a timezone, so
    comparisons against stored values must use this rather than an aware now()
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_mentions(player_ids: Iterable[int]) -> str:
    return ", ".join(f"<@{player_id}>" for player_id in player_ids)


def allowed_user_mentions(player_ids: Iterable[int]) -> AllowedMentions:
    return AllowedMentions(
        everyone=False, roles=False, users=[Object(id=i) for i in player_ids]
    )


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds}s" if seconds else f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


async def send_message(
    channel: DMChannel | GroupChannel | TextChannel,
    content: str | None = None,
    embed_description: str | None = None,
    colour: Colour | None = None,
    embed_title: str | None = None,
    allowed_mentions: AllowedMentions | None = None,
) -> Message | None:
    """
    :colour: red = fail, green = success, blue = informational
    """
    message: Message | None = None
    embed = None
    if embed_title or embed_description or colour:
        embed = Embed()
    if embed_title:
        embed.title = embed_title
    if embed_description:
        embed.description = embed_description
    if colour:
        embed.colour = colour
    kwargs = {}
    if allowed_mentions is not None:
        kwargs["allowed_mentions"] = allowed_mentions
    try:
        message = await channel.send(content=content, embed=embed, **kwargs)
    except Exception:
        _log.exception("[send_message] Ignoring exception:")
    return message


async def send_interaction_message(
    interaction: Interaction,
    description: str,
    colour: Colour,
    ephemeral: bool = True,
):
    """
    Respond to an interaction whether or not it has already been responded to
    or deferred
    """
    embed = Embed(description=description, colour=colour)
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=ephemeral)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=ephemeral)
