import logging

import discord
from discord.ext import commands

from party_bot.constants import NOTIFICATION_TEMPLATES
from party_bot.utils import allowed_user_mentions, format_mentions, send_message

_log = logging.getLogger(__name__)


def render_notification(template_key: str, player_ids: list[int], **context) -> str:
    return NOTIFICATION_TEMPLATES[template_key].format(
        mentions=format_mentions(player_ids), **context
    )


class DiscordNotifier:
    """
    Pings queue members in the queue's channel
    """

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def notify(
        self, channel_id: int, player_ids: list[int], template_key: str, **context
    ) -> None:
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden):
                _log.warning(
                    f"[notify] Channel {channel_id} is not available, dropping {template_key} notification"
                )
                return
        await send_message(
            channel,
            content=render_notification(template_key, player_ids, **context),
            allowed_mentions=allowed_user_mentions(player_ids),
        )
