import discord
from discord.abc import Messageable
from discord.ext import commands

from party_bot.constants import QueueType
from party_bot.embeds import create_panel_embed, create_queue_embed
from party_bot.exceptions import ArtifactMissing
from party_bot.queue_entity import QueueState
from party_bot.views.queue import PanelView, QueueView


class DiscordQueueRenderer:
    """
    Draws queues and panels as Discord messages. A message id is the queue's
    or panel's handle.
    """

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _get_channel(self, channel_id: int, handle: str = "") -> Messageable:
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except discord.NotFound:
                raise ArtifactMissing(handle or str(channel_id))
        return channel  # type: ignore

    async def create(self, channel_id: int, state: QueueState) -> str:
        channel = await self._get_channel(channel_id)
        message = await channel.send(
            embed=create_queue_embed(state), view=QueueView(interactive=True)
        )
        return str(message.id)

    async def edit(self, state: QueueState, interactive: bool) -> None:
        channel = await self._get_channel(state.channel_id, state.handle)
        message = channel.get_partial_message(int(state.handle))  # type: ignore
        try:
            await message.edit(
                embed=create_queue_embed(state), view=QueueView(interactive)
            )
        except discord.NotFound:
            raise ArtifactMissing(state.handle)

    async def delete(self, channel_id: int, handle: str) -> None:
        channel = await self._get_channel(channel_id, handle)
        message = channel.get_partial_message(int(handle))  # type: ignore
        try:
            await message.delete()
        except discord.NotFound:
            raise ArtifactMissing(handle)

    async def create_panel(self, channel_id: int, queue_type: QueueType) -> str:
        channel = await self._get_channel(channel_id)
        message = await channel.send(
            embed=create_panel_embed(queue_type), view=PanelView()
        )
        return str(message.id)

    async def exists(self, channel_id: int, handle: str) -> bool:
        try:
            channel = await self._get_channel(channel_id, handle)
            await channel.fetch_message(int(handle))
        except (ArtifactMissing, discord.NotFound):
            return False
        return True
