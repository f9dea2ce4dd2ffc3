from __future__ import annotations

from typing import TYPE_CHECKING

from discord import Colour, Embed, Interaction
from discord.ext.commands import Cog

if TYPE_CHECKING:
    from party_bot.bot import PartyBot
    from party_bot.queue_service import QueueService


class BaseCog(Cog):
    def __init__(self, bot):
        self.bot: PartyBot = bot

    @property
    def service(self) -> QueueService:
        return self.bot.queue_service

    async def _send(
        self, interaction: Interaction, description: str, colour: Colour, ephemeral: bool
    ):
        embed = Embed(description=description, colour=colour)
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=ephemeral)

    async def send_success_message(
        self, interaction: Interaction, success_message: str, ephemeral: bool = True
    ):
        await self._send(interaction, success_message, Colour.green(), ephemeral)

    async def send_info_message(
        self, interaction: Interaction, info_message: str, ephemeral: bool = True
    ):
        await self._send(interaction, info_message, Colour.blue(), ephemeral)

    async def send_error_message(
        self, interaction: Interaction, error_message: str, ephemeral: bool = True
    ):
        await self._send(interaction, error_message, Colour.red(), ephemeral)
