import logging
from typing import Any

from discord import Client, Colour, Embed, Interaction
from discord.ui import Modal, View
from discord.ui.item import Item

from party_bot.exceptions import PartyBotError

_log = logging.getLogger(__name__)


async def respond_to_error(interaction: Interaction, error: Exception) -> None:
    """
    Errors the user can act on are shown as they are, anything else as a
    generic failure
    """
    if isinstance(error, PartyBotError):
        embed = Embed(description=error.user_message, colour=Colour.red())
    else:
        embed = Embed(
            description="Oops! Something went wrong ☹️",
            colour=Colour.red(),
        )
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        # there always needs to be a response
        await interaction.response.send_message(embed=embed, ephemeral=True)


class BaseView(View):
    async def on_error(
        self,
        interaction: Interaction[Client],
        error: Exception,
        item: Item[Any],
    ) -> None:
        await respond_to_error(interaction, error)
        if not isinstance(error, PartyBotError):
            await super().on_error(interaction, error, item)

    def disable_children(self):
        for child in self.children:
            if hasattr(child, "disabled"):
                child.disabled = True  # type: ignore


class BaseModal(Modal):
    async def on_error(self, interaction: Interaction[Client], error: Exception) -> None:
        await respond_to_error(interaction, error)
        if not isinstance(error, PartyBotError):
            await super().on_error(interaction, error)
