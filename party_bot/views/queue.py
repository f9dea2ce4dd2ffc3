import logging

import discord
from discord import ButtonStyle, Colour, Interaction

from party_bot.constants import QUEUE_CONFIGS, ROLE_CONFIGS, PlayerRole
from party_bot.queue_entity import JoinResult
from party_bot.utils import send_interaction_message
from party_bot.views.base import BaseView

_log = logging.getLogger(__name__)


class QueueView(BaseView):
    """
    Role buttons under a queue message. The custom ids are fixed so a single
    registered instance handles clicks on every queue, also after a restart;
    the queue is identified by the message that was clicked.
    """

    def __init__(self, interactive: bool = True):
        super().__init__(timeout=None)
        if not interactive:
            self.disable_children()

    @discord.ui.button(
        label=ROLE_CONFIGS[PlayerRole.TANK].display_name,
        emoji=ROLE_CONFIGS[PlayerRole.TANK].emoji,
        style=ButtonStyle.primary,
        custom_id="persistent_view:queue:tank",
    )
    async def tank_button(self, interaction: Interaction, button: discord.ui.Button):
        await self.join(interaction, PlayerRole.TANK)

    @discord.ui.button(
        label=ROLE_CONFIGS[PlayerRole.HEALER].display_name,
        emoji=ROLE_CONFIGS[PlayerRole.HEALER].emoji,
        style=ButtonStyle.success,
        custom_id="persistent_view:queue:healer",
    )
    async def healer_button(self, interaction: Interaction, button: discord.ui.Button):
        await self.join(interaction, PlayerRole.HEALER)

    @discord.ui.button(
        label=ROLE_CONFIGS[PlayerRole.DPS].display_name,
        emoji=ROLE_CONFIGS[PlayerRole.DPS].emoji,
        style=ButtonStyle.danger,
        custom_id="persistent_view:queue:dps",
    )
    async def dps_button(self, interaction: Interaction, button: discord.ui.Button):
        await self.join(interaction, PlayerRole.DPS)

    @discord.ui.button(
        label="Leave",
        emoji="🚪",
        style=ButtonStyle.secondary,
        custom_id="persistent_view:queue:leave",
    )
    async def leave_button(self, interaction: Interaction, button: discord.ui.Button):
        await interaction.response.defer(ephemeral=True, thinking=True)
        await interaction.client.queue_service.leave(  # type: ignore
            str(interaction.message.id), interaction.user.id
        )
        await send_interaction_message(
            interaction, "You left the queue.", Colour.green()
        )

    async def join(self, interaction: Interaction, role: PlayerRole):
        await interaction.response.defer(ephemeral=True, thinking=True)
        outcome = await interaction.client.queue_service.join(  # type: ignore
            str(interaction.message.id),
            interaction.user.id,
            interaction.user.display_name,
            role,
        )
        role_config = ROLE_CONFIGS[role]
        if outcome.result == JoinResult.SWITCHED:
            description = f"Switched role to {role_config.emoji} **{role_config.display_name}**."
        else:
            description = f"Joined as {role_config.emoji} **{role_config.display_name}**."
        if outcome.is_full:
            description += "\nThe queue is now full!"
        await send_interaction_message(interaction, description, Colour.green())


class PanelView(BaseView):
    """
    The button under a panel message, starts a queue of the panel's type in
    the panel's channel
    """

    def __init__(self):
        super().__init__(timeout=None)

    @discord.ui.button(
        label="Start queue",
        emoji="▶️",
        style=ButtonStyle.primary,
        custom_id="persistent_view:panel:start",
    )
    async def start_button(self, interaction: Interaction, button: discord.ui.Button):
        await interaction.response.defer(ephemeral=True, thinking=True)
        queue = await interaction.client.queue_service.start_from_panel(  # type: ignore
            str(interaction.message.id)
        )
        _log.info(
            f"[PanelView.start_button] {interaction.user.id} started queue {queue.handle}"
        )
        await send_interaction_message(
            interaction,
            f"Started a **{QUEUE_CONFIGS[queue.queue_type].display_name}** queue!",
            Colour.green(),
        )
