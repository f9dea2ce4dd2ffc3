import logging

from discord import Interaction, Member, TextChannel, app_commands
from discord.ext.commands import Bot

from party_bot import registration as registrations
from party_bot.checks import (
    is_admin_app_command,
    is_guild_app_command,
    is_registration_channel,
)
from party_bot.cogs.base import BaseCog
from party_bot.constants import WEAPON_CONFIGS, Weapon
from party_bot.embeds import create_profile_embed
from party_bot.exceptions import RegistrationNotFound
from party_bot.views.registration import RegistrationModal, UpdateStatsModal

_log = logging.getLogger(__name__)

WEAPON_CHOICES = [
    app_commands.Choice(name=config.display_name, value=weapon.value)
    for weapon, config in WEAPON_CONFIGS.items()
]


class RegistrationCommands(BaseCog):
    def __init__(self, bot: Bot):
        super().__init__(bot)

    @app_commands.command(name="register", description="Register your in-game profile")
    @app_commands.check(is_registration_channel)
    @app_commands.describe(
        primary_weapon="Your main weapon", secondary_weapon="Your second weapon"
    )
    @app_commands.choices(primary_weapon=WEAPON_CHOICES, secondary_weapon=WEAPON_CHOICES)
    @app_commands.rename(primary_weapon="primary", secondary_weapon="secondary")
    async def register(
        self,
        interaction: Interaction,
        primary_weapon: app_commands.Choice[str],
        secondary_weapon: app_commands.Choice[str],
    ):
        existing = await registrations.get_registration(
            interaction.guild_id, interaction.user.id
        )
        await interaction.response.send_modal(
            RegistrationModal(
                Weapon(primary_weapon.value), Weapon(secondary_weapon.value), existing
            )
        )

    @app_commands.command(name="info", description="View a player's profile")
    @app_commands.check(is_guild_app_command)
    @app_commands.describe(user="The player to view, leave empty for yourself")
    async def info(self, interaction: Interaction, user: Member | None = None):
        target = user or interaction.user
        registration = await registrations.get_registration(
            interaction.guild_id, target.id
        )
        if registration is None:
            if target.id == interaction.user.id:
                await self.send_error_message(
                    interaction, "You are not registered yet. Use /register to get started"
                )
            else:
                await self.send_error_message(
                    interaction, f"{target.mention} is not registered"
                )
            return
        await interaction.response.send_message(
            embed=create_profile_embed(registration, target), ephemeral=True
        )

    @app_commands.command(
        name="update-stats", description="Update your gear score and arena rank"
    )
    @app_commands.check(is_guild_app_command)
    async def update_stats(self, interaction: Interaction):
        registration = await registrations.get_registration(
            interaction.guild_id, interaction.user.id
        )
        if registration is None:
            raise RegistrationNotFound()
        await interaction.response.send_modal(UpdateStatsModal(registration.arena_rank))

    @app_commands.command(name="unregister", description="Delete your profile")
    @app_commands.check(is_guild_app_command)
    async def unregister(self, interaction: Interaction):
        if not await registrations.delete_registration(
            interaction.guild_id, interaction.user.id
        ):
            raise RegistrationNotFound()
        await self.send_success_message(interaction, "Your profile has been deleted")

    @app_commands.command(
        name="setup-registration", description="Set the registration channel"
    )
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(channel="Channel where players can register")
    async def setup_registration(self, interaction: Interaction, channel: TextChannel):
        await registrations.set_registration_channel(interaction.guild_id, channel.id)
        await self.send_success_message(
            interaction, f"Registration channel set to {channel.mention}"
        )
