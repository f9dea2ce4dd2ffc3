import logging

from discord import Interaction, Role, TextChannel, app_commands
from discord.ext.commands import Bot

from party_bot import registration as registrations
from party_bot.checks import is_admin_app_command
from party_bot.cogs.base import BaseCog

_log = logging.getLogger(__name__)


class VerificationCommands(BaseCog):
    def __init__(self, bot: Bot):
        super().__init__(bot)

    group = app_commands.Group(
        name="verification",
        description="Admin approval of new registrations",
        guild_only=True,
    )

    @group.command(
        name="setup", description="Require an admin to approve new registrations"
    )
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(
        review_channel="Where pending registrations are posted for review",
        approved_role="Role given to approved players",
        approved_channel="Where approved players are welcomed",
    )
    async def setup(
        self,
        interaction: Interaction,
        review_channel: TextChannel,
        approved_role: Role,
        approved_channel: TextChannel | None = None,
    ):
        await registrations.set_verification_settings(
            interaction.guild_id,
            review_channel.id,
            approved_role.id,
            approved_channel.id if approved_channel else None,
        )
        description = (
            "Verification enabled\n"
            f"Review channel: {review_channel.mention}\n"
            f"Approved role: {approved_role.mention}"
        )
        if approved_channel:
            description += f"\nApproved channel: {approved_channel.mention}"
        await self.send_success_message(interaction, description)

    @group.command(name="disable", description="Stop requiring approval")
    @app_commands.check(is_admin_app_command)
    async def disable(self, interaction: Interaction):
        if await registrations.disable_verification(interaction.guild_id):
            await self.send_success_message(interaction, "Verification disabled")
        else:
            await self.send_info_message(interaction, "Verification was not enabled")
