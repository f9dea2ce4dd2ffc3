import logging

import discord
from discord import ButtonStyle, Colour, Embed, Guild, Interaction, Member

from party_bot import registration as registrations
from party_bot.embeds import create_review_embed, create_reviewed_embed
from party_bot.exceptions import RegistrationNotFound
from party_bot.models import GuildSettings, PlayerRegistration
from party_bot.utils import allowed_user_mentions, send_interaction_message, send_message
from party_bot.views.base import BaseView

_log = logging.getLogger(__name__)


async def post_for_review(
    guild: Guild,
    member: Member | discord.User,
    registration: PlayerRegistration,
    settings: GuildSettings,
) -> bool:
    """
    Post a pending registration to the review channel

    :returns: False if the review channel is not usable
    """
    channel = guild.get_channel(settings.review_channel_id or 0)
    if not isinstance(channel, discord.TextChannel):
        _log.warning(
            f"[post_for_review] Review channel {settings.review_channel_id} in guild {guild.id} is not a text channel"
        )
        return False
    try:
        message = await channel.send(
            embed=create_review_embed(registration, member), view=ApprovalView()
        )
    except discord.HTTPException:
        _log.exception(f"[post_for_review] Failed to post registration {registration.id}")
        return False
    await registrations.set_review_message(registration.id, message.id)
    return True


async def apply_approval(
    guild: Guild, registration: PlayerRegistration, settings: GuildSettings | None
) -> list[str]:
    """
    Rename the member to their in-game name, grant the approved role and
    greet them in the approved channel. Every step is attempted on its own.

    :returns: a description of each step that failed
    """
    errors: list[str] = []
    member = guild.get_member(registration.user_id)
    if member is None:
        try:
            member = await guild.fetch_member(registration.user_id)
        except discord.NotFound:
            return ["Member has left the server"]

    try:
        await member.edit(nick=registration.ingame_name)
    except discord.HTTPException:
        _log.exception(f"[apply_approval] Failed to change nickname for {member.id}")
        errors.append("Failed to change nickname")

    if settings and settings.approved_role_id:
        role = guild.get_role(settings.approved_role_id)
        if role is None:
            errors.append("Approved role not found (may have been deleted)")
        else:
            try:
                await member.add_roles(role, reason="Registration approved")
            except discord.HTTPException:
                _log.exception(f"[apply_approval] Failed to add role {role.id} to {member.id}")
                errors.append(f"Failed to add role {role.name}")

    if settings and settings.approved_channel_id:
        channel = guild.get_channel(settings.approved_channel_id)
        if isinstance(channel, discord.TextChannel):
            await send_message(
                channel,
                content=f"Welcome {member.mention}! Your registration has been approved.",
                allowed_mentions=allowed_user_mentions([member.id]),
            )
        else:
            errors.append("Approved channel not found")
    return errors


class ApprovalView(BaseView):
    """
    Approve / reject buttons on a pending registration in the review channel
    """

    def __init__(self):
        super().__init__(timeout=None)

    async def interaction_check(self, interaction: Interaction) -> bool:
        permissions = getattr(interaction.user, "guild_permissions", None)
        if permissions is None or not permissions.administrator:
            await interaction.response.send_message(
                embed=Embed(
                    description="You must be an administrator to review registrations",
                    colour=Colour.red(),
                ),
                ephemeral=True,
            )
            return False
        return True

    @discord.ui.button(
        label="Approve",
        emoji="✅",
        style=ButtonStyle.success,
        custom_id="persistent_view:approval:approve",
    )
    async def approve_button(self, interaction: Interaction, button: discord.ui.Button):
        await self.review(interaction, approve=True)

    @discord.ui.button(
        label="Reject",
        emoji="❌",
        style=ButtonStyle.danger,
        custom_id="persistent_view:approval:reject",
    )
    async def reject_button(self, interaction: Interaction, button: discord.ui.Button):
        await self.review(interaction, approve=False)

    async def review(self, interaction: Interaction, approve: bool):
        pending = await registrations.get_registration_by_review_message(
            interaction.message.id
        )
        if pending is None:
            raise RegistrationNotFound()
        reviewed = await registrations.review_registration(
            pending.guild_id, pending.user_id, approve, interaction.user.id
        )
        await interaction.response.edit_message(
            embed=create_reviewed_embed(reviewed, interaction.user), view=None
        )
        if not approve:
            return
        settings = await registrations.get_guild_settings(reviewed.guild_id)
        errors = await apply_approval(interaction.guild, reviewed, settings)
        if errors:
            await send_interaction_message(
                interaction,
                "Approved, but some steps failed:\n" + "\n".join(f"• {e}" for e in errors),
                Colour.yellow(),
            )
