from discord import Colour, Embed, Interaction

from party_bot import registration as registrations


async def _reject(interaction: Interaction, description: str) -> bool:
    embed = Embed(description=description, colour=Colour.red())
    if not interaction.response.is_done():
        await interaction.response.send_message(embed=embed, ephemeral=True)
    else:
        await interaction.followup.send(embed=embed, ephemeral=True)
    return False


async def is_guild_app_command(interaction: Interaction) -> bool:
    """
    Check that the command is used inside a server
    """
    if interaction.guild is None:
        return await _reject(interaction, "This command can only be used in a server")
    return True


async def is_admin_app_command(interaction: Interaction) -> bool:
    permissions = getattr(interaction.user, "guild_permissions", None)
    if interaction.guild is None or permissions is None or not permissions.administrator:
        return await _reject(interaction, "You must be an admin to use that command")
    return True


async def is_registration_channel(interaction: Interaction) -> bool:
    """
    Check that registrations are performed from the guild's registration
    channel, once one has been set up
    """
    if interaction.guild is None:
        return await _reject(interaction, "This command can only be used in a server")
    settings = await registrations.get_guild_settings(interaction.guild.id)
    if settings is None or settings.registration_channel_id is None:
        return await _reject(
            interaction,
            "Registration has not been set up in this server yet. Ask an admin to run /setup-registration",
        )
    if interaction.channel_id != settings.registration_channel_id:
        return await _reject(
            interaction,
            f"Please register in <#{settings.registration_channel_id}>",
        )
    return True
