import asyncio
import logging

from discord import Colour, Embed, Interaction, Member
from discord.app_commands import AppCommandError, errors

import party_bot.config as config
from party_bot.cogs.queue import QueueCommands
from party_bot.cogs.registration import RegistrationCommands
from party_bot.cogs.verification import VerificationCommands
from party_bot.exceptions import PartyBotError
from party_bot.notifications import DiscordNotifier
from party_bot.queue_service import QueueService
from party_bot.views.approval import ApprovalView
from party_bot.views.queue import PanelView, QueueView
from party_bot.views.renderer import DiscordQueueRenderer

from .bot import bot
from .tasks import restore_queues_task

_log = logging.getLogger(__name__)


@bot.event
async def on_ready():
    """
    https://discordpy.readthedocs.io/en/stable/api.html#discord.on_ready
    This function is not guaranteed to be the first event called. Likewise, this function is not guaranteed to only be called once.
    Do not setup anything in here
    """
    _log.info(f"Logged in as {bot.user} (ID: {bot.user.id})")


@bot.tree.error
async def on_app_command_error(
    interaction: Interaction, error: AppCommandError
) -> None:
    if isinstance(error, errors.CheckFailure):
        return
    original = error.original if isinstance(error, errors.CommandInvokeError) else error
    if isinstance(original, PartyBotError):
        embed = Embed(description=original.user_message, colour=Colour.red())
    else:
        if interaction.command:
            _log.exception(
                f"[on_app_command_error]: {error}, command: {interaction.command.name}",
                exc_info=original,
            )
        else:
            _log.exception(f"[on_app_command_error]: {error}", exc_info=original)
        embed = Embed(description="Oops! Something went wrong ☹️", colour=Colour.red())

    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        # fallback case that responds to the interaction, since there always needs to be a response
        await interaction.response.send_message(embed=embed, ephemeral=True)


@bot.event
async def on_member_remove(member: Member):
    if await bot.queue_service.remove_departed_member(member.guild.id, member.id):
        _log.info(f"[on_member_remove] Removed {member.id} from their queue in {member.guild.id}")


async def setup():
    bot.queue_service = QueueService(DiscordQueueRenderer(bot), DiscordNotifier(bot))
    # one instance per view type serves every message carrying it
    bot.add_view(QueueView())
    bot.add_view(PanelView())
    bot.add_view(ApprovalView())
    await bot.add_cog(QueueCommands(bot))
    await bot.add_cog(RegistrationCommands(bot))
    await bot.add_cog(VerificationCommands(bot))
    restore_queues_task.start()


async def main():
    await setup()
    try:
        await bot.start(config.API_KEY)
    finally:
        bot.queue_service.shutdown()
        await bot.close()


def run():
    if not config.CONFIG_IS_VALID:
        raise SystemExit("Invalid configuration, see the log for details")
    try:
        with config.setup_logging(config.LOG_LEVEL, config.LOG_FILE):
            asyncio.run(main())
    except KeyboardInterrupt:
        print("KeyboardInterrupt")


if __name__ == "__main__":
    run()
