import logging

from discord import Colour, Embed, Interaction, TextChannel, app_commands
from discord.ext.commands import Bot

from party_bot.checks import is_admin_app_command
from party_bot.cogs.base import BaseCog
from party_bot.constants import QUEUE_CONFIGS, QueueType
from party_bot.exceptions import QueueNotFound
from party_bot.queue_entity import QueueEntity
from party_bot.utils import format_duration, utc_now_naive

_log = logging.getLogger(__name__)

QUEUE_TYPE_CHOICES = [
    app_commands.Choice(name=config.display_name, value=queue_type.value)
    for queue_type, config in QUEUE_CONFIGS.items()
]


class QueueCommands(BaseCog):
    def __init__(self, bot: Bot):
        super().__init__(bot)

    group = app_commands.Group(
        name="queue", description="Queue commands", guild_only=True
    )

    async def _find_queue(self, interaction: Interaction, queue_type: str) -> QueueEntity:
        queue = await QueueEntity.load_by_type(interaction.guild_id, queue_type)
        if queue is None:
            raise QueueNotFound()
        return queue

    @group.command(name="setup", description="Start a queue in this channel")
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(
        queue_type="Type of queue", channel="Channel to post in, defaults to this one"
    )
    @app_commands.choices(queue_type=QUEUE_TYPE_CHOICES)
    @app_commands.rename(queue_type="type")
    async def setup(
        self,
        interaction: Interaction,
        queue_type: app_commands.Choice[str],
        channel: TextChannel | None = None,
    ):
        await interaction.response.defer(ephemeral=True)
        channel_id = channel.id if channel else interaction.channel_id
        await self.service.create_queue(interaction.guild_id, channel_id, queue_type.value)
        await self.send_success_message(
            interaction,
            f"Created **{queue_type.name}** queue in <#{channel_id}>!\nPlayers can now join using the role buttons.",
        )

    @group.command(
        name="panel",
        description="Post a panel with a button that lets anyone start a queue",
    )
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(
        queue_type="Type of queue", channel="Channel to post in, defaults to this one"
    )
    @app_commands.choices(queue_type=QUEUE_TYPE_CHOICES)
    @app_commands.rename(queue_type="type")
    async def panel(
        self,
        interaction: Interaction,
        queue_type: app_commands.Choice[str],
        channel: TextChannel | None = None,
    ):
        await interaction.response.defer(ephemeral=True)
        channel_id = channel.id if channel else interaction.channel_id
        await self.service.create_panel(interaction.guild_id, channel_id, queue_type.value)
        await self.send_success_message(
            interaction, f"Posted **{queue_type.name}** panel in <#{channel_id}>"
        )

    @group.command(name="remove-panel", description="Remove a queue panel")
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(queue_type="Type of queue")
    @app_commands.choices(queue_type=QUEUE_TYPE_CHOICES)
    @app_commands.rename(queue_type="type")
    async def remove_panel(
        self, interaction: Interaction, queue_type: app_commands.Choice[str]
    ):
        await interaction.response.defer(ephemeral=True)
        await self.service.delete_panel(interaction.guild_id, queue_type.value)
        await self.send_success_message(
            interaction, f"Removed **{queue_type.name}** panel"
        )

    @group.command(name="reset", description="Remove all players and reopen a queue")
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(queue_type="Type of queue")
    @app_commands.choices(queue_type=QUEUE_TYPE_CHOICES)
    @app_commands.rename(queue_type="type")
    async def reset(self, interaction: Interaction, queue_type: app_commands.Choice[str]):
        await interaction.response.defer(ephemeral=True)
        queue = await self._find_queue(interaction, queue_type.value)
        await self.service.reset_queue(queue.handle)
        await self.send_success_message(
            interaction,
            f"The **{queue_type.name}** queue has been cleared and reopened.",
        )

    @group.command(name="close", description="Close a queue and delete its message")
    @app_commands.check(is_admin_app_command)
    @app_commands.describe(queue_type="Type of queue")
    @app_commands.choices(queue_type=QUEUE_TYPE_CHOICES)
    @app_commands.rename(queue_type="type")
    async def close(self, interaction: Interaction, queue_type: app_commands.Choice[str]):
        await interaction.response.defer(ephemeral=True)
        queue = await self._find_queue(interaction, queue_type.value)
        await self.service.close_queue(queue.handle)
        await self.send_success_message(
            interaction, f"The **{queue_type.name}** queue has been closed."
        )

    @group.command(name="refresh", description="Redraw every queue in this server")
    @app_commands.check(is_admin_app_command)
    async def refresh(self, interaction: Interaction):
        await interaction.response.defer(ephemeral=True)
        refreshed = await self.service.refresh_guild(interaction.guild_id)
        await self.send_success_message(interaction, f"Refreshed {refreshed} queue(s)")

    @group.command(name="list", description="List the queues in this server")
    async def list_queues(self, interaction: Interaction):
        states = await self.service.list_queues(interaction.guild_id)
        if not states:
            await self.send_info_message(interaction, "There are no queues in this server")
            return
        embed = Embed(title="Queues", colour=Colour.blue())
        now = utc_now_naive()
        for state in states:
            queue_config = QUEUE_CONFIGS[state.queue_type]
            value = f"[{state.member_count}/{state.capacity}] in <#{state.channel_id}>"
            if state.is_closed:
                value += " • closed"
            elif state.expires_at:
                remaining = max(int((state.expires_at - now).total_seconds()), 0)
                value += f" • expires in {format_duration(remaining)}"
            embed.add_field(
                name=f"{queue_config.emoji} {queue_config.display_name}",
                value=value,
                inline=False,
            )
        await interaction.response.send_message(embed=embed, ephemeral=True)
