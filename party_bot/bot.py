# This file exists to avoid a circular reference
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

import party_bot.config as config

if TYPE_CHECKING:
    from party_bot.queue_service import QueueService

_log = logging.getLogger(__name__)


class PartyBot(commands.Bot):
    queue_service: QueueService

    async def setup_hook(self) -> None:
        if not config.SYNC_COMMANDS:
            return
        if config.DEBUG_GUILD_ID:
            guild = discord.Object(id=config.DEBUG_GUILD_ID)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            _log.info(f"[setup_hook] Synced {len(synced)} commands to guild {guild.id}")
        else:
            synced = await self.tree.sync()
            _log.info(f"[setup_hook] Synced {len(synced)} commands globally")


intents = discord.Intents.default()
intents.members = True

bot = PartyBot(
    case_insensitive=True,
    command_prefix=config.COMMAND_PREFIX,
    help_command=None,
    intents=intents,
)
