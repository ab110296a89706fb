# chargebot/cogs/daily_event.py
from __future__ import annotations

import logging

import discord
from discord.ext import commands

log = logging.getLogger(__name__)


class DailyEventCog(commands.Cog):
    """
    Wires the daily Type C engine to gateway events:
    - on_ready / on_guild_join -> (re)register guilds (restart recovery)
    - on_message -> trigger phrase entries
    """

    def __init__(self, bot: commands.Bot, settings, events):
        self.bot = bot
        self.settings = settings
        self.events = events

    async def register_all(self) -> None:
        count = 0
        for guild in self.bot.guilds:
            await self.events.register_guild(guild.id)
            count += 1
        print(f"[chargebot] Type C registration ✅ guilds={count}")

    @commands.Cog.listener()
    async def on_ready(self):
        await self.register_all()

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild):
        await self.events.register_guild(guild.id)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot or message.guild is None:
            return
        if message.content.startswith(self.settings.command_prefix):
            return

        credited = self.events.record_entry(
            guild_id=message.guild.id,
            channel_id=message.channel.id,
            user_id=message.author.id,
            content=message.content,
            timestamp=message.created_at,
        )
        if credited:
            log.info("Type C entry: guild=%s user=%s", message.guild.id, message.author.id)
