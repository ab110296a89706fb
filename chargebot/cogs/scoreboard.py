# chargebot/cogs/scoreboard.py
from __future__ import annotations

import discord
from discord.ext import commands

from chargebot.ui.formatting import scoreboard_rows, scoreboard_text


class ScoreboardCog(commands.Cog):
    def __init__(self, bot: commands.Bot, settings, persistent):
        self.bot = bot
        self.settings = settings
        self.persistent = persistent

    def _display_names(self, guild: discord.Guild, user_ids) -> dict[int, str]:
        names: dict[int, str] = {}
        for uid in user_ids:
            member = guild.get_member(uid)
            if member is not None:
                names[uid] = member.display_name
        return names

    @commands.command(name="scoreboard", aliases=["leaderboard"], help="View the charging speed scoreboard for this server")
    @commands.guild_only()
    async def scoreboard(self, ctx: commands.Context):
        users = self.persistent.guild(ctx.guild.id).users
        rows = scoreboard_rows(users)
        names = self._display_names(ctx.guild, [uid for uid, _ in rows])
        await ctx.send(scoreboard_text(rows, names, self.settings.score_suffix)[:1900])
