# chargebot/cogs/meta.py
from __future__ import annotations

from discord.ext import commands

from chargebot.ui.formatting import channel_mention, fmt_cost


class MetaCog(commands.Cog):
    def __init__(self, bot: commands.Bot, settings, persistent):
        self.bot = bot
        self.settings = settings
        self.persistent = persistent

    def _prefix(self) -> str:
        return self.settings.command_prefix

    def command_lines(self) -> list[str]:
        prefix = self._prefix()
        lines = ["User commands:"]
        # cog load order, not bot.commands (a set)
        for cmd in (c for cog in self.bot.cogs.values() for c in cog.get_commands()):
            if cmd.hidden or cmd.extras.get("admin_only"):
                continue
            cost = fmt_cost(cmd.extras.get("battery_cost"), cmd.extras.get("speed_cost"))
            lines.append(f"> **{prefix}{cmd.name}**{cost} - {cmd.help or ''}")
        return lines

    @commands.command(name="help", help="Learn the basics of the bot")
    @commands.guild_only()
    async def help_cmd(self, ctx: commands.Context):
        prefix = self._prefix()
        channel_id = self.persistent.guild(ctx.guild.id).config.charging_channel_id
        if channel_id is not None:
            channel_display = channel_mention(channel_id)
        else:
            channel_display = "(oops, no charging channel set for this server)"

        me = self.bot.user.name if self.bot.user else "chargebot"
        await ctx.send("\n".join([
            f"I'm **{me}**! I have some funny commands you can run (use **{prefix}commands** to learn more).",
            f'Some commands cost "battery power" to run. You\'ll need to recharge your battery using **{prefix}charge** if you run out.',
            f"To increase your charging speed, follow the instructions on the image I post in {channel_display} at a random time each day.",
        ]))

    @commands.command(name="commands", help="View this information")
    @commands.guild_only()
    async def commands_list(self, ctx: commands.Context):
        await ctx.send("\n".join(self.command_lines())[:1900])
