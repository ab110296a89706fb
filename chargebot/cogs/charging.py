# chargebot/cogs/charging.py
from __future__ import annotations

from discord.ext import commands

from chargebot.core.charging import ChargeOutcome
from chargebot.core.timecore import format_duration
from chargebot.ui.formatting import fmt_battery, fmt_speed


class ChargingCog(commands.Cog):
    def __init__(self, bot: commands.Bot, settings, persistent, charging):
        self.bot = bot
        self.settings = settings
        self.persistent = persistent
        self.charging = charging

    @commands.command(name="status", help="View your battery level and charging speed")
    @commands.guild_only()
    async def status(self, ctx: commands.Context):
        gid, uid = ctx.guild.id, ctx.author.id
        user = self.persistent.user(gid, uid)
        charging = " (charging)" if self.charging.is_charging(gid, uid) else ""
        await ctx.reply(
            f"Your battery is at **{fmt_battery(user.battery)}**{charging} "
            f"and your charging speed is **{fmt_speed(user.charging_speed, self.settings.score_suffix)}**."
        )

    @commands.command(name="charge", help="Charge your battery")
    @commands.guild_only()
    async def charge(self, ctx: commands.Context):
        attempt = self.charging.start(ctx.guild.id, ctx.author.id)

        if attempt.outcome is ChargeOutcome.ALREADY_CHARGING:
            return await ctx.reply("You're already charging!")
        if attempt.outcome is ChargeOutcome.BATTERY_FULL:
            return await ctx.reply("Your battery is already full!")
        if attempt.outcome is ChargeOutcome.PORTS_FULL:
            return await ctx.reply("Sorry, all the charging ports are currently in use.")

        await ctx.reply(
            f"You're plugged in now. It'll take about **{format_duration(attempt.seconds_to_full)}** to fully charge."
        )

    @commands.command(name="unplug", help="Stop charging your battery")
    @commands.guild_only()
    async def unplug(self, ctx: commands.Context):
        battery = self.charging.unplug(ctx.guild.id, ctx.author.id)
        if battery is None:
            return await ctx.reply("You're not charging right now.")
        await ctx.reply(f"Unplugged. Your battery is at **{fmt_battery(battery)}**.")
