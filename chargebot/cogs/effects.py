# chargebot/cogs/effects.py
from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from chargebot.core.charging import CostCheck
from chargebot.ui.formatting import mention

log = logging.getLogger(__name__)


class EffectsCog(commands.Cog):
    """
    Sound clip commands. Each costs battery, scaled by how much of the command
    actually ran (0 if the author isn't in voice).
    """

    def __init__(self, bot: commands.Bot, settings, charging):
        self.bot = bot
        self.settings = settings
        self.charging = charging

    # ---------------- cost gate ----------------

    async def _run_paid(self, ctx: commands.Context, runner) -> float:
        battery_cost = float(ctx.command.extras.get("battery_cost", 0.0))
        speed_cost = float(ctx.command.extras.get("speed_cost", 0.0))
        gid, uid = ctx.guild.id, ctx.author.id

        check = self.charging.can_afford(gid, uid, battery_cost, speed_cost)
        if check is CostCheck.LOW_BATTERY:
            await ctx.reply(
                f"You don't have enough battery power! Charge your battery using the "
                f"**{self.settings.command_prefix}charge** command."
            )
            return 0.0
        if check is CostCheck.LOW_SPEED:
            await ctx.reply(
                "Your charging speed isn't high enough! "
                "Follow the instructions on the image I post to increase your charging speed."
            )
            return 0.0

        weight = await runner()
        log.info("%s weight=%s guild=%s user=%s", ctx.command.name, weight, gid, uid)

        async def _notify_unplugged():
            await ctx.send(f"{mention(uid)} You've been automatically unplugged to run this command.")

        await self.charging.pay(gid, uid, battery_cost, speed_cost, weight, on_unplugged=_notify_unplugged)
        return weight

    # ---------------- voice ----------------

    def _after_clip(self, guild: discord.Guild, error: Exception | None) -> None:
        # runs on the voice player thread
        if error is not None:
            log.error("Sound clip in guild %s failed: %s", guild.id, error)
        voice = guild.voice_client
        if voice is not None:
            asyncio.run_coroutine_threadsafe(voice.disconnect(force=False), self.bot.loop)

    async def _play_clip(self, ctx: commands.Context, path: str) -> float:
        state = getattr(ctx.author, "voice", None)
        if state is None or state.channel is None:
            await ctx.reply("You need to join a voice channel first!")
            return 0.0

        guild = ctx.guild
        try:
            voice = guild.voice_client
            if voice is None:
                voice = await state.channel.connect()
            elif voice.channel != state.channel:
                await voice.move_to(state.channel)
            if voice.is_playing():
                voice.stop()

            source = discord.PCMVolumeTransformer(discord.FFmpegPCMAudio(path), volume=self.settings.sound_volume)
            voice.play(source, after=lambda err: self._after_clip(guild, err))
        except (discord.ClientException, discord.HTTPException, asyncio.TimeoutError, OSError) as e:
            log.warning("Couldn't play %s in guild %s: %s", path, guild.id, e)
            await ctx.reply("I couldn't play that right now.")
            return 0.0

        log.info("%s - start", ctx.command.name)
        return 1.0

    # ---------------- commands ----------------

    @commands.command(name="ow", help="Play the 'ow' FX CHIP sound", extras={"battery_cost": 0.3})
    @commands.guild_only()
    async def ow(self, ctx: commands.Context):
        await self._run_paid(ctx, lambda: self._play_clip(ctx, self.settings.sound_ow))

    @commands.command(name="hey", help="Play the 'hey' FX CHIP sound", extras={"battery_cost": 0.1})
    @commands.guild_only()
    async def hey(self, ctx: commands.Context):
        await self._run_paid(ctx, lambda: self._play_clip(ctx, self.settings.sound_hey))

    @commands.command(name="yeah", help="Play the 'yeah' FX CHIP sound", extras={"battery_cost": 0.1})
    @commands.guild_only()
    async def yeah(self, ctx: commands.Context):
        await self._run_paid(ctx, lambda: self._play_clip(ctx, self.settings.sound_yeah))
