# chargebot/cogs/admin.py
from __future__ import annotations

import logging
import traceback

from discord.ext import commands

from chargebot.cogs.checks import bot_admin_only
from chargebot.config import ConfigError
from chargebot.core.guild_config import CONFIG_HELP, SCHEDULE_KEYS, get_config_display, set_config_value

log = logging.getLogger(__name__)

# name -> (parameter names, help)
ADMIN_COMMANDS = {
    "forceEvent": ((), "Post the 'Type C' image immediately."),
    "rescheduleEvent": ((), "Reschedule the next 'Type C' post."),
    "forceTally": ((), "Tally entries for the active 'Type C' post immediately."),
    "leaveVoice": ((), "Leave the voice channel."),
    "setNickname": (("nickname",), "Set the bot's nickname."),
}


def _short_err(e: Exception) -> str:
    return f"{type(e).__name__}: {e}"


class AdminCog(commands.Cog):
    """
    Admin-only commands: per-server config and Type C overrides.
    """

    def __init__(self, bot: commands.Bot, settings, persistent, transient, events, messenger):
        self.bot = bot
        self.settings = settings
        self.persistent = persistent
        self.transient = transient
        self.events = events
        self.messenger = messenger

    def _prefix(self) -> str:
        return self.settings.command_prefix

    async def _fail(self, ctx: commands.Context, e: Exception):
        print("[chargebot][AdminCog] command error:", _short_err(e))
        traceback.print_exc()
        await ctx.reply(f"❌ `{_short_err(e)}`")

    def _config_help(self) -> str:
        lines = [f"Configure this server's settings. Syntax: **{self._prefix()}config key value**. Keys:"]
        lines += [f"> **{key}** - {text}" for key, text in CONFIG_HELP.items()]
        return "\n".join(lines)

    def _admin_help(self) -> str:
        lines = [f"Administrative commands for this server. Syntax: **{self._prefix()}admin command**. Commands:"]
        lines += [f"> **{name}** - {text}" for name, (_, text) in ADMIN_COMMANDS.items()]
        return "\n".join(lines)

    # ---------- CONFIG ----------

    @commands.command(name="config", help="Configure this server's settings", extras={"admin_only": True})
    @commands.guild_only()
    @bot_admin_only()
    async def config(self, ctx: commands.Context, key: str | None = None, *, value: str | None = None):
        """
        !config                -> key list
        !config key            -> current value
        !config key value      -> set
        """
        guild = self.persistent.guild(ctx.guild.id)

        if key is None:
            return await ctx.send(self._config_help())

        try:
            if value is None:
                shown = get_config_display(guild.config, key)
                return await ctx.reply(f"**{key}** is currently set to **{shown}**.")

            mentioned = ctx.message.channel_mentions
            channel_id = mentioned[0].id if mentioned else None
            confirmation = set_config_value(guild.config, key, value, channel_id=channel_id)
        except ConfigError as e:
            hint = f" Type **{self._prefix()}config** by itself for help." if "Unknown" in str(e) else ""
            return await ctx.reply(f"{e}{hint}")

        await self.persistent.save()
        await ctx.reply(confirmation)

        job = self.transient.guild(ctx.guild.id).next_event_job
        if key in SCHEDULE_KEYS and (job is None or not job.pending):
            await self.events.reschedule(ctx.guild.id)

    # ---------- ADMIN ----------

    @commands.command(name="admin", help="Administrative commands", extras={"admin_only": True})
    @commands.guild_only()
    @bot_admin_only()
    async def admin(self, ctx: commands.Context, subcommand: str | None = None, *params: str):
        if subcommand is None:
            return await ctx.send(self._admin_help())

        if subcommand not in ADMIN_COMMANDS:
            return await ctx.reply(f"Unknown admin command. Type **{self._prefix()}admin** by itself for help.")

        expected = ADMIN_COMMANDS[subcommand][0]
        if len(params) != len(expected):
            return await ctx.reply(f"Expected {len(expected)} parameter(s).")

        gid = ctx.guild.id
        try:
            if subcommand == "forceEvent":
                done = await self.events.force_open(gid)
                if not done:
                    return await ctx.reply("Couldn't post 'Type C' (is the charging channel set?).")
            elif subcommand == "rescheduleEvent":
                when = await self.events.reschedule(gid)
                if when is None:
                    return await ctx.reply("'Type C' isn't fully configured for this server.")
            elif subcommand == "forceTally":
                done = await self.events.force_settle(gid)
                if not done:
                    return await ctx.reply("No entry tallying job scheduled currently.")
            elif subcommand == "leaveVoice":
                voice = ctx.guild.voice_client
                if voice is not None:
                    await voice.disconnect(force=False)
            elif subcommand == "setNickname":
                await self.messenger.set_own_nickname(gid, params[0])
        except Exception as e:
            return await self._fail(ctx, e)

        log.info("admin %s done in guild %s", subcommand, gid)
        await ctx.reply("Done.")
