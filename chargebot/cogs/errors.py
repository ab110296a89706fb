import logging

import discord
from discord.ext import commands

from chargebot.cogs.checks import NotBotAdmin

log = logging.getLogger(__name__)


class ErrorHandlerCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @commands.Cog.listener()
    async def on_command_error(self, ctx: commands.Context, error: Exception):
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, NotBotAdmin):
            return await ctx.reply(str(error))

        if isinstance(error, commands.NoPrivateMessage):
            return

        if isinstance(error, commands.MissingRequiredArgument):
            return await ctx.reply(
                f"Missing argument: `{error.param.name}`\n"
                f"Try: `{ctx.prefix}{ctx.command} {ctx.command.signature}`"
            )

        if isinstance(error, commands.BadArgument):
            return await ctx.reply("Bad argument.")

        if isinstance(error, commands.CommandInvokeError) and isinstance(error.original, discord.Forbidden):
            log.warning("Missing permissions for %s in channel %s", ctx.command, ctx.channel.id)
            return

        await ctx.reply(f"Command error: `{type(error).__name__}`")
        raise error
