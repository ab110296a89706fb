# chargebot/cogs/checks.py
from __future__ import annotations

from discord.ext import commands


class NotBotAdmin(commands.CheckFailure):
    pass


def is_bot_admin_member(member, settings) -> bool:
    admin_id = int(getattr(settings, "admin_user_id", 0) or 0)
    if admin_id and member.id == admin_id:
        return True
    perms = getattr(member, "guild_permissions", None)
    return bool(perms and perms.administrator)


def bot_admin_only():
    """Configured admin user, or a server administrator."""

    async def predicate(ctx: commands.Context) -> bool:
        if is_bot_admin_member(ctx.author, getattr(ctx.bot, "settings", None)):
            return True
        raise NotBotAdmin("This command is restricted to the bot's administrator.")

    return commands.check(predicate)
