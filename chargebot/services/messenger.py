# chargebot/services/messenger.py
from __future__ import annotations

import logging

import discord

log = logging.getLogger(__name__)


class DiscordMessenger:
    """Outbound side of the core, over a discord.py client."""

    def __init__(self, bot: discord.Client):
        self.bot = bot

    def resolve_channel(self, channel_id: int) -> discord.abc.Messageable | None:
        channel = self.bot.get_channel(int(channel_id))
        if isinstance(channel, (discord.TextChannel, discord.Thread)):
            return channel
        return None

    async def send_message(
        self,
        channel_id: int,
        text: str | None = None,
        *,
        attachment: str | None = None,
        filename: str | None = None,
    ) -> int | None:
        channel = self.resolve_channel(channel_id)
        if channel is None:
            log.warning("Channel %s is not a text channel I can see", channel_id)
            return None

        try:
            if attachment is not None:
                message = await channel.send(content=text, file=discord.File(attachment, filename=filename))
            else:
                message = await channel.send(text)
        except (discord.Forbidden, discord.HTTPException, OSError):
            log.exception("Sending to channel %s failed", channel_id)
            return None
        return message.id

    async def delete_message(self, channel_id: int, message_id: int) -> None:
        channel = self.resolve_channel(channel_id)
        if channel is None:
            return
        try:
            await channel.get_partial_message(int(message_id)).delete()
        except discord.NotFound:
            pass
        except (discord.Forbidden, discord.HTTPException):
            log.exception("Deleting message %s in channel %s failed", message_id, channel_id)

    async def set_own_nickname(self, guild_id: int, text: str | None) -> bool:
        guild = self.bot.get_guild(int(guild_id))
        if guild is None or guild.me is None:
            log.warning("Client doesn't know about guild %s", guild_id)
            return False
        try:
            await guild.me.edit(nick=text)
        except (discord.Forbidden, discord.HTTPException):
            log.exception("Changing nickname in guild %s failed", guild_id)
            return False
        return True
