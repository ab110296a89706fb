# chargebot/main.py
import asyncio
import logging

import discord
from discord.ext import commands

from chargebot.config import load_settings
from chargebot.core.state import PersistentState
from chargebot.services.db import Database
from chargebot.loader import load_all

logging.basicConfig(level=logging.INFO)


async def run():
    settings = load_settings()

    prefix = settings.command_prefix
    print(f"[chargebot] PREFIX='{prefix}' (env={settings.env})")

    intents = discord.Intents.default()
    intents.message_content = True
    intents.voice_states = True
    intents.members = True

    bot = commands.Bot(
        command_prefix=prefix,
        intents=intents,
        help_command=None,
        activity=discord.Game(f"{prefix}help"),
    )

    db = Database(settings.db_path)
    print(f"[chargebot] ENV={settings.env} | DB={settings.db_path}")

    @bot.event
    async def setup_hook():
        await db.connect()
        persistent = await PersistentState.load(
            db,
            default_battery=settings.initial_battery,
            default_charging_speed=settings.initial_charging_speed,
        )
        await load_all(bot, settings, persistent)
        print("[chargebot] setup_hook: cogs loaded ✅")

    @bot.event
    async def on_ready():
        print(f"[chargebot] ✅ ONLINE as {bot.user} | guilds={len(bot.guilds)} | env={settings.env}")

    @bot.event
    async def on_message(message: discord.Message):
        if message.author.bot:
            return
        await bot.process_commands(message)

    try:
        await bot.start(settings.token)
    finally:
        scheduler = getattr(bot, "scheduler", None)
        if scheduler is not None:
            await scheduler.shutdown()
        await db.close()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
