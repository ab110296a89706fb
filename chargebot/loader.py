# chargebot/loader.py
from __future__ import annotations

import traceback

from chargebot.cogs.admin import AdminCog
from chargebot.cogs.charging import ChargingCog
from chargebot.cogs.daily_event import DailyEventCog
from chargebot.cogs.effects import EffectsCog
from chargebot.cogs.errors import ErrorHandlerCog
from chargebot.cogs.meta import MetaCog
from chargebot.cogs.scoreboard import ScoreboardCog
from chargebot.core.charging import ChargingEngine
from chargebot.core.daily_event import DailyEventEngine
from chargebot.core.scheduler import JobScheduler
from chargebot.core.state import TransientState
from chargebot.services.messenger import DiscordMessenger


async def load_all(bot, settings, persistent, scheduler=None, messenger=None):
    print("[chargebot] Starting loader...")

    # attach shared deps (so any cog can grab them if needed)
    bot.settings = settings
    bot.persistent = persistent
    bot.transient = TransientState()
    bot.scheduler = scheduler or JobScheduler()
    bot.messenger = messenger or DiscordMessenger(bot)

    bot.charging = ChargingEngine(bot.persistent, bot.transient, bot.scheduler, settings)
    bot.events = DailyEventEngine(bot.persistent, bot.transient, bot.scheduler, bot.messenger, settings)

    cogs = [
        ("MetaCog", lambda: MetaCog(bot, settings, bot.persistent)),
        ("ChargingCog", lambda: ChargingCog(bot, settings, bot.persistent, bot.charging)),
        ("ScoreboardCog", lambda: ScoreboardCog(bot, settings, bot.persistent)),
        ("EffectsCog", lambda: EffectsCog(bot, settings, bot.charging)),
        ("DailyEventCog", lambda: DailyEventCog(bot, settings, bot.events)),
        ("AdminCog", lambda: AdminCog(bot, settings, bot.persistent, bot.transient, bot.events, bot.messenger)),
        ("ErrorHandlerCog", lambda: ErrorHandlerCog(bot)),
    ]

    for name, build in cogs:
        try:
            await bot.add_cog(build())
            print(f"[chargebot] ✅ {name} loaded")
        except Exception:
            print(f"[chargebot] ❌ {name} FAILED")
            traceback.print_exc()

    print("[chargebot] Loaded cogs:", ", ".join(bot.cogs.keys()))
