# chargebot/core/daily_event.py
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from functools import partial

from chargebot.core.messaging import Messenger
from chargebot.core.scheduler import JobScheduler
from chargebot.core.state import GuildConfig, PersistentState, TransientState
from chargebot.core.timecore import parse_window_start

log = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


class DailyEventEngine:
    """
    Per-guild daily "Type C" post.

    Idle -> WindowOpen: the next-event job fires at a random minute inside the
    guild's daily window and posts the announcement.
    WindowOpen: the trigger phrase in the charging channel, before the entry
    cutoff, adds the author to the participant set.
    WindowOpen -> Idle: the tally job settles the participants and schedules
    tomorrow's post.

    Only next_event_date is durable. An open window (and its participants) is
    lost on restart and never settled.
    """

    def __init__(
        self,
        persistent: PersistentState,
        transient: TransientState,
        scheduler: JobScheduler,
        messenger: Messenger,
        settings,
        rng: random.Random | None = None,
    ):
        self.persistent = persistent
        self.transient = transient
        self.scheduler = scheduler
        self.messenger = messenger
        self.settings = settings
        self.rng = rng or random.Random()

    # ---------------- config helpers ----------------

    def window_duration_minutes(self, config: GuildConfig) -> int:
        return int(config.window_duration_minutes or self.settings.default_window_duration_minutes)

    def entry_duration_seconds(self, config: GuildConfig) -> int:
        return int(config.entry_duration_seconds or self.settings.default_entry_duration_seconds)

    def is_configured(self, config: GuildConfig) -> bool:
        return config.charging_channel_id is not None and bool(config.window_start_time)

    def window_start_on(self, config: GuildConfig, day: datetime) -> datetime:
        """The window start anchored onto `day`'s calendar date (in the window's own offset)."""
        hour, minute, tz = parse_window_start(config.window_start_time)
        local = day.astimezone(tz)
        return local.replace(hour=hour, minute=minute, second=0, microsecond=0)

    # ---------------- scheduling ----------------

    async def register_guild(self, guild_id: int) -> datetime | None:
        """Startup / reconnect: reuse a stored next_event_date as-is, else pick a fresh one."""
        if self.persistent.has_guild(guild_id):
            stored = self.persistent.guild(guild_id).next_event_date
            if stored is not None:
                return await self.schedule_post(guild_id, stored, exact=True)
        return await self.schedule_post(guild_id, self.scheduler.clock())

    async def schedule_post(self, guild_id: int, post_date: datetime, exact: bool = False) -> datetime | None:
        """
        Pick the next post instant and (re)schedule the next-event job.

        exact=True uses post_date itself if it is still in the future. Otherwise a
        day is eligible only if its window hasn't opened yet; the post lands on a
        uniformly random whole minute inside that day's window.
        """
        guild = self.persistent.guild(guild_id)
        runtime = self.transient.guild(guild_id)
        config = guild.config

        if not self.is_configured(config):
            log.info("Couldn't schedule Type C for guild %s because it's not fully configured", guild_id)
            return None

        now = self.scheduler.clock()
        try:
            if exact and post_date > now:
                post_time = post_date
            else:
                if exact:
                    log.info("Stored Type C time %s for guild %s has passed, picking a new one", post_date.isoformat(), guild_id)
                    post_date = post_date + ONE_DAY

                window_start = self.window_start_on(config, post_date)
                while window_start <= now:
                    log.debug("Window %s for guild %s already opened, trying the next day", window_start.isoformat(), guild_id)
                    post_date = post_date + ONE_DAY
                    window_start = self.window_start_on(config, post_date)

                offset = self.rng.randrange(self.window_duration_minutes(config))
                post_time = window_start + timedelta(minutes=offset)
        except ValueError:
            log.warning("Guild %s has an invalid window start time %r", guild_id, config.window_start_time)
            return None

        guild.next_event_date = post_time
        await self.persistent.save_or_log()

        if runtime.next_event_job is not None:
            runtime.next_event_job.cancel()
        runtime.next_event_job = self.scheduler.schedule(
            post_time,
            partial(self._on_next_event, guild_id),
            name=f"typec:{guild_id}",
        )
        log.info("Scheduled Type C post for guild %s at %s", guild_id, post_time.isoformat())
        return post_time

    async def _on_next_event(self, guild_id: int) -> None:
        self.transient.guild(guild_id).next_event_job = None
        opened = False
        try:
            opened = await self.open_window(guild_id)
        finally:
            if not opened:
                # keep the daily chain alive even though today's post was skipped
                await self.schedule_post(guild_id, self.scheduler.clock() + ONE_DAY)

    # ---------------- window ----------------

    def _resolve_charging_channel(self, guild_id: int, config: GuildConfig) -> bool:
        if config.charging_channel_id is None:
            log.warning("No charging channel set for guild %s", guild_id)
            return False
        if self.messenger.resolve_channel(config.charging_channel_id) is None:
            log.warning("Charging channel %s for guild %s can't be resolved", config.charging_channel_id, guild_id)
            return False
        return True

    async def open_window(self, guild_id: int) -> bool:
        guild = self.persistent.guild(guild_id)
        runtime = self.transient.guild(guild_id)
        config = guild.config

        if not self._resolve_charging_channel(guild_id, config):
            return False

        special = self.rng.random() < self.settings.special_chance
        if special:
            image = self.settings.event_image_special
        else:
            image = config.image_override or self.settings.event_image

        message_id = await self.messenger.send_message(
            config.charging_channel_id,
            attachment=image,
            filename=self.settings.event_image_name,
        )
        if message_id is None:
            log.warning("Couldn't post Type C in guild %s", guild_id)
            return False

        if runtime.tally_job is not None:
            runtime.tally_job.cancel()

        start = self.scheduler.clock()
        runtime.event_window_start = start
        runtime.event_is_special = special
        runtime.event_message_id = message_id
        runtime.participant_ids = set()

        end = start + timedelta(seconds=self.entry_duration_seconds(config))
        runtime.tally_job = self.scheduler.schedule(end, partial(self.settle, guild_id), name=f"tally:{guild_id}")
        log.info("Type C posted in guild %s (special=%s), tallying at %s", guild_id, special, end.isoformat())
        return True

    def record_entry(self, guild_id: int, channel_id: int, user_id: int, content: str, timestamp: datetime) -> bool:
        """True if this message newly credited the user."""
        if content != self.settings.trigger_phrase:
            return False

        config = self.persistent.guild(guild_id).config
        runtime = self.transient.guild(guild_id)

        if channel_id != config.charging_channel_id:
            return False
        if runtime.event_window_start is None or runtime.participant_ids is None:
            return False

        cutoff = runtime.event_window_start + timedelta(seconds=self.entry_duration_seconds(config))
        if not timestamp < cutoff:
            return False
        if user_id in runtime.participant_ids:
            return False

        runtime.participant_ids.add(int(user_id))
        return True

    # ---------------- settlement ----------------

    async def settle(self, guild_id: int) -> None:
        guild = self.persistent.guild(guild_id)
        runtime = self.transient.guild(guild_id)
        config = guild.config

        participants = runtime.participant_ids
        special = bool(runtime.event_is_special)
        message_id = runtime.event_message_id
        runtime.clear_window()

        try:
            if participants is None:
                log.warning("No open Type C window to tally for guild %s", guild_id)
            elif self._resolve_charging_channel(guild_id, config):
                for user_id in sorted(participants):
                    user = self.persistent.user(guild_id, user_id)
                    if special:
                        user.charging_speed = max(0.0, user.charging_speed * self.settings.special_multiplier)
                    else:
                        user.charging_speed += self.settings.event_entry_increment
                await self.persistent.save_or_log()
                await self._report(config.charging_channel_id, len(participants), special, message_id)
            else:
                log.warning("Dropped %d Type C entries for guild %s", len(participants), guild_id)
        finally:
            await self.schedule_post(guild_id, self.scheduler.clock() + ONE_DAY)

    async def _report(self, channel_id: int, count: int, special: bool, message_id: int | None) -> None:
        if special:
            tail = "decreased their charging speed for some reason"
        else:
            tail = "increased their charging speed"

        if count > 1:
            await self.messenger.send_message(channel_id, f"**{count} users** have {tail}!")
        elif count == 1:
            await self.messenger.send_message(channel_id, f"**{count} user** has {tail}!")
        elif special:
            if message_id is not None:
                await self.messenger.delete_message(channel_id, message_id)
        else:
            await self.messenger.send_message(channel_id, "No one wanted fast charging today...")

    # ---------------- admin overrides ----------------

    async def force_open(self, guild_id: int) -> bool:
        return await self.open_window(guild_id)

    async def force_settle(self, guild_id: int) -> bool:
        """False if no tally job is pending."""
        job = self.transient.guild(guild_id).tally_job
        if job is None or not job.pending:
            return False
        await job.invoke()
        return True

    async def reschedule(self, guild_id: int) -> datetime | None:
        return await self.schedule_post(guild_id, self.scheduler.clock())
