from datetime import datetime, timedelta, timezone

import pytest

from chargebot.core.daily_event import DailyEventEngine
from chargebot.core.state import PersistentState, TransientState
from conftest import CHANNEL, GUILD, START, FakeMessenger, FixedRandom, ManualScheduler, FakeClock

TOMORROW_9 = datetime(2024, 5, 2, 9, 0, tzinfo=timezone.utc)


def _engine(persistent, scheduler, settings, messenger=None, rng=None):
    return DailyEventEngine(
        persistent, TransientState(), scheduler, messenger or FakeMessenger(), settings, rng=rng or FixedRandom()
    )


async def _open(events, scheduler):
    """Schedule and run up to the moment the window opens."""
    when = await events.schedule_post(GUILD, scheduler.clock())
    await scheduler.advance(to=when)
    return when


# ---------------- schedule_post ----------------

@pytest.mark.asyncio
async def test_window_already_open_today_moves_to_tomorrow(events, configured_guild, scheduler):
    # 09:30Z, window 09:00Z + 60 min
    when = await events.schedule_post(GUILD, scheduler.clock())

    assert when == TOMORROW_9
    assert when > scheduler.clock()


@pytest.mark.asyncio
@pytest.mark.parametrize("offset", [0, 17, 59])
async def test_post_lands_inside_todays_window(persistent, configured_guild, scheduler, settings, offset):
    scheduler.clock.now = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
    events = _engine(persistent, scheduler, settings, rng=FixedRandom(offset=offset))

    when = await events.schedule_post(GUILD, scheduler.clock())

    assert when == datetime(2024, 5, 1, 9, offset, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_window_offset_is_respected(events, configured_guild, scheduler):
    configured_guild.config.window_start_time = "11:00+02:00"
    when = await events.schedule_post(GUILD, scheduler.clock())
    assert when == TOMORROW_9


@pytest.mark.asyncio
async def test_far_past_post_date_advances_whole_days(events, configured_guild, scheduler):
    when = await events.schedule_post(GUILD, START - timedelta(days=10))
    assert when == TOMORROW_9


@pytest.mark.asyncio
async def test_unconfigured_guild_is_skipped(events, persistent, scheduler, db):
    assert await events.schedule_post(GUILD, scheduler.clock()) is None
    assert scheduler.pending() == []
    assert persistent.guild(GUILD).next_event_date is None


@pytest.mark.asyncio
async def test_default_window_duration_applies_until_overridden(persistent, configured_guild, scheduler, settings):
    configured_guild.config.window_duration_minutes = None
    scheduler.clock.now = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
    events = _engine(persistent, scheduler, settings, rng=FixedRandom(offset=10_000))

    when = await events.schedule_post(GUILD, scheduler.clock())

    last_minute = settings.default_window_duration_minutes - 1
    assert when == datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=last_minute)


@pytest.mark.asyncio
async def test_rescheduling_keeps_one_live_job_and_persists(events, configured_guild, scheduler, db):
    await events.schedule_post(GUILD, scheduler.clock())
    first = events.transient.guild(GUILD).next_event_job
    saves = db.saves

    await events.reschedule(GUILD)

    assert first.cancelled
    assert len(scheduler.pending("typec:")) == 1
    assert db.saves == saves + 1
    assert configured_guild.next_event_date == TOMORROW_9


# ---------------- restart recovery ----------------

@pytest.mark.asyncio
async def test_restart_reuses_the_stored_instant(configured_guild, persistent, scheduler, settings, db):
    first = _engine(persistent, scheduler, settings, rng=FixedRandom(offset=23))
    stored = await first.register_guild(GUILD)
    assert stored == TOMORROW_9 + timedelta(minutes=23)

    # new process: fresh trees, same document
    reloaded = await PersistentState.load(db)
    later = ManualScheduler(FakeClock(START + timedelta(hours=2)))
    second = _engine(reloaded, later, settings, rng=FixedRandom(offset=5))

    when = await second.register_guild(GUILD)

    assert when == stored
    [job] = later.pending("typec:")
    assert job.when == stored


@pytest.mark.asyncio
async def test_stored_instant_in_the_past_picks_the_following_day(events, configured_guild, scheduler):
    configured_guild.next_event_date = datetime(2024, 5, 1, 9, 10, tzinfo=timezone.utc)

    when = await events.register_guild(GUILD)

    assert when == TOMORROW_9


@pytest.mark.asyncio
async def test_new_guild_gets_a_fresh_time(events, configured_guild, scheduler):
    configured_guild.next_event_date = None
    assert await events.register_guild(GUILD) == TOMORROW_9


# ---------------- window ----------------

@pytest.mark.asyncio
async def test_job_opens_the_window(events, configured_guild, scheduler, messenger, settings):
    when = await _open(events, scheduler)
    runtime = events.transient.guild(GUILD)

    [post] = messenger.sent
    assert post.channel_id == CHANNEL
    assert post.attachment == settings.event_image
    assert runtime.event_window_start == when
    assert runtime.event_is_special is False
    assert runtime.participant_ids == set()
    assert runtime.tally_job.when == when + timedelta(seconds=60)


@pytest.mark.asyncio
async def test_special_variant_uses_the_special_image(persistent, configured_guild, scheduler, settings, messenger):
    events = _engine(persistent, scheduler, settings, messenger=messenger, rng=FixedRandom(value=0.0))
    await events.force_open(GUILD)

    assert messenger.sent[0].attachment == settings.event_image_special
    assert events.transient.guild(GUILD).event_is_special is True


@pytest.mark.asyncio
async def test_repeat_entries_count_once(events, configured_guild, scheduler, settings):
    when = await _open(events, scheduler)
    phrase = settings.trigger_phrase

    assert events.record_entry(GUILD, CHANNEL, 10, phrase, when + timedelta(seconds=1)) is True
    assert events.record_entry(GUILD, CHANNEL, 10, phrase, when + timedelta(seconds=2)) is False

    assert events.transient.guild(GUILD).participant_ids == {10}


@pytest.mark.asyncio
async def test_entries_must_match_channel_phrase_and_cutoff(events, configured_guild, scheduler, settings):
    when = await _open(events, scheduler)
    phrase = settings.trigger_phrase

    assert not events.record_entry(GUILD, CHANNEL + 1, 10, phrase, when)
    assert not events.record_entry(GUILD, CHANNEL, 10, phrase + "!", when)
    assert not events.record_entry(GUILD, CHANNEL, 10, phrase, when + timedelta(seconds=60))
    assert events.record_entry(GUILD, CHANNEL, 10, phrase, when + timedelta(seconds=59))


def test_entries_ignored_when_no_window(events, configured_guild, settings):
    assert not events.record_entry(GUILD, CHANNEL, 10, settings.trigger_phrase, START)


# ---------------- settlement ----------------

@pytest.mark.asyncio
async def test_zero_participants_get_a_consolation(events, configured_guild, scheduler, messenger, persistent):
    persistent.user(GUILD, 10).charging_speed = 3
    await _open(events, scheduler)

    await scheduler.advance(60)

    assert messenger.texts == ["No one wanted fast charging today..."]
    assert persistent.user(GUILD, 10).charging_speed == 3


@pytest.mark.asyncio
async def test_one_participant_singular(events, configured_guild, scheduler, messenger, persistent, settings):
    when = await _open(events, scheduler)
    events.record_entry(GUILD, CHANNEL, 10, settings.trigger_phrase, when)

    await scheduler.advance(60)

    assert messenger.texts == ["**1 user** has increased their charging speed!"]
    assert persistent.user(GUILD, 10).charging_speed == 3 + settings.event_entry_increment


@pytest.mark.asyncio
async def test_many_participants_plural_and_only_they_change(events, configured_guild, scheduler, messenger, persistent, settings):
    for uid in (10, 11, 12):
        persistent.user(GUILD, uid)
    when = await _open(events, scheduler)
    for uid in (10, 11, 11):
        events.record_entry(GUILD, CHANNEL, uid, settings.trigger_phrase, when)

    await scheduler.advance(60)

    assert messenger.texts == ["**2 users** have increased their charging speed!"]
    assert persistent.user(GUILD, 10).charging_speed == 3 + settings.event_entry_increment
    assert persistent.user(GUILD, 11).charging_speed == 3 + settings.event_entry_increment
    assert persistent.user(GUILD, 12).charging_speed == 3


@pytest.mark.asyncio
async def test_special_settlement_multiplies(persistent, configured_guild, scheduler, settings, messenger):
    events = _engine(persistent, scheduler, settings, messenger=messenger, rng=FixedRandom(value=0.0))
    await events.force_open(GUILD)
    events.record_entry(GUILD, CHANNEL, 10, settings.trigger_phrase, scheduler.clock())

    await scheduler.advance(60)

    assert persistent.user(GUILD, 10).charging_speed == 3 * settings.special_multiplier
    assert messenger.texts == ["**1 user** has decreased their charging speed for some reason!"]


@pytest.mark.asyncio
async def test_special_with_nobody_deletes_the_post(persistent, configured_guild, scheduler, settings, messenger):
    events = _engine(persistent, scheduler, settings, messenger=messenger, rng=FixedRandom(value=0.0))
    await events.force_open(GUILD)
    post_id = messenger.sent[0].id

    await scheduler.advance(60)

    assert messenger.deleted == [(CHANNEL, post_id)]
    assert messenger.texts == []


@pytest.mark.asyncio
async def test_settlement_clears_the_window_and_schedules_tomorrow(events, configured_guild, scheduler):
    when = await _open(events, scheduler)

    await scheduler.advance(60)

    runtime = events.transient.guild(GUILD)
    assert runtime.event_window_start is None
    assert runtime.participant_ids is None
    assert runtime.tally_job is None
    [job] = scheduler.pending("typec:")
    assert job.when == when + timedelta(days=1)
    assert configured_guild.next_event_date == job.when


# ---------------- admin overrides / environment ----------------

@pytest.mark.asyncio
async def test_force_settle_without_a_window(events, configured_guild):
    assert await events.force_settle(GUILD) is False


@pytest.mark.asyncio
async def test_force_settle_runs_once(events, configured_guild, scheduler, messenger, settings, persistent):
    await events.force_open(GUILD)
    events.record_entry(GUILD, CHANNEL, 10, settings.trigger_phrase, scheduler.clock())

    assert await events.force_settle(GUILD) is True
    await scheduler.advance(120)

    assert persistent.user(GUILD, 10).charging_speed == 3 + settings.event_entry_increment
    assert len(messenger.texts) == 1


@pytest.mark.asyncio
async def test_missing_channel_skips_the_post_but_keeps_the_chain(persistent, configured_guild, scheduler, settings):
    messenger = FakeMessenger(channels=())
    events = _engine(persistent, scheduler, settings, messenger=messenger)
    when = await events.schedule_post(GUILD, scheduler.clock())

    await scheduler.advance(to=when)

    assert messenger.sent == []
    assert events.transient.guild(GUILD).event_window_start is None
    [job] = scheduler.pending("typec:")
    assert job.when == when + timedelta(days=1)


# ---------------- storage failures ----------------

@pytest.mark.asyncio
async def test_failed_save_while_scheduling_still_arms_the_job(events, configured_guild, scheduler, db):
    db.failing_saves = 1

    when = await events.schedule_post(GUILD, scheduler.clock())

    assert when == TOMORROW_9
    [job] = scheduler.pending("typec:")
    assert job.when == TOMORROW_9
    assert configured_guild.next_event_date == TOMORROW_9


@pytest.mark.asyncio
async def test_failed_save_during_settlement_keeps_the_daily_chain(
    events, configured_guild, scheduler, messenger, persistent, settings, db
):
    when = await _open(events, scheduler)
    events.record_entry(GUILD, CHANNEL, 10, settings.trigger_phrase, when)
    db.failing_saves = 1

    await scheduler.advance(60)

    assert messenger.texts == ["**1 user** has increased their charging speed!"]
    assert persistent.user(GUILD, 10).charging_speed == 3 + settings.event_entry_increment
    [job] = scheduler.pending("typec:")
    assert job.when == when + timedelta(days=1)
    assert db.failing_saves == 0


@pytest.mark.asyncio
async def test_failed_post_still_schedules_tomorrow(persistent, configured_guild, scheduler, settings):
    messenger = FakeMessenger()

    async def broken_send(*args, **kwargs):
        raise RuntimeError("gateway gone")

    messenger.send_message = broken_send
    events = _engine(persistent, scheduler, settings, messenger=messenger)
    when = await events.schedule_post(GUILD, scheduler.clock())

    # the real scheduler logs this; the manual one lets it through
    with pytest.raises(RuntimeError):
        await scheduler.advance(to=when)

    [job] = scheduler.pending("typec:")
    assert job.when == when + timedelta(days=1)
