"""
Pytest configuration and fixtures for chargebot tests.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from chargebot.config import Settings
from chargebot.core.charging import ChargingEngine
from chargebot.core.daily_event import DailyEventEngine
from chargebot.core.scheduler import JobHandle
from chargebot.core.state import PersistentState, TransientState

GUILD = 1
CHANNEL = 500
START = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ManualScheduler:
    """JobScheduler stand-in: jobs only fire when the test advances the clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.jobs: list[JobHandle] = []

    def schedule(self, when, callback, name="job"):
        handle = JobHandle(when, callback, name)
        self.jobs.append(handle)
        return handle

    def pending(self, prefix: str = "") -> list[JobHandle]:
        return [j for j in self.jobs if j.pending and j.name.startswith(prefix)]

    async def advance(self, seconds: float = 0, *, to: datetime | None = None) -> None:
        target = to if to is not None else self.clock.now + timedelta(seconds=seconds)
        while True:
            due = [j for j in self.jobs if j.pending and j.when <= target]
            if not due:
                break
            job = min(due, key=lambda j: j.when)
            self.clock.now = max(self.clock.now, job.when)
            await job._fire()
        self.clock.now = target


class MemoryDatabase:
    def __init__(self, body: str | None = None):
        self.body = body
        self.saves = 0
        self.failing_saves = 0

    async def load_document(self):
        return self.body

    async def save_document(self, body, now_ts):
        if self.failing_saves:
            self.failing_saves -= 1
            raise OSError("disk full")
        self.body = body
        self.saves += 1


class FakeMessenger:
    def __init__(self, channels=(CHANNEL,)):
        self.channels = set(channels)
        self.sent: list[SimpleNamespace] = []
        self.deleted: list[tuple[int, int]] = []
        self.nicknames: list[tuple[int, str]] = []
        self._next_id = 9000

    def resolve_channel(self, channel_id):
        return channel_id if channel_id in self.channels else None

    async def send_message(self, channel_id, text=None, *, attachment=None, filename=None):
        if channel_id not in self.channels:
            return None
        self._next_id += 1
        self.sent.append(SimpleNamespace(id=self._next_id, channel_id=channel_id, text=text, attachment=attachment))
        return self._next_id

    async def delete_message(self, channel_id, message_id):
        self.deleted.append((channel_id, message_id))

    async def set_own_nickname(self, guild_id, text):
        self.nicknames.append((guild_id, text))
        return True

    @property
    def texts(self) -> list[str]:
        return [m.text for m in self.sent if m.text]


class FixedRandom:
    """random.Random stand-in with fixed answers."""

    def __init__(self, value: float = 0.99, offset: int = 0):
        self.value = value
        self.offset = offset

    def random(self) -> float:
        return self.value

    def randrange(self, stop: int) -> int:
        return min(self.offset, stop - 1)


@pytest.fixture
def settings():
    return Settings(token="test-token", special_chance=0.05)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def db():
    return MemoryDatabase()


@pytest.fixture
def persistent(db):
    return PersistentState(db)


@pytest.fixture
def transient():
    return TransientState()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def rng():
    return FixedRandom()


@pytest.fixture
def charging(persistent, transient, scheduler, settings):
    return ChargingEngine(persistent, transient, scheduler, settings)


@pytest.fixture
def events(persistent, transient, scheduler, messenger, settings, rng):
    return DailyEventEngine(persistent, transient, scheduler, messenger, settings, rng=rng)


@pytest.fixture
def configured_guild(persistent):
    config = persistent.guild(GUILD).config
    config.charging_channel_id = CHANNEL
    config.window_start_time = "09:00Z"
    config.window_duration_minutes = 60
    config.entry_duration_seconds = 60
    return persistent.guild(GUILD)
