# chargebot/core/state.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime

from chargebot.core.scheduler import JobHandle
from chargebot.core.timecore import now_utc_ts, to_iso, from_iso

log = logging.getLogger(__name__)

DOCUMENT_VERSION = 1


# ---------------- persistent tier ----------------

@dataclass
class GuildConfig:
    charging_channel_id: int | None = None
    window_start_time: str | None = None          # "HH:MM±TZ"
    window_duration_minutes: int | None = None    # 1..1440
    entry_duration_seconds: int | None = None     # 1..3600

    # stored and readable, not settable yet
    prefix_override: str | None = None
    image_override: str | None = None
    entry_message_override: str | None = None
    score_initial_override: float | None = None
    score_entry_increment_override: float | None = None
    score_suffix_override: str | None = None

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))


@dataclass
class UserRecord:
    battery: float = 1.0
    charging_speed: float = 3.0


@dataclass
class GuildRecord:
    config: GuildConfig = field(default_factory=GuildConfig)
    next_event_date: datetime | None = None
    users: dict[int, UserRecord] = field(default_factory=dict)


# ---------------- transient tier ----------------

@dataclass
class UserRuntime:
    charging_job: JobHandle | None = None

    @property
    def charging(self) -> bool:
        return self.charging_job is not None and self.charging_job.pending


@dataclass
class GuildRuntime:
    event_window_start: datetime | None = None
    event_is_special: bool | None = None
    event_message_id: int | None = None
    participant_ids: set[int] | None = None
    tally_job: JobHandle | None = None
    next_event_job: JobHandle | None = None
    users: dict[int, UserRuntime] = field(default_factory=dict)

    def clear_window(self) -> None:
        self.event_window_start = None
        self.event_is_special = None
        self.event_message_id = None
        self.participant_ids = None
        self.tally_job = None


# ---------------- trees ----------------

class TransientState:
    """
    Runtime-only state. Rebuilt empty on every start.

    Holds:
    - job handles (charging ticks, tally, next event)
    - the open event window and its participants
    """

    def __init__(self):
        self.guilds: dict[int, GuildRuntime] = {}

    def guild(self, guild_id: int) -> GuildRuntime:
        return self.guilds.setdefault(int(guild_id), GuildRuntime())

    def user(self, guild_id: int, user_id: int) -> UserRuntime:
        return self.guild(guild_id).users.setdefault(int(user_id), UserRuntime())


class PersistentState:
    """
    Durable guild -> {config, next_event_date, users} tree.

    Lookups are get-or-create. Every durable mutation is followed by save(),
    which rewrites the whole document.
    """

    def __init__(self, db=None, *, default_battery: float = 1.0, default_charging_speed: float = 3.0):
        self.db = db
        self.default_battery = default_battery
        self.default_charging_speed = default_charging_speed
        self.guilds: dict[int, GuildRecord] = {}

    def guild(self, guild_id: int) -> GuildRecord:
        return self.guilds.setdefault(int(guild_id), GuildRecord())

    def user(self, guild_id: int, user_id: int) -> UserRecord:
        users = self.guild(guild_id).users
        uid = int(user_id)
        if uid not in users:
            users[uid] = UserRecord(battery=self.default_battery, charging_speed=self.default_charging_speed)
        return users[uid]

    def has_guild(self, guild_id: int) -> bool:
        # recovery logic only; subsystems go through guild()
        return int(guild_id) in self.guilds

    # ---------- (de)serialization ----------

    def to_document(self) -> dict:
        guilds = {}
        for gid, g in self.guilds.items():
            guilds[str(gid)] = {
                "config": asdict(g.config),
                "next_event_date": to_iso(g.next_event_date),
                "users": {str(uid): asdict(u) for uid, u in g.users.items()},
            }
        return {"version": DOCUMENT_VERSION, "guilds": guilds}

    def load_document(self, doc: dict) -> None:
        guilds: dict[int, GuildRecord] = {}
        config_keys = set(GuildConfig.keys())

        for gid, raw in (doc.get("guilds") or {}).items():
            cfg_raw = {k: v for k, v in (raw.get("config") or {}).items() if k in config_keys}
            users = {
                int(uid): UserRecord(
                    battery=min(1.0, max(0.0, float(u.get("battery", self.default_battery)))),
                    charging_speed=max(0.0, float(u.get("charging_speed", self.default_charging_speed))),
                )
                for uid, u in (raw.get("users") or {}).items()
            }
            guilds[int(gid)] = GuildRecord(
                config=GuildConfig(**cfg_raw),
                next_event_date=from_iso(raw.get("next_event_date")),
                users=users,
            )

        self.guilds = guilds

    # ---------- storage ----------

    @classmethod
    async def load(cls, db, **kwargs) -> "PersistentState":
        state = cls(db, **kwargs)
        body = await db.load_document()

        if body is None:
            log.info("No stored state found, starting empty")
            await state.save()
            return state

        try:
            state.load_document(json.loads(body))
        except (ValueError, TypeError, AttributeError):
            log.exception("Stored state is unreadable, reinitializing to defaults")
            state.guilds = {}
            await state.save()

        return state

    async def save(self) -> None:
        if self.db is None:
            return
        body = json.dumps(self.to_document(), indent=4)
        await self.db.save_document(body, now_utc_ts())

    async def save_or_log(self) -> bool:
        """save() for timer paths: a failed write is logged and the in-memory tree kept."""
        try:
            await self.save()
        except Exception:
            log.exception("Couldn't write state, keeping the in-memory copy")
            return False
        return True
