# chargebot/core/charging.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from functools import partial
from typing import Awaitable, Callable

from chargebot.core.scheduler import JobScheduler
from chargebot.core.state import PersistentState, TransientState, UserRecord

log = logging.getLogger(__name__)

# battery arithmetic is rounded so repeated 0.01 ticks land exactly on 1.0
BATTERY_PRECISION = 6


class ChargeOutcome(Enum):
    STARTED = "started"
    ALREADY_CHARGING = "already_charging"
    BATTERY_FULL = "battery_full"
    PORTS_FULL = "ports_full"


class CostCheck(Enum):
    OK = "ok"
    LOW_BATTERY = "low_battery"
    LOW_SPEED = "low_speed"


@dataclass(frozen=True)
class ChargeAttempt:
    outcome: ChargeOutcome
    seconds_to_full: float = 0.0

    @property
    def started(self) -> bool:
        return self.outcome is ChargeOutcome.STARTED


class ChargingEngine:
    """
    Per-user Unplugged / Charging state machine.

    Charging = the user's runtime record holds a live tick job.
    Each tick adds `charge_tick_increment` and reschedules itself from the
    current charging speed until the battery is exactly full.
    """

    def __init__(self, persistent: PersistentState, transient: TransientState, scheduler: JobScheduler, settings):
        self.persistent = persistent
        self.transient = transient
        self.scheduler = scheduler
        self.settings = settings

    # ---------------- queries ----------------

    def is_charging(self, guild_id: int, user_id: int) -> bool:
        return self.transient.user(guild_id, user_id).charging

    def charging_count(self, guild_id: int) -> int:
        return sum(1 for u in self.transient.guild(guild_id).users.values() if u.charging)

    def tick_interval(self, user: UserRecord) -> float:
        speed = max(user.charging_speed, self.settings.min_charging_speed)
        return self.settings.charge_tick_base_seconds / speed

    def seconds_to_full(self, user: UserRecord) -> float:
        ticks_left = (1 - user.battery) / self.settings.charge_tick_increment
        return ticks_left * self.tick_interval(user)

    # ---------------- transitions ----------------

    def start(self, guild_id: int, user_id: int) -> ChargeAttempt:
        user = self.persistent.user(guild_id, user_id)
        runtime = self.transient.user(guild_id, user_id)

        # check-and-set stays synchronous: no await between the cap check and the job
        if runtime.charging:
            return ChargeAttempt(ChargeOutcome.ALREADY_CHARGING)
        if user.battery >= 1:
            return ChargeAttempt(ChargeOutcome.BATTERY_FULL)
        if self.charging_count(guild_id) >= self.settings.charging_port_cap:
            return ChargeAttempt(ChargeOutcome.PORTS_FULL)

        seconds = self.seconds_to_full(user)
        self._schedule_tick(guild_id, user_id)
        return ChargeAttempt(ChargeOutcome.STARTED, seconds)

    def _schedule_tick(self, guild_id: int, user_id: int) -> None:
        user = self.persistent.user(guild_id, user_id)
        runtime = self.transient.user(guild_id, user_id)

        next_tick = self.scheduler.clock() + timedelta(seconds=self.tick_interval(user))
        log.info("Guild %s / user %s next charge tick at %s", guild_id, user_id, next_tick.isoformat())
        runtime.charging_job = self.scheduler.schedule(
            next_tick,
            partial(self.tick, guild_id, user_id),
            name=f"charge:{guild_id}:{user_id}",
        )

    async def tick(self, guild_id: int, user_id: int) -> None:
        user = self.persistent.user(guild_id, user_id)
        runtime = self.transient.user(guild_id, user_id)

        user.battery = min(1.0, round(user.battery + self.settings.charge_tick_increment, BATTERY_PRECISION))
        if user.battery >= 1.0:
            user.battery = 1.0
            runtime.charging_job = None
            log.info("Guild %s / user %s is fully charged", guild_id, user_id)
        else:
            self._schedule_tick(guild_id, user_id)

        await self.persistent.save()

    def interrupt(self, guild_id: int, user_id: int) -> bool:
        runtime = self.transient.user(guild_id, user_id)
        if not runtime.charging:
            runtime.charging_job = None
            return False
        runtime.charging_job.cancel()
        runtime.charging_job = None
        return True

    def unplug(self, guild_id: int, user_id: int) -> float | None:
        """Battery level after unplugging, or None if the user wasn't charging."""
        if not self.interrupt(guild_id, user_id):
            return None
        return self.persistent.user(guild_id, user_id).battery

    # ---------------- paid commands ----------------

    def can_afford(self, guild_id: int, user_id: int, battery_cost: float = 0.0, speed_cost: float = 0.0) -> CostCheck:
        user = self.persistent.user(guild_id, user_id)
        if battery_cost > user.battery:
            return CostCheck.LOW_BATTERY
        if speed_cost > user.charging_speed:
            return CostCheck.LOW_SPEED
        return CostCheck.OK

    async def pay(
        self,
        guild_id: int,
        user_id: int,
        battery_cost: float = 0.0,
        speed_cost: float = 0.0,
        weight: float = 1.0,
        on_unplugged: Callable[[], Awaitable[None]] | None = None,
    ) -> bool:
        """
        Deduct a command's cost scaled by `weight`.
        A charging user is unplugged (and told so) before anything is deducted.
        Returns True if the user was auto-unplugged.
        """
        battery_weighted = max(0.0, weight * battery_cost)
        speed_weighted = max(0.0, weight * speed_cost)
        if battery_weighted <= 0 and speed_weighted <= 0:
            return False

        unplugged = self.interrupt(guild_id, user_id)
        if unplugged and on_unplugged is not None:
            await on_unplugged()

        user = self.persistent.user(guild_id, user_id)
        user.battery = max(0.0, round(user.battery - battery_weighted, BATTERY_PRECISION))
        user.charging_speed = max(0.0, user.charging_speed - speed_weighted)
        await self.persistent.save()
        return unplugged
