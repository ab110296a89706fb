from __future__ import annotations

from dataclasses import dataclass
import logging
import os

from dotenv import load_dotenv

log = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Bad user-supplied config value (reported back, never stored)."""


def _normalize_env(v: str | None) -> str:
    """
    Returns 'dev' or 'prod' only.
    Defaults to 'prod' if unset/unknown.
    """
    s = (v or "").strip().lower()
    if s in ("dev", "development", "test", "testing"):
        return "dev"
    return "prod"


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Ignoring %s=%r (not a number)", name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring %s=%r (not an integer)", name, raw)
        return default


@dataclass(frozen=True)
class Settings:
    token: str = ""
    env: str = "prod"  # dev or prod

    # ---------------- Bot / Commands ----------------
    command_prefix_dev: str = "??"
    command_prefix_prod: str = "?"
    admin_user_id: int = 0                     # 0 = only server administrators
    db_path: str = "db/state.sqlite3"

    # ---------------- Charging ----------------
    charging_port_cap: int = 2
    charge_tick_increment: float = 0.01
    charge_tick_base_seconds: float = 900.0    # interval = base / charging_speed
    min_charging_speed: float = 0.01           # divisor floor when speed hits 0
    initial_battery: float = 1.0
    initial_charging_speed: float = 3.0
    score_suffix: str = " W"

    # ---------------- Daily event ("Type C") ----------------
    trigger_phrase: str = "fast charging"
    event_entry_increment: float = 1.0
    special_chance: float = 0.05
    special_multiplier: float = 0.5
    default_window_duration_minutes: int = 60
    default_entry_duration_seconds: int = 60
    event_image: str = "resources/typeC.jpg"
    event_image_special: str = "resources/typeC_evil.jpg"
    event_image_name: str = "typeC.jpg"

    # ---------------- Sound clips ----------------
    sound_ow: str = "resources/ow.wav"
    sound_hey: str = "resources/hey.wav"
    sound_yeah: str = "resources/yeah.wav"
    sound_volume: float = 0.5

    @property
    def command_prefix(self) -> str:
        return self.command_prefix_dev if self.env == "dev" else self.command_prefix_prod


def load_settings() -> Settings:
    # local .env never overrides real environment variables
    load_dotenv(override=False)

    env = _normalize_env(os.getenv("CHARGEBOT_ENV") or os.getenv("ENV"))

    token = (
        os.getenv("DISCORD_TOKEN", "").strip()
        or os.getenv("TOKEN", "").strip()
        or os.getenv("DISCORD_BOT_TOKEN", "").strip()
    )
    if not token:
        raise RuntimeError(
            "Missing bot token.\n"
            "Set DISCORD_TOKEN=... (fallbacks: TOKEN / DISCORD_BOT_TOKEN)."
        )

    prefix_dev = (os.getenv("CHARGEBOT_PREFIX_DEV") or "").strip() or "??"
    prefix_prod = (os.getenv("CHARGEBOT_PREFIX_PROD") or "").strip() or "?"

    special_chance = min(1.0, max(0.0, _env_float("CHARGEBOT_SPECIAL_CHANCE", Settings.special_chance)))

    return Settings(
        token=token,
        env=env,
        command_prefix_dev=prefix_dev,
        command_prefix_prod=prefix_prod,
        admin_user_id=_env_int("CHARGEBOT_ADMIN_USER_ID", 0),
        db_path=(os.getenv("CHARGEBOT_DB_PATH") or "").strip() or Settings.db_path,
        trigger_phrase=(os.getenv("CHARGEBOT_TRIGGER_PHRASE") or "").strip() or Settings.trigger_phrase,
        special_chance=special_chance,
    )
