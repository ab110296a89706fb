# chargebot/core/guild_config.py
from __future__ import annotations

from chargebot.config import ConfigError
from chargebot.core.state import GuildConfig
from chargebot.core.timecore import parse_window_start

CONFIG_HELP = {
    "charging_channel_id": "Home channel for 'Type C' images (mention the channel)",
    "window_start_time": "Start of the daily window for 'Type C' (HH:MMZ or HH:MM+hh:mm)",
    "window_duration_minutes": "Size of the daily window for 'Type C' (1-1440)",
    "entry_duration_seconds": "How long users have to respond to 'Type C' (1-3600)",
    "prefix_override": "Not implemented",
    "image_override": "Not implemented",
    "entry_message_override": "Not implemented",
    "score_initial_override": "Not implemented",
    "score_entry_increment_override": "Not implemented",
    "score_suffix_override": "Not implemented",
}

# keys whose change affects when the next Type C can be scheduled
SCHEDULE_KEYS = ("charging_channel_id", "window_start_time", "window_duration_minutes")


def _bounded_int(raw: str, low: int, high: int, unit: str) -> int:
    try:
        value = int((raw or "").strip())
    except ValueError:
        value = None
    if value is None or not (low <= value <= high):
        raise ConfigError(f"Value parameter should be a number of {unit} between {low} and {high}.")
    return value


def set_config_value(config: GuildConfig, key: str, raw: str | None, channel_id: int | None = None) -> str:
    """
    Validate and store one config key. Returns the confirmation text.
    Raises ConfigError without touching `config` on bad input.
    """
    if key == "charging_channel_id":
        if channel_id is None:
            raise ConfigError("Missing channel parameter.")
        config.charging_channel_id = int(channel_id)
        return f"Charging channel updated to <#{channel_id}>."

    if key == "window_start_time":
        text = (raw or "").strip()
        try:
            parse_window_start(text)
        except ValueError:
            raise ConfigError("Value parameter should be a time like 09:00Z or 18:30+02:00.") from None
        config.window_start_time = text
        return f"'Type C' window start time updated to {text}."

    if key == "window_duration_minutes":
        config.window_duration_minutes = _bounded_int(raw, 1, 1440, "minutes")
        return f"'Type C' window duration updated to {config.window_duration_minutes} minutes."

    if key == "entry_duration_seconds":
        config.entry_duration_seconds = _bounded_int(raw, 1, 3600, "seconds")
        return f"'Type C' entry duration updated to {config.entry_duration_seconds} seconds."

    raise ConfigError("Unknown or unimplemented config key.")


def get_config_display(config: GuildConfig, key: str) -> str:
    if key not in CONFIG_HELP:
        raise ConfigError("Unknown config key.")
    value = getattr(config, key)
    if key == "charging_channel_id" and value is not None:
        return f"<#{value}>"
    return str(value)
