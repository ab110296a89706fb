import pytest

from chargebot.config import ConfigError
from chargebot.core.guild_config import get_config_display, set_config_value
from chargebot.core.state import GuildConfig


def test_set_valid_values():
    config = GuildConfig()

    assert set_config_value(config, "charging_channel_id", "#typec", channel_id=55) == "Charging channel updated to <#55>."
    set_config_value(config, "window_start_time", " 18:30+02:00 ")
    set_config_value(config, "window_duration_minutes", "1440")
    set_config_value(config, "entry_duration_seconds", "1")

    assert config.charging_channel_id == 55
    assert config.window_start_time == "18:30+02:00"
    assert config.window_duration_minutes == 1440
    assert config.entry_duration_seconds == 1


@pytest.mark.parametrize(
    "key,raw",
    [
        ("window_duration_minutes", "0"),
        ("window_duration_minutes", "1441"),
        ("window_duration_minutes", "soon"),
        ("entry_duration_seconds", "3601"),
        ("window_start_time", "noon"),
        ("window_start_time", "09:00+05:75"),
        ("charging_channel_id", "general"),
        ("prefix_override", "!"),
        ("nope", "1"),
    ],
)
def test_bad_values_change_nothing(key, raw):
    config = GuildConfig()
    with pytest.raises(ConfigError):
        set_config_value(config, key, raw)
    assert config == GuildConfig()


def test_display():
    config = GuildConfig(charging_channel_id=55, window_duration_minutes=30)

    assert get_config_display(config, "charging_channel_id") == "<#55>"
    assert get_config_display(config, "window_duration_minutes") == "30"
    assert get_config_display(config, "score_suffix_override") == "None"
    with pytest.raises(ConfigError):
        get_config_display(config, "token")
