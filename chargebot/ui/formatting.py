# chargebot/ui/formatting.py
from __future__ import annotations

import math


def fmt_battery(battery: float) -> str:
    return f"{math.floor(round(battery * 100, 6))}%"

def fmt_speed(speed: float, suffix: str) -> str:
    return f"{speed:g}{suffix}"

def fmt_cost(battery_cost: float | None, speed_cost: float | None) -> str:
    cost = ""
    if battery_cost:
        cost += f" (-{battery_cost * 100:.0f}%)"
    if speed_cost:
        cost += f" **(-{speed_cost:g} W)**"
    return cost

def mention(user_id: int) -> str:
    return f"<@{user_id}>"

def channel_mention(channel_id: int | None) -> str:
    return f"<#{channel_id}>" if channel_id is not None else "(not set)"

def scoreboard_rows(users: dict) -> list[tuple[int, float]]:
    """(user_id, charging_speed), highest first; ties by user id so reruns don't shuffle."""
    return sorted(
        ((uid, u.charging_speed) for uid, u in users.items()),
        key=lambda row: (-row[1], row[0]),
    )

def scoreboard_text(rows: list[tuple[int, float]], names: dict[int, str], suffix: str) -> str:
    lines = ["Charging speed scoreboard:"]
    for uid, speed in rows:
        name = names.get(uid) or str(uid)
        lines.append(f"> **{name}** - {fmt_speed(speed, suffix)}")
    return "\n".join(lines)
