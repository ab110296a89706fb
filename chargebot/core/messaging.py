# chargebot/core/messaging.py
from __future__ import annotations

from typing import Protocol


class Messenger(Protocol):
    """
    Outbound calls the subsystems make. They never touch core state.
    send_message returns the new message id, or None if the channel is gone.
    """

    def resolve_channel(self, channel_id: int) -> object | None: ...

    async def send_message(
        self,
        channel_id: int,
        text: str | None = None,
        *,
        attachment: str | None = None,
        filename: str | None = None,
    ) -> int | None: ...

    async def delete_message(self, channel_id: int, message_id: int) -> None: ...

    async def set_own_nickname(self, guild_id: int, text: str | None) -> bool: ...
