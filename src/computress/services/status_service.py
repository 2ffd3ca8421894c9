from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from computress.services.logger_service import LoggerService

PresencePublisher = Callable[[str], Awaitable[None]]


def presence_text(player_count: int | None) -> str:
    if player_count is None:
        return "nothing"
    if player_count == 1:
        return "1 player"
    return f"{player_count} players"


def status_report(player_count: int | None) -> str:
    if player_count is None:
        return "The server is currently **offline** :no_entry:"
    text = f"The server is currently **online** :white_check_mark: with **{player_count}** player"
    if player_count != 1:
        text += "s"
    return text


class StatusService:
    """Holds the last known player count and mirrors it into the bot presence."""

    def __init__(self, publish: PresencePublisher, logger: LoggerService) -> None:
        self._publish = publish
        self.logger = logger
        self._lock = asyncio.Lock()
        self._player_count: int | None = None

    async def update(self, player_count: int | None) -> None:
        async with self._lock:
            self._player_count = player_count
            text = presence_text(player_count)
            try:
                await self._publish(text)
            except Exception as exc:  # noqa: BLE001
                self.logger.log("status.presence_failed", text=text, error=str(exc)[:300])

    async def query(self) -> int | None:
        async with self._lock:
            return self._player_count

    async def report(self) -> str:
        async with self._lock:
            return status_report(self._player_count)
