from __future__ import annotations

import discord

from computress.services.logger_service import LoggerService
from computress.ui.name_request import ControlSpec, build_view

NO_MENTIONS = discord.AllowedMentions.none()
MAX_MESSAGE_CHARS = 2000


class ChatOutput:
    """Sends text to channels by id. A channel id of None means the output is switched off."""

    def __init__(self, bot: discord.Client, logger: LoggerService) -> None:
        self.bot = bot
        self.logger = logger

    async def resolve(self, channel_id: int) -> discord.abc.Messageable | None:
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel  # type: ignore[return-value]
        try:
            return await self.bot.fetch_channel(channel_id)  # type: ignore[return-value]
        except (discord.NotFound, discord.Forbidden, discord.HTTPException):
            self.logger.log("chat.channel_unavailable", channel_id=channel_id)
            return None

    async def send(self, channel_id: int | None, text: str) -> discord.Message | None:
        if channel_id is None:
            return None
        channel = await self.resolve(channel_id)
        if channel is None:
            return None
        return await channel.send(text[:MAX_MESSAGE_CHARS], allowed_mentions=NO_MENTIONS)

    async def send_with_controls(
        self, channel_id: int | None, text: str, controls: tuple[ControlSpec, ...]
    ) -> discord.Message | None:
        if channel_id is None:
            return None
        channel = await self.resolve(channel_id)
        if channel is None:
            return None
        return await channel.send(text, view=build_view(controls), allowed_mentions=NO_MENTIONS)
