from __future__ import annotations

from typing import Awaitable, Callable

from computress.models import NameRequest
from computress.monitor import (
    BroadcastEvent,
    ChatEvent,
    Connected,
    Disconnected,
    EmailEvent,
    MonitorEvent,
    MonitorNotification,
    NameRequestEvent,
    Updated,
)
from computress.services.chat_output import ChatOutput
from computress.services.logger_service import LoggerService
from computress.services.status_service import StatusService
from computress.ui import name_request

NO_SUBJECT = "(no subject)"


def format_chat(event: ChatEvent) -> str:
    if event.recipient:
        return f"[{event.kind}] {event.sender} -> {event.recipient}: {event.message}"
    return f"[{event.kind}] {event.sender}: {event.message}"


def format_broadcast(event: BroadcastEvent) -> str:
    return f"**[{event.scope}] {event.sender}: {event.message}**"


def format_email(event: EmailEvent) -> str:
    subject = event.subject or NO_SUBJECT
    header = f"[Email] {event.sender} -> {event.recipient}: {subject}"
    body = "\n".join(event.body)
    if not body:
        return header
    return f"{header}\n>>> {body}"


async def send_name_request(output: ChatOutput, channel_id: int | None, request: NameRequest) -> None:
    text, controls = name_request.render(request)
    await output.send_with_controls(channel_id, text, controls)


class NotificationRouter:
    def __init__(
        self,
        status: StatusService,
        output: ChatOutput,
        logger: LoggerService,
        *,
        log_channel_id: int | None,
        approvals_channel_id: int | None,
    ) -> None:
        self.status = status
        self.output = output
        self.logger = logger
        self.log_channel_id = log_channel_id
        self.approvals_channel_id = approvals_channel_id
        self._handlers: dict[type, Callable[[object], Awaitable[None]]] = {
            ChatEvent: self._on_chat,
            BroadcastEvent: self._on_broadcast,
            EmailEvent: self._on_email,
            NameRequestEvent: self._on_name_request,
        }

    async def handle(self, notification: MonitorNotification) -> None:
        if isinstance(notification, Connected):
            self.logger.log("monitor.connected")
            return
        if isinstance(notification, Disconnected):
            self.logger.log("monitor.disconnected", reason=notification.reason)
            await self.status.update(None)
            return
        if isinstance(notification, Updated):
            update = notification.update
            await self.status.update(update.get_player_count())
            for event in update.get_events():
                await self.dispatch(event)
            return
        self.logger.log("monitor.unknown_notification", kind=type(notification).__name__)

    async def dispatch(self, event: MonitorEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            return
        try:
            await handler(event)
        except Exception as exc:  # noqa: BLE001
            self.logger.log("monitor.event_failed", kind=type(event).__name__, error=f"{type(exc).__name__}: {exc}"[:300])

    async def _on_chat(self, event: ChatEvent) -> None:
        await self.output.send(self.log_channel_id, format_chat(event))

    async def _on_broadcast(self, event: BroadcastEvent) -> None:
        await self.output.send(self.log_channel_id, format_broadcast(event))

    async def _on_email(self, event: EmailEvent) -> None:
        await self.output.send(self.log_channel_id, format_email(event))

    async def _on_name_request(self, event: NameRequestEvent) -> None:
        request = NameRequest.from_event(event)
        self.logger.log("namereq.received", player_uid=request.player_uid)
        await send_name_request(self.output, self.approvals_channel_id, request)
