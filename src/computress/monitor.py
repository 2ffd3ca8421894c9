from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Union

import aiohttp

from computress.services.logger_service import LoggerService

RECONNECT_DELAY_SEC = 5
HEARTBEAT_SEC = 30
MAX_PLAYER_UID = 2**64 - 1


@dataclass(frozen=True)
class ChatEvent:
    kind: str
    sender: str
    message: str
    recipient: str | None = None


@dataclass(frozen=True)
class BroadcastEvent:
    scope: str
    sender: str
    message: str


@dataclass(frozen=True)
class EmailEvent:
    sender: str
    recipient: str
    body: tuple[str, ...] = ()
    subject: str | None = None


@dataclass(frozen=True)
class NameRequestEvent:
    player_uid: int
    requested_name: str


@dataclass(frozen=True)
class UnknownEvent:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)


MonitorEvent = Union[ChatEvent, BroadcastEvent, EmailEvent, NameRequestEvent, UnknownEvent]


@dataclass(frozen=True)
class Update:
    player_count: int
    events: tuple[MonitorEvent, ...] = ()

    def get_player_count(self) -> int:
        return self.player_count

    def get_events(self) -> tuple[MonitorEvent, ...]:
        return self.events


@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Disconnected:
    reason: str = ""


@dataclass(frozen=True)
class Updated:
    update: Update


MonitorNotification = Union[Connected, Disconnected, Updated]


def _text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value)


def _optional_text(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    text = str(value)
    return text or None


def _player_uid(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(f"player_uid must be an integer, got {value!r}")
    if isinstance(value, str) and not (value.isascii() and value.isdigit()):
        raise ValueError(f"player_uid must be an integer, got {value!r}")
    player_uid = int(value)
    if not 0 <= player_uid <= MAX_PLAYER_UID:
        raise ValueError(f"player_uid out of range: {player_uid}")
    return player_uid


def decode_event(payload: dict[str, Any]) -> MonitorEvent:
    event_type = str(payload.get("type", "")).strip().lower()
    if event_type == "chat":
        return ChatEvent(
            kind=_text(payload, "kind") or "all",
            sender=_text(payload, "from"),
            recipient=_optional_text(payload, "to"),
            message=_text(payload, "message"),
        )
    if event_type == "broadcast":
        return BroadcastEvent(
            scope=_text(payload, "scope") or "global",
            sender=_text(payload, "from"),
            message=_text(payload, "message"),
        )
    if event_type == "email":
        body = payload.get("body") or []
        if isinstance(body, str):
            body = body.splitlines()
        return EmailEvent(
            sender=_text(payload, "from"),
            recipient=_text(payload, "to"),
            subject=_optional_text(payload, "subject"),
            body=tuple(str(line) for line in body),
        )
    if event_type == "name_request":
        return NameRequestEvent(
            player_uid=_player_uid(payload["player_uid"]),
            requested_name=_text(payload, "requested_name"),
        )
    return UnknownEvent(type=event_type, payload=dict(payload))


def decode_update(payload: dict[str, Any], logger: LoggerService | None = None) -> Update:
    """A bad event is skipped (and logged when `logger` is given); its siblings are kept."""

    raw_events = payload.get("events") or []
    if not isinstance(raw_events, list):
        raise ValueError("events must be a list")
    player_count = int(payload.get("player_count", 0) or 0)
    events: list[MonitorEvent] = []
    for index, item in enumerate(raw_events):
        if not isinstance(item, dict):
            continue
        try:
            events.append(decode_event(item))
        except (KeyError, TypeError, ValueError) as exc:
            if logger is not None:
                logger.log(
                    "monitor.decode_failed",
                    index=index,
                    type=str(item.get("type", "")),
                    error=f"{type(exc).__name__}: {exc}"[:300],
                )
    return Update(player_count=player_count, events=tuple(events))


class MonitorClient:
    """
    Websocket feed from the game-server monitor.

    `notifications()` never ends on its own: a dropped connection yields `Disconnected`
    and the client reconnects after a fixed delay.
    """

    def __init__(self, address: str, logger: LoggerService, *, reconnect_delay: float = RECONNECT_DELAY_SEC) -> None:
        self.address = address
        self.logger = logger
        self.reconnect_delay = reconnect_delay

    @property
    def url(self) -> str:
        if "://" in self.address:
            return self.address
        return f"ws://{self.address}"

    async def notifications(self) -> AsyncIterator[MonitorNotification]:
        while True:
            connected = False
            reason = ""
            try:
                async with aiohttp.ClientSession() as session:
                    async with session.ws_connect(self.url, heartbeat=HEARTBEAT_SEC) as ws:
                        connected = True
                        yield Connected()
                        async for frame in ws:
                            if frame.type == aiohttp.WSMsgType.TEXT:
                                update = self._decode_frame(frame.data)
                                if update is not None:
                                    yield Updated(update)
                            elif frame.type == aiohttp.WSMsgType.ERROR:
                                reason = str(ws.exception() or "websocket error")
                                break
                        reason = reason or "connection closed"
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                reason = f"{type(exc).__name__}: {exc}"
                self.logger.log("monitor.connect_failed", address=self.address, error=reason[:300])
            if connected:
                yield Disconnected(reason=reason)
            await asyncio.sleep(self.reconnect_delay)

    def _decode_frame(self, data: str) -> Update | None:
        try:
            payload = json.loads(data)
            if not isinstance(payload, dict):
                raise ValueError("frame is not a JSON object")
            return decode_update(payload, self.logger)
        except (ValueError, KeyError, TypeError) as exc:
            self.logger.log("monitor.decode_failed", error=str(exc)[:300])
            return None
