from __future__ import annotations

import asyncio

from computress.monitor import (
    BroadcastEvent,
    ChatEvent,
    Connected,
    Disconnected,
    EmailEvent,
    NameRequestEvent,
    UnknownEvent,
    Update,
    Updated,
)
from computress.services.logger_service import LoggerService
from computress.services.notification_router import (
    NotificationRouter,
    format_broadcast,
    format_chat,
    format_email,
)
from computress.services.status_service import StatusService
from computress.ui.name_request import APPROVE_ID, DENY_ID

LOG_CHANNEL = 555
APPROVALS_CHANNEL = 777


class RecordingOutput:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.calls: list[tuple] = []
        self.fail_on = set(fail_on or set())

    async def send(self, channel_id: int | None, text: str) -> None:
        self.calls.append(("send", channel_id, text))
        if channel_id is None:
            return
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError("send failed")

    async def send_with_controls(self, channel_id: int | None, text: str, controls) -> None:
        self.calls.append(("controls", channel_id, text, tuple(c.custom_id for c in controls)))


class RecordingPresence:
    def __init__(self) -> None:
        self.texts: list[str] = []

    async def __call__(self, text: str) -> None:
        self.texts.append(text)


def _make_router(
    output: RecordingOutput,
    *,
    log_channel: int | None = LOG_CHANNEL,
    approvals_channel: int | None = APPROVALS_CHANNEL,
) -> tuple[NotificationRouter, StatusService, RecordingPresence, LoggerService]:
    logger = LoggerService()
    presence = RecordingPresence()
    status = StatusService(presence, logger)
    router = NotificationRouter(
        status,
        output,  # type: ignore[arg-type]
        logger,
        log_channel_id=log_channel,
        approvals_channel_id=approvals_channel,
    )
    return router, status, presence, logger


def test_chat_formatting_includes_recipient_only_for_whispers() -> None:
    assert format_chat(ChatEvent(kind="team", sender="Alice", message="hi")) == "[team] Alice: hi"
    whisper = ChatEvent(kind="whisper", sender="Alice", recipient="Bob", message="psst")
    assert format_chat(whisper) == "[whisper] Alice -> Bob: psst"


def test_broadcast_is_bold_and_tagged_by_scope() -> None:
    event = BroadcastEvent(scope="global", sender="Admin", message="restart soon")
    assert format_broadcast(event) == "**[global] Admin: restart soon**"


def test_email_defaults_subject_and_quotes_body() -> None:
    event = EmailEvent(sender="Alice", recipient="Bob", body=("line one", "line two"))
    assert format_email(event) == "[Email] Alice -> Bob: (no subject)\n>>> line one\nline two"

    with_subject = EmailEvent(sender="Alice", recipient="Bob", subject="Trade", body=("ok",))
    assert format_email(with_subject) == "[Email] Alice -> Bob: Trade\n>>> ok"


def test_updated_batch_is_dispatched_in_arrival_order() -> None:
    output = RecordingOutput()
    router, _, _, _ = _make_router(output)
    events = (
        ChatEvent(kind="all", sender="A", message="one"),
        EmailEvent(sender="B", recipient="C", subject="two", body=("x",)),
        BroadcastEvent(scope="global", sender="D", message="three"),
        NameRequestEvent(player_uid=4, requested_name="four"),
    )

    asyncio.run(router.handle(Updated(Update(player_count=2, events=events))))

    assert [call[0] for call in output.calls] == ["send", "send", "send", "controls"]
    assert output.calls[0][2] == "[all] A: one"
    assert output.calls[1][2].startswith("[Email] B -> C: two")
    assert output.calls[2][2] == "**[global] D: three**"
    assert output.calls[3] == ("controls", APPROVALS_CHANNEL, "Name request from Player 4: **four**", (APPROVE_ID, DENY_ID))


def test_failing_handler_does_not_stop_the_rest_of_the_batch() -> None:
    output = RecordingOutput(fail_on={"[Email]"})
    router, _, _, logger = _make_router(output)
    events = (
        ChatEvent(kind="all", sender="A", message="one"),
        EmailEvent(sender="B", recipient="C", body=("x",)),
        BroadcastEvent(scope="global", sender="D", message="three"),
        NameRequestEvent(player_uid=4, requested_name="four"),
    )

    asyncio.run(router.handle(Updated(Update(player_count=2, events=events))))

    assert len(output.calls) == 4
    assert output.calls[2][2] == "**[global] D: three**"
    assert output.calls[3][0] == "controls"
    assert logger.events().count("monitor.event_failed") == 1


def test_unset_channels_are_a_silent_no_op() -> None:
    output = RecordingOutput()
    router, _, _, logger = _make_router(output, log_channel=None, approvals_channel=None)
    events = (
        ChatEvent(kind="all", sender="A", message="one"),
        NameRequestEvent(player_uid=4, requested_name="four"),
    )

    asyncio.run(router.handle(Updated(Update(player_count=0, events=events))))

    assert {call[1] for call in output.calls} == {None}
    assert "monitor.event_failed" not in logger.events()


def test_unknown_events_are_ignored() -> None:
    output = RecordingOutput()
    router, _, _, logger = _make_router(output)

    asyncio.run(router.handle(Updated(Update(player_count=0, events=(UnknownEvent(type="kill"),)))))

    assert output.calls == []
    assert "monitor.event_failed" not in logger.events()


def test_disconnected_resets_presence_regardless_of_prior_state() -> None:
    output = RecordingOutput()
    router, status, presence, _ = _make_router(output)

    async def scenario() -> int | None:
        await router.handle(Updated(Update(player_count=9)))
        await router.handle(Disconnected(reason="closed"))
        return await status.query()

    assert asyncio.run(scenario()) is None
    assert presence.texts == ["9 players", "nothing"]


def test_connected_is_logged_without_touching_presence() -> None:
    output = RecordingOutput()
    router, _, presence, logger = _make_router(output)

    asyncio.run(router.handle(Connected()))

    assert presence.texts == []
    assert "monitor.connected" in logger.events()


def test_single_player_update_with_name_request_end_to_end() -> None:
    output = RecordingOutput()
    router, status, presence, _ = _make_router(output)
    update = Update(player_count=1, events=(NameRequestEvent(player_uid=42, requested_name="Steve"),))

    async def scenario() -> int | None:
        await router.handle(Updated(update))
        return await status.query()

    assert asyncio.run(scenario()) == 1
    assert presence.texts == ["1 player"]
    assert output.calls == [
        ("controls", APPROVALS_CHANNEL, "Name request from Player 42: **Steve**", (APPROVE_ID, DENY_ID)),
    ]
