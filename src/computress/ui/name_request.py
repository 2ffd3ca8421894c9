from __future__ import annotations

import re
from dataclasses import dataclass

import discord

from computress.errors import InvalidIdentifierError, MalformedMessageError
from computress.models import MAX_PLAYER_UID, NameRequest

APPROVE_ID = "namereq_approve"
DENY_ID = "namereq_deny"
CONTROL_PREFIX = "namereq_"

# The rendered text is the only record of a pending request, so this shape is a wire contract.
NAME_REQUEST_PATTERN = r"^Name request from Player (\d+): \*\*(.+)\*\*$"
_NAME_REQUEST_REGEX = re.compile(NAME_REQUEST_PATTERN)


@dataclass(frozen=True)
class ControlSpec:
    custom_id: str
    label: str
    style: discord.ButtonStyle


NAME_REQUEST_CONTROLS: tuple[ControlSpec, ...] = (
    ControlSpec(custom_id=APPROVE_ID, label="Approve", style=discord.ButtonStyle.success),
    ControlSpec(custom_id=DENY_ID, label="Deny", style=discord.ButtonStyle.danger),
)


def render(request: NameRequest) -> tuple[str, tuple[ControlSpec, ...]]:
    text = f"Name request from Player {request.player_uid}: **{request.requested_name}**"
    return text, NAME_REQUEST_CONTROLS


def recover(text: str) -> NameRequest:
    """
    Rebuild a name request from a message produced by `render`.

    The name capture is greedy, so a name containing `**` still ends at the final delimiter.
    Names spanning several lines cannot be recovered.
    """

    match = _NAME_REQUEST_REGEX.fullmatch(text or "")
    if match is None:
        raise MalformedMessageError("Malformed")
    digits, requested_name = match.group(1), match.group(2)
    if not digits.isascii():
        raise InvalidIdentifierError(f"Invalid player uid: {digits!r}")
    player_uid = int(digits)
    if player_uid > MAX_PLAYER_UID:
        raise InvalidIdentifierError(f"Invalid player uid: {digits}")
    return NameRequest(player_uid=player_uid, requested_name=requested_name)


def build_view(controls: tuple[ControlSpec, ...]) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    for control in controls:
        view.add_item(discord.ui.Button(label=control.label, style=control.style, custom_id=control.custom_id))
    # Presses are handled by the interaction dispatcher; a stopped view is never stored by the client.
    view.stop()
    return view
