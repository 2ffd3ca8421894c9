from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from computress.monitor import MAX_PLAYER_UID, NameRequestEvent


class Decision(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(frozen=True)
class NameRequest:
    player_uid: int
    requested_name: str

    @classmethod
    def from_event(cls, event: NameRequestEvent) -> "NameRequest":
        return cls(player_uid=event.player_uid, requested_name=event.requested_name)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "NameRequest":
        player_uid = record["player_uid"]
        requested_name = record["requested_name"]
        if isinstance(player_uid, bool) or not isinstance(player_uid, int):
            raise TypeError(f"player_uid must be an integer, got {player_uid!r}")
        if not 0 <= player_uid <= MAX_PLAYER_UID:
            raise ValueError(f"player_uid out of range: {player_uid}")
        if not isinstance(requested_name, str):
            raise TypeError(f"requested_name must be a string, got {requested_name!r}")
        return cls(player_uid=player_uid, requested_name=requested_name)
