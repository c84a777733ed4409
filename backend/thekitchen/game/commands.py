"""Typed inbound commands, one per client action."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CreateRoom:
    name: str


@dataclass(frozen=True)
class JoinRoom:
    room_code: str
    name: str


@dataclass(frozen=True)
class LeaveRoom:
    room_code: str


@dataclass(frozen=True)
class StartGame:
    room_code: str


@dataclass(frozen=True)
class SubmitContent:
    room_code: str
    content_url: str


@dataclass(frozen=True)
class StartVoting:
    room_code: str


@dataclass(frozen=True)
class CastVote:
    room_code: str
    target_id: str
    value: int | None = None


@dataclass(frozen=True)
class ResetToLobby:
    room_code: str


@dataclass(frozen=True)
class UpdateSettings:
    room_code: str
    cooking_time_limit_sec: int | None = None
    voting_time_limit_sec: int | None = None
    vote_mode: str | None = None


@dataclass(frozen=True)
class Disconnect:
    pass


Command = (
    CreateRoom
    | JoinRoom
    | LeaveRoom
    | StartGame
    | SubmitContent
    | StartVoting
    | CastVote
    | ResetToLobby
    | UpdateSettings
    | Disconnect
)
