from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


RoomPhase = Literal["lobby", "submitting", "voting", "results"]
VoteMode = Literal["single", "rating"]


@dataclass
class Player:
    id: str
    name: str
    connection_id: str | None = None
    is_host: bool = False
    is_connected: bool = True
    join_order: int = 0
    joined_at_ms: int = 0
    disconnected_at_ms: int | None = None
    was_host: bool = False


@dataclass
class Vote:
    voter_id: str
    value: int = 1
    cast_at_ms: int = 0


@dataclass
class Submission:
    id: str
    player_id: str
    player_name: str
    room_code: str
    round: int
    content_url: str
    created_at_ms: int
    join_order: int = 0
    votes: list[Vote] = field(default_factory=list)


@dataclass
class Room:
    code: str
    phase: RoomPhase = "lobby"
    round: int = 0
    current_prompt: str | None = None
    round_started_at_ms: int | None = None
    phase_started_at_ms: int | None = None
    cooking_time_limit_sec: int = 1800
    voting_time_limit_sec: int = 300
    vote_mode: VoteMode = "single"
    version: int = 0
    created_at_ms: int = 0
    next_join_order: int = 0
    players: list[Player] = field(default_factory=list)
    submissions: dict[str, Submission] = field(default_factory=dict)
    previous_prompts: list[str] = field(default_factory=list)
    results: list[dict] = field(default_factory=list)

    def get_player(self, player_id: str) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def find_player_by_name(self, name: str) -> Player | None:
        wanted = name.strip().lower()
        for p in self.players:
            if p.name.lower() == wanted:
                return p
        return None

    @property
    def host(self) -> Player | None:
        for p in self.players:
            if p.is_host:
                return p
        return None

    @property
    def connected_players(self) -> list[Player]:
        return [p for p in self.players if p.is_connected]

    def submission_of(self, player_id: str) -> Submission | None:
        for s in self.submissions.values():
            if s.player_id == player_id:
                return s
        return None
