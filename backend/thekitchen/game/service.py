"""
Room coordinator.

Every command runs inside its room's critical section against a deep copy of
the room ("draft"). When the command finishes, the draft is written through
the store's version-checked update and swapped into the directory, and only
then are the queued events sent. A command that raises leaves the committed
room untouched and nothing is broadcast.

Committed Room objects are never mutated afterwards, so read-only lookups
(REST, vote target location, pre-checks) may read them without the lock.
"""
from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterator, Mapping

from ..config import COOKING_TIME_RANGE_SEC, VOTE_MODES, VOTING_TIME_RANGE_SEC, Config
from ..errors import (
    DuplicateConnection,
    InvalidSettings,
    KitchenError,
    NotEnoughPlayers,
    PlayerNotFound,
    PlayerNotInRoom,
    RoomNotFound,
)
from ..realtime import events
from ..realtime.dispatcher import BroadcastDispatcher
from ..storage.assets import AssetStore
from ..storage.store import Store
from . import roster, state_machine, submissions, votes
from .commands import (
    CastVote,
    Command,
    CreateRoom,
    Disconnect,
    JoinRoom,
    LeaveRoom,
    ResetToLobby,
    StartGame,
    StartVoting,
    SubmitContent,
    UpdateSettings,
)
from .directory import RoomDirectory, normalize_room_code
from .models import Player, Room
from .prompts import FALLBACK_PROMPT, ContentGenerator
from .registry import ConnectionRegistry, validate_name
from .timers import PhaseTimers

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def _player_public(p: Player) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "isHost": p.is_host,
        "isConnected": p.is_connected,
        "joinOrder": p.join_order,
    }


def _submission_public(s) -> dict:
    return {
        "id": s.id,
        "playerId": s.player_id,
        "playerName": s.player_name,
        "contentUrl": s.content_url,
        "submittedAt": s.created_at_ms,
    }


def room_public_state(room: Room, now: int | None = None) -> dict:
    """Full snapshot of shared room state; clients can rebuild their view from any one of these."""
    submitted, required = submissions.progress(room)
    voted, voters = votes.progress(room)
    host = room.host

    payload = {
        "roomCode": room.code,
        "version": room.version,
        "phase": room.phase,
        "round": room.round,
        "currentPrompt": room.current_prompt,
        "roundStartedAt": room.round_started_at_ms,
        "phaseStartedAt": room.phase_started_at_ms,
        "phaseEndsAt": state_machine.phase_deadline_ms(room),
        "remainingTime": state_machine.remaining_sec(room, now) if now is not None else None,
        "cookingTimeLimit": room.cooking_time_limit_sec,
        "votingTimeLimit": room.voting_time_limit_sec,
        "voteMode": room.vote_mode,
        "hostId": host.id if host else None,
        "playerCount": len(room.players),
        "connectedCount": len(room.connected_players),
        "players": [_player_public(p) for p in room.players],
        "createdAt": room.created_at_ms,
        "progress": {
            "submissionsCount": submitted if room.phase != "lobby" else 0,
            "totalPlayers": required,
            "votesCount": voted if room.phase in ("voting", "results") else 0,
            "totalVoters": voters,
        },
    }

    if room.phase == "submitting":
        payload["submittedPlayerIds"] = [s.player_id for s in room.submissions.values()]
    if room.phase in ("voting", "results"):
        ordered = sorted(room.submissions.values(), key=lambda s: (s.created_at_ms, s.join_order))
        payload["submissions"] = [_submission_public(s) for s in ordered]
    if room.phase == "results":
        payload["results"] = list(room.results)
        payload["winner"] = room.results[0] if room.results else None

    return payload


@dataclass
class _RoomSession:
    code: str
    draft: Room
    now: int
    queued: list[tuple[str, str, str, dict]] = field(default_factory=list)
    after_commit: list[Callable[[], Any]] = field(default_factory=list)
    on_rollback: list[Callable[[], Any]] = field(default_factory=list)
    delete: bool = False
    changed: bool = False

    def broadcast(self, event: str, payload: dict) -> None:
        self.queued.append(("room", self.code, event, payload))

    def notify(self, connection_id: str, event: str, payload: dict) -> None:
        self.queued.append(("conn", connection_id, event, payload))


class Coordinator:
    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: RoomDirectory,
        dispatcher: BroadcastDispatcher,
        timers: PhaseTimers,
        store: Store,
        generator: ContentGenerator,
        assets: AssetStore | None = None,
        settings: Mapping[str, Any] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.registry = registry
        self.directory = directory
        self.dispatcher = dispatcher
        self.timers = timers
        self.store = store
        self.generator = generator
        self.assets = assets
        self.clock = clock

        s = settings or {}
        self.min_players = int(s.get("MIN_PLAYERS_TO_START", Config.MIN_PLAYERS_TO_START))
        self.cooking_time_limit_sec = int(s.get("COOKING_TIME_LIMIT_SEC", Config.COOKING_TIME_LIMIT_SEC))
        self.voting_time_limit_sec = int(s.get("VOTING_TIME_LIMIT_SEC", Config.VOTING_TIME_LIMIT_SEC))
        self.vote_mode = s.get("VOTE_MODE", Config.VOTE_MODE)
        self.abandon_ttl_sec = int(s.get("ROOM_ABANDON_TTL_SEC", Config.ROOM_ABANDON_TTL_SEC))

        self._handlers: dict[type, Callable[[str, Any], dict]] = {
            CreateRoom: self._create_room,
            JoinRoom: self._join_room,
            LeaveRoom: self._leave_room,
            StartGame: self._start_game,
            SubmitContent: self._submit_content,
            StartVoting: self._start_voting,
            CastVote: self._cast_vote,
            ResetToLobby: self._reset_to_lobby,
            UpdateSettings: self._update_settings,
            Disconnect: self._disconnect,
        }

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def execute(self, connection_id: str, command: Command) -> dict:
        """Run ``command`` on behalf of ``connection_id``. Raises ``KitchenError`` on rejection."""
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command {command!r}")
        with self.registry.lock_for(connection_id):
            return handler(connection_id, command)

    def submit_image(
        self,
        connection_id: str,
        room_code: str,
        data: bytes,
        mime_type: str = "image/jpeg",
        file_name: str = "",
    ) -> dict:
        """
        Upload a dish photo and submit it.

        The upload happens outside the room lock. The submission itself is
        re-validated under the lock; if it is rejected there the uploaded file
        is removed again.
        """
        if self.assets is None:
            raise RuntimeError("No asset store configured")
        code = normalize_room_code(room_code)

        room = self.directory.find_room(code)
        if room is None:
            raise RoomNotFound(code)
        player = self._caller(room, connection_id, code)
        submissions.check_can_submit(room, player, self.clock())

        url = self.assets.upload(data, player.id, mime_type=mime_type, file_name=file_name)
        try:
            return self.execute(connection_id, SubmitContent(room_code=code, content_url=url))
        except KitchenError:
            self.assets.delete(url)
            raise

    def room_state(self, room_code: str) -> dict:
        code = normalize_room_code(room_code)
        room = self.directory.find_room(code)
        if room is None:
            raise RoomNotFound(code)
        return room_public_state(room, self.clock())

    def close_room(self, room_code: str) -> None:
        """Tear a room down regardless of who is in it (REST cleanup)."""
        code = normalize_room_code(room_code)
        with self._session(code) as s:
            for b in self.registry.unbind_room(code):
                s.notify(b.connection_id, events.ROOM_CLOSED, {"roomCode": code})
            s.draft.players = []
            s.delete = True
        logger.info("Room %s closed", code)

    def expire_phase(self, room_code: str, phase: str, round_no: int) -> bool:
        """Timer callback: close ``phase`` of ``round_no`` unless the room has moved on."""
        try:
            with self._session(room_code) as s:
                room = s.draft
                if room.phase != phase or room.round != round_no:
                    return False
                if phase == "submitting":
                    self._advance_to_voting(s, reason="timer")
                elif phase == "voting":
                    self._advance_to_results(s, reason="timer")
                return s.draft.phase != phase
        except RoomNotFound:
            return False

    def expire_abandoned(self, room_code: str) -> bool:
        try:
            with self._session(room_code) as s:
                if s.draft.connected_players:
                    return False
                logger.info(
                    "Room %s abandoned, dropping %d disconnected player(s)",
                    room_code,
                    len(s.draft.players),
                )
                s.draft.players = []
                s.delete = True
                return True
        except RoomNotFound:
            return False

    # ------------------------------------------------------------------
    # critical section
    # ------------------------------------------------------------------

    @contextmanager
    def _session(self, code: str) -> Iterator[_RoomSession]:
        with self.directory.lock_for(code):
            room = self.directory.find_room(code)
            if room is None:
                raise RoomNotFound(code)
            s = _RoomSession(code=code, draft=copy.deepcopy(room), now=self.clock())
            try:
                yield s
                self._commit(room, s)
            except Exception:
                for undo in reversed(s.on_rollback):
                    undo()
                raise
            self._flush(s)
            for fn in s.after_commit:
                fn()

    def _commit(self, committed: Room, s: _RoomSession) -> None:
        if s.delete or not s.draft.players:
            self.directory.delete_room(s.code, force=True)
            self.store.delete("room", s.code)
            self.timers.cancel_prefix(f"{s.code}:")
            s.delete = True
            return
        if s.draft.version == committed.version:
            return
        self.store.update_if_version("room", s.code, committed.version, asdict(s.draft))
        self.directory.replace(s.draft)
        s.changed = True

    def _flush(self, s: _RoomSession) -> None:
        for kind, target, event, payload in s.queued:
            if kind == "room":
                self.dispatcher.broadcast(target, event, payload)
            else:
                self.dispatcher.notify(target, event, payload)
        if s.changed:
            self.dispatcher.broadcast(s.code, events.ROOM_UPDATE, room_public_state(s.draft, s.now))

    def _caller(self, room: Room, connection_id: str, code: str) -> Player:
        binding = self.registry.resolve(connection_id)
        if binding is None:
            raise PlayerNotFound()
        if binding.room_code != code:
            raise PlayerNotInRoom()
        player = room.get_player(binding.player_id)
        if player is None:
            raise PlayerNotInRoom()
        return player

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------

    def _create_room(self, connection_id: str, cmd: CreateRoom) -> dict:
        name = validate_name(cmd.name)
        if self.registry.resolve(connection_id) is not None:
            raise DuplicateConnection()
        created = self.clock()

        def build(code: str) -> Room:
            room = Room(
                code=code,
                created_at_ms=created,
                cooking_time_limit_sec=self.cooking_time_limit_sec,
                voting_time_limit_sec=self.voting_time_limit_sec,
                vote_mode=self.vote_mode,
            )
            self.registry.bind(connection_id, name, room, now_ms=created, as_host=True)
            room.version = 1
            return room

        room = self.directory.allocate(build)
        try:
            self.store.update_if_version("room", room.code, 0, asdict(room))
        except Exception:
            self.registry.unbind(connection_id)
            self.directory.delete_room(room.code, force=True)
            raise

        host = room.host
        snapshot = room_public_state(room, created)
        self.dispatcher.notify(connection_id, events.ROOM_CREATED, {"playerId": host.id, "room": snapshot})
        self.dispatcher.broadcast(room.code, events.ROOM_UPDATE, snapshot)
        logger.info("Room %s created by %s (%s)", room.code, name, connection_id)
        return {"ok": True, "roomCode": room.code, "playerId": host.id}

    def _join_room(self, connection_id: str, cmd: JoinRoom) -> dict:
        code = normalize_room_code(cmd.room_code)
        name = validate_name(cmd.name)
        if self.registry.resolve(connection_id) is not None:
            raise DuplicateConnection()

        with self._session(code) as s:
            player, reconnected = self.registry.bind(connection_id, name, s.draft, now_ms=s.now, room_code=code)
            s.on_rollback.append(lambda: self.registry.unbind(connection_id))
            s.draft.version += 1

            info = {"playerId": player.id, "name": player.name}
            s.broadcast(events.PLAYER_RECONNECTED if reconnected else events.PLAYER_JOINED, info)
            s.after_commit.append(lambda: self.timers.cancel(f"{code}:abandon"))
            s.after_commit.append(
                lambda: self.dispatcher.notify(
                    connection_id,
                    events.ROOM_JOINED,
                    {"playerId": player.id, "reconnected": reconnected, "room": room_public_state(s.draft, s.now)},
                )
            )

        logger.info("%s (%s) %s room %s", name, connection_id, "rejoined" if reconnected else "joined", code)
        return {"ok": True, "roomCode": code, "playerId": player.id, "reconnected": reconnected}

    def _leave_room(self, connection_id: str, cmd: LeaveRoom) -> dict:
        code = normalize_room_code(cmd.room_code)
        with self._session(code) as s:
            player = self._caller(s.draft, connection_id, code)
            binding = self.registry.unbind(connection_id)
            s.on_rollback.append(lambda: self.registry.restore(binding))

            if s.draft.phase == "voting":
                withdrawn = votes.withdraw_votes(s.draft, player.id)
                if withdrawn:
                    logger.info("Withdrew %d vote(s) of %s in room %s", withdrawn, player.name, code)
            new_host = roster.leave(s.draft, player)
            s.draft.version += 1

            s.notify(connection_id, events.ROOM_LEFT, {"roomCode": code})
            s.broadcast(
                events.PLAYER_LEFT,
                {
                    "playerId": player.id,
                    "name": player.name,
                    "newHostId": new_host.id if new_host else None,
                    "remainingPlayers": len(s.draft.players),
                },
            )
            if s.draft.players:
                self._check_completion(s)
                self._schedule_abandon_if_unreachable(s)
            else:
                s.delete = True

        logger.info("%s (%s) left room %s", player.name, connection_id, code)
        return {"ok": True}

    def _start_game(self, connection_id: str, cmd: StartGame) -> dict:
        code = normalize_room_code(cmd.room_code)

        # Cheap rejection before asking the generator for anything.
        room = self.directory.find_room(code)
        if room is None:
            raise RoomNotFound(code)
        caller = self._caller(room, connection_id, code)
        state_machine.require_host(caller)
        state_machine.require_phase(room, "lobby")
        if len(room.players) < self.min_players:
            raise NotEnoughPlayers(self.min_players, len(room.players))

        prompt = self._generate_prompt(room)

        with self._session(code) as s:
            caller = self._caller(s.draft, connection_id, code)
            state_machine.start_game(s.draft, caller, prompt, s.now, min_players=self.min_players)
            round_no = s.draft.round
            s.broadcast(events.GAME_STARTED, self._round_data(s.draft))
            s.after_commit.append(
                lambda: self.timers.schedule(
                    f"{code}:phase",
                    s.draft.cooking_time_limit_sec,
                    lambda: self.expire_phase(code, "submitting", round_no),
                )
            )

        logger.info("Game started in room %s by %s, prompt %r", code, caller.name, prompt)
        return {"ok": True, "round": round_no, "prompt": prompt}

    def _submit_content(self, connection_id: str, cmd: SubmitContent) -> dict:
        code = normalize_room_code(cmd.room_code)
        with self._session(code) as s:
            player = self._caller(s.draft, connection_id, code)
            submission = submissions.submit(s.draft, player, cmd.content_url, s.now)
            submitted, required = submissions.progress(s.draft)
            done = submitted >= required

            s.notify(
                connection_id,
                events.SUBMISSION_SUCCESS,
                {
                    "submissionId": submission.id,
                    "contentUrl": submission.content_url,
                    "submittedAt": submission.created_at_ms,
                    "submissionsCount": submitted,
                    "totalPlayers": required,
                    "allPlayersSubmitted": done,
                },
            )
            s.broadcast(
                events.SUBMISSION_UPDATE,
                {
                    "playerId": player.id,
                    "playerName": player.name,
                    "submissionsCount": submitted,
                    "totalPlayers": required,
                    "allPlayersSubmitted": done,
                    "remainingTime": state_machine.remaining_sec(s.draft, s.now),
                },
            )
            self._check_completion(s)

        logger.info("%s submitted in room %s (%d/%d)", player.name, code, submitted, required)
        return {"ok": True, "submissionId": submission.id}

    def _start_voting(self, connection_id: str, cmd: StartVoting) -> dict:
        code = normalize_room_code(cmd.room_code)
        with self._session(code) as s:
            caller = self._caller(s.draft, connection_id, code)
            state_machine.require_host(caller)
            state_machine.require_phase(s.draft, "submitting")
            self._advance_to_voting(s, reason="host")
        return {"ok": True}

    def _cast_vote(self, connection_id: str, cmd: CastVote) -> dict:
        code = normalize_room_code(cmd.room_code)
        with self._session(code) as s:
            voter = self._caller(s.draft, connection_id, code)
            submission = votes.vote(
                s.draft, voter, cmd.target_id, cmd.value, now_ms=s.now, locate=self._locate_target
            )
            finished, voters = votes.progress(s.draft)

            s.notify(
                connection_id,
                events.VOTE_SUCCESS,
                {"submissionId": submission.id, "finished": votes.has_finished(s.draft, voter.id)},
            )
            s.broadcast(
                events.VOTE_UPDATE,
                {
                    "voterId": voter.id,
                    "votesCount": finished,
                    "totalVoters": voters,
                    "allPlayersVoted": finished >= voters,
                },
            )
            self._check_completion(s)

        logger.info("%s voted in room %s (%d/%d)", voter.name, code, finished, voters)
        return {"ok": True, "submissionId": submission.id}

    def _reset_to_lobby(self, connection_id: str, cmd: ResetToLobby) -> dict:
        code = normalize_room_code(cmd.room_code)
        with self._session(code) as s:
            caller = self._caller(s.draft, connection_id, code)
            state_machine.reset_to_lobby(s.draft, caller, s.now)
            s.broadcast(events.RETURNED_TO_LOBBY, {"roomCode": code, "round": s.draft.round})
            s.after_commit.append(lambda: self.timers.cancel(f"{code}:phase"))
        return {"ok": True}

    def _update_settings(self, connection_id: str, cmd: UpdateSettings) -> dict:
        code = normalize_room_code(cmd.room_code)
        with self._session(code) as s:
            caller = self._caller(s.draft, connection_id, code)
            state_machine.require_host(caller)
            state_machine.require_phase(s.draft, "lobby")

            room = s.draft
            if cmd.cooking_time_limit_sec is not None:
                room.cooking_time_limit_sec = _in_range(
                    cmd.cooking_time_limit_sec, COOKING_TIME_RANGE_SEC, "cookingTimeLimit"
                )
            if cmd.voting_time_limit_sec is not None:
                room.voting_time_limit_sec = _in_range(
                    cmd.voting_time_limit_sec, VOTING_TIME_RANGE_SEC, "votingTimeLimit"
                )
            if cmd.vote_mode is not None:
                if cmd.vote_mode not in VOTE_MODES:
                    raise InvalidSettings(f"voteMode must be one of {', '.join(VOTE_MODES)}")
                room.vote_mode = cmd.vote_mode
            room.version += 1
        return {"ok": True}

    def _disconnect(self, connection_id: str, cmd: Disconnect) -> dict:
        binding = self.registry.unbind(connection_id)
        self.registry.forget(connection_id)
        if binding is None:
            return {"ok": True}

        code = binding.room_code
        try:
            with self._session(code) as s:
                player = s.draft.get_player(binding.player_id)
                if player is None:
                    return {"ok": True}
                new_host = roster.mark_disconnected(s.draft, player, now_ms=s.now)
                s.draft.version += 1
                s.broadcast(
                    events.PLAYER_DISCONNECTED,
                    {
                        "playerId": player.id,
                        "name": player.name,
                        "newHostId": new_host.id if new_host else None,
                    },
                )
                self._schedule_abandon_if_unreachable(s)
        except RoomNotFound:
            return {"ok": True}

        logger.info("%s (%s) disconnected from room %s", player.name, connection_id, code)
        return {"ok": True}

    def _schedule_abandon_if_unreachable(self, s: _RoomSession) -> None:
        """Start the grace timer once players remain but none of them is connected."""
        if not s.draft.players or s.draft.connected_players:
            return
        code = s.code
        s.after_commit.append(
            lambda: self.timers.schedule(
                f"{code}:abandon", self.abandon_ttl_sec, lambda: self.expire_abandoned(code)
            )
        )

    # ------------------------------------------------------------------
    # phase advance
    # ------------------------------------------------------------------

    def _check_completion(self, s: _RoomSession) -> None:
        if submissions.all_submitted(s.draft):
            self._advance_to_voting(s, reason="all submitted")
        elif votes.all_voted(s.draft):
            self._advance_to_results(s, reason="all voted")

    def _advance_to_voting(self, s: _RoomSession, reason: str) -> None:
        room = s.draft
        if not state_machine.transition(room, "submitting", "voting", s.now):
            return
        code, round_no = s.code, room.round
        logger.info("Voting started in room %s (%s), %d submission(s)", code, reason, len(room.submissions))
        s.broadcast(events.VOTING_STARTED, self._round_data(room))
        s.after_commit.append(lambda: self.timers.cancel(f"{code}:phase"))
        s.after_commit.append(
            lambda: self.timers.schedule(
                f"{code}:phase",
                room.voting_time_limit_sec,
                lambda: self.expire_phase(code, "voting", round_no),
            )
        )
        if votes.all_voted(room):
            self._advance_to_results(s, reason="nothing to vote on")

    def _advance_to_results(self, s: _RoomSession, reason: str) -> None:
        room = s.draft
        if not state_machine.transition(room, "voting", "results", s.now):
            return
        room.results = votes.compute_results(room)
        code = s.code
        winner = room.results[0] if room.results else None
        logger.info(
            "Results ready in room %s (%s), winner %s",
            code,
            reason,
            winner["playerName"] if winner else None,
        )
        s.broadcast(events.RESULTS_READY, {**self._round_data(room), "results": room.results, "winner": winner})
        s.after_commit.append(lambda: self.timers.cancel(f"{code}:phase"))

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _round_data(self, room: Room) -> dict:
        return {
            "roomCode": room.code,
            "phase": room.phase,
            "round": room.round,
            "currentPrompt": room.current_prompt,
            "roundStartedAt": room.round_started_at_ms,
            "phaseEndsAt": state_machine.phase_deadline_ms(room),
            "cookingTimeLimit": room.cooking_time_limit_sec,
            "votingTimeLimit": room.voting_time_limit_sec,
            "voteMode": room.vote_mode,
            "submissions": [_submission_public(s) for s in room.submissions.values()]
            if room.phase != "submitting"
            else [],
        }

    def _generate_prompt(self, room: Room) -> str:
        context = {
            "roomCode": room.code,
            "playerCount": len(room.players),
            "round": room.round + 1,
            "previousPrompts": list(room.previous_prompts),
        }
        try:
            prompt = self.generator.generate(context)
        except Exception:
            logger.exception("Prompt generation failed for room %s, using fallback", room.code)
            return FALLBACK_PROMPT
        return prompt.strip() if isinstance(prompt, str) and prompt.strip() else FALLBACK_PROMPT

    def _locate_target(self, target_id: str) -> str | None:
        for room in self.directory.list_rooms():
            if target_id in room.submissions or room.submission_of(target_id) is not None:
                return room.code
        return None


def _in_range(value, bounds: tuple[int, int], name: str) -> int:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int) or value < low or value > high:
        raise InvalidSettings(f"{name} must be between {low} and {high} seconds")
    return value
