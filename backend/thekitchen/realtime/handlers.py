from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit

from ..errors import InvalidContent, InvalidPayload, KitchenError
from ..game.commands import (
    CastVote,
    CreateRoom,
    Disconnect,
    JoinRoom,
    LeaveRoom,
    ResetToLobby,
    StartGame,
    StartVoting,
    UpdateSettings,
)
from ..game.service import Coordinator, now_ms
from . import events

logger = logging.getLogger(__name__)


def _payload(data: Any) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidPayload("Payload must be an object")
    return data


def _text(payload: dict, *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str):
            return value.strip()
    return ""


def _optional_int(payload: dict, key: str) -> int | None:
    raw: Any = payload.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise InvalidPayload(f"{key} must be a number")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidPayload(f"{key} must be a number")


def _decode_image(raw: str) -> bytes:
    data = raw.strip()
    # Accept data URLs straight from a canvas / file reader.
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidContent("Image data must be base64 encoded")


def _mime_from_data_url(raw: str) -> str:
    if raw.startswith("data:") and ";" in raw:
        return raw[5:raw.index(";")]
    return ""


def register_socketio_handlers(socketio: SocketIO, coordinator: Coordinator) -> None:
    def _fail(err: KitchenError) -> dict:
        payload = err.to_payload()
        emit(events.ERROR, payload, to=request.sid)
        return {"ok": False, "error": payload["code"]}

    def _run(action: str, data: Any, fn: Callable[[dict], dict]) -> dict:
        try:
            return fn(_payload(data))
        except KitchenError as e:
            logger.info("%s rejected for %s: %s %s", action, request.sid, e.code, e.message)
            return _fail(e)
        except Exception:
            logger.exception("Unexpected error in %s for %s", action, request.sid)
            return _fail(KitchenError(f"Internal server error while handling {action}"))

    @socketio.on("connect")
    def on_connect():
        logger.info("User connected: %s", request.sid)
        emit(
            events.CONNECTED,
            {"socketId": request.sid, "timestamp": now_ms()},
            to=request.sid,
        )

    @socketio.on("disconnect")
    def on_disconnect(*_args):
        logger.info("User disconnected: %s", request.sid)
        try:
            coordinator.execute(request.sid, Disconnect())
        except Exception:
            logger.exception("Error handling disconnect of %s", request.sid)

    @socketio.on(events.CREATE_ROOM)
    def create_room(data=None):
        return _run(
            events.CREATE_ROOM,
            data,
            lambda p: coordinator.execute(request.sid, CreateRoom(name=_text(p, "name", "playerName"))),
        )

    @socketio.on(events.JOIN_ROOM)
    def join_room(data=None):
        return _run(
            events.JOIN_ROOM,
            data,
            lambda p: coordinator.execute(
                request.sid,
                JoinRoom(room_code=_text(p, "roomCode"), name=_text(p, "name", "playerName")),
            ),
        )

    @socketio.on(events.LEAVE_ROOM)
    def leave_room(data=None):
        return _run(
            events.LEAVE_ROOM,
            data,
            lambda p: coordinator.execute(request.sid, LeaveRoom(room_code=_text(p, "roomCode"))),
        )

    @socketio.on(events.START_GAME)
    def start_game(data=None):
        return _run(
            events.START_GAME,
            data,
            lambda p: coordinator.execute(request.sid, StartGame(room_code=_text(p, "roomCode"))),
        )

    @socketio.on(events.SUBMIT_CONTENT)
    def submit_content(data=None):
        def _submit(payload: dict) -> dict:
            raw = _text(payload, "content", "imageData")
            if not raw:
                raise InvalidContent()
            image = _decode_image(raw)
            mime = _text(payload, "mimeType") or _mime_from_data_url(raw) or "image/jpeg"
            return coordinator.submit_image(
                request.sid,
                _text(payload, "roomCode"),
                image,
                mime_type=mime,
                file_name=_text(payload, "fileName"),
            )

        return _run(events.SUBMIT_CONTENT, data, _submit)

    @socketio.on(events.START_VOTING)
    def start_voting(data=None):
        return _run(
            events.START_VOTING,
            data,
            lambda p: coordinator.execute(request.sid, StartVoting(room_code=_text(p, "roomCode"))),
        )

    @socketio.on(events.CAST_VOTE)
    def cast_vote(data=None):
        def _vote(payload: dict) -> dict:
            return coordinator.execute(
                request.sid,
                CastVote(
                    room_code=_text(payload, "roomCode"),
                    target_id=_text(payload, "targetId", "submissionId"),
                    value=_optional_int(payload, "value"),
                ),
            )

        return _run(events.CAST_VOTE, data, _vote)

    @socketio.on(events.RESET_TO_LOBBY)
    def reset_to_lobby(data=None):
        return _run(
            events.RESET_TO_LOBBY,
            data,
            lambda p: coordinator.execute(request.sid, ResetToLobby(room_code=_text(p, "roomCode"))),
        )

    @socketio.on(events.UPDATE_SETTINGS)
    def update_settings(data=None):
        def _update(payload: dict) -> dict:
            vote_mode = payload.get("voteMode")
            if vote_mode is not None and not isinstance(vote_mode, str):
                raise InvalidPayload("voteMode must be a string")
            return coordinator.execute(
                request.sid,
                UpdateSettings(
                    room_code=_text(payload, "roomCode"),
                    cooking_time_limit_sec=_optional_int(payload, "cookingTimeLimit"),
                    voting_time_limit_sec=_optional_int(payload, "votingTimeLimit"),
                    vote_mode=vote_mode,
                ),
            )

        return _run(events.UPDATE_SETTINGS, data, _update)
