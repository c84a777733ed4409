from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from ..errors import InvalidRoomCode, RoomNotFound

bp = Blueprint("rooms", __name__)


def _coordinator():
    return current_app.extensions["thekitchen"]


@bp.get("/room/<code>")
def get_room(code: str):
    try:
        state = _coordinator().room_state(code)
    except InvalidRoomCode as e:
        return jsonify({"error": e.code, "message": e.message}), 400
    except RoomNotFound as e:
        return jsonify({"error": e.code, "message": "No room exists with this code"}), 404
    return jsonify({"success": True, "data": state})


@bp.delete("/room/<code>")
def delete_room(code: str):
    try:
        _coordinator().close_room(code)
    except InvalidRoomCode as e:
        return jsonify({"error": e.code, "message": e.message}), 400
    except RoomNotFound as e:
        return jsonify({"error": e.code, "message": "No room exists with this code"}), 404
    return jsonify({"success": True, "message": "Room deleted successfully"})
