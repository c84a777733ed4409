from __future__ import annotations

from flask import Blueprint, jsonify

from ..game.service import now_ms

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    return jsonify({"status": "OK", "message": "The Kitchen server is running", "timestamp": now_ms()})
