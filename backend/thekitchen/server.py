from __future__ import annotations

import logging
import sys
from typing import Any

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.directory import RoomDirectory
from .game.prompts import TemplatePromptGenerator
from .game.registry import ConnectionRegistry
from .game.service import Coordinator
from .game.timers import PhaseTimers
from .realtime.dispatcher import BroadcastDispatcher
from .realtime.handlers import register_socketio_handlers
from .routes.assets import bp as assets_bp
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .storage.assets import LocalAssetStore
from .storage.store import InMemoryStore

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _async_mode(configured: str | None) -> str:
    if configured:
        return configured
    # eventlet misbehaves on Windows and on 3.13+.
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def _build_coordinator(app: Flask, socketio: SocketIO, timers: PhaseTimers | None) -> Coordinator:
    cfg = app.config
    registry = ConnectionRegistry(max_players=cfg["MAX_PLAYERS_PER_ROOM"])
    return Coordinator(
        registry=registry,
        directory=RoomDirectory(max_attempts=cfg["ROOM_CODE_MAX_ATTEMPTS"]),
        dispatcher=BroadcastDispatcher(socketio.emit, registry),
        timers=timers or PhaseTimers(spawn=socketio.start_background_task, sleep=socketio.sleep),
        store=InMemoryStore(),
        generator=TemplatePromptGenerator(),
        assets=LocalAssetStore(cfg["UPLOAD_DIR"], base_url=cfg["ASSET_BASE_URL"], max_bytes=cfg["MAX_UPLOAD_BYTES"]),
        settings=cfg,
    )


def create_app(
    config_overrides: dict[str, Any] | None = None,
    timers: PhaseTimers | None = None,
) -> tuple[Flask, SocketIO]:
    """
    Build the Flask app and its Socket.IO server.

    ``timers`` replaces the background-task timer wheel; tests pass one that
    fires on demand.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app.config["LOG_LEVEL"])

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_async_mode(app.config.get("SOCKETIO_ASYNC_MODE")),
        max_http_buffer_size=app.config["MAX_UPLOAD_BYTES"] * 2,
    )

    coordinator = _build_coordinator(app, socketio, timers)
    app.extensions["thekitchen"] = coordinator

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")
    app.register_blueprint(assets_bp)

    register_socketio_handlers(socketio, coordinator)

    logger.info("App ready (async_mode=%s, max %d players/room)", socketio.async_mode, app.config["MAX_PLAYERS_PER_ROOM"])
    return app, socketio
