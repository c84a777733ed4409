import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Trust X-Forwarded-* from one proxy hop
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Dev server (backend/app.py)
    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "3001"))
    DEBUG = os.environ.get("FLASK_DEBUG", "0") == "1"

    # Empty means: eventlet on POSIX before Python 3.13, threading otherwise.
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    # Rooms
    MAX_PLAYERS_PER_ROOM = int(os.environ.get("MAX_PLAYERS_PER_ROOM", "8"))
    MIN_PLAYERS_TO_START = int(os.environ.get("MIN_PLAYERS_TO_START", "2"))
    ROOM_CODE_MAX_ATTEMPTS = int(os.environ.get("ROOM_CODE_MAX_ATTEMPTS", "10"))
    # Seconds a room may sit with every player disconnected before it is dropped.
    ROOM_ABANDON_TTL_SEC = int(os.environ.get("ROOM_ABANDON_TTL_SEC", "120"))

    # Game
    COOKING_TIME_LIMIT_SEC = int(os.environ.get("COOKING_TIME_LIMIT_SEC", "1800"))
    VOTING_TIME_LIMIT_SEC = int(os.environ.get("VOTING_TIME_LIMIT_SEC", "300"))
    VOTE_MODE = os.environ.get("VOTE_MODE", "single")

    # Uploads (MVP stores images on local disk)
    UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
    ASSET_BASE_URL = os.environ.get("ASSET_BASE_URL", "/uploads")
    MAX_UPLOAD_BYTES = int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))


COOKING_TIME_RANGE_SEC = (300, 7200)
VOTING_TIME_RANGE_SEC = (60, 1800)
RATING_RANGE = (1, 5)
VOTE_MODES = ("single", "rating")
