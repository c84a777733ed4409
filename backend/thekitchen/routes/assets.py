from __future__ import annotations

from pathlib import Path

from flask import Blueprint, current_app, send_from_directory

bp = Blueprint("assets", __name__)


@bp.get("/uploads/<path:filename>")
def uploaded_file(filename: str):
    upload_dir = Path(current_app.config["UPLOAD_DIR"]).resolve()
    return send_from_directory(upload_dir, filename)
