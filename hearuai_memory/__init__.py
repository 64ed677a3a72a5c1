"""Application factory for the HearUAI memory service."""

from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Flask

from .companion import CompanionClient
from .config import _resolve_data_dir, _resolve_user_id
from .memory_manager import MemoryManager
from .routes import bp
from .storage import JsonFileStorage

logging.basicConfig(level=logging.INFO)


def create_app(manager: Optional[MemoryManager] = None, companion: Any = None) -> Flask:
    """Create and configure the Flask application.

    Without an explicit ``manager`` the app serves the configured user from
    JSON files under ``HEARUAI_DATA_DIR``.
    """

    if manager is None:
        manager = MemoryManager(_resolve_user_id(), JsonFileStorage(_resolve_data_dir()))
    if not manager.ready:
        manager.load()

    flask_app = Flask(__name__)
    flask_app.extensions["hearuai_memory"] = manager
    flask_app.extensions["hearuai_companion"] = companion or CompanionClient()
    flask_app.register_blueprint(bp)
    return flask_app
