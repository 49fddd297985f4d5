from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from flask import Flask, jsonify, request
from flask_socketio import SocketIO
from sqlalchemy.orm import sessionmaker
from werkzeug.exceptions import HTTPException

from tasky.config import SETTINGS, Settings
from tasky.domain.clock import utcnow
from tasky.domain.errors import DomainError
from tasky.realtime.broadcaster import Broadcaster, SocketIOBroadcaster
from tasky.realtime.events import register_events

from .chat import chat_bp
from .container import EXTENSION_KEY, build_services
from .notifications import notifications_bp
from .organizations import invitations_bp, organizations_bp
from .subgroups import subgroups_bp
from .tasks import tasks_bp

logger = logging.getLogger(__name__)

CORS_HEADERS = "Authorization, Content-Type"
CORS_METHODS = "GET, POST, PATCH, DELETE, OPTIONS"


def create_app(
    settings: Settings = SETTINGS,
    session_factory: sessionmaker | None = None,
    broadcaster: Broadcaster | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Flask:
    """Build the HTTP app and attach its Socket.IO server.

    The socket server is reachable as ``app.extensions["socketio"]``.
    ``broadcaster`` replaces the socket-backed one, which tests use to
    record outgoing events.
    """
    if session_factory is None:
        from tasky.infra.db import SessionLocal

        session_factory = SessionLocal

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["TOKEN_MAX_AGE"] = settings.token_max_age_seconds
    app.json.sort_keys = False

    socketio = SocketIO(app, async_mode="threading", cors_allowed_origins=settings.allowed_origins)
    register_events(socketio)

    app.extensions[EXTENSION_KEY] = build_services(
        settings,
        session_factory,
        broadcaster or SocketIOBroadcaster(socketio),
        clock,
    )

    for blueprint in (tasks_bp, notifications_bp, organizations_bp, invitations_bp, subgroups_bp, chat_bp):
        app.register_blueprint(blueprint)

    allowed_origins = settings.allowed_origins

    @app.after_request
    def apply_cors(response):
        origin = request.headers.get("Origin")
        if allowed_origins == "*":
            response.headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.vary.add("Origin")
        else:
            return response
        response.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
        response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
        return response

    @app.get("/health")
    def health():
        return jsonify({"success": True, "status": "ok"})

    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        logger.info("%s: %s", exc.kind, exc.message)
        return jsonify({"success": False, "error": exc.kind, "message": exc.message}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.name, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error")
        return jsonify({"success": False, "error": "internal", "message": "Internal server error"}), 500

    return app
