from __future__ import annotations

import logging
import sys

from tasky.api.app import create_app
from tasky.config import SETTINGS
from tasky.infra.db import init_db
from tasky.infra.logging import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging(SETTINGS)
    try:
        init_db()
    except Exception as exc:  # noqa: BLE001
        logger.critical("Database is not reachable: %s", exc)
        sys.exit(1)

    app = create_app(SETTINGS)
    socketio = app.extensions["socketio"]
    logger.info("Serving on %s:%s", SETTINGS.host, SETTINGS.port)
    socketio.run(app, host=SETTINGS.host, port=SETTINGS.port, allow_unsafe_werkzeug=True)


if __name__ == "__main__":
    main()
