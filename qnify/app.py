"""Server entry point: wires configuration, storage and routes together."""

from __future__ import annotations

import argparse
import logging
from typing import Any

from flask import Flask

from qnify import attendance, auth, course
from qnify.config import Config, load_config
from qnify.database import Database, init_db
from qnify.logs import LOGGER_NAME, init_logger
from qnify.redis_client import get_redis
from qnify.tokens import init_config
from qnify.web import create_app, serve


def build_app(config: Config, redis: Any = None) -> Flask:
    """Connect to the database (and Redis unless given one) and mount every route."""
    logger = logging.getLogger(LOGGER_NAME)
    connection = init_db(config.db)
    db = Database(config.db.type, connection)
    if redis is None:
        redis = get_redis(config.redis_url)

    token_config = config.auth.token
    if token_config.access_secret and token_config.refresh_secret:
        init_config(token_config)

    app = create_app(logger)
    auth.register_routes(app, redis, db, logger, config.auth)
    course.register_routes(app, redis, db, logger)
    attendance.register_routes(app, redis, db, logger)
    return app


def main(argv: list[str] | None = None) -> int:
    """Load the configuration and serve until interrupted."""
    parser = argparse.ArgumentParser(prog="qnify", description="Run the API server.")
    parser.add_argument("-c", "--config", default="config.yaml", help="configuration file")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    app = build_app(config)
    init_logger()
    serve(app, config.port)
    return 0