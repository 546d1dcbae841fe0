"""Web application set-up: error handling, responses, auth middleware and serving."""

from __future__ import annotations

import dataclasses
import functools
import json
import logging
import os
import threading
import traceback
from socketserver import ThreadingMixIn
from typing import Any, Callable
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from flask import Flask, Response, current_app, g, request

from qnify import consts
from qnify.errors import (
    AppError,
    HttpError,
    InternalHttpError,
    bad_request,
    internal_error,
    wrap,
)
from qnify.logs import LOGGER_NAME
from qnify.tokens import verify_access_token

BEARER_PREFIX = "Bearer "
MIN_TOKEN_LENGTH = 10
SERVER_READ_TIMEOUT = 30

_LOGGER_KEY = "qnify.logger"


def _logger() -> logging.Logger:
    return current_app.extensions.get(_LOGGER_KEY) or logging.getLogger(LOGGER_NAME)


def _fields(**fields: Any) -> dict[str, Any]:
    return {"fields": fields}


def _text(text: str, status: int) -> Response:
    return Response(text, status=status, mimetype=consts.TEXT_TYPE)


def _json(payload: Any, status: int) -> Response:
    return Response(json.dumps(payload), status=status, mimetype=consts.JSON_TYPE)


def _encode(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def _is_framework_http_error(error: BaseException) -> bool:
    """Errors the framework raises itself (routing failures, aborts)."""
    return (
        not isinstance(error, HttpError)
        and callable(getattr(error, "get_response", None))
        and hasattr(error, "description")
        and hasattr(error, "code")
    )


def create_app(logger: logging.Logger | None = None) -> Flask:
    """A Flask app with the shared error handler; serves ./public in development."""
    if consts.DEV:
        app = Flask(
            __name__, static_folder=os.path.abspath("public"), static_url_path=""
        )
    else:
        app = Flask(__name__, static_folder=None)
    app.extensions[_LOGGER_KEY] = logger or logging.getLogger(LOGGER_NAME)
    app.register_error_handler(Exception, handle_error)
    return app


def _log_unexpected(logger: logging.Logger, error: BaseException) -> None:
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    if consts.DEV:
        logger.error("==== panic occured in request handler =====", extra=_fields(err=error))
        print(stack)
    else:
        logger.error("panic occured in request handler", extra=_fields(err=error, stack=stack))


def handle_error(error: BaseException) -> Any:
    """Turn any error raised by a view into the matching HTTP response."""
    logger = _logger()

    if _is_framework_http_error(error):
        code = error.code
        if code is not None and code < 400:
            return error
        if code in (404, 405):
            return _text("Not Found", 404)
        logger.error(
            "unknown http error", extra=_fields(code=code, err=error.description)
        )
        return _text("Internal Server Error", 500)

    if isinstance(error, InternalHttpError):
        if consts.DEV:
            print(error.stack())
        logger.error(
            "internal server error",
            extra=_fields(err=error.message, internalError=str(error), stack=error.stack()),
        )
        return _text("Intenal Server Error", error.code)

    if isinstance(error, HttpError):
        if consts.DEV:
            logger.debug("http error", extra=_fields(err=error.message, code=error.code))
        return _text(error.message, error.code)

    if isinstance(error, AppError):
        logger.error("unhandeled error", extra=_fields(err=str(error), stack=error.stack()))
        return _text("Internal Server Error", 500)

    _log_unexpected(logger, error)
    logger.error("unknown error", extra=_fields(err=str(error)))
    return _json({"success": False, "error": "Internal Error"}, 500)


def parse_json() -> Any:
    """The JSON body of the current request."""
    try:
        return json.loads(request.get_data())
    except ValueError:
        raise bad_request("error parsing request body") from None


def send_response(payload: Any) -> Response:
    """``payload`` as a JSON response."""
    try:
        body = json.dumps(payload, default=_encode)
    except (TypeError, ValueError) as exc:
        raise internal_error("error occured while marshalling", exc) from exc
    return Response(body, status=200, mimetype=consts.JSON_TYPE)


def send_string(text: str) -> Response:
    """``text`` as a 200 plain-text response."""
    return _text(text, 200)


def send_ok() -> Response:
    return send_string("OK")


def get_auth_token(header: str | None) -> str:
    """The token from an Authorization header value, without a Bearer prefix."""
    if not header or len(header) < MIN_TOKEN_LENGTH:
        return ""
    if header.startswith(BEARER_PREFIX):
        return header[len(BEARER_PREFIX):]
    return header


def auth_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Reject requests without a valid access token; store its claims in ``g.claims``."""

    @functools.wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        token = get_auth_token(request.headers.get(consts.AUTH_HEADER))
        if not token:
            return _json({"message": "Unauthorized"}, 401)
        try:
            claims = verify_access_token(token)
        except AppError:
            return _json({"message": "Invalid token"}, 401)
        g.claims = claims
        return view(*args, **kwargs)

    return wrapper


class _ThreadingServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _RequestHandler(WSGIRequestHandler):
    timeout = SERVER_READ_TIMEOUT

    def log_message(self, format: str, *args: Any) -> None:
        logging.getLogger(LOGGER_NAME).debug(format % args)


def serve(app: Flask, port: int) -> None:
    """Serve ``app`` on localhost until interrupted, then shut down cleanly."""
    logger = app.extensions.get(_LOGGER_KEY) or logging.getLogger(LOGGER_NAME)
    try:
        server = make_server(
            "127.0.0.1",
            port,
            app,
            server_class=_ThreadingServer,
            handler_class=_RequestHandler,
        )
    except OSError as exc:
        raise wrap("error starting server", exc) from exc

    worker = threading.Thread(target=server.serve_forever, daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        pass

    try:
        server.shutdown()
        server.server_close()
    except OSError as exc:
        logger.error("error occured during server shutdown", extra=_fields(error=str(exc)))
        return
    logger.debug("server gracefully shut down")