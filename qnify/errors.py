"""Application errors carrying a call stack, and HTTP-aware errors."""

from __future__ import annotations

import traceback

_DEPTH = 32


def _callers() -> list[traceback.FrameSummary]:
    """Frames of the current call stack, innermost first, outside this module."""
    frames = [
        frame
        for frame in traceback.extract_stack()
        if frame.filename != __file__
    ]
    frames.reverse()
    return frames[:_DEPTH]


def _format_stack(frames: list[traceback.FrameSummary]) -> str:
    return "".join(
        f"{frame.name}\n\t{frame.filename}:{frame.lineno}\n" for frame in frames
    )


class AppError(Exception):
    """An error with a message, an optional cause and the stack where it was made."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.__cause__ = cause
        self._frames = _callers()

    def __str__(self) -> str:
        return self.message

    def stack(self) -> str:
        """The recorded call stack, one function and location per frame."""
        return _format_stack(self._frames)


class HttpError(Exception):
    """An error that maps directly onto an HTTP status and response text."""

    def __init__(self, code: int, message: str, user_message: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.user_message = user_message

    def __str__(self) -> str:
        return self.message


class InternalHttpError(HttpError):
    """A 500 error wrapping an internal cause, with the stack where it was made."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(500, message, "Internal Server Error")
        self.cause = cause
        self.__cause__ = cause
        self._frames = _callers()

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return str(self.cause)

    def stack(self) -> str:
        """The recorded call stack, one function and location per frame."""
        return _format_stack(self._frames)


def wrap(message: str, err: BaseException | None) -> AppError:
    """Wrap ``err`` in an :class:`AppError` with ``message``."""
    return AppError(message, err)


def bad_request(msg: str) -> HttpError:
    return HttpError(400, msg)


def unauthorised(msg: str) -> HttpError:
    return HttpError(401, msg)


def not_found(msg: str) -> HttpError:
    return HttpError(404, msg)


def conflict(msg: str) -> HttpError:
    return HttpError(409, msg)


def internal_error(msg: str, err: BaseException | None) -> InternalHttpError:
    return InternalHttpError(msg, err)