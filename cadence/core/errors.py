"""Exception taxonomy for turn processing."""

from __future__ import annotations


class CadenceError(Exception):
    """Base class for errors raised by cadence components."""


class UnauthorizedError(CadenceError):
    """Backend rejected the credentials; fatal to the current turn."""


class AbortError(CadenceError):
    """An operation observed an abort signal and stopped early."""


class ToolSchedulingError(CadenceError):
    """A tool batch was submitted while another batch is still running."""


def get_error_message(error: BaseException) -> str:
    message = str(error)
    return message if message else type(error).__name__


__all__ = [
    "AbortError",
    "CadenceError",
    "ToolSchedulingError",
    "UnauthorizedError",
    "get_error_message",
]
