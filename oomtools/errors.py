"""Error type for failed system operations, carrying an errno code."""

from __future__ import annotations

import os


class OomdError(OSError):
    """An OSError whose text is the context message followed by strerror."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(code, os.strerror(code))
        self.code = code
        self.message = message
        reason = os.strerror(code)
        self.what = f"{message}: {reason}" if message else reason

    def __str__(self) -> str:
        return self.what

    def __reduce__(self):
        return (type(self), (self.code, self.message))


def _concat(args: tuple) -> str:
    return "".join(str(arg) for arg in args)


def system_error(code: int, *args) -> OomdError:
    """Build an error for errno code with the args joined as its message."""
    return OomdError(code, _concat(args))


def chain_error(err: OomdError, *args) -> OomdError:
    """Build a new error with the same code, adding context to err's text."""
    return OomdError(err.code, f"{err.what} -- {_concat(args)}")