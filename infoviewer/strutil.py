"""String helpers and the package's error type."""

from __future__ import annotations

import os


class InfoViewerError(Exception):
    """A fatal condition: bad configuration, a failed system call, and the like."""

    def __init__(self, message: str, errno: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errno = errno

    def __str__(self) -> str:
        if self.errno:
            return f"{self.message}\nerrno: {self.errno} ({os.strerror(self.errno)})"
        return self.message


def split(text: str, splitter: str) -> list[str]:
    """Split ``text`` on every occurrence of ``splitter``.

    An empty input yields an empty list; a trailing separator yields a
    trailing empty field.
    """
    if not splitter:
        raise ValueError("splitter must not be empty")
    if not text:
        return []
    return text.split(splitter)