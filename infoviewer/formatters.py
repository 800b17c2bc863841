"""Formatters that turn raw feed text into what a container displays."""

from __future__ import annotations

import json
import logging
import math
import re
from abc import ABC, abstractmethod

from infoviewer.strutil import InfoViewerError, split

logger = logging.getLogger(__name__)

_ATOI = re.compile(r"\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


class FormatError(InfoViewerError):
    """A format string that cannot be applied."""


def _atoi(text: str) -> int:
    """Parse a leading integer the way C's atoi does; 0 when there is none."""
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _reject_constant(name: str) -> float:
    raise ValueError(f"invalid JSON constant {name}")


class BaseTextFormatter(ABC):
    """Turns one piece of feed text into display text."""

    @abstractmethod
    def process(self, text: str) -> str:
        """Return the formatted form of ``text``."""


class TextFormatter(BaseTextFormatter):
    """Applies ``$...$`` escapes from a format string; passes text through without one.

    Escapes:
      ``field:in_sep:out_sep:n,n,...`` picks fields of the input.
      ``regex:sep:pattern`` emits every capture group, each preceded by ``sep``.
    """

    def __init__(self, format: str | None = None) -> None:
        self.format = format

    def _do_cmd(self, text: str, cmd: str) -> str:
        parts = split(cmd, ":")
        if not parts:
            raise FormatError(f'"{cmd}": empty escape')

        kind = parts[0]
        if kind == "field":
            if len(parts) != 4:
                raise FormatError(f'"{cmd}": fields missing')
            in_sep, out_sep, fields = parts[1], parts[2], parts[3]
            if not in_sep:
                raise FormatError(f'"{cmd}": empty input separator')
            in_parts = split(text, in_sep)
            picked = []
            for field in split(fields, ","):
                nr = _atoi(field)
                picked.append(in_parts[nr] if 0 <= nr < len(in_parts) else "")
            return out_sep.join(picked)

        if kind == "regex":
            if len(parts) != 3:
                raise FormatError(f'"{cmd}": fields missing')
            separator, pattern = parts[1], parts[2]
            try:
                regexp = re.compile(pattern)
            except re.error as exc:
                raise FormatError(f'"{cmd}": bad regular expression: {exc}') from exc
            match = regexp.search(text)
            if match is None:
                return ""
            return "".join(separator + (group or "") for group in match.groups())

        logger.warning("Escape %s not known", kind)
        return ""

    def process(self, text: str) -> str:
        if self.format is None:
            return text

        out: list[str] = []
        cmd: list[str] = []
        in_cmd = False
        for ch in self.format:
            if in_cmd:
                if ch == "$":
                    out.append(self._do_cmd(text, "".join(cmd)))
                    in_cmd = False
                else:
                    cmd.append(ch)
            elif ch == "$":
                in_cmd = True
                cmd = []
            else:
                out.append(ch)

        if in_cmd:
            out.append(self._do_cmd(text, "".join(cmd)))

        return "".join(out)


class JsonFormatter(BaseTextFormatter):
    """Fills ``{jsonstr:key}``, ``{jsonval:key}`` and ``{jsondval:digits:key}`` from a JSON object."""

    def __init__(self, format_string: str) -> None:
        self.format_string = format_string

    @staticmethod
    def _lookup(document: object, key: str) -> object:
        if isinstance(document, dict):
            return document.get(key)
        return None

    def _expand(self, document: object, cmd: str) -> str:
        if cmd.startswith("jsonstr:"):
            value = self._lookup(document, cmd[8:])
            return value if isinstance(value, str) else "?"

        if cmd.startswith("jsonval:"):
            value = self._lookup(document, cmd[8:])
            if isinstance(value, int) and not isinstance(value, bool):
                return str(value)
            return "?"

        if cmd.startswith("jsondval:"):
            parts = split(cmd, ":")
            if len(parts) < 3:
                raise FormatError(f'"{cmd}": fields missing')
            digits = _atoi(parts[1])
            if digits < 0:
                digits = 6
            value = self._lookup(document, parts[2])
            if isinstance(value, float):
                return f"{value:.{digits}f}"
            return "?"

        logger.warning('Format-string "%s" is not understood', cmd)
        return ""

    def process(self, text: str) -> str:
        try:
            document = json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:
            logger.warning('json decoding of "%s" failed: %s', text, exc)
            return ""

        out: list[str] = []
        cmd: list[str] = []
        in_cmd = False
        for ch in self.format_string:
            if in_cmd:
                if ch == "}":
                    out.append(self._expand(document, "".join(cmd)))
                    in_cmd = False
                    cmd = []
                else:
                    cmd.append(ch)
            elif ch == "{":
                in_cmd = True
            else:
                out.append(ch)

        result = "".join(out)
        logger.debug("%s", result)
        return result


class ValueFormatter(BaseTextFormatter):
    """Renders a leading number with a fixed count of decimals; other text passes through."""

    def __init__(self, n_digits: int) -> None:
        self.n_digits = n_digits

    def process(self, text: str) -> str:
        match = _LEADING_FLOAT.match(text)
        if match is None:
            return text
        token = match.group(1)
        value = float(token)
        if math.isinf(value) and "inf" not in token.lower():
            return text

        if self.n_digits == 0:
            return f"{value:.0f}"
        digits = self.n_digits if self.n_digits > 0 else 6
        return f"{value:.{digits}f}"