"""Reading the configuration file and looking up typed settings in it."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from infoviewer.strutil import InfoViewerError, split


class ConfigError(InfoViewerError):
    """A configuration file that cannot be read, or a setting that is missing or mistyped."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class _Group(dict):
    """A group of settings that remembers the line it starts on."""

    def __init__(self, line: int) -> None:
        super().__init__()
        self.line = line


_LEXEME_RE = re.compile(
    r"""
     (?P<ws>[ \t\r\n\f]+)
    |(?P<comment>\#[^\n]*|//[^\n]*|/\*.*?\*/)
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<float>[-+]?(?:\d+\.\d*|\.\d+)(?:[eE][-+]?\d+)?|[-+]?\d+[eE][-+]?\d+)
    |(?P<hex>0[xX][0-9A-Fa-f]+L{0,2})
    |(?P<int>[-+]?\d+L{0,2})
    |(?P<name>[A-Za-z*][-A-Za-z0-9_*]*)
    |(?P<punct>[=:;,{}\[\]()])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE = re.compile(r"\\(x[0-9A-Fa-f]{2}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t", "f": "\f"}
_ATOI = re.compile(r"\s*([+-]?\d+)")
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1
_MISSING = object()


@dataclass(frozen=True)
class _Lexeme:
    kind: str
    text: str
    line: int


def _lex(text: str) -> Iterator[_Lexeme]:
    pos = 0
    line = 1
    while pos < len(text):
        match = _LEXEME_RE.match(text, pos)
        if match is None:
            raise ConfigError(f"syntax error near '{text[pos:pos + 10]}'", line)
        kind = match.lastgroup
        value = match.group()
        if kind not in ("ws", "comment"):
            if kind == "name" and value.lower() in ("true", "false"):
                kind = "bool"
            yield _Lexeme(kind, value, line)
        line += value.count("\n")
        pos = match.end()


def _unescape(body: str, line: int) -> str:
    def replace(match: re.Match) -> str:
        escape = match.group(1)
        if escape.startswith("x") and len(escape) == 3:
            return chr(int(escape[1:], 16))
        if escape in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[escape]
        raise ConfigError(f"invalid escape sequence \\{escape}", line)

    return _ESCAPE.sub(replace, body)


class _Parser:
    def __init__(self, text: str) -> None:
        self.lexemes = list(_lex(text))
        self.pos = 0
        self.last_line = self.lexemes[-1].line if self.lexemes else 1

    def peek(self) -> _Lexeme | None:
        return self.lexemes[self.pos] if self.pos < len(self.lexemes) else None

    def advance(self) -> _Lexeme:
        item = self.peek()
        if item is None:
            raise ConfigError("unexpected end of file", self.last_line)
        self.pos += 1
        return item

    def _at_punct(self, *chars: str) -> bool:
        item = self.peek()
        return item is not None and item.kind == "punct" and item.text in chars

    def parse_settings(self, group: _Group, closing: str | None) -> None:
        while True:
            item = self.peek()
            if item is None:
                if closing is not None:
                    raise ConfigError(f"unexpected end of file, '{closing}' missing", self.last_line)
                return
            if closing is not None and self._at_punct(closing):
                self.pos += 1
                return
            if item.kind != "name":
                raise ConfigError(f"syntax error near '{item.text}'", item.line)
            self.pos += 1

            separator = self.advance()
            if separator.kind != "punct" or separator.text not in ("=", ":"):
                raise ConfigError(f"'=' expected after '{item.text}'", separator.line)
            if item.text in group:
                raise ConfigError(f"duplicate setting name '{item.text}'", item.line)

            group[item.text] = self.parse_value()
            if self._at_punct(";", ","):
                self.pos += 1

    def parse_value(self) -> object:
        item = self.advance()
        if item.kind == "string":
            parts = [_unescape(item.text[1:-1], item.line)]
            while (following := self.peek()) is not None and following.kind == "string":
                self.pos += 1
                parts.append(_unescape(following.text[1:-1], following.line))
            return "".join(parts)
        if item.kind == "int":
            return int(item.text.rstrip("L"), 10)
        if item.kind == "hex":
            return int(item.text.rstrip("L"), 16)
        if item.kind == "float":
            return float(item.text)
        if item.kind == "bool":
            return item.text.lower() == "true"
        if item.kind == "punct" and item.text == "{":
            group = _Group(item.line)
            self.parse_settings(group, "}")
            return group
        if item.kind == "punct" and item.text == "(":
            return self.parse_items(")")
        if item.kind == "punct" and item.text == "[":
            items = self.parse_items("]")
            kinds = {_scalar_kind(element) for element in items}
            if None in kinds:
                raise ConfigError("arrays may only hold scalar values", item.line)
            if len(kinds) > 1:
                raise ConfigError("array elements must all have the same type", item.line)
            return items
        raise ConfigError(f"syntax error near '{item.text}'", item.line)

    def parse_items(self, closing: str) -> list:
        items: list = []
        if self._at_punct(closing):
            self.pos += 1
            return items
        while True:
            items.append(self.parse_value())
            item = self.advance()
            if item.kind == "punct" and item.text == closing:
                return items
            if item.kind != "punct" or item.text != ",":
                raise ConfigError(f"',' or '{closing}' expected near '{item.text}'", item.line)


def _scalar_kind(value: object) -> str | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def parse_config(text: str) -> dict:
    """Parse configuration text (groups, lists, arrays and scalars) into nested dicts and lists."""
    root = _Group(0)
    _Parser(text).parse_settings(root, None)
    return root


def load_config(path: str | Path) -> dict:
    """Read and parse the configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"I/O error while reading configuration file {path}") from exc
    try:
        return parse_config(text)
    except ConfigError as exc:
        raise ConfigError(
            f"Configuration file {path} parse error at line {exc.line}: {exc.message}", exc.line
        ) from exc


def _lookup(cfg: dict, key: str) -> object:
    node: object = cfg
    for part in split(key, "."):
        if isinstance(node, dict) and part in node:
            node = node[part]
        else:
            return _MISSING
    return node


def _line(cfg: dict) -> int:
    return getattr(cfg, "line", 0)


def cfg_str(cfg: dict, key: str, descr: str, optional: bool = False, default: str = "") -> str:
    """Look up a string setting."""
    value = _lookup(cfg, key)
    if value is _MISSING:
        if not optional:
            raise ConfigError(f'"{key}" not found ({descr})')
        return default
    if not isinstance(value, str):
        raise ConfigError(
            f'Expected a string value for "{key}" ({descr}) at line {_line(cfg)} but got something else'
        )
    return value


def cfg_float(cfg: dict, key: str, descr: str, optional: bool = False, default: float = -1.0) -> float:
    """Look up a number as a float; a missing or non-numeric setting yields ``default``."""
    value = _lookup(cfg, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def cfg_int(cfg: dict, key: str, descr: str, optional: bool = False, default: int = -1) -> int:
    """Look up an integer setting; a float is truncated."""
    value = _lookup(cfg, key)
    if value is _MISSING:
        if not optional:
            raise ConfigError(f'"{key}" not found ({descr})')
        return default
    if isinstance(value, float) and value == value and abs(value) != float("inf"):
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or not _INT_MIN <= value <= _INT_MAX:
        raise ConfigError(
            f'Expected an int value for "{key}" ({descr}) at line {_line(cfg)} but got something else'
        )
    return value


def cfg_bool(cfg: dict, key: str, descr: str, optional: bool = False, default: bool = False) -> bool:
    """Look up a boolean setting."""
    value = _lookup(cfg, key)
    if value is _MISSING:
        if not optional:
            raise ConfigError(f'"{key}" not found ({descr})')
        return default
    if not isinstance(value, bool):
        raise ConfigError(f'Expected a boolean value for "{key}" ({descr}) but got something else')
    return value


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def parse_color(text: str) -> tuple[int, int, int]:
    """Parse an ``r,g,b`` triple."""
    parts = split(text, ",")
    if len(parts) < 3:
        raise ConfigError(f'"{text}": expected an r,g,b triple')
    red, green, blue = (_atoi(part) for part in parts[:3])
    return red, green, blue