"""The viewer itself: reads the configuration, builds containers and feeds, and draws them."""

from __future__ import annotations

import enum
import os
import signal
import sys
import threading
from collections.abc import Sequence
from dataclasses import dataclass

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame

from infoviewer.config import (
    ConfigError,
    cfg_bool,
    cfg_float,
    cfg_int,
    cfg_str,
    load_config,
    parse_color,
)
from infoviewer.container import Container, ScreenDescriptor, Scroller, TextBox
from infoviewer.feeds import ExecFeed, Feed, MqttFeed, StaticFeed, TailFeed
from infoviewer.formatters import BaseTextFormatter, JsonFormatter, TextFormatter, ValueFormatter
from infoviewer.mjpeg import MjpegFeed
from infoviewer.strutil import InfoViewerError

Color = tuple[int, int, int]

_WHITE = (255, 255, 255)
_BORDER_ALPHA = 191
_FRAME_DELAY_MS = 10


class ContainerType(enum.Enum):
    """How a container is drawn."""

    STATIC = "static"
    SCROLLER = "scroller"


@dataclass
class GlobalSettings:
    """The settings of the ``global`` group."""

    n_columns: int = 80
    n_rows: int = 25
    grid: bool = False
    full_screen: bool = True
    window_w: int = 800
    window_h: int = 480
    display_nr: int = 1


@dataclass
class ContainerEntry:
    """A container together with where and how it is drawn."""

    container: Container
    ct: ContainerType
    font_color: Color
    bg_color: Color
    border_color: Color
    x: int
    y: int
    w: int
    h: int
    border: bool
    center_h: bool
    center_v: bool
    bg_fill: bool


def thread_name(name: str) -> str:
    """Return the name a worker thread carries, cut to 15 characters."""
    return f"IV:{name}"[:15]


def read_global_settings(root: dict) -> GlobalSettings:
    """Read the ``global`` group of the configuration."""
    group = root.get("global")
    if not isinstance(group, dict):
        raise ConfigError('Configuration group "global" not found!')
    return GlobalSettings(
        n_columns=cfg_int(group, "n-columns", "number of columns", True, 80),
        n_rows=cfg_int(group, "n-rows", "number of rows", True, 25),
        grid=cfg_bool(group, "grid", "grid", True, False),
        full_screen=cfg_bool(group, "full-screen", "full screen", True, True),
        window_w=cfg_int(group, "window-w", "when not full screen, window width", True, 800),
        window_h=cfg_int(group, "window-h", "when not full screen, window height", True, 480),
        display_nr=cfg_int(group, "display-nr", "with multiple monitors, use this monitor", True, 1),
    )


def build_formatter(instance: dict) -> BaseTextFormatter:
    """Create the formatter an instance asks for."""
    kind = cfg_str(instance, "formatter", "json, text, value or as-is", False, "as-is")
    if kind == "json":
        return JsonFormatter(cfg_str(instance, "format-string", "json", False, ""))
    if kind == "as-is":
        return TextFormatter(None)
    if kind == "text":
        return TextFormatter(cfg_str(instance, "format-string", "text", False, ""))
    if kind == "value":
        return ValueFormatter(
            cfg_int(instance, "n-digits", "number of digits (0 for integer)", False, 0)
        )
    raise ConfigError(f'"format-string {kind}" unknown')


def _topics(feed_cfg: dict) -> list[str]:
    entries = feed_cfg.get("topics")
    if not isinstance(entries, list):
        raise ConfigError('"topics" not found (list of mqtt topics)')
    topics = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigError('"topics" must hold groups with a "topic" setting')
        topics.append(cfg_str(entry, "topic", "mqtt topic", False, "#"))
    return topics


def build_feed(feed_cfg: dict, container: Container, stop_event: threading.Event | None = None) -> Feed:
    """Create, without starting it, the feed a ``feed`` group describes."""
    kind = cfg_str(feed_cfg, "feed-type", "mqtt, exec, tail or static", False, "mqtt")
    if kind == "mqtt":
        host = cfg_str(feed_cfg, "host", "mqtt host", False, "127.0.0.1")
        port = cfg_int(feed_cfg, "port", "mqtt port", True, 1883)
        return MqttFeed(host, port, _topics(feed_cfg), container, stop_event)
    if kind == "exec":
        cmd = cfg_str(feed_cfg, "cmd", "command to invoke", False, "date")
        interval = cfg_int(feed_cfg, "interval", "exec interval (in millisecons)", True, 1000)
        return ExecFeed(cmd, interval, container, stop_event)
    if kind == "tail":
        cmd = cfg_str(feed_cfg, "cmd", 'command to "tail"', False, "tail -f /var/log/messages")
        return TailFeed(cmd, container, stop_event)
    if kind == "static":
        text = cfg_str(feed_cfg, "text", "text to display", False, "my text")
        return StaticFeed(text, container, stop_event)
    if kind == "mjpeg":
        url = cfg_str(feed_cfg, "url", "MJPEG url", False, "my url")
        return MjpegFeed(url, container, stop_event)
    raise ConfigError(f'"feed-type {kind}" unknown')


def _build_entry(instance: dict, sd: ScreenDescriptor) -> ContainerEntry:
    formatter = build_formatter(instance)

    font = cfg_str(instance, "font", "path to font", False, "/usr/share/vlc/skins2/fonts/FreeSans.ttf")
    font_height = cfg_float(instance, "font-height", "font height", False, 5.0)
    max_width = cfg_int(instance, "max-width", "max text width", False, 5)
    clear_after = cfg_int(instance, "clear-after", "clear text after (in seconds)", True, -1)

    fg_color = parse_color(cfg_str(instance, "fg-color", "r,g,b triple", True, "255,0,0"))
    bg_color = parse_color(cfg_str(instance, "bg-color", "r,g,b triple", True, "255,0,0"))
    border_color = parse_color(cfg_str(instance, "b-color", "r,g,b triple", True, "255,0,0"))

    bg_fill = cfg_bool(instance, "bg-fill", "fill background", True, True)

    x = cfg_int(instance, "x", "x position", False, 0)
    y = cfg_int(instance, "y", "y position", False, 0)
    w = cfg_int(instance, "w", "w position", False, 1)
    h = cfg_int(instance, "h", "h position", False, 1)

    center_h = cfg_bool(instance, "center-horizontal", "center horizontal", True, True)
    center_v = cfg_bool(instance, "center-vertical", "center vertical", True, True)

    kind = cfg_str(instance, "type", "scroller or static", False, "static")
    pixel_height = sd.ysteps * font_height
    pixel_width = max_width * sd.xsteps
    if kind == "static":
        ct = ContainerType.STATIC
        container: Container = TextBox(
            font, pixel_height, pixel_width, fg_color, formatter, clear_after
        )
    elif kind == "scroller":
        ct = ContainerType.SCROLLER
        scroll_speed = cfg_int(instance, "scroll-speed", "pixel count", True, 1)
        container = Scroller(
            font,
            pixel_height,
            pixel_width,
            fg_color,
            formatter,
            clear_after,
            scroll_speed=scroll_speed,
            center_v=center_v,
        )
    else:
        raise ConfigError(f'"type {kind}" unknown')

    return ContainerEntry(
        container=container,
        ct=ct,
        font_color=fg_color,
        bg_color=bg_color,
        border_color=border_color,
        x=x,
        y=y,
        w=w,
        h=h,
        border=cfg_bool(instance, "border", "border", False, True),
        center_h=center_h,
        center_v=center_v,
        bg_fill=bg_fill,
    )


def box_corners(sd: ScreenDescriptor, x: int, y: int, w: int, h: int) -> tuple[int, int, int, int]:
    """Return the pixel corners ``(x1, y1, x2, y2)``, inclusive, of a box of grid cells."""
    x1 = x * sd.xsteps
    y1 = y * sd.ysteps
    return x1, y1, x1 + sd.xsteps * w - 1, y1 + sd.ysteps * h - 1


def draw_box(
    sd: ScreenDescriptor,
    x: int,
    y: int,
    w: int,
    h: int,
    border: bool,
    bg_color: Color,
    border_color: Color,
) -> None:
    """Fill a box of grid cells, optionally outlined with a translucent border."""
    x1, y1, x2, y2 = box_corners(sd, x, y, w, h)
    rect = pygame.Rect(x1, y1, x2 - x1 + 1, y2 - y1 + 1)
    if rect.w <= 0 or rect.h <= 0:
        return
    pygame.draw.rect(sd.screen, tuple(bg_color), rect)
    if border:
        overlay = pygame.Surface(rect.size, pygame.SRCALPHA)
        pygame.draw.rect(overlay, (*border_color, _BORDER_ALPHA), overlay.get_rect(), 1)
        sd.screen.blit(overlay, rect.topleft)


def draw_grid(sd: ScreenDescriptor, n_columns: int, n_rows: int) -> None:
    """Draw white lines along the grid's rows and columns."""
    for row in range(n_rows):
        line_y = row * sd.ysteps
        pygame.draw.line(sd.screen, _WHITE, (0, line_y), (sd.scr_w, line_y))
    for column in range(n_columns):
        line_x = column * sd.xsteps
        pygame.draw.line(sd.screen, _WHITE, (line_x, 0), (line_x, sd.scr_h))


def _draw_entry(sd: ScreenDescriptor, entry: ContainerEntry) -> None:
    if entry.bg_fill:
        draw_box(sd, entry.x, entry.y, entry.w, entry.h, entry.border, entry.bg_color, entry.border_color)
    if entry.ct is ContainerType.STATIC:
        entry.container.put_static(sd, entry.x, entry.y, entry.w, entry.h, entry.center_h, entry.center_v)
    else:
        entry.container.put_scroller(sd, entry.x, entry.y, entry.w, entry.h)


def _open_window(settings: GlobalSettings) -> pygame.Surface:
    pygame.display.init()
    pygame.font.init()
    display = settings.display_nr
    if not 0 <= display < pygame.display.get_num_displays():
        display = 0
    flags = pygame.FULLSCREEN if settings.full_screen else pygame.RESIZABLE
    size = (0, 0) if settings.full_screen else (settings.window_w, settings.window_h)
    screen = pygame.display.set_mode(size, flags, display=display)
    pygame.display.set_caption("InfoViewer")
    if settings.full_screen:
        pygame.mouse.set_visible(False)
    return screen


def _run(settings: GlobalSettings, root: dict, stop_event: threading.Event) -> int:
    screen = _open_window(settings)
    w, h = screen.get_size()
    print(f"{w}x{h}")

    sd = ScreenDescriptor(screen, w, h, w // settings.n_columns, h // settings.n_rows)

    instances = root.get("instances")
    if not isinstance(instances, list):
        raise ConfigError('"instances" not found (list of instances)')

    entries: list[ContainerEntry] = []
    feeds: list[Feed] = []
    try:
        for instance in instances:
            if not isinstance(instance, dict):
                raise ConfigError("every instance must be a group")
            entry = _build_entry(instance, sd)
            entries.append(entry)
            feed_cfg = instance.get("feed")
            if not isinstance(feed_cfg, dict):
                raise ConfigError('"feed" not found (feed group)')
            feeds.append(build_feed(feed_cfg, entry.container, stop_event))

        for entry in entries:
            entry.container.start()
        for feed in feeds:
            feed.start()

        while not stop_event.is_set():
            if settings.grid:
                draw_grid(sd, settings.n_columns, settings.n_rows)
            for entry in entries:
                _draw_entry(sd, entry)
            pygame.display.flip()
            pygame.time.wait(_FRAME_DELAY_MS)

            for event in pygame.event.get():
                if event.type == pygame.QUIT or (
                    event.type == pygame.KEYDOWN and event.key == pygame.K_q
                ):
                    stop_event.set()
                elif event.type == pygame.VIDEORESIZE:
                    screen.fill((0, 0, 0))
    finally:
        stop_event.set()
        for entry in entries:
            entry.container.stop(1.0)
        for feed in feeds:
            feed.join(1.0)
        pygame.quit()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the viewer with the configuration file named in ``argv``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print("Configuration file parameter missing", file=sys.stderr)
        return 1

    try:
        root = load_config(args[0])
        settings = read_global_settings(root)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1

    if settings.n_columns <= 0 or settings.n_rows <= 0:
        print("n-columns and n-rows must be positive", file=sys.stderr)
        return 1

    stop_event = threading.Event()
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())
    try:
        return _run(settings, root, stop_event)
    except (InfoViewerError, ValueError, pygame.error) as exc:
        print(exc, file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGTERM, previous)


if __name__ == "__main__":
    sys.exit(main())