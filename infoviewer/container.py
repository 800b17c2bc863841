"""Display containers: text boxes and scrollers drawn onto a pygame surface."""

from __future__ import annotations

import math
import os
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame

from infoviewer.formatters import BaseTextFormatter
from infoviewer.strutil import InfoViewerError, split

Color = tuple[int, int, int]

_font_lock = threading.Lock()


@dataclass
class ScreenDescriptor:
    """The surface drawn on and the size of one grid cell in pixels."""

    screen: pygame.Surface
    scr_w: int
    scr_h: int
    xsteps: int
    ysteps: int


def _div(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    return int(a / b)


def load_font(filename: str | None, font_height: float, fast_rendering: bool = True) -> pygame.font.Font:
    """Open a TrueType font at ``font_height`` pixels; ``None`` picks pygame's default font.

    pygame offers no hinting control, so every font renders in its fast mode
    whatever ``fast_rendering`` asks for.
    """
    real_path = os.path.realpath(filename) if filename is not None else None
    with _font_lock:
        if not pygame.font.get_init():
            pygame.font.init()
        try:
            return pygame.font.Font(real_path, int(font_height))
        except (OSError, pygame.error) as exc:
            raise InfoViewerError(
                f"font {filename} ({real_path}) can't be loaded: {exc}"
            ) from exc


class Container:
    """Holds rendered pieces of text or an image, cleared after ``clear_after`` seconds of silence."""

    def __init__(
        self,
        font_file: str | None,
        font_height: float,
        max_width: int,
        color: Color = (0, 0, 0),
        formatter: BaseTextFormatter | None = None,
        clear_after: int = -1,
    ) -> None:
        if max_width <= 0:
            raise ValueError("max_width must be positive")
        self.max_width = max_width
        self.color = tuple(color)
        self.formatter = formatter
        self.clear_after = clear_after
        self.font = load_font(font_file, font_height, True)

        self._lock = threading.Lock()
        self.surfaces: list[pygame.Surface] = []
        self.total_w = 0
        self.h = 0
        self.most_recent_update: float | None = None
        self._text = ""

        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def _spawn(self, target, name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def start(self) -> None:
        """Start the background thread that clears stale content."""
        if self.clear_after != -1:
            self._spawn(self._expire_loop, "IV:clear")

    def stop(self) -> None:
        """Stop the background threads and wait for them."""
        self._stop.set()
        for thread in self._threads:
            thread.join()

    @property
    def running(self) -> bool:
        """Whether any background thread is still alive."""
        return any(thread.is_alive() for thread in self._threads)

    def _expire_loop(self) -> None:
        while not self._stop.wait(0.5):
            self.expire(time.time())

    def expire(self, now: float) -> bool:
        """Clear the content if it is older than ``clear_after`` seconds; report whether it was cleared."""
        if self.clear_after == -1:
            return False
        with self._lock:
            if self.most_recent_update is None or now - self.most_recent_update < self.clear_after:
                return False
            self.surfaces = []
            self.total_w = 0
            self.h = 0
            self._text = ""
            self.most_recent_update = None
        return True

    def set_text(self, lines: Iterable[str]) -> tuple[int, int]:
        """Format and render ``lines``, wrapping at ``max_width``; return the total width and height."""
        rendered_lines: list[str] = []
        pieces: list[str] = []
        for item in lines:
            new = self.formatter.process(item) if self.formatter is not None else item
            pieces.append(new)
            if "\n" in new:
                rendered_lines.extend(split(new, "\n"))
            else:
                rendered_lines.append(new)
        new_text = "".join(pieces)

        with self._lock:
            if new_text == self._text:
                if new_text:
                    self.most_recent_update = time.time()
                return self.total_w, self.h

        surfaces: list[pygame.Surface] = []
        total_w = 0
        height = 0
        with _font_lock:
            for line in rendered_lines:
                text_w, _ = self.font.size(line)
                divider = math.ceil(text_w / self.max_width)
                if divider == 0:
                    continue
                n_chars = math.ceil(len(line) / divider)
                for _ in range(divider):
                    part, line = line[:n_chars], line[n_chars:]
                    if not part:
                        break
                    surface = self.font.render(part, True, self.color)
                    surfaces.append(surface)
                    total_w += surface.get_width()
                    height = max(height, surface.get_height())

        with self._lock:
            self.surfaces = surfaces
            self.total_w = total_w
            self.h = height
            self._text = new_text
            self.most_recent_update = time.time()
            return self.total_w, self.h

    def set_pixels(self, rgb_pixels: bytes, width: int, height: int) -> tuple[int, int]:
        """Show an RGB image, shrunk by a whole factor when wider than ``max_width``."""
        size = width * height * 3
        data = bytes(rgb_pixels)
        if width <= 0 or height <= 0 or len(data) < size:
            raise ValueError(f"{len(data)} bytes do not hold a {width}x{height} RGB image")
        image = pygame.image.frombuffer(data[:size], (width, height), "RGB").copy()
        if width > self.max_width:
            factor = width // self.max_width
            image = pygame.transform.smoothscale(
                image, (max(1, width // factor), max(1, height // factor))
            )

        with self._lock:
            self.surfaces = [image]
            self.total_w = width
            self.h = height
            self._text = ""
            self.most_recent_update = time.time()
        return width, height

    def put_static(
        self, sd: ScreenDescriptor, x: int, y: int, w: int, h: int, center_h: bool, center_v: bool
    ) -> None:
        """Draw the content as a static box at grid cell ``x``, ``y``."""
        raise TypeError(f"{type(self).__name__} cannot be drawn as a static box")

    def put_scroller(self, sd: ScreenDescriptor, x: int, y: int, put_w: int, put_h: int) -> None:
        """Draw the content as a scrolling line at grid cell ``x``, ``y``."""
        raise TypeError(f"{type(self).__name__} cannot be drawn as a scroller")


class TextBox(Container):
    """A container drawn as lines stacked top to bottom."""

    def put_static(
        self, sd: ScreenDescriptor, x: int, y: int, w: int, h: int, center_h: bool, center_v: bool
    ) -> None:
        with self._lock:
            biggest_h = max((s.get_height() for s in self.surfaces), default=0)

            put_x = x * sd.xsteps + 1
            put_y = y * sd.ysteps + 1
            put_w = w * sd.xsteps - 2
            work_h = h * sd.ysteps - 2

            for surface in self.surfaces:
                sw, sh = surface.get_size()
                cur_x = put_x + _div(put_w, 2) - _div(sw, 2) if center_h else put_x
                cur_y = put_y + _div(biggest_h, 4) if center_v else put_y
                sd.screen.blit(surface, (cur_x, cur_y))

                put_y += sh
                work_h -= sh
                if work_h <= 0:
                    break


def _stretch_blit(screen: pygame.Surface, source: pygame.Surface, dest: pygame.Rect) -> None:
    if dest.w <= 0 or dest.h <= 0:
        return
    if source.get_size() != dest.size:
        source = pygame.transform.scale(source, dest.size)
    screen.blit(source, dest.topleft)


class Scroller(Container):
    """A container whose content moves left by ``scroll_speed`` pixels every 10 ms."""

    def __init__(
        self,
        font_file: str | None,
        font_height: float,
        max_width: int,
        color: Color = (0, 0, 0),
        formatter: BaseTextFormatter | None = None,
        clear_after: int = -1,
        scroll_speed: int = 1,
        center_v: bool = False,
    ) -> None:
        super().__init__(font_file, font_height, max_width, color, formatter, clear_after)
        self.scroll_speed = scroll_speed
        self.center_v = center_v
        self.render_x = 0

    def start(self) -> None:
        super().start()
        self._spawn(self._scroll_loop, "IV:scroller")

    def _scroll_loop(self) -> None:
        while not self._stop.wait(0.01):
            self.step()

    def step(self) -> int:
        """Advance the scroll position once and return it."""
        with self._lock:
            if self.total_w > 0:
                self.render_x = (self.render_x + self.scroll_speed) % self.total_w
            return self.render_x

    def put_scroller(self, sd: ScreenDescriptor, x: int, y: int, put_w: int, put_h: int) -> None:
        with self._lock:
            surfaces = self.surfaces
            if not surfaces or not any(s.get_width() for s in surfaces):
                return

            dest_x = x * sd.xsteps + 1
            dest_y = y * sd.ysteps + 1
            dest_w = sd.xsteps * put_w
            box_h = sd.ysteps * put_h
            cur_render_x = self.render_x
            pixels_to_do = dest_w

            while True:
                for surface in surfaces:
                    sw, sh = surface.get_size()
                    if sw <= cur_render_x:
                        cur_render_x -= sw
                        continue

                    src = pygame.Rect(cur_render_x, 0, sw - cur_render_x, sh)
                    cur_render_x = 0

                    top = dest_y + _div(box_h, 2) - _div(sh, 2) if self.center_v else dest_y
                    target = pygame.Rect(dest_x, top, min(dest_w, src.w), box_h)
                    _stretch_blit(sd.screen, surface.subsurface(src), target)

                    dest_x += src.w
                    pixels_to_do -= src.w
                    if pixels_to_do <= 0:
                        break
                if pixels_to_do <= 0:
                    break