"""Reading Motion-JPEG streams over HTTP and showing their frames in a container."""

from __future__ import annotations

import io
import logging
import re
import threading
import warnings

import requests
from PIL import Image

from infoviewer.container import Container
from infoviewer.feeds import Feed
from infoviewer.strutil import InfoViewerError

logger = logging.getLogger(__name__)

HEADER_LIMIT = 512 * 1024
FRAME_LIMIT = 32 * 1024 * 1024
USER_AGENT = "InfoViewer"

_TIMEOUT = 5000
# Give up on a connection that stays silent for this many seconds.
_LOW_SPEED_TIME = 60 + _TIMEOUT * 2
_RECONNECT_DELAY = 0.101

_ATOI = re.compile(rb"\s*([+-]?\d+)")


def _atoi(data: bytes) -> int:
    match = _ATOI.match(data)
    return int(match.group(1)) if match else 0


def read_jpeg_memory(data: bytes) -> tuple[int, int, bytes] | None:
    """Decode a JPEG image to ``(width, height, rgb_bytes)``; ``None`` when it cannot be decoded."""
    try:
        with Image.open(io.BytesIO(data), formats=["JPEG"]) as image:
            rgb = image.convert("RGB")
            return rgb.width, rgb.height, rgb.tobytes()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError):
        return None


def describe_http_status(code: int) -> str | None:
    """Return a complaint about an HTTP status code, or ``None`` for 200."""
    if code == 200:
        return None
    if code == 401:
        return "HTTP: Not authenticated"
    if code == 404:
        return "HTTP: URL not found"
    if 500 <= code <= 599:
        return "HTTP: Server error"
    return f"HTTP error {code}"


class HeaderCollector:
    """Accumulates response header lines and picks the multipart boundary out of Content-Type."""

    def __init__(self) -> None:
        self.data = bytearray()
        self.boundary: str | None = None

    def feed(self, line: bytes | str) -> bool:
        """Add a header line; return ``False`` once the headers grow too large."""
        if isinstance(line, str):
            line = line.encode("latin-1", errors="replace")
        self.data += line

        if len(self.data) >= HEADER_LIMIT:
            logger.warning("headers too large")
            return False

        start = bytes(self.data).lower().find(b"content-type:")
        if start == -1:
            return True

        end = self.data.find(b"\r\n", start)
        if end == -1:
            end = self.data.find(b"\n", start)
        if end == -1:
            return True

        value = bytes(self.data[start:end])
        eq = value.find(b"=")
        if eq != -1:
            boundary = value[eq + 1:]
            if boundary.startswith(b'"'):
                boundary = boundary[1:]
            boundary = boundary.split(b'"', 1)[0]
            self.boundary = boundary.decode("latin-1")
        return True


class MjpegStreamParser:
    """Splits a multipart MJPEG body into frames.

    Parts are delimited by their Content-Length header, or, for cameras that
    leave it out, by the boundary taken from the response headers.
    """

    def __init__(self, headers: HeaderCollector | None = None) -> None:
        self.headers = headers if headers is not None else HeaderCollector()
        self._data = bytearray()
        self._in_header = True
        self._req_len = 0

    @property
    def _boundary(self) -> bytes | None:
        boundary = self.headers.boundary
        return boundary.encode("latin-1") if boundary else None

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add body bytes and return every frame that is now complete."""
        self._data += chunk
        if len(self._data) >= FRAME_LIMIT:
            raise InfoViewerError("frame too big")

        frames: list[bytes] = []
        while self._step(frames):
            pass
        return frames

    def _step(self, frames: list[bytes]) -> bool:
        data = self._data
        boundary = self._boundary

        if self._in_header:
            end, sep_len = data.find(b"\r\n\r\n"), 4
            if end == -1:
                end, sep_len = data.find(b"\n\n"), 2
                if end == -1:
                    return False

            header = bytes(data[:end])
            pos = header.lower().find(b"content-length:")
            if pos == -1 and boundary is None:
                raise InfoViewerError("part without Content-Length and no boundary known")

            self._req_len = max(0, _atoi(header[pos + 15:])) if pos != -1 else 0
            self._in_header = False
            del data[:end + sep_len]
            return True

        if self._req_len and len(data) >= self._req_len:
            frames.append(bytes(data[:self._req_len]))
            del data[:self._req_len]
            self._req_len = 0
            self._in_header = True
            return True

        if boundary is not None and self._req_len == 0:
            length = len(boundary)
            i = data.find(boundary, 1)
            while i != -1 and i + length < len(data):
                if data.find(b"\r\n\r\n", i) != -1:
                    self._req_len = i
                    return True
                i = data.find(boundary, i + 1)

        return False


class MjpegFeed(Feed):
    """Shows the frames of an MJPEG stream, reconnecting whenever it ends."""

    label = "mjpeg"

    def __init__(self, url: str, container: Container, stop_event: threading.Event | None = None) -> None:
        super().__init__(container, stop_event)
        self.url = url

    def run(self) -> None:
        while not self.stop_event.is_set():
            self.fetch_once()
            if self.stop_event.wait(_RECONNECT_DELAY):
                break

    def fetch_once(self) -> int | None:
        """Read the stream until it ends; return the HTTP status, or ``None`` without a response."""
        try:
            with warnings.catch_warnings():
                # Certificates are deliberately not checked for camera streams.
                warnings.filterwarnings("ignore", message="Unverified HTTPS request")
                response = requests.get(
                    self.url,
                    headers={"User-Agent": USER_AGENT},
                    stream=True,
                    verify=False,
                    timeout=_LOW_SPEED_TIME,
                )
        except requests.RequestException as exc:
            logger.warning("%s: %s", self.url, exc)
            return None

        try:
            status = response.status_code
            self._consume(response)
        except (InfoViewerError, requests.RequestException) as exc:
            logger.warning("%s: %s", self.url, exc)
        finally:
            response.close()

        message = describe_http_status(status)
        if message:
            logger.warning("%s", message)
        return status

    def _consume(self, response) -> None:
        headers = HeaderCollector()
        for name, value in response.headers.items():
            if not headers.feed(f"{name}: {value}\r\n"):
                return

        parser = MjpegStreamParser(headers)
        first = True
        for chunk in response.iter_content(chunk_size=None):
            if self.stop_event.is_set():
                return
            if not chunk:
                continue
            for frame in parser.feed(chunk):
                decoded = read_jpeg_memory(frame)
                if decoded is None:
                    continue
                width, height, pixels = decoded
                self.container.set_pixels(pixels, width, height)
                if first:
                    first = False
                    logger.info("%dx%d", width, height)