import io
import threading
from unittest import mock

import pytest
import requests
from PIL import Image

from infoviewer.mjpeg import (
    FRAME_LIMIT,
    HEADER_LIMIT,
    HeaderCollector,
    MjpegFeed,
    MjpegStreamParser,
    describe_http_status,
    read_jpeg_memory,
)
from infoviewer.strutil import InfoViewerError


def _jpeg(width=16, height=8, color=(255, 0, 0)):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, "JPEG")
    return buffer.getvalue()


class _Recorder:
    def __init__(self):
        self.frames = []

    def set_pixels(self, pixels, width, height):
        self.frames.append((width, height, len(pixels)))
        return width, height


class _FakeResponse:
    def __init__(self, status_code, headers, chunks):
        self.status_code = status_code
        self.headers = headers
        self._chunks = chunks
        self.closed = False

    def iter_content(self, chunk_size=None):
        yield from self._chunks

    def close(self):
        self.closed = True


def test_describe_http_status():
    assert describe_http_status(200) is None
    assert describe_http_status(401) == "HTTP: Not authenticated"
    assert describe_http_status(404) == "HTTP: URL not found"
    assert describe_http_status(503) == "HTTP: Server error"
    assert describe_http_status(302) == "HTTP error 302"


def test_read_jpeg_memory_decodes_rgb():
    result = read_jpeg_memory(_jpeg(16, 8))
    assert result is not None
    width, height, pixels = result
    assert (width, height) == (16, 8)
    assert len(pixels) == width * height * 3
    assert pixels[0] > 200 and pixels[1] < 60


def test_read_jpeg_memory_rejects_garbage():
    assert read_jpeg_memory(b"not a jpeg at all") is None


def test_header_collector_quoted_boundary():
    headers = HeaderCollector()
    assert headers.feed("Content-Type: multipart/x-mixed-replace; boundary=\"frame\"\r\n")
    assert headers.boundary == "frame"


def test_header_collector_plain_boundary_and_case():
    headers = HeaderCollector()
    headers.feed(b"Server: cam\r\n")
    headers.feed(b"content-type: multipart/x-mixed-replace;boundary=--myb\n")
    assert headers.boundary == "--myb"


def test_header_collector_without_content_type():
    headers = HeaderCollector()
    assert headers.feed("Server: cam\r\n")
    assert headers.boundary is None


def test_header_collector_limit():
    headers = HeaderCollector()
    assert headers.feed(b"x" * HEADER_LIMIT) is False


STREAM = (
    b"--frame\r\nContent-Type: image/jpeg\r\nContent-Length: 4\r\n\r\nABCD"
    b"\r\n--frame\r\nContent-Length: 3\r\n\r\nXYZ"
)


def test_parser_content_length_frames():
    parser = MjpegStreamParser()
    assert parser.feed(STREAM) == [b"ABCD", b"XYZ"]


def test_parser_byte_by_byte_matches_whole():
    parser = MjpegStreamParser()
    frames = []
    for byte in STREAM:
        frames.extend(parser.feed(bytes([byte])))
    assert frames == MjpegStreamParser().feed(STREAM)


def test_parser_uses_boundary_without_content_length():
    headers = HeaderCollector()
    headers.feed("Content-Type: multipart/x-mixed-replace; boundary=frame\r\n")
    parser = MjpegStreamParser(headers)
    stream = (
        b"--frame\r\nContent-Type: image/jpeg\r\n\r\nAAAA"
        b"\r\n--frame\r\nContent-Type: image/jpeg\r\n\r\nBBBB"
        b"\r\n--frame\r\n\r\n"
    )
    frames = parser.feed(stream)
    assert frames == [b"AAAA\r\n--", b"BBBB\r\n--"]


def test_parser_without_length_or_boundary_fails():
    parser = MjpegStreamParser()
    with pytest.raises(InfoViewerError):
        parser.feed(b"Content-Type: image/jpeg\r\n\r\nAAAA")


def test_parser_frame_limit():
    parser = MjpegStreamParser()
    with pytest.raises(InfoViewerError, match="frame too big"):
        parser.feed(bytes(FRAME_LIMIT))


def test_fetch_once_delivers_frames():
    jpeg = _jpeg(16, 8)
    body = b"--frame\r\nContent-Type: image/jpeg\r\nContent-Length: %d\r\n\r\n" % len(jpeg) + jpeg
    response = _FakeResponse(
        200,
        {"Content-Type": 'multipart/x-mixed-replace; boundary="frame"'},
        [body[:10], body[10:]],
    )
    recorder = _Recorder()
    feed = MjpegFeed("http://localhost/stream", recorder)
    with mock.patch("infoviewer.mjpeg.requests.get", return_value=response) as get:
        status = feed.fetch_once()
    assert status == 200
    assert recorder.frames == [(16, 8, 16 * 8 * 3)]
    assert get.call_args.args[0] == "http://localhost/stream"
    assert response.closed


def test_fetch_once_reports_status_without_frames():
    response = _FakeResponse(404, {}, [])
    recorder = _Recorder()
    feed = MjpegFeed("http://localhost/missing", recorder)
    with mock.patch("infoviewer.mjpeg.requests.get", return_value=response):
        assert feed.fetch_once() == 404
    assert recorder.frames == []


def test_fetch_once_connection_failure_returns_none():
    feed = MjpegFeed("http://localhost/stream", _Recorder())
    with mock.patch(
        "infoviewer.mjpeg.requests.get", side_effect=requests.ConnectionError("refused")
    ):
        assert feed.fetch_once() is None


def test_run_stops_when_event_set():
    stop = threading.Event()
    recorder = _Recorder()
    feed = MjpegFeed("http://localhost/stream", recorder, stop)

    def fail(*args, **kwargs):
        stop.set()
        raise requests.ConnectionError("refused")

    with mock.patch("infoviewer.mjpeg.requests.get", side_effect=fail) as get:
        result = feed.run()
    assert result is None
    assert get.call_count == 1
    assert get.call_args.args[0] == "http://localhost/stream"
    assert recorder.frames == []
    assert stop.is_set()