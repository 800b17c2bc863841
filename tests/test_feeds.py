import threading
from types import SimpleNamespace

import pytest

from infoviewer.feeds import (
    ExecFeed,
    MqttFeed,
    StaticFeed,
    TailFeed,
    strip_carriage_returns,
)


class RecordingContainer:
    def __init__(self, stop_event, stop_after=1, dims=(0, 0)):
        self.stop_event = stop_event
        self.stop_after = stop_after
        self.dims = dims
        self.calls = []

    def set_text(self, lines):
        self.calls.append(list(lines))
        if len(self.calls) >= self.stop_after:
            self.stop_event.set()
        return self.dims


@pytest.mark.parametrize(
    "text, expected",
    [
        ("a\r\nb\r\n", "a\nb\n"),
        ("\r", ""),
        ("plain", "plain"),
        ("x\r\r\ny", "x\ny"),
    ],
)
def test_strip_carriage_returns(text, expected):
    assert strip_carriage_returns(text) == expected


def test_static_feed_delivers_split_text():
    stop = threading.Event()
    container = RecordingContainer(stop)
    StaticFeed("line one\nline two", container, stop).run()
    assert container.calls == [["line one", "line two"]]


def test_static_feed_runs_on_thread_until_stopped():
    stop = threading.Event()
    container = RecordingContainer(stop, stop_after=2)
    feed = StaticFeed("hello", container, stop)
    feed.start()
    feed.join(5)
    assert container.calls == [["hello"], ["hello"]]


def test_mqtt_on_message_sets_text():
    stop = threading.Event()
    container = RecordingContainer(stop, stop_after=10, dims=(5, 7))
    feed = MqttFeed("localhost", 1883, ["sensors/#"], container, stop)
    message = SimpleNamespace(payload=b"21.5 C", topic="sensors/temp")
    assert feed.on_message(None, None, message) == (5, 7)
    assert container.calls == [["21.5 C"]]


def test_exec_feed_shows_command_output():
    stop = threading.Event()
    container = RecordingContainer(stop)
    ExecFeed("printf 'a\\r\\nb\\n'", 10, container, stop).run()
    assert container.calls == [["a", "b", ""]]


def test_exec_feed_stops_on_empty_output():
    stop = threading.Event()
    container = RecordingContainer(stop)
    ExecFeed("true", 10, container, stop).run()
    assert container.calls == []
    assert not stop.is_set()


def test_tail_feed_delivers_each_line():
    stop = threading.Event()
    container = RecordingContainer(stop, stop_after=2)
    TailFeed("printf 'one\\ntwo\\n'", container, stop).run()
    assert container.calls[:2] == [["one"], ["two"]]