import threading

import pygame
import pytest

from infoviewer.app import (
    ContainerType,
    GlobalSettings,
    box_corners,
    build_feed,
    build_formatter,
    draw_box,
    draw_grid,
    main,
    read_global_settings,
    thread_name,
)
from infoviewer.config import ConfigError, parse_config
from infoviewer.container import ScreenDescriptor, TextBox
from infoviewer.feeds import ExecFeed, MqttFeed, StaticFeed, TailFeed
from infoviewer.formatters import JsonFormatter, TextFormatter, ValueFormatter
from infoviewer.mjpeg import MjpegFeed


@pytest.fixture
def container():
    return TextBox(None, 12, 200)


@pytest.fixture
def sd():
    surface = pygame.Surface((100, 60))
    surface.fill((0, 0, 0))
    return ScreenDescriptor(surface, 100, 60, 10, 20)


def rgb(surface, pos):
    return tuple(surface.get_at(pos))[:3]


def test_thread_name_prefix():
    assert thread_name("scroller") == "IV:scroller"


def test_thread_name_truncated():
    name = thread_name("a-very-long-thread-name")
    assert len(name) == 15
    assert name.startswith("IV:a-very")


def test_global_defaults():
    settings = read_global_settings({"global": {}})
    assert settings == GlobalSettings(80, 25, False, True, 800, 480, 1)


def test_global_overrides():
    root = parse_config('global = { n-columns = 40; grid = true; full-screen = false; window-w = 640; };')
    settings = read_global_settings(root)
    assert settings.n_columns == 40
    assert settings.grid is True
    assert settings.full_screen is False
    assert settings.window_w == 640
    assert settings.n_rows == 25


def test_global_missing():
    with pytest.raises(ConfigError):
        read_global_settings({})


def test_formatter_as_is_passes_text():
    formatter = build_formatter({"formatter": "as-is"})
    assert isinstance(formatter, TextFormatter)
    assert formatter.process("hello $x$") == "hello $x$"


def test_formatter_text_uses_format_string():
    formatter = build_formatter({"formatter": "text", "format-string": "T: $field: : :1$"})
    assert formatter.process("a b c") == "T: b"


def test_formatter_value_and_json():
    value = build_formatter({"formatter": "value", "n-digits": 2})
    assert isinstance(value, ValueFormatter)
    assert value.process("3.14159") == "3.14"
    js = build_formatter({"formatter": "json", "format-string": "{jsonstr:name}"})
    assert isinstance(js, JsonFormatter)
    assert js.process('{"name": "kitchen"}') == "kitchen"


def test_formatter_unknown_and_missing():
    with pytest.raises(ConfigError):
        build_formatter({"formatter": "xml"})
    with pytest.raises(ConfigError):
        build_formatter({})
    with pytest.raises(ConfigError):
        build_formatter({"formatter": "text"})


def test_build_static_feed(container):
    stop = threading.Event()
    feed = build_feed({"feed-type": "static", "text": "one\ntwo"}, container, stop)
    assert isinstance(feed, StaticFeed)
    assert feed.text == ["one", "two"]
    assert feed.stop_event is stop


def test_build_exec_feed_default_interval(container):
    feed = build_feed({"feed-type": "exec", "cmd": "date"}, container)
    assert isinstance(feed, ExecFeed)
    assert feed.interval_ms == 1000
    assert feed.cmd == "date"


def test_build_tail_and_mjpeg(container):
    tail = build_feed({"feed-type": "tail", "cmd": "cat log"}, container)
    assert isinstance(tail, TailFeed)
    assert tail.cmd == "cat log"
    mjpeg = build_feed({"feed-type": "mjpeg", "url": "http://localhost/stream"}, container)
    assert isinstance(mjpeg, MjpegFeed)
    assert mjpeg.url == "http://localhost/stream"


def test_build_mqtt_feed(container):
    cfg = {"feed-type": "mqtt", "host": "localhost", "topics": [{"topic": "a/b"}, {"topic": "c"}]}
    feed = build_feed(cfg, container)
    assert isinstance(feed, MqttFeed)
    assert feed.port == 1883
    assert feed.topics == ["a/b", "c"]


def test_build_feed_errors(container):
    with pytest.raises(ConfigError):
        build_feed({"feed-type": "carrier-pigeon"}, container)
    with pytest.raises(ConfigError):
        build_feed({}, container)
    with pytest.raises(ConfigError):
        build_feed({"feed-type": "mqtt", "host": "localhost"}, container)


def test_box_corners_span(sd):
    x1, y1, x2, y2 = box_corners(sd, 1, 1, 3, 2)
    assert (x1, y1) == (sd.xsteps, sd.ysteps)
    assert x2 - x1 + 1 == sd.xsteps * 3
    assert y2 - y1 + 1 == sd.ysteps * 2


def test_draw_box_fills(sd):
    draw_box(sd, 1, 0, 2, 1, False, (0, 0, 200), (255, 255, 255))
    x1, y1, x2, y2 = box_corners(sd, 1, 0, 2, 1)
    assert rgb(sd.screen, (x1, y1)) == (0, 0, 200)
    assert rgb(sd.screen, (x2, y2)) == (0, 0, 200)
    assert rgb(sd.screen, (x2 + 1, y1)) == (0, 0, 0)


def test_draw_box_border(sd):
    draw_box(sd, 0, 0, 3, 2, True, (0, 0, 0), (255, 255, 255))
    x1, y1, x2, y2 = box_corners(sd, 0, 0, 3, 2)
    corner = rgb(sd.screen, (x1, y1))
    assert corner[0] > 0
    assert rgb(sd.screen, ((x1 + x2) // 2, (y1 + y2) // 2)) == (0, 0, 0)


def test_draw_grid(sd):
    draw_grid(sd, 10, 3)
    assert rgb(sd.screen, (5, sd.ysteps)) == (255, 255, 255)
    assert rgb(sd.screen, (sd.xsteps, 5)) == (255, 255, 255)
    assert rgb(sd.screen, (sd.xsteps // 2, sd.ysteps // 2)) == (0, 0, 0)


def test_container_type_values():
    assert ContainerType("static") is ContainerType.STATIC
    assert ContainerType("scroller") is ContainerType.SCROLLER


def test_main_without_argument():
    assert main([]) == 1


def test_main_missing_file(tmp_path):
    assert main([str(tmp_path / "absent.cfg")]) == 1


def test_main_without_global_group(tmp_path):
    path = tmp_path / "viewer.cfg"
    path.write_text("instances = ();\n")
    assert main([str(path)]) == 1