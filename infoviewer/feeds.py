"""Feeds that push text into a container from a fixed string, MQTT or commands."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

import paho.mqtt.client as mqtt

from infoviewer.container import Container
from infoviewer.proc import exec_with_pipe
from infoviewer.strutil import split

logger = logging.getLogger(__name__)


def strip_carriage_returns(text: str) -> str:
    """Remove every carriage return from ``text``."""
    return text.replace("\r", "")


class Feed(ABC):
    """A source of text that runs on its own thread until ``stop_event`` is set."""

    label = "feed"

    def __init__(self, container: Container, stop_event: threading.Event | None = None) -> None:
        self.container = container
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> "Feed":
        """Run the feed on a background thread."""
        name = f"IV:{self.label}"[:15]
        self._thread = threading.Thread(target=self.run, name=name, daemon=True)
        self._thread.start()
        return self

    @abstractmethod
    def run(self) -> None:
        """Deliver text to the container until stopped."""

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background thread to end."""
        if self._thread is not None:
            self._thread.join(timeout)


class StaticFeed(Feed):
    """Shows a fixed text, refreshed every half second."""

    label = "static"

    def __init__(self, text: str, container: Container, stop_event: threading.Event | None = None) -> None:
        super().__init__(container, stop_event)
        self.text = split(text, "\n")

    def run(self) -> None:
        while not self.stop_event.is_set():
            self.container.set_text(self.text)
            self.stop_event.wait(0.5)


def _new_mqtt_client() -> mqtt.Client:
    api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if api_version is not None:
        return mqtt.Client(api_version.VERSION2)
    return mqtt.Client()


class MqttFeed(Feed):
    """Shows every message published on the subscribed topics."""

    label = "mqtt"

    def __init__(
        self,
        host: str,
        port: int,
        topics: list[str],
        container: Container,
        stop_event: threading.Event | None = None,
    ) -> None:
        super().__init__(container, stop_event)
        self.host = host
        self.port = port
        self.topics = list(topics)
        self._client = _new_mqtt_client()
        self._client.on_message = self.on_message

    def on_message(self, client, userdata, message) -> tuple[int, int]:
        text = bytes(message.payload).decode("utf-8", errors="replace")
        result = self.container.set_text([text])
        logger.info("on_message: %s (%dx%d)", text, result[0], result[1])
        return result

    def _connect(self, action, failure: str) -> bool:
        try:
            action()
        except (OSError, ValueError) as exc:
            logger.warning("%s (%s)", failure, exc)
            return False
        for topic in self.topics:
            self._client.subscribe(topic, 0)
        return True

    def run(self) -> None:
        self._connect(
            lambda: self._client.connect(self.host, self.port, 30), "mqtt failed to connect"
        )
        while not self.stop_event.is_set():
            rc = self._client.loop(0.5)
            if rc != mqtt.MQTT_ERR_SUCCESS:
                logger.warning("mqtt error (%s), reconnecting", mqtt.error_string(rc))
                if self.stop_event.wait(1):
                    break
                self._connect(self._client.reconnect, "mqtt reconnect failed")
        self._client.disconnect()


class ExecFeed(Feed):
    """Runs a command every ``interval_ms`` milliseconds and shows its output."""

    label = "exec"

    def __init__(
        self,
        cmd: str,
        interval_ms: int,
        container: Container,
        stop_event: threading.Event | None = None,
    ) -> None:
        super().__init__(container, stop_event)
        self.cmd = cmd
        self.interval_ms = interval_ms

    def run(self) -> None:
        while not self.stop_event.is_set():
            with exec_with_pipe(self.cmd, ".", 80, 25, -1, True, True) as process:
                data = process.read(65535)
            if not data:
                break
            text = strip_carriage_returns(data.decode("utf-8", errors="replace"))
            self.container.set_text(split(text, "\n"))
            self.stop_event.wait(self.interval_ms / 1000)


class TailFeed(Feed):
    """Runs a command continuously and shows each line it prints."""

    label = "tail"

    def __init__(self, cmd: str, container: Container, stop_event: threading.Event | None = None) -> None:
        super().__init__(container, stop_event)
        self.cmd = cmd

    def run(self) -> None:
        with exec_with_pipe(self.cmd, ".", 80, 25, 1, True, True) as process:
            line = bytearray()
            while not self.stop_event.is_set():
                chunk = process.read(4096)
                if not chunk:
                    break
                for byte in chunk:
                    if byte == 13:
                        continue
                    if byte == 10:
                        self.container.set_text([line.decode("utf-8", errors="replace")])
                        line.clear()
                    else:
                        line.append(byte)