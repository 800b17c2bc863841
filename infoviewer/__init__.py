"""Full-screen information display driven by MQTT, command output, static text and MJPEG feeds."""

__version__ = "0.1.0"