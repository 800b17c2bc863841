[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "infoviewer"
version = "0.1.0"
description = "Full-screen information display showing text, scrollers and MJPEG streams fed by MQTT, commands and static text"
requires-python = ">=3.10"
keywords = ["dashboard", "display", "mqtt", "mjpeg", "kiosk", "home automation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: X11 Applications",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
    "Topic :: Multimedia :: Graphics :: Viewers",
]
dependencies = [
    "pygame",
    "paho-mqtt",
    "requests",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
infoviewer = "infoviewer.app:main"

[tool.hatch.build.targets.wheel]
packages = ["infoviewer"]

[tool.pytest.ini_options]
addopts = "-ra"
