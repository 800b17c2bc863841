# infoviewer

A full-screen information display. The screen is divided into a grid of
columns and rows; on that grid you place boxes that show text, scrolling
text or a live MJPEG camera image. Each box gets its content from a feed:

- **mqtt** – messages published on one or more MQTT topics
- **exec** – the output of a command, run again at a fixed interval
- **tail** – each new line printed by a long-running command (restarted one
  second after it exits)
- **static** – fixed text from the configuration
- **mjpeg** – frames from an MJPEG-over-HTTP stream, reconnecting whenever
  the stream ends

Before display, text can be passed through a formatter:

- **as-is** – shown unchanged
- **text** – a format string with `$field:in:out:n,m$` and
  `$regex:sep:expression$` escapes. `field` splits the input on `in` and
  joins the numbered fields with `out`; `regex` emits every capture group of
  the first match, each preceded by `sep`
- **json** – a format string with `{jsonstr:key}`, `{jsonval:key}` and
  `{jsondval:digits:key}` placeholders filled from a JSON object; a missing
  key or a value of the wrong type shows as `?`
- **value** – a leading number in the input shown with `n-digits` decimals
  (0 for a whole number); text that does not start with a number passes
  through unchanged

## Installation

```
pip install .
```

## Running

```
infoviewer /path/to/display.cfg
```

Press `q` or close the window to quit. The program also stops on SIGTERM.
It prints the window size on start, and exits with status 1 when the
configuration cannot be read or is incomplete.

## Configuration

The configuration file holds settings written as `name = value;` (or
`name: value`), with groups in `{ }`, lists in `( )`, arrays in `[ ]`,
strings in double quotes, integers, floats and `true`/`false`. Comments
start with `#` or `//`, or are enclosed in `/* */`.

It has a `global` group and a list of `instances`:

```
global = {
    n-columns = 80;
    n-rows = 25;
    grid = false;
    full-screen = true;
    window-w = 800;
    window-h = 480;
    display-nr = 0;
};

instances = (
    {
        type = "static";
        formatter = "value";
        n-digits = 1;
        font = "/usr/share/fonts/truetype/freefont/FreeSans.ttf";
        font-height = 5.0;
        max-width = 40;
        x = 0; y = 0; w = 40; h = 6;
        fg-color = "255,255,255";
        bg-color = "0,0,64";
        b-color = "128,128,128";
        border = true;
        feed = {
            feed-type = "mqtt";
            host = "localhost";
            port = 1883;
            topics = ( { topic = "sensors/temperature"; } );
        };
    },
    {
        type = "scroller";
        formatter = "as-is";
        scroll-speed = 2;
        font = "/usr/share/fonts/truetype/freefont/FreeSans.ttf";
        font-height = 3.0;
        max-width = 80;
        x = 0; y = 22; w = 80; h = 3;
        border = true;
        feed = {
            feed-type = "exec";
            cmd = "date";
            interval = 1000;
        };
    }
);
```

Global settings (all optional): `n-columns` (80), `n-rows` (25), `grid`
(false), `full-screen` (true), `window-w` (800) and `window-h` (480) for a
windowed display, and `display-nr` (1; an unknown display falls back to 0).

Per instance:

- `type` is `static` (lines stacked top to bottom) or `scroller` (text
  moving left by `scroll-speed` pixels, default 1, every 10 ms).
- `formatter` is `as-is`, `text`, `json` or `value`; `text` and `json`
  need `format-string`, `value` needs `n-digits`.
- `font` is the path of a TrueType font.
- `font-height` and `max-width` are in grid cells; lines wider than
  `max-width` are cut into pieces.
- `x`, `y`, `w` and `h` place the box in grid cells.
- `fg-color`, `bg-color` and `b-color` are `r,g,b` triples (default
  `255,0,0`); `bg-fill` (default true) fills the box, `border` draws an
  outline.
- `center-horizontal` and `center-vertical` (default true) control
  alignment.
- `clear-after` (seconds) empties a box whose content has not been set for
  that long.
- `feed` is a group with `feed-type` and its own settings: `host`, `port`
  (1883) and `topics` for `mqtt`; `cmd` and `interval` (milliseconds, 1000)
  for `exec`; `cmd` for `tail`; `text` for `static`; `url` for `mjpeg`.

## Using the parts as a library

The formatters can be used on their own:

```python
from infoviewer.formatters import JsonFormatter, TextFormatter, ValueFormatter

ValueFormatter(2).process("3.14159")                       # "3.14"
TextFormatter("$field: :-:1,0$").process("hello world")    # "world-hello"
JsonFormatter("{jsonstr:name}").process('{"name": "kitchen"}')  # "kitchen"
```

Other pieces:

- `infoviewer.config` – `load_config` and `parse_config` read the
  configuration format into nested dicts and lists; `cfg_str`, `cfg_int`,
  `cfg_float` and `cfg_bool` look up typed settings, raising `ConfigError`
  for missing or mistyped ones; `parse_color` reads an `r,g,b` triple.
- `infoviewer.proc.exec_with_pipe` runs a command on a pseudo terminal and
  returns a `PipedProcess` whose `read` yields the output.
- `infoviewer.mjpeg.MjpegStreamParser` splits a multipart MJPEG body into
  JPEG frames; `read_jpeg_memory` decodes one to RGB bytes.
- `infoviewer.strutil.split` splits text the way configuration values are
  split.

## Limitations

- Font hinting cannot be chosen; fonts always render in pygame's default
  mode.
- MQTT subscriptions use QoS 0 and connect without credentials or TLS.
- HTTPS certificates of MJPEG streams are not verified.