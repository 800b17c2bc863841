"""Running commands on a pseudo terminal and reading their output."""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import struct
import subprocess
import termios
import threading

from infoviewer.strutil import InfoViewerError, split

logger = logging.getLogger(__name__)


def write_all(fd: int, data: bytes) -> int:
    """Write all of ``data`` to ``fd``, looping over partial writes; return the byte count."""
    view = memoryview(data)
    written = 0
    while view:
        n = os.write(fd, view)
        view = view[n:]
        written += n
    return written


class PipedProcess:
    """A command running on a pseudo terminal, restarted as configured.

    ``fd`` is the terminal's master side; reading it yields the command's output.
    """

    def __init__(
        self,
        master_fd: int,
        slave_fd: int,
        command: str,
        args: list[str],
        directory: str | None,
        env: dict[str, str],
        restart_interval: int,
        stderr_to_stdout: bool,
    ) -> None:
        self.fd = master_fd
        self.command = command
        self._slave_fd = slave_fd
        self._args = args
        self._directory = directory
        self._env = env
        self._restart_interval = restart_interval
        self._stderr_to_stdout = stderr_to_stdout
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._child: subprocess.Popen | None = None
        self._closed = False
        self._thread = threading.Thread(target=self._supervise, name="IV:proc", daemon=True)

    @property
    def pid(self) -> int | None:
        """The pid of the currently running command, if any."""
        with self._lock:
            return self._child.pid if self._child is not None else None

    def _start(self) -> None:
        self._thread.start()

    def _run_once(self) -> None:
        with self._lock:
            if self._stopping.is_set():
                return
            try:
                child = subprocess.Popen(
                    self._args,
                    stdin=self._slave_fd,
                    stdout=self._slave_fd,
                    stderr=self._slave_fd if self._stderr_to_stdout else subprocess.DEVNULL,
                    cwd=self._directory,
                    env=self._env,
                    start_new_session=True,
                )
            except OSError as exc:
                reason = exc.strerror or str(exc)
                message = f'CANNOT INVOKE "{self.command}"! ({reason})'
                try:
                    write_all(self._slave_fd, message.encode())
                except OSError:
                    pass
                logger.warning("Failed to invoke %s: %s", self.command, reason)
                return
            self._child = child

        child.wait()
        with self._lock:
            self._child = None

    def _supervise(self) -> None:
        try:
            while not self._stopping.is_set():
                self._run_once()
                if self._restart_interval < 0:
                    break
                if self._restart_interval > 0 and self._stopping.wait(self._restart_interval):
                    break
        finally:
            os.close(self._slave_fd)

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes of output; ``b""`` once the command is gone."""
        if self._closed:
            raise ValueError("read from a closed process pipe")
        try:
            return os.read(self.fd, size)
        except OSError as exc:
            if exc.errno == errno.EIO:
                return b""
            raise

    def close(self) -> None:
        """Stop restarting, terminate the command and release the terminal."""
        if self._closed:
            return
        self._stopping.set()
        with self._lock:
            child = self._child
        if child is not None and child.poll() is None:
            child.terminate()
        if self._thread.is_alive():
            self._thread.join(5.0)
            if self._thread.is_alive() and child is not None:
                child.kill()
                self._thread.join(5.0)
        self._closed = True
        os.close(self.fd)

    def __enter__(self) -> "PipedProcess":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def exec_with_pipe(
    command: str,
    directory: str = ".",
    width: int = 80,
    height: int = 25,
    restart_interval: int = -1,
    stderr_to_stdout: bool = True,
    in_shell: bool = True,
) -> PipedProcess:
    """Start ``command`` on a ``width`` x ``height`` pseudo terminal.

    With a negative ``restart_interval`` the command runs once; otherwise it is
    started again that many seconds after each exit.
    """
    if directory and not os.path.isdir(directory):
        raise InfoViewerError(
            f"exec_with_pipe: chdir to {directory} for {command} failed", errno.ENOENT
        )

    if in_shell:
        args = ["/bin/sh", "-c", command]
    else:
        args = split(command, " ")
        if not args:
            raise InfoViewerError("exec_with_pipe: empty command")

    env = dict(os.environ, COLUMNS=str(width), LINES=str(height), TERM="ansi")

    try:
        master_fd, slave_fd = os.openpty()
    except OSError as exc:
        raise InfoViewerError("exec_with_pipe: openpty failed", exc.errno) from exc

    fcntl.ioctl(slave_fd, termios.TIOCSWINSZ, struct.pack("HHHH", height, width, 0, 0))

    process = PipedProcess(
        master_fd,
        slave_fd,
        command,
        args,
        directory or None,
        env,
        restart_interval,
        stderr_to_stdout,
    )
    process._start()
    return process