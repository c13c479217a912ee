from __future__ import annotations

import contextlib
import logging
import subprocess
import threading
import time
from abc import abstractmethod
from typing import IO

from ..errors import LaunchError
from .base import Launcher, OutputHandler

_LOGGER = logging.getLogger("web_launch.launchers.process")


def _drain_to_handler(handler: OutputHandler, pipe: IO[bytes], stream: str) -> None:
    try:
        handler(pipe)
    except Exception:  # noqa: BLE001
        _LOGGER.exception("output_handler_failed stream=%s", stream)
    finally:
        with contextlib.suppress(Exception):
            pipe.close()


class ProcessLauncher(Launcher):
    """Launcher that supervises one external process per run/uninstall.

    Subclasses describe *what* to spawn (`build_command`,
    `build_uninstall_command`); this class owns spawning, output forwarding and
    termination.

    Output forwarding: when `Options.stdout_handler` / `stderr_handler` is set,
    the matching stream is a pipe handed to that handler on its own daemon
    thread, so a handler that blocks never stalls `wait()`. Each pipe is closed
    by the launcher once its handler returns (normally after reading
    end-of-stream), not at process exit: output still buffered in the pipe when
    the process exits remains readable. A handler that stops reading keeps its
    pipe open until it returns. Streams without a handler are appended to the
    context's log file.
    """

    terminate_grace: float = 2.0

    def __init__(self) -> None:
        super().__init__()
        self.process: subprocess.Popen | None = None
        self._output_threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @abstractmethod
    def build_command(self, target: str, *, by_url: bool) -> list[str]:
        """Return argv for launching `target`."""

    def build_uninstall_command(self, target: str, *, by_url: bool, show_gui: bool) -> list[str]:
        raise LaunchError("uninstall is not supported", launcher=self.name, operation="uninstall")

    def run_by_filename(self, filename: str) -> None:
        self.spawn(self.build_command(filename, by_url=False), operation="run")

    def run_by_url(self, url: str) -> None:
        self.spawn(self.build_command(url, by_url=True), operation="run")

    def uninstall_by_filename(self, filename: str, show_gui: bool) -> None:
        self.spawn(self.build_uninstall_command(filename, by_url=False, show_gui=show_gui), operation="uninstall")

    def uninstall_by_url(self, url: str, show_gui: bool) -> None:
        self.spawn(self.build_uninstall_command(url, by_url=True, show_gui=show_gui), operation="uninstall")

    def is_running(self) -> bool:
        proc = self.process
        return proc is not None and proc.poll() is None

    def spawn(self, cmd: list[str], *, operation: str = "run") -> subprocess.Popen:
        context = self.context
        options = context.options
        with self._lock:
            if self.process is not None and self.process.poll() is None:
                raise LaunchError("a supervised process is already running", launcher=self.name, operation=operation)

            log_fh: IO[bytes] | None = None
            popen_kwargs: dict[str, object] = {"stdin": subprocess.DEVNULL, "cwd": str(context.work_dir)}
            if options.stdout_handler is None or options.stderr_handler is None:
                try:
                    context.log_file.parent.mkdir(parents=True, exist_ok=True)
                    log_fh = open(context.log_file, "ab", buffering=0)  # noqa: SIM115
                except OSError as exc:
                    raise LaunchError(
                        f"cannot open log file {context.log_file}: {exc}", launcher=self.name, operation=operation
                    ) from exc
            popen_kwargs["stdout"] = subprocess.PIPE if options.stdout_handler is not None else log_fh
            popen_kwargs["stderr"] = subprocess.PIPE if options.stderr_handler is not None else log_fh

            _LOGGER.info("spawn launcher=%s op=%s cmd=%s", self.name, operation, cmd)
            try:
                proc = subprocess.Popen(cmd, **popen_kwargs)  # type: ignore[arg-type]
            except OSError as exc:
                raise LaunchError(
                    f"failed to start {cmd[0] if cmd else '<empty command>'}: {exc}",
                    launcher=self.name,
                    operation=operation,
                    details={"command": cmd},
                ) from exc
            finally:
                # The child holds its own copy of the descriptor.
                if log_fh is not None:
                    log_fh.close()

            self.process = proc
            self._output_threads = []
            self._start_forwarding(proc.stdout, options.stdout_handler, "stdout")
            self._start_forwarding(proc.stderr, options.stderr_handler, "stderr")
            return proc

    def _start_forwarding(self, pipe: IO[bytes] | None, handler: OutputHandler | None, stream: str) -> None:
        if pipe is None or handler is None:
            return
        t = threading.Thread(
            target=_drain_to_handler,
            args=(handler, pipe, stream),
            name=f"web-launch-{self.name}-{stream}",
            daemon=True,
        )
        t.start()
        self._output_threads.append(t)

    def join_output(self, timeout: float | None = None) -> bool:
        """Wait for the output handlers to finish. Returns True if all of them did."""
        deadline = None if timeout is None else time.monotonic() + max(0.0, float(timeout))
        for t in list(self._output_threads):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            t.join(remaining)
        return not any(t.is_alive() for t in self._output_threads)

    def wait(self) -> int:
        proc = self.process
        if proc is None:
            raise LaunchError("no process has been started", launcher=self.name, operation="wait")
        code = proc.wait()
        _LOGGER.info("exited launcher=%s pid=%s code=%s", self.name, proc.pid, code)
        return code

    def terminate(self) -> None:
        proc = self.process
        if proc is None:
            return
        try:
            if proc.poll() is not None:
                return
        except Exception:  # noqa: BLE001
            pass

        with contextlib.suppress(Exception):
            proc.terminate()

        deadline = time.monotonic() + max(0.1, float(self.terminate_grace))
        while time.monotonic() < deadline:
            try:
                if proc.poll() is not None:
                    return
            except Exception:  # noqa: BLE001
                break
            time.sleep(0.05)

        # Escalate to kill.
        with contextlib.suppress(Exception):
            proc.kill()

