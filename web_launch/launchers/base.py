from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from ..errors import LaunchError

# Invoked with the read end of a pipe carrying the launched process's stdout or
# stderr. Each handler runs on its own thread, so it may block as long as it likes.
OutputHandler = Callable[[IO[bytes]], None]


@dataclass(frozen=True, slots=True)
class Options:
    """Launch overrides collected from the command line (or the browser bridge)."""

    is_running_from_browser: bool = False
    java_dir: Path | None = None
    show_console: bool = False
    disable_verification: bool = False
    disable_verification_same_origin: bool = False
    # If set, receives stdout of the launched process.
    stdout_handler: OutputHandler | None = None
    # If set, receives stderr of the launched process.
    stderr_handler: OutputHandler | None = None


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    work_dir: Path
    log_file: Path
    window_title: str
    options: Options = Options()


class Launcher(ABC):
    """Runs, supervises and uninstalls one kind of application.

    Concrete launchers register themselves for URL schemes and/or file
    extensions in a LauncherRegistry; they are only ever selected through it.
    """

    name: str = "launcher"

    def __init__(self) -> None:
        self._context: ExecutionContext | None = None

    @property
    def context(self) -> ExecutionContext:
        if self._context is None:
            raise LaunchError("launcher is not configured", launcher=self.name, operation="configure")
        return self._context

    @property
    def options(self) -> Options:
        return self.context.options

    def configure(
        self,
        *,
        work_dir: Path,
        log_file: Path,
        window_title: str,
        options: Options | None = None,
    ) -> ExecutionContext:
        """Set the per-invocation context. Must happen before run/uninstall."""
        if self.is_running():
            raise LaunchError(
                "cannot reconfigure while the supervised process is running",
                launcher=self.name,
                operation="configure",
            )
        self._context = ExecutionContext(
            work_dir=Path(work_dir),
            log_file=Path(log_file),
            window_title=str(window_title),
            options=options or Options(),
        )
        return self._context

    def is_running(self) -> bool:
        return False

    @abstractmethod
    def check_platform(self) -> None:
        """Raise PlatformError if this launcher cannot run on the current OS/arch."""

    @abstractmethod
    def run_by_filename(self, filename: str) -> None:
        """Launch the application described by a local file."""

    @abstractmethod
    def run_by_url(self, url: str) -> None:
        """Launch the application described by a URL."""

    @abstractmethod
    def uninstall_by_filename(self, filename: str, show_gui: bool) -> None:
        """Remove a previously installed application (optionally asking the user first)."""

    @abstractmethod
    def uninstall_by_url(self, url: str, show_gui: bool) -> None:
        """Remove a previously installed application (optionally asking the user first)."""

    @abstractmethod
    def terminate(self) -> None:
        """Best-effort immediate stop. Safe after exit and concurrently with wait()."""

    @abstractmethod
    def wait(self) -> int:
        """Block until the supervised process exits and return its exit status."""
