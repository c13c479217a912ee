"""
One-shot browser bridge (Bridge Mode).

The browser extension starts this process through native messaging, sends a
single request and waits for a single response:

- `{"status": "..."}`  installation probe, answered with `{"status": "installed"}`
- `{"URL": "..."}`     launch request, answered with `{"status": "ok"}` or
                       `{"status": "<error text>"}`

Launch failures are reported in the payload, never through the exit code, so
the extension always gets exactly one answer.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Any

from .errors import NativeStreamClosed, WebLaunchError
from .launchers.base import Options
from .launchers.registry import LauncherRegistry
from .native_messaging import NativeRequest, read_native_message, write_native_message

logger = logging.getLogger("web_launch.bridge")

STATUS_OK = "ok"
STATUS_INSTALLED = "installed"


class NativeMessagingBridge:
    def __init__(
        self,
        registry: LauncherRegistry,
        *,
        work_dir: Path,
        log_file: Path,
        window_title: str,
        options: Options | None = None,
        stdin: IO[bytes] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> None:
        self.registry = registry
        self.work_dir = work_dir
        self.log_file = log_file
        self.window_title = window_title
        self.options = options or Options(is_running_from_browser=True)
        self._stdin = stdin
        self._stdout = stdout

    def run(self) -> dict[str, Any] | None:
        """Read one request, answer it, return the response (None if the browser hung up).

        Read failures other than a clean end-of-input, and any write failure,
        propagate as NativeMessagingError: they are fatal for the process.
        """
        try:
            payload = read_native_message(self._stdin)
        except NativeStreamClosed:
            logger.info("exit because stdin has been closed")
            return None
        request = NativeRequest.from_payload(payload)
        response = self.handle(request)
        write_native_message(response, self._stdout)
        return response

    def handle(self, request: NativeRequest) -> dict[str, Any]:
        if request.status:
            logger.info("probe status=%s", request.status)
            return {"status": STATUS_INSTALLED}

        try:
            launcher = self.registry.find_for_url(request.url)
            launcher.configure(
                work_dir=self.work_dir,
                log_file=self.log_file,
                window_title=self.window_title,
                options=self.options,
            )
            launcher.check_platform()
            launcher.run_by_url(request.url)
        except WebLaunchError as exc:
            response = {"status": str(exc)}
            logger.error("launch_failed url=%s response=%s", request.url, response)
            return response
        except Exception as exc:  # noqa: BLE001
            # A misbehaving launcher still owes the extension its one answer.
            response = {"status": str(exc) or type(exc).__name__}
            logger.exception("launch_crashed url=%s response=%s", request.url, response)
            return response
        logger.info("launched url=%s launcher=%s", request.url, launcher.name)
        return {"status": STATUS_OK}


__all__ = ["NativeMessagingBridge", "STATUS_INSTALLED", "STATUS_OK"]
