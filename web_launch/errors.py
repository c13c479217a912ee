"""
Error taxonomy for web-launch.

Every failure the launcher core can report derives from WebLaunchError so the
process entry point can map it to a log entry and an exit code in one place.
"""

from __future__ import annotations

from typing import Any


class WebLaunchError(RuntimeError):
    """Base class for all launcher-core failures."""


class UsageError(WebLaunchError):
    """The process was invoked with a malformed argument/flag shape."""


class ConfigurationError(WebLaunchError):
    """A configuration value (e.g. the Java directory) is invalid."""


class RegistryFrozenError(WebLaunchError):
    """A launcher registration was attempted after dispatch began."""


class ResolutionError(WebLaunchError):
    """No launcher is registered for a URL or filename."""

    def __init__(self, message: str, *, target: str, causes: tuple[BaseException, ...] = ()) -> None:
        if causes:
            message = f"{message}: ({', '.join(str(c) for c in causes)})"
        super().__init__(message)
        self.target = target
        self.causes = causes


class LaunchError(WebLaunchError):
    """A launcher operation (run, uninstall, wait) failed."""

    def __init__(self, reason: str, *, launcher: str = "", operation: str = "", details: dict[str, Any] | None = None):
        super().__init__(reason)
        self.reason = reason
        self.launcher = launcher
        self.operation = operation
        self.details = details or {}


class PlatformError(LaunchError):
    """The launcher cannot run on the current OS/architecture."""


class NativeMessagingError(WebLaunchError):
    """Reading or writing a native messaging frame failed."""


class NativeStreamClosed(NativeMessagingError):
    """The browser closed the input channel before sending a message."""


__all__ = [
    "ConfigurationError",
    "LaunchError",
    "NativeMessagingError",
    "NativeStreamClosed",
    "PlatformError",
    "RegistryFrozenError",
    "ResolutionError",
    "UsageError",
    "WebLaunchError",
]
