"""
Launcher contract and the registry that selects a launcher for a URL or file.

Concrete launchers (one per platform or application kind) live outside this
package and plug in through the `web_launch.launchers` entry-point group.
"""

from __future__ import annotations

from .base import ExecutionContext, Launcher, Options, OutputHandler
from .process import ProcessLauncher
from .registry import LauncherRegistry, Resolution, discover_launchers

__all__ = [
    "ExecutionContext",
    "Launcher",
    "LauncherRegistry",
    "Options",
    "OutputHandler",
    "ProcessLauncher",
    "Resolution",
    "discover_launchers",
]
