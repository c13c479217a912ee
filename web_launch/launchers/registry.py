from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from urllib.parse import urlsplit

from ..errors import RegistryFrozenError, ResolutionError
from .base import Launcher

logger = logging.getLogger("web_launch.registry")

_EXTENSION_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True, slots=True)
class Resolution:
    launcher: Launcher
    by_url: bool  # False when resolved through the file extension of a path


class LauncherRegistry:
    """Maps URL schemes and file extensions to launchers.

    Populated once at startup (see `discover_launchers`), then frozen and only
    read. When several registered extensions are suffixes of the same input,
    the longest extension wins, so `tar.gz` beats `gz`.
    """

    def __init__(self) -> None:
        self._protocols: dict[str, Launcher] = {}
        self._extensions: dict[str, Launcher] = {}
        self._frozen = False

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("launcher registry is frozen; register launchers during startup")

    def register_protocol(self, scheme: str, launcher: Launcher) -> None:
        self._check_mutable()
        key = str(scheme or "").strip().lower().rstrip(":")
        if not key:
            raise ValueError("scheme must not be empty")
        self._protocols[key] = launcher

    def register_extension(self, ext: str, launcher: Launcher) -> None:
        self._check_mutable()
        key = str(ext or "").strip().lower().lstrip(".")
        if not key:
            raise ValueError("extension must not be empty")
        self._extensions[key] = launcher

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def protocols(self) -> list[str]:
        return sorted(self._protocols.keys())

    def extensions(self) -> list[str]:
        return sorted(self._extensions.keys())

    def _match_extension(self, text: str) -> Launcher | None:
        lowered = text.lower()
        best: str | None = None
        for ext in self._extensions:
            if lowered.endswith("." + ext) and (best is None or len(ext) > len(best)):
                best = ext
        return self._extensions[best] if best is not None else None

    def find_for_url(self, raw_url: str) -> Launcher:
        try:
            parts = urlsplit(raw_url)
        except ValueError as exc:
            raise ResolutionError(f"cannot parse URL {raw_url}: {exc}", target=raw_url) from exc
        scheme = parts.scheme.lower()
        # A one-letter "scheme" is a Windows drive letter (C:\apps\demo.jnlp).
        if not scheme or len(scheme) == 1:
            raise ResolutionError(f"URL {raw_url} is not absolute", target=raw_url)

        launcher = self._protocols.get(scheme)
        if launcher is not None:
            return launcher
        if scheme in _EXTENSION_SCHEMES:
            launcher = self._match_extension(raw_url)
            if launcher is not None:
                return launcher
        raise ResolutionError(f"unable to find launcher for URL {raw_url}", target=raw_url)

    def find_for_path(self, path: str) -> Launcher:
        launcher = self._match_extension(str(path))
        if launcher is None:
            raise ResolutionError(f"unable to find launcher for path {path}", target=str(path))
        return launcher

    def resolve(self, filename_or_url: str) -> Resolution:
        """Resolve URL-first, falling back to the file extension."""
        target = str(filename_or_url or "")
        try:
            return Resolution(launcher=self.find_for_url(target), by_url=True)
        except ResolutionError as url_error:
            try:
                return Resolution(launcher=self.find_for_path(target), by_url=False)
            except ResolutionError as ext_error:
                raise ResolutionError(
                    f"unable to handle filename or URL {target}",
                    target=target,
                    causes=(url_error, ext_error),
                ) from ext_error


LauncherPlugin = Callable[[LauncherRegistry], None]

ENTRY_POINT_GROUP = "web_launch.launchers"


def _entry_point_plugins() -> Iterable[tuple[str, LauncherPlugin]]:
    from importlib.metadata import entry_points

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            yield ep.name, ep.load()
        except Exception as exc:  # noqa: BLE001
            logger.warning("launcher_plugin_load_failed name=%s error=%s", ep.name, exc)


def discover_launchers(
    registry: LauncherRegistry | None = None,
    *,
    plugins: Iterable[tuple[str, LauncherPlugin]] | None = None,
) -> LauncherRegistry:
    """Let every launcher plugin register itself, then freeze the registry.

    Plugins default to the `web_launch.launchers` entry-point group; each one is
    a callable that receives the registry and calls `register_protocol` /
    `register_extension`.
    """
    registry = registry or LauncherRegistry()
    for name, plugin in plugins if plugins is not None else _entry_point_plugins():
        try:
            plugin(registry)
        except RegistryFrozenError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("launcher_plugin_register_failed name=%s error=%s", name, exc)
    registry.freeze()
    logger.info("launchers_registered protocols=%s extensions=%s", registry.protocols(), registry.extensions())
    return registry


__all__ = [
    "ENTRY_POINT_GROUP",
    "LauncherPlugin",
    "LauncherRegistry",
    "Resolution",
    "discover_launchers",
]
