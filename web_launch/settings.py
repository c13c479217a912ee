from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError
from .launchers.base import Options

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def java_executable(java_dir: Path) -> Path | None:
    for name in ("java", "java.exe", "javaw.exe"):
        candidate = java_dir / "bin" / name
        if candidate.is_file():
            return candidate
    return None


@dataclass
class Settings:
    """Process-wide launch settings: environment defaults plus CLI overrides."""

    java_dir: str | None = None
    show_console: bool = False
    disable_verification: bool = False
    disable_verification_same_origin: bool = False
    use_proxy_env: bool = True
    config_dir: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        java_dir = os.environ.get("WEB_LAUNCH_JAVA_DIR") or None
        config_dir = os.environ.get("WEB_LAUNCH_CONFIG_DIR") or None
        return cls(
            java_dir=expand_path(java_dir) if java_dir else None,
            show_console=env_flag("WEB_LAUNCH_SHOW_CONSOLE"),
            disable_verification=env_flag("WEB_LAUNCH_DISABLE_VERIFICATION"),
            disable_verification_same_origin=env_flag("WEB_LAUNCH_DISABLE_VERIFICATION_SAME_ORIGIN"),
            use_proxy_env=env_flag("WEB_LAUNCH_USE_PROXY_ENV", default=True),
            config_dir=expand_path(config_dir) if config_dir else None,
        )

    def use_java_dir(self, raw: str) -> Path:
        """Validate a Java home override and remember it. Returns the resolved directory."""
        text = str(raw or "").strip()
        if not text:
            raise ConfigurationError("Java directory must not be empty")
        java_dir = Path(expand_path(text))
        if not java_dir.is_dir():
            raise ConfigurationError(f"Java directory {java_dir} does not exist")
        if java_executable(java_dir) is None:
            raise ConfigurationError(f"Java directory {java_dir} does not contain bin/java")
        resolved = java_dir.resolve()
        self.java_dir = str(resolved)
        return resolved

    def request_console(self) -> None:
        self.show_console = True

    def skip_verification(self) -> None:
        self.disable_verification = True

    def skip_same_origin_verification(self) -> None:
        self.disable_verification_same_origin = True

    def options(self, *, is_running_from_browser: bool = False) -> Options:
        """Snapshot the current settings as launch Options.

        A Java directory taken from the environment is validated here, so a bad
        `WEB_LAUNCH_JAVA_DIR` fails the launch with ConfigurationError.
        """
        java_dir = self.use_java_dir(self.java_dir) if self.java_dir else None
        return Options(
            is_running_from_browser=is_running_from_browser,
            java_dir=java_dir,
            show_console=self.show_console,
            disable_verification=self.disable_verification,
            disable_verification_same_origin=self.disable_verification_same_origin,
        )
