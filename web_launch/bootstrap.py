"""
Per-user directories, log sink and process environment for one invocation.

Layout (create-if-absent):

    <user config root>/<vendor>/<product title>/
        cache/              launcher work directory
        log/<name>.log      append-only log file
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from pathlib import Path

from .errors import ConfigurationError
from .settings import Settings

logger = logging.getLogger("web_launch.bootstrap")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
PROXY_ENV_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "NO_PROXY")


@dataclass(frozen=True, slots=True)
class ProductInfo:
    name: str = "web-launch"
    title: str = "Web Launch"
    vendor: str = "Web Launch"
    version: str = ""

    @classmethod
    def default(cls) -> ProductInfo:
        try:
            ver = package_version("web-launch")
        except PackageNotFoundError:
            ver = "0.0.0+unknown"
        return cls(version=ver)

    @property
    def banner(self) -> str:
        return f"{self.title} {self.version}"


@dataclass(frozen=True, slots=True)
class ProductPaths:
    config_dir: Path
    work_dir: Path
    log_dir: Path
    log_file: Path


def user_config_root(*, platform_name: str | None = None, home: Path | None = None) -> Path:
    platform_name = platform_name or sys.platform
    home = home or Path.home()
    if platform_name == "win32":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else home / "AppData" / "Roaming"
    if platform_name == "darwin":
        return home / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if isinstance(xdg, str) and xdg.strip():
        return Path(xdg.strip()).expanduser()
    return home / ".config"


def create_product_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"cannot create directory {path}: {exc}") from exc
    if not path.is_dir():
        raise ConfigurationError(f"{path} exists and is not a directory")
    return path


def prepare_product_dirs(product: ProductInfo, settings: Settings) -> ProductPaths:
    root = Path(settings.config_dir) if settings.config_dir else user_config_root()
    config_dir = create_product_dir(root / product.vendor / product.title)
    work_dir = create_product_dir(config_dir / "cache")
    log_dir = create_product_dir(config_dir / "log")
    log_file = log_dir / f"{product.name}.log"
    try:
        # open-or-create; never truncate
        with open(log_file, "a", encoding="utf-8"):
            pass
    except OSError as exc:
        raise ConfigurationError(f"cannot open log file {log_file}: {exc}") from exc
    return ProductPaths(config_dir=config_dir, work_dir=work_dir, log_dir=log_dir, log_file=log_file)


def configure_logging(log_file: Path, *, level: int = logging.INFO) -> logging.Handler:
    """Send `web_launch.*` records to the log file.

    Stdout is the native messaging channel, so nothing may ever log there.
    """
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("web_launch")
    for old in list(root.handlers):
        if isinstance(old, logging.FileHandler):
            root.removeHandler(old)
            old.close()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return handler


def apply_proxy_policy(settings: Settings) -> None:
    logger.info(
        "proxy_env HTTP_PROXY=%s HTTPS_PROXY=%s NO_PROXY=%s use_proxy_env=%s",
        os.environ.get("HTTP_PROXY", ""),
        os.environ.get("HTTPS_PROXY", ""),
        os.environ.get("NO_PROXY", ""),
        settings.use_proxy_env,
    )
    if settings.use_proxy_env:
        return
    for name in PROXY_ENV_VARS:
        os.environ[name] = ""


def log_startup(product: ProductInfo, argv: list[str]) -> None:
    logger.info("starting %s with arguments %s", product.banner, argv)
    logger.info("platform os=%s arch=%s python=%s", sys.platform, platform.machine(), platform.python_version())


__all__ = [
    "LOG_FORMAT",
    "ProductInfo",
    "ProductPaths",
    "apply_proxy_policy",
    "configure_logging",
    "create_product_dir",
    "log_startup",
    "prepare_product_dirs",
    "user_config_root",
]
