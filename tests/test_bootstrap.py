from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from web_launch.bootstrap import (
    PROXY_ENV_VARS,
    ProductInfo,
    apply_proxy_policy,
    configure_logging,
    create_product_dir,
    prepare_product_dirs,
    user_config_root,
)
from web_launch.errors import ConfigurationError
from web_launch.settings import Settings


@pytest.fixture(autouse=True)
def _restore_logger():
    logger = logging.getLogger("web_launch")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


def test_user_config_root_per_platform(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.delenv("APPDATA", raising=False)
    assert user_config_root(platform_name="linux", home=tmp_path) == tmp_path / ".config"
    assert user_config_root(platform_name="darwin", home=tmp_path) == tmp_path / "Library" / "Application Support"
    assert user_config_root(platform_name="win32", home=tmp_path) == tmp_path / "AppData" / "Roaming"

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    assert user_config_root(platform_name="linux", home=tmp_path) == tmp_path / "xdg"
    assert user_config_root(platform_name="win32", home=tmp_path) == tmp_path / "appdata"


def test_prepare_product_dirs_creates_layout(tmp_path: Path) -> None:
    product = ProductInfo(name="web-launch", title="Web Launch", vendor="Acme", version="1.0")
    paths = prepare_product_dirs(product, Settings(config_dir=str(tmp_path)))

    assert paths.config_dir == tmp_path / "Acme" / "Web Launch"
    assert paths.work_dir.is_dir() and paths.work_dir.name == "cache"
    assert paths.log_dir.is_dir() and paths.log_dir.name == "log"
    assert paths.log_file == paths.log_dir / "web-launch.log"
    assert paths.log_file.is_file()


def test_prepare_product_dirs_never_truncates_log(tmp_path: Path) -> None:
    settings = Settings(config_dir=str(tmp_path))
    paths = prepare_product_dirs(ProductInfo(), settings)
    paths.log_file.write_text("earlier run\n", encoding="utf-8")

    again = prepare_product_dirs(ProductInfo(), settings)

    assert again.log_file.read_text(encoding="utf-8") == "earlier run\n"


def test_create_product_dir_rejects_files(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        create_product_dir(blocker)
    with pytest.raises(ConfigurationError):
        create_product_dir(blocker / "child")


def test_configure_logging_writes_to_file_only(tmp_path: Path) -> None:
    log_file = tmp_path / "web-launch.log"
    configure_logging(log_file)
    second = configure_logging(log_file)

    logger = logging.getLogger("web_launch")
    file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
    assert file_handlers == [second]
    assert logger.propagate is False

    logging.getLogger("web_launch.test").info("hello key=value")
    second.flush()
    assert "INFO web_launch.test hello key=value" in log_file.read_text(encoding="utf-8")


def test_proxy_policy_clears_only_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in PROXY_ENV_VARS:
        monkeypatch.setenv(name, "http://proxy.test:3128")

    apply_proxy_policy(Settings(use_proxy_env=True))
    assert all(os.environ[name] == "http://proxy.test:3128" for name in PROXY_ENV_VARS)

    apply_proxy_policy(Settings(use_proxy_env=False))
    assert all(os.environ[name] == "" for name in PROXY_ENV_VARS)


def test_banner_includes_version() -> None:
    assert ProductInfo(title="Web Launch", version="2.0").banner == "Web Launch 2.0"
    assert ProductInfo.default().version
