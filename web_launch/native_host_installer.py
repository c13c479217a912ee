from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os
import re
import shutil
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

HOST_NAME = "org.weblaunch.host"
HOST_DESCRIPTION = "Web Launch native messaging host."
_LOGGER = logging.getLogger("web_launch.native_host_installer")
_CHROME_EXT_ID_RE = re.compile(r"^[a-p]{32}$")


@dataclass(frozen=True, slots=True)
class InstallTarget:
    label: str
    path: Path
    firefox: bool = False


@dataclass(slots=True)
class InstallReport:
    ok: bool = False
    wrote: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    manifest_path: str | None = None


def _normalize_chrome_id(raw: str) -> str | None:
    candidate = str(raw or "").strip().lower()
    candidate = candidate.removeprefix("chrome-extension://").rstrip("/")
    if _CHROME_EXT_ID_RE.match(candidate):
        return candidate
    return None


def default_host_path() -> str | None:
    found = shutil.which("web-launch")
    return str(Path(found).resolve()) if found else None


def build_manifests(
    host_path: str,
    *,
    chrome_ids: Sequence[str] = (),
    firefox_ids: Sequence[str] = (),
) -> tuple[dict[str, object], dict[str, object]]:
    """Return (chrome manifest, firefox manifest) for the host executable."""
    base: dict[str, object] = {
        "name": HOST_NAME,
        "description": HOST_DESCRIPTION,
        "path": str(host_path),
        "type": "stdio",
    }
    chrome = {**base, "allowed_origins": [f"chrome-extension://{ext_id}/" for ext_id in chrome_ids]}
    firefox = {**base, "allowed_extensions": list(firefox_ids)}
    return chrome, firefox


def _targets_for_platform(platform: str, home: Path) -> list[InstallTarget]:
    if platform == "darwin":
        base = home / "Library" / "Application Support"
        return [
            InstallTarget("chrome", base / "Google" / "Chrome" / "NativeMessagingHosts"),
            InstallTarget("chrome-beta", base / "Google" / "Chrome Beta" / "NativeMessagingHosts"),
            InstallTarget("chrome-canary", base / "Google" / "Chrome Canary" / "NativeMessagingHosts"),
            InstallTarget("chromium", base / "Chromium" / "NativeMessagingHosts"),
            InstallTarget("brave", base / "BraveSoftware" / "Brave-Browser" / "NativeMessagingHosts"),
            InstallTarget("edge", base / "Microsoft Edge" / "NativeMessagingHosts"),
            InstallTarget("firefox", base / "Mozilla" / "NativeMessagingHosts", firefox=True),
        ]
    if platform.startswith("linux"):
        cfg = home / ".config"
        return [
            InstallTarget("chrome", cfg / "google-chrome" / "NativeMessagingHosts"),
            InstallTarget("chrome-beta", cfg / "google-chrome-beta" / "NativeMessagingHosts"),
            InstallTarget("chrome-unstable", cfg / "google-chrome-unstable" / "NativeMessagingHosts"),
            InstallTarget("chromium", cfg / "chromium" / "NativeMessagingHosts"),
            InstallTarget("brave", cfg / "BraveSoftware" / "Brave-Browser" / "NativeMessagingHosts"),
            InstallTarget("edge", cfg / "microsoft-edge" / "NativeMessagingHosts"),
            InstallTarget("firefox", home / ".mozilla" / "native-messaging-hosts", firefox=True),
        ]
    return []


def _windows_manifest_dir(home: Path) -> Path:
    local = os.environ.get("LOCALAPPDATA")
    base = Path(local) if local else (home / "AppData" / "Local")
    return base / "WebLaunch" / "NativeMessagingHosts"


def _windows_registry_targets() -> list[tuple[str, str, bool]]:
    return [
        ("chrome", r"Software\Google\Chrome\NativeMessagingHosts", False),
        ("chromium", r"Software\Chromium\NativeMessagingHosts", False),
        ("brave", r"Software\BraveSoftware\Brave-Browser\NativeMessagingHosts", False),
        ("edge", r"Software\Microsoft\Edge\NativeMessagingHosts", False),
        ("firefox", r"Software\Mozilla\NativeMessagingHosts", True),
    ]


def _write_manifest(path: Path, manifest: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    if os.name != "nt":
        with contextlib.suppress(Exception):
            path.chmod(0o644)


def _install_windows(
    report: InstallReport,
    home: Path,
    manifests: dict[bool, dict[str, object]],
) -> InstallReport:
    """Write one manifest per browser family given in `manifests` (keyed by is-firefox) and register it."""
    manifest_dir = _windows_manifest_dir(home)
    files = {
        False: manifest_dir / f"{HOST_NAME}.json",
        True: manifest_dir / f"{HOST_NAME}.firefox.json",
    }
    try:
        for is_firefox, manifest in manifests.items():
            _write_manifest(files[is_firefox], manifest)
    except OSError as exc:
        report.errors.append(f"failed to write native host manifest: {exc}")
        return report
    report.manifest_path = str(files[False] if False in manifests else files[True])

    try:
        import winreg  # type: ignore[import-not-found]
    except ImportError as exc:
        report.errors.append(f"winreg unavailable: {exc}")
        return report

    for label, reg_path, is_firefox in _windows_registry_targets():
        if is_firefox not in manifests:
            continue
        full_path = f"{reg_path}\\{HOST_NAME}"
        try:
            with winreg.CreateKey(winreg.HKEY_CURRENT_USER, full_path) as key_handle:
                winreg.SetValueEx(key_handle, "", 0, winreg.REG_SZ, str(files[is_firefox]))
            report.wrote.append(f"{label}:HKCU\\{full_path}")
        except OSError as exc:
            report.errors.append(f"{label}: registry write failed: {exc}")
    report.ok = bool(report.wrote)
    return report


def install_native_host(
    *,
    host_path: str | None = None,
    chrome_ids: Sequence[str] = (),
    firefox_ids: Sequence[str] = (),
    platform: str | None = None,
    home: Path | None = None,
) -> InstallReport:
    report = InstallReport()
    platform = platform or sys.platform
    home = home or Path.home()
    host_path = host_path or default_host_path()
    if not host_path:
        report.errors.append("web-launch executable not found on PATH (pass --host-path)")
        return report

    normalized: list[str] = []
    for raw in chrome_ids:
        ext_id = _normalize_chrome_id(raw)
        if ext_id is None:
            report.errors.append(f"invalid Chrome extension id: {raw}")
        elif ext_id not in normalized:
            normalized.append(ext_id)
    firefox_list = [s.strip() for s in firefox_ids if s.strip()]
    if not normalized and not firefox_list:
        report.errors.append("no extension ids given")
        return report

    chrome, firefox = build_manifests(host_path, chrome_ids=normalized, firefox_ids=firefox_list)
    if platform == "win32":
        manifests: dict[bool, dict[str, object]] = {}
        if normalized:
            manifests[False] = chrome
        if firefox_list:
            manifests[True] = firefox
        return _install_windows(report, home, manifests)

    targets = _targets_for_platform(platform, home)
    if not targets:
        report.errors.append(f"unsupported platform for installer: {platform}")
        return report

    out_name = f"{HOST_NAME}.json"
    for target in targets:
        if target.firefox and not firefox_list:
            continue
        if not target.firefox and not normalized:
            continue
        try:
            out_path = target.path / out_name
            _write_manifest(out_path, firefox if target.firefox else chrome)
            report.wrote.append(f"{target.label}:{out_path}")
        except OSError as exc:
            report.errors.append(f"{target.label}: failed to install: {exc}")

    report.ok = bool(report.wrote)
    report.manifest_path = host_path
    return report


def remove_native_host(*, platform: str | None = None, home: Path | None = None) -> InstallReport:
    report = InstallReport()
    platform = platform or sys.platform
    home = home or Path.home()
    if platform == "win32":
        manifest_dir = _windows_manifest_dir(home)
        for name in (f"{HOST_NAME}.json", f"{HOST_NAME}.firefox.json"):
            path = manifest_dir / name
            if path.exists():
                path.unlink()
                report.removed.append(str(path))
        with contextlib.suppress(ImportError):
            import winreg  # type: ignore[import-not-found]

            for label, reg_path, _firefox in _windows_registry_targets():
                try:
                    winreg.DeleteKey(winreg.HKEY_CURRENT_USER, f"{reg_path}\\{HOST_NAME}")
                    report.removed.append(f"{label}:HKCU\\{reg_path}\\{HOST_NAME}")
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    report.errors.append(f"{label}: registry delete failed: {exc}")
        report.ok = not report.errors
        return report

    for target in _targets_for_platform(platform, home):
        path = target.path / f"{HOST_NAME}.json"
        try:
            if path.exists():
                path.unlink()
                report.removed.append(f"{target.label}:{path}")
        except OSError as exc:
            report.errors.append(f"{target.label}: failed to remove: {exc}")
    report.ok = not report.errors
    return report


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="web-launch-install-host",
        description="Register web-launch as a native messaging host for Chrome-family browsers and Firefox.",
    )
    parser.add_argument("--extension-id", action="append", default=[], help="Chrome extension id (repeatable)")
    parser.add_argument("--firefox-id", action="append", default=[], help="Firefox add-on id (repeatable)")
    parser.add_argument("--host-path", help="path of the web-launch executable (default: found on PATH)")
    parser.add_argument("--remove", action="store_true", help="remove previously installed manifests")
    args = parser.parse_args(argv)

    if args.remove:
        report = remove_native_host()
    else:
        ids = list(args.extension_id)
        env_ids = os.environ.get("WEB_LAUNCH_EXTENSION_IDS") or ""
        ids.extend(s.strip() for s in env_ids.split(",") if s.strip())
        report = install_native_host(host_path=args.host_path, chrome_ids=ids, firefox_ids=args.firefox_id)

    for line in report.wrote:
        print(f"installed {line}")
    for line in report.removed:
        print(f"removed {line}")
    for line in report.errors:
        print(f"error: {line}", file=sys.stderr)
    if report.ok:
        _LOGGER.info("native_host_install_ok wrote=%s removed=%s", report.wrote, report.removed)
    else:
        _LOGGER.warning("native_host_install_failed errors=%s", report.errors)
    return 0 if report.ok else 1


__all__ = [
    "HOST_NAME",
    "InstallReport",
    "InstallTarget",
    "build_manifests",
    "install_native_host",
    "main",
    "remove_native_host",
]


if __name__ == "__main__":
    raise SystemExit(main())
