from __future__ import annotations

import io
import json
import struct
from pathlib import Path

import pytest

from web_launch.bootstrap import ProductInfo, ProductPaths
from web_launch.dispatcher import (
    Invocation,
    LaunchMode,
    ModeDispatcher,
    build_options,
    build_usage_text,
    classify,
    parse_invocation,
)
from web_launch.errors import ConfigurationError, ResolutionError, UsageError
from web_launch.launchers.base import Launcher, Options
from web_launch.launchers.registry import LauncherRegistry
from web_launch.settings import Settings


class _RecordingLauncher(Launcher):
    name = "recording"

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []

    def check_platform(self) -> None:
        self.calls.append(("check_platform",))

    def run_by_filename(self, filename: str) -> None:
        self.calls.append(("run_by_filename", filename))

    def run_by_url(self, url: str) -> None:
        self.calls.append(("run_by_url", url))

    def uninstall_by_filename(self, filename: str, show_gui: bool) -> None:
        self.calls.append(("uninstall_by_filename", filename, show_gui))

    def uninstall_by_url(self, url: str, show_gui: bool) -> None:
        self.calls.append(("uninstall_by_url", url, show_gui))

    def terminate(self) -> None:
        self.calls.append(("terminate",))

    def wait(self) -> int:
        return 0


def _java_home(tmp_path: Path) -> Path:
    home = tmp_path / "jdk"
    (home / "bin").mkdir(parents=True)
    (home / "bin" / "java").write_text("", encoding="utf-8")
    return home


def _dispatcher(tmp_path: Path, **kwargs) -> tuple[ModeDispatcher, _RecordingLauncher]:
    launcher = _RecordingLauncher()
    registry = LauncherRegistry()
    registry.register_extension("jnlp", launcher)
    registry.freeze()
    paths = ProductPaths(
        config_dir=tmp_path,
        work_dir=tmp_path / "cache",
        log_dir=tmp_path / "log",
        log_file=tmp_path / "log" / "web-launch.log",
    )
    dispatcher = ModeDispatcher(
        registry,
        product=ProductInfo(version="test"),
        paths=paths,
        settings=Settings(),
        **kwargs,
    )
    return dispatcher, launcher


def test_zero_positionals_select_bridge_mode() -> None:
    assert classify(Invocation()) is LaunchMode.BRIDGE
    assert classify(parse_invocation(["-showConsole"])) is LaunchMode.BRIDGE


def test_single_target_without_flags_is_direct() -> None:
    invocation = parse_invocation(["https://example.test/app.jnlp"])
    assert invocation.flag_count == 0
    assert classify(invocation) is LaunchMode.DIRECT


def test_chrome_extension_origin_always_bridges() -> None:
    assert classify(parse_invocation(["chrome-extension://abc"])) is LaunchMode.BRIDGE
    assert classify(parse_invocation(["-showConsole", "chrome-extension://abc"])) is LaunchMode.BRIDGE
    # Chrome on Windows appends --parent-window; it is a positional, not a flag.
    invocation = parse_invocation(["chrome-extension://abc/", "--parent-window=0"])
    assert invocation.positionals == ("chrome-extension://abc/", "--parent-window=0")
    assert classify(invocation) is LaunchMode.BRIDGE


def test_firefox_style_arguments_bridge() -> None:
    invocation = parse_invocation(["/path/to/org.weblaunch.host.json", "web-launch@example.test"])
    assert classify(invocation) is LaunchMode.BRIDGE


def test_uninstall_mode_with_gui() -> None:
    invocation = parse_invocation(["-uninstall", "-gui", "app.jnlp"])
    assert classify(invocation) is LaunchMode.UNINSTALL
    assert invocation.show_gui is True

    silent = parse_invocation(["-uninstall", "app.jnlp"])
    assert classify(silent) is LaunchMode.UNINSTALL
    assert silent.show_gui is False


def test_uninstall_false_is_a_configured_launch() -> None:
    invocation = parse_invocation(["-uninstall=false", "app.jnlp"])
    assert invocation.is_set("uninstall")
    assert classify(invocation) is LaunchMode.CONFIGURED


def test_flag_set_to_default_still_counts_as_set() -> None:
    invocation = parse_invocation(["-showConsole=false", "app.jnlp"])
    assert classify(invocation) is LaunchMode.CONFIGURED
    options = build_options(invocation, Settings())
    assert options.show_console is True


def test_options_reflect_only_present_flags() -> None:
    settings = Settings()
    options = build_options(parse_invocation(["-disableverification", "app.jnlp"]), settings)
    assert options == Options(disable_verification=True)
    assert settings.disable_verification is True
    assert settings.show_console is False


def test_all_flag_spellings(tmp_path: Path) -> None:
    java_home = _java_home(tmp_path)
    settings = Settings()
    invocation = parse_invocation(
        [
            "-javadir",
            str(java_home),
            "-showconsole",
            "-disableVerification",
            "-disableVerificationSameOrigin",
            "app.jnlp",
        ]
    )
    options = build_options(invocation, settings)
    assert options.java_dir == java_home.resolve()
    assert options.show_console and options.disable_verification and options.disable_verification_same_origin
    assert options.is_running_from_browser is False
    assert settings.java_dir == str(java_home.resolve())

    same = parse_invocation([f"-javaDir={java_home}", "app.jnlp"])
    assert build_options(same, Settings()).java_dir == java_home.resolve()


def test_invalid_java_dir_is_a_configuration_error(tmp_path: Path) -> None:
    invocation = parse_invocation(["-javaDir", str(tmp_path / "missing"), "app.jnlp"])
    with pytest.raises(ConfigurationError):
        build_options(invocation, Settings())


@pytest.mark.parametrize(
    "argv",
    [
        ["-bogus", "app.jnlp"],
        ["-showConsole=maybe", "app.jnlp"],
        ["-javaDir"],
    ],
)
def test_malformed_flags_are_usage_errors(argv: list[str]) -> None:
    with pytest.raises(UsageError):
        parse_invocation(argv)


def test_double_dash_ends_flags() -> None:
    invocation = parse_invocation(["--", "-odd-name.jnlp"])
    assert invocation.positionals == ("-odd-name.jnlp",)
    assert classify(invocation) is LaunchMode.DIRECT


def test_usage_text_lists_every_flag() -> None:
    text = build_usage_text(ProductInfo(title="Web Launch", version="1.2.3"), program="web-launch")
    assert text.startswith("Web Launch 1.2.3\n")
    assert "web-launch [options] <filename | URL>" in text
    for flag in ("-javaDir", "-showConsole", "-disableVerification", "-disableVerificationSameOrigin", "-uninstall"):
        assert flag in text


def test_direct_mode_runs_by_filename_with_empty_options(tmp_path: Path) -> None:
    dispatcher, launcher = _dispatcher(tmp_path)
    mode = dispatcher.dispatch(parse_invocation(["/apps/demo.jnlp"]))
    assert mode is LaunchMode.DIRECT
    assert launcher.calls == [("check_platform",), ("run_by_filename", "/apps/demo.jnlp")]
    assert launcher.context.options == Options()
    assert launcher.context.work_dir == tmp_path / "cache"
    assert launcher.context.window_title == "Web Launch"


def test_configured_mode_runs_by_url(tmp_path: Path) -> None:
    dispatcher, launcher = _dispatcher(tmp_path)
    mode = dispatcher.dispatch(parse_invocation(["-showConsole", "https://example.test/app.jnlp"]))
    assert mode is LaunchMode.CONFIGURED
    assert launcher.calls[-1] == ("run_by_url", "https://example.test/app.jnlp")
    assert launcher.context.options.show_console is True


def test_uninstall_mode_calls_uninstall(tmp_path: Path) -> None:
    dispatcher, launcher = _dispatcher(tmp_path)
    dispatcher.dispatch(parse_invocation(["-uninstall", "-gui", "https://example.test/app.jnlp"]))
    assert launcher.calls[-1] == ("uninstall_by_url", "https://example.test/app.jnlp", True)


def test_resolution_failure_propagates_outside_bridge(tmp_path: Path) -> None:
    dispatcher, launcher = _dispatcher(tmp_path)
    with pytest.raises(ResolutionError):
        dispatcher.dispatch(parse_invocation(["notes.txt"]))
    assert launcher.calls == []


def test_bridge_mode_answers_on_given_streams(tmp_path: Path) -> None:
    raw = json.dumps({"URL": "https://example.test/app.jnlp"}).encode()
    stdin = io.BytesIO(struct.pack("<I", len(raw)) + raw)
    stdout = io.BytesIO()
    dispatcher, launcher = _dispatcher(tmp_path, stdin=stdin, stdout=stdout)

    mode = dispatcher.dispatch(parse_invocation(["chrome-extension://abc/"]))

    assert mode is LaunchMode.BRIDGE
    assert json.loads(stdout.getvalue()[4:]) == {"status": "ok"}
    assert launcher.context.options.is_running_from_browser is True


def test_uninstall_from_browser_origin_still_bridges() -> None:
    invocation = parse_invocation(["-uninstall", "chrome-extension://abc"])
    assert classify(invocation) is LaunchMode.BRIDGE


def test_double_dash_spelling_of_known_flags() -> None:
    invocation = parse_invocation(["--showConsole", "--uninstall=false", "app.jnlp"])
    assert invocation.is_set("show_console")
    assert classify(invocation) is LaunchMode.CONFIGURED
    assert build_options(invocation, Settings()).show_console is True


def test_java_dir_value_may_start_with_dash(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    java_home = _java_home(tmp_path)
    odd = tmp_path / "-jdk"
    java_home.rename(odd)

    invocation = parse_invocation(["-javaDir", "-jdk", "app.jnlp"])

    assert invocation.java_dir == "-jdk"
    assert invocation.positionals == ("app.jnlp",)
    assert build_options(invocation, Settings()).java_dir == odd.resolve()
    assert parse_invocation(["--javaDir", "-jdk", "app.jnlp"]).java_dir == "-jdk"


def test_environment_settings_reach_the_launcher(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    java_home = _java_home(tmp_path)
    monkeypatch.setenv("WEB_LAUNCH_SHOW_CONSOLE", "1")
    monkeypatch.setenv("WEB_LAUNCH_DISABLE_VERIFICATION", "1")
    monkeypatch.setenv("WEB_LAUNCH_JAVA_DIR", str(java_home))
    monkeypatch.delenv("WEB_LAUNCH_DISABLE_VERIFICATION_SAME_ORIGIN", raising=False)

    launcher = _RecordingLauncher()
    registry = LauncherRegistry()
    registry.register_extension("jnlp", launcher)
    registry.freeze()
    dispatcher = ModeDispatcher(
        registry,
        product=ProductInfo(version="test"),
        paths=ProductPaths(
            config_dir=tmp_path,
            work_dir=tmp_path / "cache",
            log_dir=tmp_path / "log",
            log_file=tmp_path / "log" / "web-launch.log",
        ),
        settings=Settings.from_env(),
    )

    dispatcher.dispatch(parse_invocation(["app.jnlp"]))

    options = launcher.context.options
    assert options.show_console is True
    assert options.disable_verification is True
    assert options.disable_verification_same_origin is False
    assert options.java_dir == java_home.resolve()

    dispatcher.dispatch(parse_invocation(["-disableVerificationSameOrigin", "app.jnlp"]))
    options = launcher.context.options
    assert options.show_console and options.disable_verification and options.disable_verification_same_origin


def test_environment_settings_reach_the_bridge(tmp_path: Path) -> None:
    raw = json.dumps({"URL": "https://example.test/app.jnlp"}).encode()
    dispatcher, launcher = _dispatcher(
        tmp_path, stdin=io.BytesIO(struct.pack("<I", len(raw)) + raw), stdout=io.BytesIO()
    )
    dispatcher.settings.skip_verification()

    dispatcher.dispatch(parse_invocation(["chrome-extension://abc/"]))

    assert launcher.context.options == Options(is_running_from_browser=True, disable_verification=True)


def test_invalid_java_dir_from_environment_fails_the_launch(tmp_path: Path) -> None:
    dispatcher, launcher = _dispatcher(tmp_path)
    dispatcher.settings.java_dir = str(tmp_path / "missing")
    with pytest.raises(ConfigurationError):
        dispatcher.dispatch(parse_invocation(["app.jnlp"]))
    assert launcher.calls == []
