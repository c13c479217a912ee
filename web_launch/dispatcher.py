"""
Invocation-mode dispatch.

A process is started either by a user/desktop integration with a target file or
URL, or by the browser as a native messaging host. The shape of the command line
decides which, and therefore what the process does:

    DIRECT      one target, no flags           -> run with the environment settings
    UNINSTALL   one target, -uninstall         -> uninstall (optionally with -gui)
    CONFIGURED  one target, other flags        -> run with the settings plus the flags
    BRIDGE      anything else                  -> answer one native message

Flags follow the single-dash (two dashes accepted), stop-at-first-positional
convention, so browser supplied trailing arguments (e.g. `--parent-window=0`) are positionals.
"""

from __future__ import annotations

import argparse
import enum
import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import IO, Any

from .bootstrap import ProductInfo, ProductPaths
from .errors import UsageError
from .launchers.base import Launcher, Options
from .launchers.registry import LauncherRegistry
from .native_bridge import NativeMessagingBridge
from .native_messaging import set_binary_stdio
from .settings import Settings

logger = logging.getLogger("web_launch.dispatcher")

HELP_TOKENS = ("-help", "--help", "/help", "-?", "/?")
CHROME_EXTENSION_PREFIX = "chrome-extension://"

JAVA_DIR = "java_dir"
SHOW_CONSOLE = "show_console"
DISABLE_VERIFICATION = "disable_verification"
DISABLE_VERIFICATION_SAME_ORIGIN = "disable_verification_same_origin"
UNINSTALL = "uninstall"
GUI = "gui"

_VALUE_FLAGS: dict[str, str] = {"-javaDir": JAVA_DIR, "-javadir": JAVA_DIR}
_BOOL_FLAGS: dict[str, str] = {
    "-showConsole": SHOW_CONSOLE,
    "-showconsole": SHOW_CONSOLE,
    "-disableVerification": DISABLE_VERIFICATION,
    "-disableverification": DISABLE_VERIFICATION,
    "-disableVerificationSameOrigin": DISABLE_VERIFICATION_SAME_ORIGIN,
    "-disableverificationsameorigin": DISABLE_VERIFICATION_SAME_ORIGIN,
    "-uninstall": UNINSTALL,
    "-gui": GUI,
}
_KNOWN_FLAGS = frozenset(_VALUE_FLAGS) | frozenset(_BOOL_FLAGS)
_TRUE_LITERALS = {"1", "t", "T", "true", "TRUE", "True"}
_FALSE_LITERALS = {"0", "f", "F", "false", "FALSE", "False"}


class LaunchMode(enum.Enum):
    DIRECT = "direct"
    CONFIGURED = "configured"
    UNINSTALL = "uninstall"
    BRIDGE = "bridge"


@dataclass(frozen=True, slots=True)
class Invocation:
    positionals: tuple[str, ...] = ()
    # Flags given on the command line, whatever their value.
    present: frozenset[str] = frozenset()
    java_dir: str | None = None
    switches: dict[str, bool] = field(default_factory=dict)

    @property
    def flag_count(self) -> int:
        return len(self.present)

    @property
    def target(self) -> str:
        return self.positionals[0] if self.positionals else ""

    @property
    def uninstall(self) -> bool:
        return self.switches.get(UNINSTALL, False)

    @property
    def show_gui(self) -> bool:
        return self.switches.get(GUI, False)

    def is_set(self, name: str) -> bool:
        return name in self.present


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> Any:  # type: ignore[override]
        raise UsageError(message)


class _FlagPresent(argparse.Action):
    """Record that a flag was given; store True (bool) or its value."""

    def __call__(self, parser, namespace, values, option_string=None) -> None:  # noqa: ANN001
        namespace.present.add(self.dest)
        setattr(namespace, self.dest, True if self.nargs == 0 else values)


def _build_parser() -> _ArgumentParser:
    parser = _ArgumentParser(prog="web-launch", add_help=False, allow_abbrev=False)
    parser.add_argument("-javaDir", "-javadir", dest=JAVA_DIR, action=_FlagPresent, default=None)
    for dest in dict.fromkeys(_BOOL_FLAGS.values()):
        aliases = [option for option, d in _BOOL_FLAGS.items() if d == dest]
        parser.add_argument(*aliases, dest=dest, action=_FlagPresent, nargs=0, default=False)
    return parser


def _parse_bool_literal(option: str, raw: str) -> bool:
    if raw in _TRUE_LITERALS:
        return True
    if raw in _FALSE_LITERALS:
        return False
    raise UsageError(f"invalid boolean value {raw!r} for flag {option}")


def _split_flags(argv: Sequence[str]) -> tuple[list[str], list[str], dict[str, bool]]:
    """Split argv into (flag tokens, positionals, explicit boolean values).

    Flag scanning stops at the first non-flag token or at `--`. Known flags may
    also be spelled with two dashes (`--showConsole`).
    `-boolFlag=value` is rewritten to `-boolFlag` and its value kept aside;
    `-javaDir <dir>` is rewritten to `-javaDir=<dir>` so a directory starting
    with `-` is not mistaken for a flag.
    """
    flags: list[str] = []
    explicit: dict[str, bool] = {}
    i = 0
    while i < len(argv):
        token = argv[i]
        if token == "--":
            return flags, list(argv[i + 1 :]), explicit
        if not token.startswith("-") or token == "-":
            break
        if token.startswith("--") and token[1:].partition("=")[0] in _KNOWN_FLAGS:
            token = token[1:]
        name, sep, value = token.partition("=")
        if sep and name in _BOOL_FLAGS:
            explicit[_BOOL_FLAGS[name]] = _parse_bool_literal(name, value)
            flags.append(name)
        elif name in _VALUE_FLAGS and not sep and i + 1 < len(argv):
            flags.append(f"{name}={argv[i + 1]}")
            i += 1
        else:
            flags.append(token)
        i += 1
    return flags, list(argv[i:]), explicit


def parse_invocation(argv: Sequence[str]) -> Invocation:
    flag_tokens, positionals, explicit = _split_flags(list(argv))
    namespace = argparse.Namespace(present=set())
    _build_parser().parse_args(flag_tokens, namespace=namespace)
    switches = {name: explicit.get(name, True) for name in namespace.present if name != JAVA_DIR}
    return Invocation(
        positionals=tuple(positionals),
        present=frozenset(namespace.present),
        java_dir=getattr(namespace, JAVA_DIR, None),
        switches=switches,
    )


def classify(invocation: Invocation) -> LaunchMode:
    single = len(invocation.positionals) == 1
    from_browser = invocation.target.startswith(CHROME_EXTENSION_PREFIX)
    if single and invocation.flag_count == 0 and not from_browser:
        return LaunchMode.DIRECT
    if single and invocation.uninstall and not from_browser:
        return LaunchMode.UNINSTALL
    if single and not from_browser:
        return LaunchMode.CONFIGURED
    return LaunchMode.BRIDGE


def build_options(invocation: Invocation, settings: Settings) -> Options:
    """Options for Configured Launch Mode: settings plus the flags actually given.

    A present switch enables its option regardless of the literal value passed
    (`-showConsole=false` still counts as set). Absent flags leave the
    environment defaults in `settings` untouched.
    """
    if invocation.is_set(JAVA_DIR):
        settings.use_java_dir(invocation.java_dir or "")
    if invocation.is_set(SHOW_CONSOLE):
        settings.request_console()
    if invocation.is_set(DISABLE_VERIFICATION):
        settings.skip_verification()
    if invocation.is_set(DISABLE_VERIFICATION_SAME_ORIGIN):
        settings.skip_same_origin_verification()
    return settings.options()


def build_usage_text(product: ProductInfo, program: str | None = None) -> str:
    program = program or os.path.basename(sys.argv[0] or product.name)
    lines = [
        product.banner,
        "",
        "Usage:",
        f"{program} [options] <filename | URL>",
        "",
        "Options:",
        "  -javaDir <java folder>",
        "      use Java from <java folder>",
        "  -showConsole",
        "      show Java console",
        "  -disableVerification",
        "      don't verify jar signatures",
        "  -disableVerificationSameOrigin",
        "      don't verify all jars have same signature",
        "  -uninstall",
        "      uninstall app",
        "  -gui",
        "      show GUI, uninstall only",
        "  -help",
        "      show help",
    ]
    return "\n".join(lines) + "\n"


def show_usage(product: ProductInfo, *, error: str | None = None, stream: IO[str] | None = None) -> None:
    stream = stream or sys.stderr
    if error:
        stream.write(f"{product.name}: {error}\n")
    stream.write(build_usage_text(product))
    stream.flush()


class ModeDispatcher:
    """Runs the operation selected by `classify` for one invocation."""

    def __init__(
        self,
        registry: LauncherRegistry,
        *,
        product: ProductInfo,
        paths: ProductPaths,
        settings: Settings,
        stdin: IO[bytes] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> None:
        self.registry = registry
        self.product = product
        self.paths = paths
        self.settings = settings
        self._stdin = stdin
        self._stdout = stdout

    def dispatch(self, invocation: Invocation) -> LaunchMode:
        mode = classify(invocation)
        logger.info(
            "mode=%s positionals=%d flags=%s", mode.value, len(invocation.positionals), sorted(invocation.present)
        )
        if mode is LaunchMode.DIRECT:
            self.launch(invocation.target, self.settings.options())
        elif mode is LaunchMode.UNINSTALL:
            self.uninstall(invocation.target, show_gui=invocation.show_gui)
        elif mode is LaunchMode.CONFIGURED:
            self.launch(invocation.target, build_options(invocation, self.settings))
        else:
            self.bridge().run()
        return mode

    def _prepare(self, launcher: Launcher, options: Options) -> Launcher:
        launcher.configure(
            work_dir=self.paths.work_dir,
            log_file=self.paths.log_file,
            window_title=self.product.title,
            options=options,
        )
        launcher.check_platform()
        return launcher

    def launch(self, filename_or_url: str, options: Options) -> Launcher:
        resolution = self.registry.resolve(filename_or_url)
        launcher = self._prepare(resolution.launcher, options)
        logger.info("run launcher=%s target=%s by_url=%s", launcher.name, filename_or_url, resolution.by_url)
        if resolution.by_url:
            launcher.run_by_url(filename_or_url)
        else:
            launcher.run_by_filename(filename_or_url)
        return launcher

    def uninstall(self, filename_or_url: str, *, show_gui: bool) -> Launcher:
        resolution = self.registry.resolve(filename_or_url)
        launcher = self._prepare(resolution.launcher, Options())
        logger.info("uninstall launcher=%s target=%s gui=%s", launcher.name, filename_or_url, show_gui)
        if resolution.by_url:
            launcher.uninstall_by_url(filename_or_url, show_gui)
        else:
            launcher.uninstall_by_filename(filename_or_url, show_gui)
        return launcher

    def bridge(self) -> NativeMessagingBridge:
        logger.info("running from browser: True")
        if self._stdin is None and self._stdout is None:
            set_binary_stdio()
        return NativeMessagingBridge(
            self.registry,
            work_dir=self.paths.work_dir,
            log_file=self.paths.log_file,
            window_title=self.product.title,
            options=self.settings.options(is_running_from_browser=True),
            stdin=self._stdin,
            stdout=self._stdout,
        )


__all__ = [
    "CHROME_EXTENSION_PREFIX",
    "HELP_TOKENS",
    "Invocation",
    "LaunchMode",
    "ModeDispatcher",
    "build_options",
    "build_usage_text",
    "classify",
    "parse_invocation",
    "show_usage",
]
