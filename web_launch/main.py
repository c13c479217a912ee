"""
Process entry point for web-launch.

Each process handles exactly one launch, one uninstall or one browser bridge
exchange, then exits:

    0   success (including bridge exchanges that reported a launch error)
    1   fatal error (logged first)
    2   usage error or help request
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from typing import IO

from .bootstrap import (
    ProductInfo,
    apply_proxy_policy,
    configure_logging,
    log_startup,
    prepare_product_dirs,
)
from .dispatcher import HELP_TOKENS, ModeDispatcher, parse_invocation, show_usage
from .errors import UsageError, WebLaunchError
from .launchers.registry import LauncherRegistry, discover_launchers
from .settings import Settings

logger = logging.getLogger("web_launch")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def run(
    argv: Sequence[str] | None = None,
    *,
    registry: LauncherRegistry | None = None,
    product: ProductInfo | None = None,
    settings: Settings | None = None,
    stdin: IO[bytes] | None = None,
    stdout: IO[bytes] | None = None,
) -> int:
    """Run one invocation and return the process exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    product = product or ProductInfo.default()
    if not args or args[0] in HELP_TOKENS:
        show_usage(product)
        return EXIT_USAGE

    settings = settings or Settings.from_env()
    try:
        paths = prepare_product_dirs(product, settings)
    except WebLaunchError as exc:
        # No log file yet: stderr is all we have.
        sys.stderr.write(f"{product.name}: {exc}\n")
        return EXIT_FATAL

    sys.stderr.write(f"{product.banner}\n")
    configure_logging(paths.log_file)
    log_startup(product, [sys.argv[0], *args])
    apply_proxy_policy(settings)

    try:
        invocation = parse_invocation(args)
    except UsageError as exc:
        logger.warning("usage_error %s", exc)
        show_usage(product, error=str(exc))
        return EXIT_USAGE

    try:
        if registry is None:
            registry = discover_launchers()
        dispatcher = ModeDispatcher(
            registry,
            product=product,
            paths=paths,
            settings=settings,
            stdin=stdin,
            stdout=stdout,
        )
        dispatcher.dispatch(invocation)
    except WebLaunchError as exc:
        logger.error("fatal %s", exc)
        sys.stderr.write(f"{product.name}: {exc}\n")
        return EXIT_FATAL
    except Exception as exc:  # noqa: BLE001
        logger.exception("fatal_unexpected")
        sys.stderr.write(f"{product.name}: {exc}\n")
        return EXIT_FATAL
    return EXIT_OK


def main() -> None:
    try:
        raise SystemExit(run())
    except KeyboardInterrupt:
        raise SystemExit(EXIT_FATAL) from None


if __name__ == "__main__":
    main()
