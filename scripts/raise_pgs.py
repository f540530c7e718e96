#!/usr/bin/env python3
"""
raise_pgs.py — Raise a Ceph pool's placement groups step by step.

Raises 'pg_num' of the pool to the target, waits, then raises 'pgp_num' to
the same target. Before each raise the cluster health is checked; when the
cluster is not fit for a raise the tick is skipped and retried on the next
one. After each raise the tool waits for Ceph to recognise the change.

Usage:
    pgraise --pool my_fancy_pool --target 512
    pgraise --pool my_fancy_pool --target 1024 --delta 5
    pgraise --pool my_fancy_pool --target 256 --verbose

Exit codes:
    0  both phases reached the target
    1  a ceph command failed, returned garbage, or the run was interrupted
    2  bad or missing --pool / --target
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import signal
import sys

# Add project root to path so config and scripts are importable when run as a file
_ROOT = pathlib.Path(__file__).parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from pydantic import ValidationError  # noqa: E402

from config.settings import Settings, load_settings  # noqa: E402
from scripts.ceph_cli import Cancelled, CephCommandRunner, PgRaiseError  # noqa: E402
from scripts.convergence import Waiter, raise_pool  # noqa: E402

logger = logging.getLogger("pgraise")

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgraise",
        description="Raise pg_num and then pgp_num of a Ceph pool step by step.",
    )
    parser.add_argument("--pool", "-pool", help="ceph pool name")
    parser.add_argument("--target", "-target", type=int, help="target PG number (power of 2)")
    parser.add_argument(
        "--delta", "-delta", type=int, default=None, help="raise step per tick (default: 10)"
    )
    parser.add_argument(
        "--verbose", "-verbose", action="store_true", default=None, help="verbose output"
    )
    parser.add_argument(
        "--env-file", default=".env", help="optional env file with pacing overrides"
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format="cpr: %(message)s",
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stderr,
        force=True,
    )


def _usage_error(parser: argparse.ArgumentParser, message: str) -> int:
    print(f"{message}\n", file=sys.stderr)
    parser.print_usage(sys.stderr)
    return EXIT_USAGE


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(
        args.env_file,
        POOL=args.pool,
        TARGET=args.target,
        DELTA=args.delta,
        VERBOSE=args.verbose,
    )


def install_signal_handlers() -> None:
    """On ^C or SIGTERM, abort the run wherever it is.

    Raising from the handler unwinds through subprocess.run, which kills the
    running ceph child, so no write can follow an interrupt.
    """

    def _handle(signum: int, frame: object) -> None:  # noqa: ARG001
        raise Cancelled(f"received {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.pool or not args.pool.strip():
        return _usage_error(parser, "A pool name must be provided.")
    if args.target is None:
        return _usage_error(parser, "A target PG number must be provided.")

    try:
        cfg = _settings_from_args(args)
    except ValidationError as exc:
        lines = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        return _usage_error(parser, "\n".join(lines))

    _configure_logging(cfg.VERBOSE)

    runner = CephCommandRunner.from_settings(cfg)

    try:
        install_signal_handlers()
        raise_pool(cfg, runner, Waiter())
    except Cancelled:
        logger.debug("interrupted, exiting")
        return EXIT_FATAL
    except PgRaiseError as exc:
        logger.error("raise: Error in raising %s: %s", cfg.POOL, exc)
        return EXIT_FATAL
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
