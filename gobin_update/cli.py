"""
gobin-update - keep binaries installed with `go install` up to date.

Usage:
    gobin-update              # Update every outdated binary in $GOBIN
    gobin-update update       # Same as above
    gobin-update list         # Show installed and latest versions
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .config import load_config
from .discovery import discover, load_ignore_file
from .environment import detect_environment
from .errors import SetupError
from .gocmd import GoCommand
from .logging_config import setup_logging
from .render import print_summary, render_table
from .upgrade import MODE_LIST, MODE_UPDATE, MODES, UpdateOrchestrator

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_INIT_ERROR = 1
EXIT_RUN_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gobin-update",
        description="Update binaries installed with `go install` to their latest versions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=MODES,
        default=MODE_UPDATE,
        help="update (default) or list",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Configuration file (YAML, or JSON for *.json)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output (also passes -v -x to go install)",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log errors",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be updated without installing anything",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON",
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Also write a debug log to PATH",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        if args.verbose:
            config = config.with_overrides(log_level="DEBUG")
        elif args.quiet:
            config = config.with_overrides(log_level="ERROR")
        if args.dry_run:
            config = config.with_overrides(dry_run=True)

        setup_logging(level=config.log_level, log_file=args.log_file)
        env = detect_environment(config)
        exclude, include = load_ignore_file(config.ignore_file)
    except (ValueError, OSError, SetupError) as e:
        print(f"error: init: {e}", file=sys.stderr)
        return EXIT_INIT_ERROR

    logger.debug(
        f"init done: GOBIN={env.bin_dir} GOMINVERSION={config.min_go_version} "
        f"GOCLI={env.go_cli} GOPROXY={config.goproxy} source={config.source or 'defaults'}"
    )

    orchestrator = UpdateOrchestrator.from_environment(config, env)
    gocmd = GoCommand(env.go_cli, bin_dir=env.bin_dir, timeout=config.timeout_seconds)

    try:
        candidates = discover(env.bin_dir, gocmd, exclude, include)
        result = orchestrator.run(candidates, args.command)
    except OSError as e:
        print(f"error: main: {e}", file=sys.stderr)
        return EXIT_RUN_ERROR

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif args.command == MODE_LIST:
        sys.stdout.write(render_table(result.rows(), use_color=sys.stdout.isatty()))
    else:
        print_summary(result)

    return EXIT_RUN_ERROR if result.failures else EXIT_OK


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)
