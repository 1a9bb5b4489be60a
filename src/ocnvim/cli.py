"""Command-line argument parsing for ocnvim.

Defines CLI flags and applies precedence: CLI flag > env var > .env > default.
Called by main.py before Config instantiation; sets os.environ for any
explicitly provided flags so Config reads the overridden values.
"""

import argparse
import os
from pathlib import Path

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

COMMANDS = ("toggle", "start", "stop", "root", "providers", "doctor", "events")


def _port(value: str) -> int:
    """Argparse type for TCP ports."""
    result = int(value)
    if not 0 < result < 65536:
        msg = f"must be between 1 and 65535, got {value}"
        raise argparse.ArgumentTypeError(msg)
    return result


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments and return namespace.

    Args:
        argv: Argument list (defaults to sys.argv[1:]). Pass explicitly for testing.
    """
    parser = argparse.ArgumentParser(
        prog="ocnvim",
        description="Toggle, start and stop the opencode assistant next to Neovim",
    )

    parser.add_argument(
        "--version",
        action="store_true",
        help="show version and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="enable debug logging (env: OCNVIM_LOG_LEVEL=DEBUG)",
    )
    parser.add_argument(
        "--log-level",
        choices=_LOG_LEVELS,
        metavar="LEVEL",
        help="logging level: DEBUG, INFO, WARNING, ERROR (env: OCNVIM_LOG_LEVEL)",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        metavar="DIR",
        help="config directory (default: ~/.ocnvim, env: OCNVIM_DIR)",
    )
    parser.add_argument(
        "--nvim",
        metavar="ADDR",
        help="Neovim RPC socket address (env: NVIM)",
    )
    parser.add_argument(
        "--provider",
        metavar="NAME",
        help="auto, snacks, kitty, wezterm, tmux, terminal or false (env: OCNVIM_PROVIDER)",
    )
    parser.add_argument(
        "--command",
        dest="opencode_command",
        metavar="CMD",
        help="opencode launch command (default: opencode, env: OPENCODE_COMMAND)",
    )
    parser.add_argument(
        "--port",
        type=_port,
        metavar="N",
        help="port passed to opencode as --port (env: OPENCODE_PORT)",
    )
    parser.add_argument(
        "--no-events",
        action="store_true",
        help="do not subscribe to the opencode event stream (env: OCNVIM_EVENTS=false)",
    )
    parser.add_argument(
        "--follow",
        action="store_true",
        help=(
            "after toggle/start, wait on the event stream; without it the "
            "subscription is abandoned when ocnvim exits"
        ),
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        default="toggle",
        help="action to run (default: toggle)",
    )
    parser.add_argument(
        "path",
        nargs="?",
        help="project directory to use when no editor is attached",
    )

    return parser.parse_args(argv)


# Mapping: argparse dest → environment variable name
_FLAG_TO_ENV: list[tuple[str, str]] = [
    ("config_dir", "OCNVIM_DIR"),
    ("nvim", "NVIM"),
    ("provider", "OCNVIM_PROVIDER"),
    ("opencode_command", "OPENCODE_COMMAND"),
    ("port", "OPENCODE_PORT"),
]


def apply_args_to_env(args: argparse.Namespace) -> None:
    """Set environment variables from explicitly provided CLI flags.

    Call BEFORE Config instantiation to ensure CLI flags take precedence.
    Only sets env vars for flags that were explicitly provided (not None).
    """
    # --verbose always wins over --log-level
    if args.verbose:
        os.environ["OCNVIM_LOG_LEVEL"] = "DEBUG"
    elif args.log_level is not None:
        os.environ["OCNVIM_LOG_LEVEL"] = args.log_level.upper()

    if args.no_events:
        os.environ["OCNVIM_EVENTS"] = "false"

    for attr, env_var in _FLAG_TO_ENV:
        value = getattr(args, attr)
        if value is None:
            continue
        if isinstance(value, Path):
            os.environ[env_var] = str(value.expanduser().resolve())
        else:
            os.environ[env_var] = str(value)
