"""Application entry point — argparse dispatcher and logging bootstrap.

``main()`` parses flags (cli.py), copies them into the environment, builds
the Config and editor host, and runs one command: toggle, start, stop,
root, providers, doctor or events. Logs go to stderr so command output on
stdout stays machine readable.
"""

import asyncio
import json
import logging
import os
import sys

import structlog

from . import __version__


def setup_logging(log_level: str) -> None:
    """Configure structured, colored logging on stderr."""
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    colors = sys.stderr.isatty()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=colors, pad_event=40),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging for third-party libs
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=colors),
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            ],
        )
    )
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    for name in ("httpx", "httpcore", "pynvim", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _print_providers(config, host) -> None:
    from .providers import capabilities_of, check_health, list_providers

    active = config.provider.name if config.provider is not None else None
    for cls in list_providers():
        health = check_health(cls, host)
        marker = "*" if cls.name == active else " "
        caps = ",".join(sorted(capabilities_of(cls)))
        state = "ok" if health.ok else health.message
        print(f"{marker} {cls.name:<9} [{caps}] {state}")


async def _follow_events(config, host) -> None:
    from .events import EventBus, subscribe_to_sse
    from .server import ServerLocator

    bus = EventBus()
    bus.on("*", lambda event: print(json.dumps(event.to_dict()), flush=True))
    port = await ServerLocator(config, host).get_port(False)
    await subscribe_to_sse(port, bus=bus)


def run(command: str, follow: bool = False, path: str | None = None) -> int:
    """Run one *command* against a fresh Config and host. Returns the exit code.

    *path* stands in for the editor's first argument when no editor is attached.
    """
    import httpx

    from .config import Config
    from .facade import Opencode, ProviderUnavailableError
    from .host import HostError, connect_host
    from .providers import ProviderCommandError
    from .server import ServerNotFoundError

    logger = structlog.get_logger()

    try:
        config = Config()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    host = connect_host(os.environ.get("NVIM"), [path] if path else None)
    opencode = Opencode(config, host)

    if command == "root":
        print(opencode.get_project_root())
        return 0

    try:
        config.resolve_provider(host)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if command == "providers":
        _print_providers(config, host)
        return 0

    if command == "doctor":
        from .doctor_cmd import doctor_main

        doctor_main(config, host)
        return 0

    if command == "events":
        try:
            asyncio.run(_follow_events(config, host))
        except (ServerNotFoundError, httpx.HTTPError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            pass
        return 0

    try:
        getattr(opencode, command)()
    except (ProviderUnavailableError, ProviderCommandError, HostError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    logger.debug("%s done", command)

    if follow:
        try:
            opencode.wait_pending()
        except KeyboardInterrupt:
            pass
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    from .cli import apply_args_to_env, parse_args

    args = parse_args(argv)
    if args.version:
        print(f"ocnvim {__version__}")
        return

    apply_args_to_env(args)
    setup_logging(os.environ.get("OCNVIM_LOG_LEVEL", "INFO").upper())
    sys.exit(run(args.command, follow=args.follow, path=args.path))


if __name__ == "__main__":
    main()
