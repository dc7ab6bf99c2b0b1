"""autocert command-line entry point.

Usage::

    autocert -c /etc/autocert/config.yaml
    autocert -c config.yaml --validate-only
    autocert -c config.yaml run --force-renew
    autocert -c config.yaml serve --dev
    autocert -c config.yaml inspect
    python -m autocert -c config.yaml

Without a subcommand autocert serves the HTTP trigger when
``listener.enabled`` is set and performs a single run otherwise.

Exit codes: 0 on success, 1 on a fatal error, 2 when at least one
distribution target failed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_TARGET_FAILED = 2


def _get_version() -> str:
    from autocert import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autocert",
        description="autocert: obtain, renew and distribute a TLS certificate",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run the certificate lifecycle once")
    run_parser.add_argument(
        "--force-renew",
        action="store_true",
        default=False,
        help="Renew even if the stored certificate is still valid.",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP trigger")
    serve_parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )

    subparsers.add_parser("inspect", help="Show the stored certificate record")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"autocert: error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(EXIT_FATAL)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from autocert.config import AutocertConfig, ConfigValidationError

        config = AutocertConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(EXIT_FATAL)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(EXIT_FATAL)

    # -- replace bootstrap logging with structured logging ---
    from autocert.logging import configure_logging

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(EXIT_OK)

    command = args.command
    if command is None:
        command = "serve" if config.settings.listener.enabled else "run"

    if command == "inspect":
        from autocert.cli.commands.inspect import run_inspect

        sys.exit(run_inspect(config, args))
    elif command == "serve":
        from autocert.cli.commands.serve import run_serve

        _print_settings_summary(config)
        sys.exit(run_serve(config, args))
    else:
        from autocert.cli.commands.run import run_once

        sys.exit(run_once(config, args))


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"config:       {config.config_file}",
        f"hostnames:    {', '.join(s.hostnames)}",
        f"account:      {s.account.email}",
        f"authority:    {s.authority.backend} ({s.authority.acme.directory_url})",
        f"challenge:    {s.authority.acme.challenge_type} via {s.authority.acme.challenge_handler}",
        f"store:        {s.secret_store.backend}",
        f"runners:      {', '.join(s.runners.enabled) or '(none)'}",
        f"renew within: {s.renewal.threshold_hours}h",
    ]
    if s.listener.enabled:
        lines.append(f"listener:     {s.listener.bind}:{s.listener.port}")
    print("\n".join(lines), file=sys.stderr)  # noqa: T201
