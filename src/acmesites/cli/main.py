"""acmesites command-line entry point.

Usage::

    acmesites -c /etc/acmesites/config.yaml renew
    acmesites -c config.yaml --validate-only
    acmesites -c config.yaml issue --site my-rg/my-app --dns-name www.example.com
    acmesites -c config.yaml issue --site my-rg/my-app/staging \\
        --dns-name example.com --dns-name '*.example.com' --challenge dns-01
    acmesites -c config.yaml resume
    python -m acmesites -c config.yaml renew
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from acmesites import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acmesites",
        description="acmesites: ACME certificates for hosted custom domains",
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

    # renew
    subparsers.add_parser("renew", help="Renew every certificate close to expiry")

    # issue
    issue_parser = subparsers.add_parser("issue", help="Issue a certificate for one site")
    issue_parser.add_argument(
        "--site",
        required=True,
        metavar="RG/NAME[/SLOT]",
        help="Target site as resource group, name and optional slot.",
    )
    issue_parser.add_argument(
        "--dns-name",
        required=True,
        action="append",
        dest="dns_names",
        metavar="NAME",
        help="DNS name to include; repeat for several names.",
    )
    issue_parser.add_argument(
        "--challenge",
        choices=("dns-01", "http-01"),
        default=None,
        help="Challenge type (defaults to workflow.challenge_type).",
    )

    # resume
    subparsers.add_parser("resume", help="Continue every checkpointed workflow")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"acmesites: error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs a command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from acmesites.config import AcmeSitesConfig, ConfigValidationError

        config = AcmeSitesConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from acmesites.logging import configure_logging

    configure_logging(config.settings.logging, debug=args.debug)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command
    if command is None:
        parser.print_usage(sys.stderr)
        _print_error("a command is required: renew, issue or resume")
        sys.exit(2)

    from acmesites.cli.commands.run import run_command

    try:
        ok = run_command(config, args)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"{command} failed: {exc}")
        sys.exit(1)
    sys.exit(0 if ok else 1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"configuration OK: {config.data.get('_source', '?')}",
        f"  acme directory : {s.acme.directory_url}",
        f"  dns provider   : {s.dns.provider}",
        f"  hosting        : {s.hosting.provider}",
        f"  challenge type : {s.workflow.challenge_type}",
        f"  hooks          : {len(s.hooks.registered)}",
    ]
    print("\n".join(lines))  # noqa: T201
