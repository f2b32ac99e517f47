"""CLI app entrypoint and error mapping."""

from __future__ import annotations

import sys

from tripsync import (
    ConfigError,
    InvalidParentError,
    NotAuthenticatedError,
    RemoteUnavailableError,
    SnapshotParseError,
)


def main(argv: list[str] | None = None) -> int:
    import tripsync.cli as cli

    parser = cli.build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        cli.logging.basicConfig(level=cli.logging.DEBUG, format="%(name)s %(message)s", stream=sys.stderr)

    runners = {
        "balance": cli._run_balance,
        "bills": cli._run_bills,
        "archive": cli._run_archive,
        "restore": cli._run_restore,
    }
    try:
        cli.asyncio.run(runners[args.command](args))
        return 0
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 3
    except (NotAuthenticatedError, RemoteUnavailableError, SnapshotParseError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 4
    except InvalidParentError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 5
    except Exception as exc:  # pragma: no cover - defensive fallback
        print(f"error: {exc}", file=sys.stderr)
        return 1


__all__ = ["main"]
