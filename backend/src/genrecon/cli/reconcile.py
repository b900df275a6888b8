"""CLI command for running a reconciliation pass outside the HTTP API.

Intended for an external scheduler (cron, systemd timer) that sweeps owners
whose clients stopped polling.

Usage:
    python -m genrecon.cli --owner <uuid> [OPTIONS]

Examples:
    # Reconcile every active generation of an owner
    python -m genrecon.cli --owner 6f1c2a9e-0000-4000-8000-000000000001

    # Reconcile a single generation
    python -m genrecon.cli --owner 6f1c... --job 0b7d...

    # Verbose logging
    python -m genrecon.cli --owner 6f1c... -v
"""

import asyncio
import json
import sys
from argparse import ArgumentParser, Namespace
from uuid import UUID

import structlog

from genrecon.core import timezone  # noqa: F401
from genrecon.core.config import Settings, configure_logging
from genrecon.core.database import setup_db_session
from genrecon.services.exceptions import PermanentError
from genrecon.services.reconciliation import GenerationReconciler
from genrecon.uow import create_uow_factory

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Reconcile generation jobs with their providers",
        epilog="Prints the pass summary as JSON on stdout",
    )

    parser.add_argument(
        "--owner",
        type=UUID,
        required=True,
        help="Owner whose generations are reconciled",
    )

    parser.add_argument(
        "--job",
        type=UUID,
        help="Reconcile only this generation (default: all active generations)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


async def async_main(argv: list[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = parse_args(argv)

    try:
        settings = Settings()  # type: ignore[call-arg]
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    logger.info("cli.started", owner_id=str(args.owner), job_id=str(args.job) if args.job else None)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    reconciler = GenerationReconciler(create_uow_factory(session_factory), settings)

    try:
        if args.job:
            summary = await reconciler.reconcile_one(args.owner, args.job)
        else:
            summary = await reconciler.reconcile_all(args.owner)

        print(json.dumps(summary.as_dict(), indent=2))
        logger.info("cli.success", result_count=len(summary.results), pending_count=summary.pending_count)
        return 0

    except PermanentError as e:
        logger.error("cli.reconcile_error", error=str(e), error_type=type(e).__name__)
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        logger.error("cli.unexpected_error", error=str(e), error_type=type(e).__name__)
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1

    finally:
        engine = session_factory.kw.get("bind")
        if engine is not None:
            await engine.dispose()


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
