"""CLI command for processing uploads waiting in the 'processing' state.

Usage:
    python -m weafrica_media.cli.process_uploads [OPTIONS]

Examples:
    # Process one batch (scheduled job mode)
    python -m weafrica_media.cli.process_uploads

    # Process up to 10 uploads in this pass
    python -m weafrica_media.cli.process_uploads --batch-size 10

    # Keep polling until interrupted
    python -m weafrica_media.cli.process_uploads --loop

    # Verbose logging
    python -m weafrica_media.cli.process_uploads -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from typing import Sequence

import structlog
from pydantic import ValidationError

from weafrica_media.core.config import Settings, configure_logging
from weafrica_media.core.database import close_db_session, setup_db_session
from weafrica_media.workers.upload_processing_worker import (
    BatchSummary,
    WorkerDependencies,
    build_worker_dependencies,
    process_batch,
    run_upload_processing_worker,
)

logger = structlog.get_logger()

EMPTY_BATCH_MESSAGE = "[uploads] no processing items found"


def parse_args(argv: Sequence[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Transcode uploads in 'processing' state and publish or reject them",
        epilog=(
            "Reads DATABASE_URL, SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY from the environment"
        ),
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        help="Maximum number of uploads to claim (default: UPLOAD_PROCESS_MAX_BATCH or 3)",
    )

    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep polling every POLL_INTERVAL_SECONDS instead of exiting after one batch",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


def print_summary(summary: BatchSummary) -> None:
    """Print a human-readable batch summary."""
    if summary.claimed == 0:
        print(EMPTY_BATCH_MESSAGE)
        return

    print("\n" + "=" * 60)
    print("Upload Processing Summary")
    print("=" * 60)
    print(f"Uploads claimed: {summary.claimed}")
    print(f"Published: {summary.published}")
    print(f"Rejected: {summary.rejected}")

    for outcome in summary.outcomes:
        if outcome.error_message:
            print(f"  - {outcome.upload_id}: {outcome.error_message}")

    print("=" * 60 + "\n")


async def run_once(deps: WorkerDependencies, settings: Settings) -> int:
    """Process a single batch and report it.

    Returns:
        Exit code: 0 (batch processed, rejections included), 1 (batch listing failed)
    """
    try:
        summary = await process_batch(deps, settings)
    except Exception as e:
        logger.error(
            "cli.batch_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"[uploads] worker failed: {e}", file=sys.stderr)
        return 1

    print_summary(summary)
    return 0


async def async_main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point (async).

    Returns:
        Exit code: 0 (success), 1 (configuration or batch error), 130 (interrupted)
    """
    args = parse_args(argv)

    try:
        settings = Settings()  # type: ignore[call-arg]
    except ValidationError as e:
        logger.error("cli.configuration_error", error=str(e))
        print(f"[uploads] worker failed: invalid configuration\n{e}", file=sys.stderr)
        return 1

    if args.verbose:
        settings.log_level = "DEBUG"
    if args.batch_size is not None:
        if args.batch_size < 1:
            print("[uploads] --batch-size must be at least 1", file=sys.stderr)
            return 1
        settings.max_batch_size = args.batch_size

    configure_logging(settings)

    logger.info(
        "cli.started",
        batch_size=settings.max_batch_size,
        loop=args.loop,
        bucket=settings.storage_bucket,
        table=settings.uploads_table,
        worker_id=settings.worker_id,
    )

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    deps = build_worker_dependencies(session_factory, settings)

    try:
        if args.loop:
            await run_upload_processing_worker(session_factory, settings, deps=deps)
            return 0
        return await run_once(deps, settings)

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nUpload processing interrupted by user", file=sys.stderr)
        return 130

    finally:
        await close_db_session(session_factory)


def main() -> None:
    """Synchronous entry point for CLI."""
    try:
        sys.exit(asyncio.run(async_main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
