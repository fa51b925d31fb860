"""Retry sweep for failed outbox items, meant to run from cron"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from shelterflex_gateway.config import settings
from shelterflex_gateway.container import Container, build_container
from shelterflex_gateway.domain.models import RetrySummary
from shelterflex_gateway.infrastructure.observability.logging import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Retry failed ledger outbox items")
    parser.add_argument(
        "--due-only",
        action="store_true",
        help="Skip items whose backoff has not elapsed yet",
    )
    return parser.parse_args(argv)


async def run(container: Container, due_only: bool = False) -> RetrySummary:
    """Retry failed items once, sequentially, oldest first"""
    return await container.sender.retry_all(due_only=due_only)


def main(argv: Optional[List[str]] = None, container: Optional[Container] = None) -> int:
    """
    Entry point.

    Returns:
        0 when every retried item was sent, 1 when any is still failing
    """
    args = parse_args(argv)
    setup_logging(settings.log_level)

    container = container or build_container(settings)
    summary = asyncio.run(run(container, due_only=args.due_only))

    logger.info(
        "Retry job finished",
        extra={"succeeded": summary.succeeded, "failed": summary.failed, "due_only": args.due_only},
    )
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
