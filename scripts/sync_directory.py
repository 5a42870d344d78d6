#!/usr/bin/env python
"""Synchronize the provider directory with the registry outside a request.

Usage:
    python scripts/sync_directory.py

Options:
    --registrations    Also refresh eMDR registration status afterwards
    --page-size N      Registry list page size (default: REGISTRY_PAGE_SIZE)
"""

import argparse
import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

sys.path.insert(0, ".")

from provider_sync.adapters.registry import get_registry_client
from provider_sync.config import get_settings
from provider_sync.database import _async_db_url
from provider_sync.logging import configure_logging
from provider_sync.services.directory_sync import synchronize_directory
from provider_sync.services.registration_refresh import refresh_registrations

logger = logging.getLogger(__name__)


async def run_sync(registrations: bool = False, page_size: int | None = None) -> int:
    """Run one synchronization. Returns a process exit code."""
    settings = get_settings()

    if not settings.db_url:
        logger.error("DB_URL not configured")
        return 1

    engine = create_async_engine(_async_db_url(settings.db_url), echo=False)
    async_session = async_sessionmaker(engine, expire_on_commit=False)
    client = get_registry_client()
    exit_code = 0

    try:
        async with async_session() as db:
            result = await synchronize_directory(db, client, page_size=page_size)
            logger.info(
                f"Sync complete: {result.created} created, {result.updated} updated, "
                f"{len(result.rows)} providers"
            )
            if result.error:
                logger.error(f"Sync stopped early: {result.error}")
                exit_code = 1

            if registrations:
                refresh = await refresh_registrations(db, client)
                logger.info(
                    f"Registration refresh complete: {refresh.candidates} candidates, "
                    f"{refresh.fetch_errors} lookup failures"
                )
    finally:
        await engine.dispose()

    return exit_code


def main() -> None:
    parser = argparse.ArgumentParser(description="Synchronize the provider directory")
    parser.add_argument("--registrations", action="store_true")
    parser.add_argument("--page-size", type=int)
    args = parser.parse_args()
    configure_logging(get_settings().log_level)
    sys.exit(
        asyncio.run(run_sync(registrations=args.registrations, page_size=args.page_size))
    )


if __name__ == "__main__":
    main()
