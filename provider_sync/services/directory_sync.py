"""Reconcile the local provider directory with the registry's full list."""

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone
from typing import TypeVar
from uuid import UUID

from opentelemetry import trace
from sqlalchemy import Select, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.registry import RegistryClient
from ..config import get_settings
from ..models.customer import SYSTEM_CUSTOMER_KEY, SYSTEM_CUSTOMER_NAME, Customer
from ..models.provider import Provider
from ..observability.metrics import DIRECTORY_SYNC_FAILURES, DIRECTORY_SYNC_PROVIDERS
from ..schemas.provider import SyncResult
from ..schemas.registry import ProviderListItem
from .rows import compose_rows_from_db
from .snapshot import build_update_from_remote, dump_list_snapshot

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("provider-sync.directory_sync")

UPDATE_CHUNK_SIZE = 100
CREATE_CHUNK_SIZE = 50

SYSTEM_CUSTOMER_DESCRIPTION = "Auto-created for unassigned providers from the registry list"

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _dedupe_by_npi(items: list[ProviderListItem]) -> list[ProviderListItem]:
    """Collapse repeated NPIs; the last occurrence wins, first position is kept."""
    by_npi: dict[str, ProviderListItem] = {}
    for item in items:
        by_npi[item.npi] = item
    return list(by_npi.values())


async def fetch_all_remote_providers(
    client: RegistryClient,
    page_size: int | None = None,
) -> list[ProviderListItem]:
    """Walk every page of the registry list.

    The first response's ``totalPages`` (at least 1) bounds the walk.
    """
    if page_size is None:
        page_size = get_settings().registry_page_size

    page = 1
    first = await client.list_providers(page, page_size)
    items = list(first.items)
    total_pages = max(1, first.total_pages or 1)

    while page < total_pages:
        page += 1
        result = await client.list_providers(page, page_size)
        items.extend(result.items)

    logger.info(
        "directory_sync.remote_fetched",
        extra={"pages": total_pages, "items": len(items)},
    )
    return items


async def _commit_or_reread(db: AsyncSession, query: Select) -> UUID | None:
    """Commit, or on a unique-key race roll back and return the winner's id."""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = (await db.execute(query)).scalar_one_or_none()
        if existing is None:
            raise
        return existing
    return None


async def ensure_system_customer(db: AsyncSession) -> UUID:
    """Return the sentinel customer's id, creating it if needed.

    A legacy "System" row without ``system_key`` is adopted and keyed rather
    than duplicated. The unique ``system_key`` makes this safe to race: a
    losing insert re-reads the winner's row.
    """
    query = select(Customer.id).where(Customer.system_key == SYSTEM_CUSTOMER_KEY)
    existing = (await db.execute(query)).scalar_one_or_none()
    if existing is not None:
        return existing

    legacy_result = await db.execute(
        select(Customer)
        .where(Customer.name == SYSTEM_CUSTOMER_NAME, Customer.system_key.is_(None))
        .order_by(Customer.created_at)
        .limit(1)
    )
    legacy = legacy_result.scalar_one_or_none()
    if legacy is not None:
        legacy.system_key = SYSTEM_CUSTOMER_KEY
        winner = await _commit_or_reread(db, query)
        if winner is not None:
            return winner
        logger.info("customer.system_keyed", extra={"customer_id": str(legacy.id)})
        return legacy.id

    customer = Customer(
        name=SYSTEM_CUSTOMER_NAME,
        description=SYSTEM_CUSTOMER_DESCRIPTION,
        system_key=SYSTEM_CUSTOMER_KEY,
    )
    db.add(customer)
    winner = await _commit_or_reread(db, query)
    if winner is not None:
        return winner

    logger.info("customer.system_created", extra={"customer_id": str(customer.id)})
    return customer.id


async def _apply_update_chunk(
    db: AsyncSession,
    items: Sequence[ProviderListItem],
    now: datetime,
) -> None:
    """Patch existing providers in one transaction."""
    for item in items:
        values = build_update_from_remote(item)
        values["last_list_snapshot"] = dump_list_snapshot(item)
        values["last_list_at"] = now
        values["updated_at"] = now
        await db.execute(
            update(Provider).where(Provider.npi == item.npi).values(**values)
        )
    await db.commit()


async def _apply_create_chunk(
    db: AsyncSession,
    items: Sequence[ProviderListItem],
    customer_id: UUID,
    now: datetime,
) -> None:
    """Insert unseen providers under the sentinel customer in one transaction."""
    for item in items:
        db.add(
            Provider(
                npi=item.npi,
                customer_id=customer_id,
                name=item.provider_name,
                street=item.provider_street,
                street2=item.provider_street2,
                city=item.provider_city,
                state=item.provider_state,
                zip=item.provider_zip,
                remote_provider_id=item.provider_id,
                last_list_snapshot=dump_list_snapshot(item),
                last_list_at=now,
            )
        )
    await db.commit()


async def synchronize_directory(
    db: AsyncSession,
    client: RegistryClient,
    page_size: int | None = None,
    update_chunk_size: int = UPDATE_CHUNK_SIZE,
    create_chunk_size: int = CREATE_CHUNK_SIZE,
) -> SyncResult:
    """Fetch the full registry list and upsert it into the local store.

    Updates are applied before creates, each chunk in its own transaction.
    Any failure stops the remaining work; chunks committed before it stay
    committed and the failing chunk is rolled back. The error message is
    returned rather than raised, and rows always reflect the store.
    """
    error: str | None = None
    created = 0
    updated = 0

    with tracer.start_as_current_span("directory_sync.synchronize") as span:
        try:
            remote = _dedupe_by_npi(await fetch_all_remote_providers(client, page_size))

            existing: set[str] = set()
            if remote:
                result = await db.execute(
                    select(Provider.npi).where(
                        Provider.npi.in_([item.npi for item in remote])
                    )
                )
                existing = set(result.scalars().all())

            updates = [item for item in remote if item.npi in existing]
            creates = [item for item in remote if item.npi not in existing]

            system_customer_id = await ensure_system_customer(db)
            now = datetime.now(timezone.utc)

            for chunk in chunked(updates, update_chunk_size):
                await _apply_update_chunk(db, chunk, now)
                updated += len(chunk)
                DIRECTORY_SYNC_PROVIDERS.labels(action="updated").inc(len(chunk))

            for chunk in chunked(creates, create_chunk_size):
                await _apply_create_chunk(db, chunk, system_customer_id, now)
                created += len(chunk)
                DIRECTORY_SYNC_PROVIDERS.labels(action="created").inc(len(chunk))

            logger.info(
                "directory_sync.completed",
                extra={"created": created, "updated": updated},
            )
        except Exception as e:
            await db.rollback()
            error = str(e) or "Failed to fetch providers from the registry."
            span.set_attribute("error", True)
            span.record_exception(e)
            DIRECTORY_SYNC_FAILURES.inc()
            logger.warning(
                "directory_sync.failed",
                extra={"error": error, "created": created, "updated": updated},
            )

        span.set_attribute("created", created)
        span.set_attribute("updated", updated)

    rows = await compose_rows_from_db(db)
    return SyncResult(rows=rows, error=error, created=created, updated=updated)


async def refresh_provider_snapshot(
    db: AsyncSession,
    client: RegistryClient,
    npi: str,
) -> bool:
    """Re-read the registry list and overwrite one provider's snapshot.

    Returns False when the registry list does not contain ``npi``. Registry
    errors propagate; callers treat this refresh as best-effort.
    """
    remote = await fetch_all_remote_providers(client)
    match = next((item for item in reversed(remote) if item.npi == npi), None)
    if match is None:
        logger.info("directory_sync.snapshot_not_found", extra={"npi": npi})
        return False

    await db.execute(
        update(Provider)
        .where(Provider.npi == npi)
        .values(
            last_list_snapshot=dump_list_snapshot(match),
            last_list_at=datetime.now(timezone.utc),
        )
    )
    await db.commit()
    return True
