"""eMDR registration transitions: register, deregister, electronic-only.

The registration state is derived from the registry's flags (see
``snapshot.derive_registration_state``) and is never stored. Transitions do
not check the current state; the registry decides, and the row view's
``available_actions`` is what callers should gate on.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from fastapi import HTTPException
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..adapters.registry import RegistryClient, RegistryError
from ..adapters.telemetry import PROVIDER_NPI
from ..models.provider import Provider
from ..observability.metrics import EMDR_FOLLOW_UP_FAILURES, EMDR_TRANSITIONS
from ..schemas.provider import LastAction, TransitionKind, TransitionResult
from ..schemas.registry import RegistrationPayload
from .directory_sync import refresh_provider_snapshot
from .registration_refresh import fetch_and_store_registration
from .rows import compose_rows_from_db
from .snapshot import dump_update_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("provider-sync.registration")

MISSING_PROVIDER_ID = "Missing provider_id. Update Provider first to obtain a Provider ID."


@dataclass
class TransitionFollowUp:
    """Refresh work that runs after a transition.

    Steps never raise registry errors; failures are logged, counted and
    collected in ``errors``. The registration lookup runs only when the
    transition succeeded; the list snapshot is refreshed either way.
    """

    db: AsyncSession
    client: RegistryClient
    npi: str
    remote_provider_id: str
    provider_pk: UUID | None
    registrations: dict[str, RegistrationPayload] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    async def run(self, transition_ok: bool) -> None:
        if transition_ok:
            await self._step("registration_status", self._refresh_registration)
        await self._step("list_snapshot", self._refresh_snapshot)

    async def _step(self, name: str, func: Callable[[], Awaitable[None]]) -> None:
        try:
            await func()
        except RegistryError as e:
            self.errors.append(f"{name}: {e.message}")
            EMDR_FOLLOW_UP_FAILURES.labels(step=name).inc()
            logger.warning(
                "emdr.follow_up_failed",
                extra={"step": name, "npi": self.npi, "error": e.message},
            )

    async def _refresh_registration(self) -> None:
        payload = await fetch_and_store_registration(
            self.db,
            self.client,
            provider_id=self.provider_pk,
            remote_provider_id=self.remote_provider_id,
            npi=self.npi,
        )
        self.registrations[self.remote_provider_id] = payload

    async def _refresh_snapshot(self) -> None:
        await refresh_provider_snapshot(self.db, self.client, self.npi)


async def _call_registry(
    client: RegistryClient, kind: TransitionKind, remote_provider_id: str
) -> dict[str, Any]:
    if kind == "register":
        return await client.set_emdr_registration(remote_provider_id, True)
    if kind == "deregister":
        return await client.set_emdr_registration(remote_provider_id, False)
    return await client.set_electronic_only(remote_provider_id)


async def run_transition(
    db: AsyncSession,
    client: RegistryClient,
    kind: TransitionKind,
    npi: str,
    provider_id: str | None = None,
) -> TransitionResult:
    """Apply one eMDR transition for the provider with ``npi``.

    ``provider_id`` is the registry-assigned id; when omitted, the id stored
    on the local provider is used. Without either the call is rejected with
    a 400 before contacting the registry. A registry failure is returned as
    ``error``; database errors propagate.
    """
    result = await db.execute(select(Provider).where(Provider.npi == npi))
    provider = result.scalar_one_or_none()

    remote_id = (provider_id or "").strip()
    if not remote_id and provider is not None:
        remote_id = provider.remote_provider_id or ""
    if not remote_id:
        raise HTTPException(status_code=400, detail=MISSING_PROVIDER_ID)

    provider_pk = provider.id if provider is not None else None
    now = datetime.now(timezone.utc)
    error: str | None = None
    update_response: dict[str, Any] | None = None

    with tracer.start_as_current_span(f"emdr.{kind}") as span:
        span.set_attribute(PROVIDER_NPI, npi)

        try:
            update_response = await _call_registry(client, kind, remote_id)
        except RegistryError as e:
            error = e.message or "Failed to submit eMDR registration change."
            span.set_attribute("error", True)

        if error is None and provider is not None:
            provider.last_update_response = dump_update_response(
                kind, update_response or {}
            )
            provider.last_update_at = now
            fresher_id = (update_response or {}).get("provider_id")
            if isinstance(fresher_id, str) and fresher_id:
                provider.remote_provider_id = fresher_id
            await db.commit()

        follow_up = TransitionFollowUp(
            db=db,
            client=client,
            npi=npi,
            remote_provider_id=remote_id,
            provider_pk=provider_pk,
        )
        await follow_up.run(transition_ok=error is None)

    outcome = "ok" if error is None else "error"
    EMDR_TRANSITIONS.labels(operation=kind, outcome=outcome).inc()
    log = logger.info if error is None else logger.warning
    log(
        "emdr.transition",
        extra={
            "operation": kind,
            "npi": npi,
            "remote_provider_id": remote_id,
            "outcome": outcome,
            "error": error,
            "follow_up_errors": follow_up.errors,
        },
    )

    rows = await compose_rows_from_db(db)
    return TransitionResult(
        rows=rows,
        error=error,
        update_response=update_response,
        registrations=follow_up.registrations,
        fetched_at=now,
        last_action=LastAction(
            kind=kind, npi=npi, provider_id=remote_id, ok=error is None, at=now
        ),
        follow_up_errors=follow_up.errors,
    )


async def register(
    db: AsyncSession, client: RegistryClient, npi: str, provider_id: str | None = None
) -> TransitionResult:
    """NOT_REGISTERED -> REGISTERED."""
    return await run_transition(db, client, "register", npi, provider_id)


async def deregister(
    db: AsyncSession, client: RegistryClient, npi: str, provider_id: str | None = None
) -> TransitionResult:
    """REGISTERED or REGISTERED_ELECTRONIC_ONLY -> NOT_REGISTERED."""
    return await run_transition(db, client, "deregister", npi, provider_id)


async def set_electronic_only(
    db: AsyncSession, client: RegistryClient, npi: str, provider_id: str | None = None
) -> TransitionResult:
    """REGISTERED -> REGISTERED_ELECTRONIC_ONLY."""
    return await run_transition(db, client, "electronic-only", npi, provider_id)
