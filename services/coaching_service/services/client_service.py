"""Client roster management for coaches."""

import asyncio
from typing import Mapping, Optional, Union

from libs.common.datetime_utils import utc_now
from libs.common.errors import ConflictError, FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.common.plan_limits import PlanLimits, check_limit
from libs.remote.client import RemoteDataClient, eq
from services.coaching_service import tables
from services.coaching_service.schemas import (
    Client,
    ClientCreate,
    ClientProgress,
    ClientUpdate,
    SessionStatusEnum,
)
from services.coaching_service.services.profile_service import get_coach_limits

logger = get_logger(__name__)


async def list_clients(remote: RemoteDataClient, *, coach_id: str) -> list[Client]:
    rows = await remote.fetch_all(
        tables.CLIENTS, eq("coach_id", coach_id), order_by="created_at", descending=True
    )
    return [Client.model_validate(row) for row in rows]


async def get_client(remote: RemoteDataClient, *, client_id: str) -> Optional[Client]:
    row = await remote.fetch_maybe(tables.CLIENTS, eq("id", client_id))
    return Client.model_validate(row) if row else None


async def find_client_by_email(
    remote: RemoteDataClient, *, coach_id: str, email: str
) -> Optional[Client]:
    row = await remote.fetch_maybe(
        tables.CLIENTS, eq("coach_id", coach_id), eq("contact", email.strip().lower())
    )
    return Client.model_validate(row) if row else None


async def count_clients(remote: RemoteDataClient, *, coach_id: str) -> int:
    rows = await remote.fetch_all(tables.CLIENTS, eq("coach_id", coach_id), columns="id")
    return len(rows)


async def create_client(
    remote: RemoteDataClient,
    *,
    coach_id: str,
    data: ClientCreate,
    limits: Optional[Union[PlanLimits, Mapping]] = None,
    extra: Optional[dict] = None,
) -> Client:
    """
    Create a client for ``coach_id``.

    Enforces the coach's ``max_clients`` and rejects a second client with the
    same contact email for the same coach.
    """
    if limits is None:
        limits = await get_coach_limits(remote, coach_id=coach_id)
    check_limit(limits, "clients", await count_clients(remote, coach_id=coach_id))

    contact = str(data.contact).lower()
    if await find_client_by_email(remote, coach_id=coach_id, email=contact):
        raise ConflictError(f"Un client avec l'email {contact} existe déjà")

    row = data.model_dump(mode="json", exclude_none=True)
    row["contact"] = contact
    row["coach_id"] = coach_id
    if data.poids_depart is not None:
        row["poids_actuel"] = data.poids_depart
    if extra:
        row.update(extra)

    created = await remote.insert_one(tables.CLIENTS, row)
    logger.info("Created client %s for coach %s", created["id"], coach_id)
    return Client.model_validate(created)


async def update_client(
    remote: RemoteDataClient, *, client_id: str, data: ClientUpdate
) -> Client:
    values = data.model_dump(mode="json", exclude_unset=True)
    if not values:
        raise FieldValidationError("Aucune modification à enregistrer")
    if "contact" in values and values["contact"]:
        values["contact"] = values["contact"].lower()
    values["updated_at"] = utc_now().isoformat()

    rows = await remote.update(tables.CLIENTS, values, eq("id", client_id))
    if not rows:
        raise NotFoundError(f"Client {client_id} not found")
    return Client.model_validate(rows[0])


async def delete_client(remote: RemoteDataClient, *, client_id: str) -> None:
    rows = await remote.delete(tables.CLIENTS, eq("id", client_id))
    if not rows:
        raise NotFoundError(f"Client {client_id} not found")
    logger.info("Deleted client %s", client_id)


async def get_client_progress(
    remote: RemoteDataClient, *, client_id: str
) -> ClientProgress:
    client = await get_client(remote, client_id=client_id)
    if client is None:
        raise NotFoundError(f"Client {client_id} not found")

    sessions, feedbacks = await asyncio.gather(
        remote.fetch_all(tables.SESSIONS, eq("client_id", client_id)),
        remote.fetch_all(
            tables.WEEKLY_FEEDBACKS, eq("client_id", client_id), eq("status", "completed")
        ),
    )

    completed = sum(1 for s in sessions if s.get("status") == SessionStatusEnum.COMPLETED)
    missed = sum(1 for s in sessions if s.get("status") == SessionStatusEnum.MISSED)
    scores = [f["score"] for f in feedbacks if f.get("score") is not None]

    weight_change = None
    if client.poids_depart is not None and client.poids_actuel is not None:
        weight_change = round(client.poids_actuel - client.poids_depart, 1)

    return ClientProgress(
        client_id=client_id,
        start_weight=client.poids_depart,
        current_weight=client.poids_actuel,
        target_weight=client.poids_objectif,
        weight_change=weight_change,
        total_sessions=len(sessions),
        completed_sessions=completed,
        missed_sessions=missed,
        completion_rate=round(completed / len(sessions) * 100) if sessions else 0,
        completed_feedbacks=len(feedbacks),
        average_feedback_score=(
            round(sum(scores) / len(scores), 1) if scores else None
        ),
    )
