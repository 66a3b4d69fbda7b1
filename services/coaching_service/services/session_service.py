"""Scheduled sessions: a workout planned for a client on a given day."""

from datetime import date
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import NotFoundError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq, in_
from services.coaching_service import tables
from services.coaching_service.schemas import (
    Session,
    SessionCreate,
    SessionFeedback,
    SessionStatusEnum,
)

logger = get_logger(__name__)


async def list_sessions(remote: RemoteDataClient, *, client_id: str) -> list[Session]:
    rows = await remote.fetch_all(
        tables.SESSIONS, eq("client_id", client_id), order_by="scheduled_date"
    )
    return [Session.model_validate(row) for row in rows]


async def list_sessions_for_clients(
    remote: RemoteDataClient, *, client_ids: list[str]
) -> list[Session]:
    if not client_ids:
        return []
    rows = await remote.fetch_all(
        tables.SESSIONS, in_("client_id", client_ids), order_by="scheduled_date"
    )
    return [Session.model_validate(row) for row in rows]


async def schedule_session(remote: RemoteDataClient, *, data: SessionCreate) -> Session:
    row = data.model_dump(mode="json")
    row["status"] = SessionStatusEnum.SCHEDULED.value
    created = await remote.insert_one(tables.SESSIONS, row)
    logger.info(
        "Scheduled session %s for client %s on %s",
        created["id"],
        data.client_id,
        data.scheduled_date,
    )
    return Session.model_validate(created)


async def _update_session(
    remote: RemoteDataClient, session_id: str, values: dict
) -> Session:
    rows = await remote.update(tables.SESSIONS, values, eq("id", session_id))
    if not rows:
        raise NotFoundError(f"Session {session_id} not found")
    return Session.model_validate(rows[0])


async def mark_in_progress(remote: RemoteDataClient, *, session_id: str) -> Session:
    return await _update_session(
        remote, session_id, {"status": SessionStatusEnum.IN_PROGRESS.value}
    )


async def mark_completed(
    remote: RemoteDataClient,
    *,
    session_id: str,
    feedback: Optional[SessionFeedback] = None,
) -> Session:
    values = {
        "status": SessionStatusEnum.COMPLETED.value,
        "completed_at": utc_now().isoformat(),
    }
    if feedback is not None:
        values.update(feedback.model_dump(exclude_none=True))
    return await _update_session(remote, session_id, values)


async def mark_missed(remote: RemoteDataClient, *, session_id: str) -> Session:
    return await _update_session(
        remote,
        session_id,
        {"status": SessionStatusEnum.MISSED.value, "completed_at": None},
    )


async def reprogram(
    remote: RemoteDataClient, *, session_id: str, new_date: date
) -> Session:
    """Move a session (typically a missed one) back to scheduled on ``new_date``."""
    return await _update_session(
        remote,
        session_id,
        {
            "status": SessionStatusEnum.SCHEDULED.value,
            "scheduled_date": new_date.isoformat(),
            "completed_at": None,
        },
    )


async def delete_session(remote: RemoteDataClient, *, session_id: str) -> None:
    rows = await remote.delete(tables.SESSIONS, eq("id", session_id))
    if not rows:
        raise NotFoundError(f"Session {session_id} not found")
