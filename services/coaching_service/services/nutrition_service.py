"""Meal logging, coach comments, daily goals and hydration."""

import asyncio
from datetime import date
from typing import Optional

from libs.common.datetime_utils import day_bounds, utc_now
from libs.common.errors import FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq, gte, lte
from services.coaching_service import tables
from services.coaching_service.schemas import (
    HydrationRecord,
    NutritionComment,
    NutritionEntry,
    NutritionEntryCreate,
    NutritionEntryUpdate,
    NutritionGoals,
    NutritionProgress,
    NutritionStats,
)

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


async def list_client_entries(
    remote: RemoteDataClient, *, client_id: str, day: Optional[date] = None
) -> list[NutritionEntry]:
    filters = [eq("client_id", client_id)]
    if day is not None:
        start, end = day_bounds(day)
        filters += [gte("created_at", start.isoformat()), lte("created_at", end.isoformat())]
    rows = await remote.fetch_all(
        tables.NUTRITION_ENTRIES, *filters, order_by="created_at", descending=True
    )
    return [NutritionEntry.model_validate(row) for row in rows]


async def list_coach_entries(
    remote: RemoteDataClient, *, coach_id: str, client_id: Optional[str] = None
) -> list[NutritionEntry]:
    filters = [eq("coach_id", coach_id)]
    if client_id:
        filters.append(eq("client_id", client_id))
    rows = await remote.fetch_all(
        tables.NUTRITION_ENTRIES, *filters, order_by="created_at", descending=True
    )
    return [NutritionEntry.model_validate(row) for row in rows]


async def create_entry(
    remote: RemoteDataClient, *, data: NutritionEntryCreate
) -> NutritionEntry:
    created = await remote.insert_one(
        tables.NUTRITION_ENTRIES, data.model_dump(mode="json", exclude_none=True)
    )
    return NutritionEntry.model_validate(created)


async def update_entry(
    remote: RemoteDataClient, *, entry_id: str, data: NutritionEntryUpdate
) -> NutritionEntry:
    values = data.model_dump(mode="json", exclude_unset=True)
    if not values:
        raise FieldValidationError("Aucune modification à enregistrer")
    values["updated_at"] = utc_now().isoformat()
    rows = await remote.update(tables.NUTRITION_ENTRIES, values, eq("id", entry_id))
    if not rows:
        raise NotFoundError(f"Nutrition entry {entry_id} not found")
    return NutritionEntry.model_validate(rows[0])


async def delete_entry(remote: RemoteDataClient, *, entry_id: str) -> None:
    await remote.delete(tables.NUTRITION_COMMENTS, eq("nutrition_entry_id", entry_id))
    rows = await remote.delete(tables.NUTRITION_ENTRIES, eq("id", entry_id))
    if not rows:
        raise NotFoundError(f"Nutrition entry {entry_id} not found")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def add_comment(
    remote: RemoteDataClient, *, entry_id: str, coach_id: str, comment: str
) -> NutritionComment:
    if not comment.strip():
        raise FieldValidationError("Le commentaire est vide", field="comment")
    created = await remote.insert_one(
        tables.NUTRITION_COMMENTS,
        {"nutrition_entry_id": entry_id, "coach_id": coach_id, "comment": comment.strip()},
    )
    return NutritionComment.model_validate(created)


async def list_comments(
    remote: RemoteDataClient, *, entry_id: str
) -> list[NutritionComment]:
    rows = await remote.fetch_all(
        tables.NUTRITION_COMMENTS, eq("nutrition_entry_id", entry_id), order_by="created_at"
    )
    return [NutritionComment.model_validate(row) for row in rows]


# ---------------------------------------------------------------------------
# Goals and hydration
# ---------------------------------------------------------------------------


async def get_goals(
    remote: RemoteDataClient, *, client_id: str
) -> Optional[NutritionGoals]:
    row = await remote.fetch_maybe(tables.NUTRITION_GOALS, eq("client_id", client_id))
    return NutritionGoals.model_validate(row) if row else None


async def upsert_goals(
    remote: RemoteDataClient, *, goals: NutritionGoals
) -> NutritionGoals:
    """Create or replace the client's goals. Unset targets use the defaults."""
    row = goals.model_dump(mode="json", exclude={"id", "updated_at"}, exclude_none=True)
    row["updated_at"] = utc_now().isoformat()
    saved = await remote.upsert(tables.NUTRITION_GOALS, row, on_conflict="client_id")
    return NutritionGoals.model_validate(saved)


async def get_hydration(
    remote: RemoteDataClient, *, client_id: str, day: date
) -> Optional[HydrationRecord]:
    row = await remote.fetch_maybe(
        tables.HYDRATION, eq("client_id", client_id), eq("date", day.isoformat())
    )
    return HydrationRecord.model_validate(row) if row else None


async def record_hydration(
    remote: RemoteDataClient,
    *,
    client_id: str,
    glasses_count: int,
    day: Optional[date] = None,
) -> HydrationRecord:
    """Set the glass count for one client and day (one row per pair)."""
    if glasses_count < 0:
        raise FieldValidationError(
            "Le nombre de verres ne peut pas être négatif", field="glasses_count"
        )
    day = day or utc_now().date()
    saved = await remote.upsert(
        tables.HYDRATION,
        {"client_id": client_id, "date": day.isoformat(), "glasses_count": glasses_count},
        on_conflict="client_id,date",
    )
    return HydrationRecord.model_validate(saved)


async def add_water_glass(
    remote: RemoteDataClient, *, client_id: str, day: Optional[date] = None
) -> HydrationRecord:
    day = day or utc_now().date()
    current = await get_hydration(remote, client_id=client_id, day=day)
    count = current.glasses_count if current else 0
    return await record_hydration(
        remote, client_id=client_id, glasses_count=count + 1, day=day
    )


# ---------------------------------------------------------------------------
# Daily statistics
# ---------------------------------------------------------------------------


def _percent(total: float, target: Optional[float]) -> float:
    return round(total / target * 100, 1) if target else 0


async def get_daily_stats(
    remote: RemoteDataClient, *, client_id: str, day: Optional[date] = None
) -> NutritionStats:
    day = day or utc_now().date()
    entries, hydration, goals = await asyncio.gather(
        list_client_entries(remote, client_id=client_id, day=day),
        get_hydration(remote, client_id=client_id, day=day),
        get_goals(remote, client_id=client_id),
    )

    totals = {
        field: sum(getattr(entry, field) or 0 for entry in entries)
        for field in ("calories", "proteins", "carbs", "fats")
    }
    water = hydration.glasses_count if hydration else 0

    progress = NutritionProgress()
    if goals is not None:
        progress = NutritionProgress(
            calories=_percent(totals["calories"], goals.daily_calories),
            proteins=_percent(totals["proteins"], goals.daily_proteins),
            carbs=_percent(totals["carbs"], goals.daily_carbs),
            fats=_percent(totals["fats"], goals.daily_fats),
            water=_percent(water, goals.daily_water_glasses),
        )

    return NutritionStats(
        day=day,
        total_calories=totals["calories"],
        total_proteins=totals["proteins"],
        total_carbs=totals["carbs"],
        total_fats=totals["fats"],
        water_glasses=water,
        goals=goals,
        progress=progress,
    )
