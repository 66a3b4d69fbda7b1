"""
Exercise catalog and workout programs.

A workout is stored as a parent row plus one ``workout_exercises`` row per
exercise, ordered by ``order_index``. The backend has no multi-statement
transaction, so composite writes are sequenced here:

- create: parent first, then all children in one insert; if the children
  fail the parent is removed again and the error is re-raised.
- delete: children first, then the parent.
"""

import asyncio
from collections import Counter
from typing import Mapping, Optional, Sequence, Union

from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    CoachingError,
    FieldValidationError,
    NotFoundError,
)
from libs.common.logging import get_logger
from libs.common.plan_limits import PlanLimits, check_limit
from libs.remote.client import RemoteDataClient, eq, in_
from services.coaching_service import tables
from services.coaching_service.schemas import (
    Exercise,
    ExerciseCreate,
    ExerciseUpdate,
    Workout,
    WorkoutCreate,
    WorkoutExercise,
    WorkoutExerciseInput,
    WorkoutStats,
    WorkoutUpdate,
)
from services.coaching_service.services.profile_service import get_coach_limits

logger = get_logger(__name__)

Limits = Union[PlanLimits, Mapping]


# ---------------------------------------------------------------------------
# Exercises
# ---------------------------------------------------------------------------


async def list_exercises(remote: RemoteDataClient, *, user_id: str) -> list[Exercise]:
    """The user's own exercises plus the public catalog, ordered by name."""
    own, public = await asyncio.gather(
        remote.fetch_all(tables.EXERCISES, eq("created_by", user_id)),
        remote.fetch_all(tables.EXERCISES, eq("is_public", True)),
    )
    merged = {row["id"]: row for row in public}
    merged.update({row["id"]: row for row in own})
    exercises = [Exercise.model_validate(row) for row in merged.values()]
    return sorted(exercises, key=lambda e: e.name.lower())


async def get_exercise(
    remote: RemoteDataClient, *, exercise_id: str
) -> Optional[Exercise]:
    row = await remote.fetch_maybe(tables.EXERCISES, eq("id", exercise_id))
    return Exercise.model_validate(row) if row else None


async def create_exercise(
    remote: RemoteDataClient,
    *,
    user_id: str,
    data: ExerciseCreate,
    limits: Optional[Limits] = None,
) -> Exercise:
    if limits is None:
        limits = await get_coach_limits(remote, coach_id=user_id)
    own = await remote.fetch_all(tables.EXERCISES, eq("created_by", user_id), columns="id")
    check_limit(limits, "exercises", len(own))

    row = data.model_dump(mode="json", exclude_none=True)
    row.update({"created_by": user_id, "is_custom": True})
    created = await remote.insert_one(tables.EXERCISES, row)
    logger.info("Created exercise %s for %s", created["id"], user_id)
    return Exercise.model_validate(created)


async def update_exercise(
    remote: RemoteDataClient, *, exercise_id: str, data: ExerciseUpdate
) -> Exercise:
    values = data.model_dump(mode="json", exclude_unset=True)
    if not values:
        raise FieldValidationError("Aucune modification à enregistrer")
    values["updated_at"] = utc_now().isoformat()
    rows = await remote.update(tables.EXERCISES, values, eq("id", exercise_id))
    if not rows:
        raise NotFoundError(f"Exercise {exercise_id} not found")
    return Exercise.model_validate(rows[0])


async def delete_exercise(remote: RemoteDataClient, *, exercise_id: str) -> None:
    """
    Delete an exercise. Fails with ``ConflictError`` (foreign key) while a
    workout still references it.
    """
    rows = await remote.delete(tables.EXERCISES, eq("id", exercise_id))
    if not rows:
        raise NotFoundError(f"Exercise {exercise_id} not found")


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------


async def _attach_exercises(
    remote: RemoteDataClient, workout_rows: list[dict]
) -> list[Workout]:
    if not workout_rows:
        return []

    workout_ids = [row["id"] for row in workout_rows]
    links = await remote.fetch_all(
        tables.WORKOUT_EXERCISES, in_("workout_id", workout_ids), order_by="order_index"
    )
    exercise_ids = sorted({link["exercise_id"] for link in links})
    exercises = {}
    if exercise_ids:
        rows = await remote.fetch_all(tables.EXERCISES, in_("id", exercise_ids))
        exercises = {row["id"]: row for row in rows}

    by_workout: dict[str, list[WorkoutExercise]] = {wid: [] for wid in workout_ids}
    for link in links:
        item = WorkoutExercise.model_validate(
            {**link, "exercise": exercises.get(link["exercise_id"])}
        )
        by_workout[link["workout_id"]].append(item)

    workouts = []
    for row in workout_rows:
        items = sorted(by_workout[row["id"]], key=lambda item: item.order_index)
        workouts.append(Workout.model_validate({**row, "exercises": items}))
    return workouts


async def list_workouts(remote: RemoteDataClient, *, coach_id: str) -> list[Workout]:
    rows = await remote.fetch_all(
        tables.WORKOUTS,
        eq("created_by", coach_id),
        order_by="created_at",
        descending=True,
    )
    return await _attach_exercises(remote, rows)


async def get_workout(remote: RemoteDataClient, *, workout_id: str) -> Optional[Workout]:
    row = await remote.fetch_maybe(tables.WORKOUTS, eq("id", workout_id))
    if row is None:
        return None
    workouts = await _attach_exercises(remote, [row])
    return workouts[0]


def _association_rows(
    workout_id: str, items: Sequence[WorkoutExerciseInput], start_index: int = 0
) -> list[dict]:
    return [
        {
            "workout_id": workout_id,
            "exercise_id": item.exercise_id,
            "sets": item.sets,
            "reps": item.reps,
            "rest": item.rest,
            "order_index": start_index + position,
        }
        for position, item in enumerate(items)
    ]


async def create_workout(
    remote: RemoteDataClient,
    *,
    coach_id: str,
    data: WorkoutCreate,
    exercises: Sequence[WorkoutExerciseInput] = (),
    limits: Optional[Limits] = None,
) -> Workout:
    """
    Create a workout and its ordered exercise associations.

    A failure while inserting the associations fails the whole operation; the
    parent row is removed before the error propagates.
    """
    if limits is None:
        limits = await get_coach_limits(remote, coach_id=coach_id)
    existing = await remote.fetch_all(
        tables.WORKOUTS, eq("created_by", coach_id), columns="id"
    )
    check_limit(limits, "workouts", len(existing))

    row = data.model_dump(mode="json", exclude_none=True)
    row["created_by"] = coach_id
    parent = await remote.insert_one(tables.WORKOUTS, row)
    workout_id = parent["id"]

    if exercises:
        try:
            await remote.insert(
                tables.WORKOUT_EXERCISES, _association_rows(workout_id, exercises)
            )
        except CoachingError:
            logger.warning(
                "Adding exercises to workout %s failed, removing the workout",
                workout_id,
            )
            try:
                await remote.delete(tables.WORKOUT_EXERCISES, eq("workout_id", workout_id))
                await remote.delete(tables.WORKOUTS, eq("id", workout_id))
            except CoachingError:
                logger.exception(
                    "Could not remove workout %s after a failed create", workout_id
                )
            raise

    logger.info(
        "Created workout %s (%s) with %d exercise(s)",
        workout_id,
        data.name,
        len(exercises),
    )
    workout = await get_workout(remote, workout_id=workout_id)
    if workout is None:
        raise NotFoundError(f"Workout {workout_id} not found after create")
    return workout


async def update_workout(
    remote: RemoteDataClient, *, workout_id: str, data: WorkoutUpdate
) -> Workout:
    values = data.model_dump(mode="json", exclude_unset=True)
    if not values:
        raise FieldValidationError("Aucune modification à enregistrer")
    values["updated_at"] = utc_now().isoformat()
    rows = await remote.update(tables.WORKOUTS, values, eq("id", workout_id))
    if not rows:
        raise NotFoundError(f"Workout {workout_id} not found")
    workouts = await _attach_exercises(remote, rows[:1])
    return workouts[0]


async def delete_workout(remote: RemoteDataClient, *, workout_id: str) -> None:
    """Delete the exercise associations, then the workout itself."""
    await remote.delete(tables.WORKOUT_EXERCISES, eq("workout_id", workout_id))
    rows = await remote.delete(tables.WORKOUTS, eq("id", workout_id))
    if not rows:
        raise NotFoundError(f"Workout {workout_id} not found")
    logger.info("Deleted workout %s", workout_id)


async def add_exercise_to_workout(
    remote: RemoteDataClient, *, workout_id: str, item: WorkoutExerciseInput
) -> WorkoutExercise:
    """Append an exercise at the end of the workout."""
    links = await remote.fetch_all(
        tables.WORKOUT_EXERCISES, eq("workout_id", workout_id), columns="order_index"
    )
    next_index = max((link["order_index"] for link in links), default=-1) + 1
    created = await remote.insert_one(
        tables.WORKOUT_EXERCISES, _association_rows(workout_id, [item], next_index)[0]
    )
    return WorkoutExercise.model_validate(created)


async def remove_exercise_from_workout(
    remote: RemoteDataClient, *, association_id: str
) -> None:
    rows = await remote.delete(tables.WORKOUT_EXERCISES, eq("id", association_id))
    if not rows:
        raise NotFoundError(f"Workout exercise {association_id} not found")


async def reorder_workout_exercises(
    remote: RemoteDataClient, *, workout_id: str, association_ids: Sequence[str]
) -> Workout:
    """
    Rewrite ``order_index`` from the given association order.

    The ids must be exactly the workout's current associations; updates are
    keyed by id, never by position.
    """
    links = await remote.fetch_all(tables.WORKOUT_EXERCISES, eq("workout_id", workout_id))
    current = {link["id"] for link in links}
    if len(association_ids) != len(set(association_ids)) or set(association_ids) != current:
        raise FieldValidationError(
            "La nouvelle liste ne correspond pas aux exercices de la séance",
            field="association_ids",
        )

    for position, association_id in enumerate(association_ids):
        await remote.update(
            tables.WORKOUT_EXERCISES, {"order_index": position}, eq("id", association_id)
        )

    workout = await get_workout(remote, workout_id=workout_id)
    if workout is None:
        raise NotFoundError(f"Workout {workout_id} not found")
    return workout


async def get_workout_stats(remote: RemoteDataClient, *, coach_id: str) -> WorkoutStats:
    workouts = await list_workouts(remote, coach_id=coach_id)
    levels = Counter(w.level.value for w in workouts if w.level)
    themes = Counter(theme for w in workouts for theme in w.themes)
    return WorkoutStats(
        total_workouts=len(workouts),
        total_exercises=sum(len(w.exercises) for w in workouts),
        by_level=dict(levels),
        by_theme=dict(themes),
    )
