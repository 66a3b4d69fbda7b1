"""
Integration tests for workouts and the exercise catalog, driven through the
query layer over the in-memory backend.
"""

import pytest

from libs.common.errors import AuthorizationError, ConflictError, FieldValidationError
from services.coaching_service import tables
from services.coaching_service.schemas import (
    ExerciseCreate,
    WorkoutCreate,
    WorkoutExerciseInput,
    WorkoutUpdate,
)
from services.coaching_service.services import workout_service
from tests.factories import ExerciseFactory, SessionFactory

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def exercises(remote, coach) -> list[dict]:
    return remote.seed(
        tables.EXERCISES,
        ExerciseFactory.create(name="Squat"),
        ExerciseFactory.create(name="Pompes"),
        ExerciseFactory.create(created_by=coach["id"], name="Burpees maison"),
    )


def _items(*exercise_rows: dict) -> list[WorkoutExerciseInput]:
    return [
        WorkoutExerciseInput(exercise_id=row["id"], sets=4, reps="8-10")
        for row in exercise_rows
    ]


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_created_workout_is_listed_with_ordered_exercises(queries, coach, exercises):
    squat, pushups, _ = exercises

    created = await queries.create_workout(
        coach["id"], WorkoutCreate(name="Full Body A"), _items(pushups, squat)
    )
    workouts = await queries.workouts(coach["id"])

    assert len(workouts) == 1
    (workout,) = workouts
    assert workout.id == created.id
    assert workout.name == "Full Body A"
    assert [item.exercise_id for item in workout.exercises] == [pushups["id"], squat["id"]]
    assert [item.order_index for item in workout.exercises] == [0, 1]
    assert workout.exercises[0].exercise.name == "Pompes"
    assert queries.workout_store.workouts.get(created.id) is not None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_listing_after_create_reflects_write(queries, coach, exercises):
    assert await queries.workouts(coach["id"]) == []

    await queries.create_workout(coach["id"], WorkoutCreate(name="Haut du corps"))

    assert [w.name for w in await queries.workouts(coach["id"])] == ["Haut du corps"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_failed_association_insert_removes_workout(remote, queries, coach, exercises):
    remote.fail("insert", tables.WORKOUT_EXERCISES, ConflictError("foreign key violation"))

    with pytest.raises(ConflictError):
        await queries.create_workout(
            coach["id"], WorkoutCreate(name="Full Body A"), _items(*exercises[:2])
        )

    assert remote.rows(tables.WORKOUTS) == []
    assert remote.rows(tables.WORKOUT_EXERCISES) == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_workout_limit_blocks_before_insert(remote, queries, coach):
    remote.seed(
        tables.WORKOUTS,
        *[{"name": f"Séance {i}", "created_by": coach["id"]} for i in range(15)],
    )
    remote.calls.clear()

    with pytest.raises(AuthorizationError) as exc_info:
        await queries.create_workout(coach["id"], WorkoutCreate(name="Une de trop"))

    assert exc_info.value.code == "plan_limit_reached"
    assert ("insert", tables.WORKOUTS) not in remote.calls


# ---------------------------------------------------------------------------
# Update / reorder / delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reorder_by_association_id(queries, coach, exercises):
    workout = await queries.create_workout(
        coach["id"], WorkoutCreate(name="Full Body A"), _items(*exercises)
    )
    ids = [item.id for item in workout.exercises]

    reordered = await queries.reorder_workout(workout.id, list(reversed(ids)))

    assert [item.id for item in reordered.exercises] == list(reversed(ids))
    assert [item.order_index for item in reordered.exercises] == [0, 1, 2]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reorder_rejects_partial_list(remote, queries, coach, exercises):
    workout = await queries.create_workout(
        coach["id"], WorkoutCreate(name="Full Body A"), _items(*exercises[:2])
    )

    with pytest.raises(FieldValidationError) as exc_info:
        await queries.reorder_workout(workout.id, [workout.exercises[0].id])

    assert exc_info.value.field == "association_ids"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_and_stats(queries, coach, exercises):
    workout = await queries.create_workout(
        coach["id"],
        WorkoutCreate(name="Full Body A", themes=["Force"]),
        _items(*exercises[:2]),
    )
    assert (await queries.workout_stats(coach["id"])).total_exercises == 2

    updated = await queries.update_workout(workout.id, WorkoutUpdate(name="Full Body B"))
    stats = await queries.workout_stats(coach["id"])

    assert updated.name == "Full Body B"
    assert len(updated.exercises) == 2
    assert stats.total_workouts == 1
    assert stats.by_theme == {"Force": 1}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_removes_associations_then_workout(remote, queries, coach, exercises):
    workout = await queries.create_workout(
        coach["id"], WorkoutCreate(name="Full Body A"), _items(*exercises[:2])
    )
    remote.calls.clear()

    await queries.delete_workout(workout.id, coach["id"])

    deletes = [call for call in remote.calls if call[0] == "delete"]
    assert deletes == [("delete", tables.WORKOUT_EXERCISES), ("delete", tables.WORKOUTS)]
    assert remote.rows(tables.WORKOUT_EXERCISES) == []
    assert await queries.workouts(coach["id"]) == []
    assert queries.workout_store.workouts.get(workout.id) is None


# ---------------------------------------------------------------------------
# Exercises
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_exercise_catalog_merges_own_and_public(queries, coach, exercises):
    catalog = await queries.exercises(coach["id"])
    assert [e.name for e in catalog] == ["Burpees maison", "Pompes", "Squat"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_custom_exercise_counts_against_plan(remote, coach):
    created = await workout_service.create_exercise(
        remote, user_id=coach["id"], data=ExerciseCreate(name="Gainage")
    )
    assert created.is_custom
    assert created.created_by == coach["id"]

    remote.seed(
        tables.EXERCISES,
        *[ExerciseFactory.create(created_by=coach["id"]) for _ in range(29)],
    )
    with pytest.raises(AuthorizationError):
        await workout_service.create_exercise(
            remote, user_id=coach["id"], data=ExerciseCreate(name="Une de trop")
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_workout_refreshes_cached_sessions(remote, queries, coach, client_row):
    workout = await queries.create_workout(coach["id"], WorkoutCreate(name="Full Body A"))
    remote.seed(tables.SESSIONS, SessionFactory.create(client_row["id"], workout_id=workout.id))
    assert len(await queries.sessions(client_row["id"])) == 1

    await queries.delete_workout(workout.id, coach["id"])
    remote.calls.clear()
    await queries.sessions(client_row["id"])

    assert ("select", tables.SESSIONS) in remote.calls
