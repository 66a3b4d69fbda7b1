"""Unit tests for the in-memory stores."""

import pytest

from libs.common.errors import NotFoundError
from services.coaching_service.schemas import Client, RoleEnum, Workout, WorkoutExercise
from services.coaching_service.stores import (
    AuthStore,
    ClientStore,
    StatePersistence,
    StoredUser,
    WorkoutStore,
)


def _client(client_id: str, first_name: str = "Marie", **fields) -> Client:
    return Client(id=client_id, coach_id="coach-1", first_name=first_name, **fields)


def _user() -> StoredUser:
    return StoredUser(id="u-1", email="paul@test.com", first_name="Paul", role=RoleEnum.COACH)


# ---------------------------------------------------------------------------
# EntityCollection
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_add_replaces_item_with_same_id():
    store = ClientStore()
    store.set_all([_client("a"), _client("b")])

    store.add(_client("a", first_name="Julie"))

    assert [c.id for c in store.items] == ["a", "b"]
    assert store.get("a").first_name == "Julie"


@pytest.mark.unit
def test_update_merges_fields_by_id():
    store = ClientStore()
    store.set_all([_client("a"), _client("b")])

    updated = store.update("b", needs_attention=True)

    assert updated.needs_attention
    assert store.needing_attention() == [updated]
    with pytest.raises(NotFoundError):
        store.update("missing", needs_attention=True)


@pytest.mark.unit
def test_remove_clears_selection():
    store = ClientStore()
    store.set_all([_client("a"), _client("b")])
    store.select("a")
    assert store.selected.id == "a"

    store.remove("a")

    assert store.selected is None
    assert len(store) == 1


@pytest.mark.unit
def test_select_unknown_id_raises():
    store = ClientStore()
    with pytest.raises(NotFoundError):
        store.select("nobody")


@pytest.mark.unit
def test_listeners_notified_until_unsubscribed():
    store = ClientStore()
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append(1))

    store.add(_client("a"))
    store.set_loading(True)
    unsubscribe()
    store.remove("a")

    assert len(calls) == 2


@pytest.mark.unit
def test_client_search_matches_name_and_contact():
    store = ClientStore()
    store.set_all(
        [
            _client("a", first_name="Marie", last_name="Dupont", contact="marie@test.com"),
            _client("b", first_name="Lucas", contact="lucas@test.com"),
        ]
    )

    assert [c.id for c in store.search("dupont")] == ["a"]
    assert [c.id for c in store.search("LUCAS@")] == ["b"]


@pytest.mark.unit
def test_workout_store_forwards_collection_changes():
    store = WorkoutStore()
    calls = []
    store.subscribe(lambda: calls.append(1))

    workout = Workout(
        id="w-1",
        name="Full Body A",
        created_by="coach-1",
        exercises=[
            WorkoutExercise(id="we-1", workout_id="w-1", exercise_id="ex-1", order_index=0)
        ],
    )
    store.workouts.add(workout)

    assert calls == [1]
    assert store.workouts_with_exercise("ex-1") == [workout]
    assert store.workouts_with_exercise("ex-2") == []


# ---------------------------------------------------------------------------
# AuthStore
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_login_persists_user_but_not_loading(tmp_path):
    path = tmp_path / "auth.json"
    store = AuthStore(StatePersistence(path))
    store.set_loading(True)
    store.login(_user())

    restored = AuthStore(StatePersistence(path))

    assert restored.is_authenticated
    assert restored.user.email == "paul@test.com"
    assert restored.role == RoleEnum.COACH
    assert restored.is_loading is False
    assert "is_loading" not in path.read_text("utf-8")


@pytest.mark.unit
def test_logout_clears_persisted_user(tmp_path):
    path = tmp_path / "auth.json"
    store = AuthStore(StatePersistence(path))
    store.login(_user())
    store.logout()

    restored = AuthStore(StatePersistence(path))

    assert not restored.is_authenticated
    assert restored.user is None


@pytest.mark.unit
def test_unreadable_state_starts_logged_out(tmp_path):
    path = tmp_path / "auth.json"
    path.write_text("{not json", "utf-8")

    store = AuthStore(StatePersistence(path))

    assert store.user is None
    assert not store.is_authenticated
