"""Client-side state stores."""

from services.coaching_service.stores.auth_store import (
    AuthStore,
    PersistedAuthState,
    StatePersistence,
    StoredUser,
)
from services.coaching_service.stores.base import EntityCollection, Observable
from services.coaching_service.stores.client_store import ClientStore
from services.coaching_service.stores.workout_store import WorkoutStore

__all__ = [
    "AuthStore",
    "ClientStore",
    "EntityCollection",
    "Observable",
    "PersistedAuthState",
    "StatePersistence",
    "StoredUser",
    "WorkoutStore",
]
