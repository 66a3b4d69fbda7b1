from services.coaching_service.schemas import Exercise, Session, Workout
from services.coaching_service.stores.base import EntityCollection, Observable


class WorkoutStore(Observable):
    """Workout catalog: workouts, exercises and scheduled sessions."""

    def __init__(self) -> None:
        super().__init__()
        self.workouts: EntityCollection[Workout] = EntityCollection()
        self.exercises: EntityCollection[Exercise] = EntityCollection()
        self.sessions: EntityCollection[Session] = EntityCollection()
        for collection in (self.workouts, self.exercises, self.sessions):
            collection.subscribe(self._notify)

    def sessions_for_client(self, client_id: str) -> list[Session]:
        return self.sessions.filter(lambda s: s.client_id == client_id)

    def workouts_with_exercise(self, exercise_id: str) -> list[Workout]:
        return self.workouts.filter(
            lambda w: any(item.exercise_id == exercise_id for item in w.exercises)
        )
