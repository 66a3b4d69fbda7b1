"""
Query layer bound to the domain services.

Each read goes through the shared ``QueryCache`` under its key, each write
goes through ``QueryCache.mutate`` and names every key that could hold the
written entity. Client and workout lists are mirrored into their stores.
"""

import asyncio
from datetime import date
from typing import Optional, Sequence

from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient
from services.coaching_service.queries import keys
from services.coaching_service.queries.cache import QueryCache
from services.coaching_service.schemas import (
    Client,
    ClientCreate,
    ClientProgress,
    ClientUpdate,
    Conversation,
    Exercise,
    FeedbackResponse,
    FeedbackStats,
    FeedbackStatusEnum,
    FeedbackTemplate,
    Message,
    MessageCreate,
    NutritionEntry,
    NutritionEntryCreate,
    NutritionStats,
    Profile,
    ProgressPhoto,
    SenderTypeEnum,
    Session,
    SessionCreate,
    SessionFeedback,
    UploadFile,
    VoiceMessage,
    WeeklyFeedback,
    Workout,
    WorkoutCreate,
    WorkoutExerciseInput,
    WorkoutStats,
    WorkoutUpdate,
)
from services.coaching_service.services import (
    client_service,
    feedback_service,
    message_service,
    nutrition_service,
    profile_service,
    progress_photo_service,
    session_service,
    voice_message_service,
    workout_service,
)
from services.coaching_service.stores import ClientStore, WorkoutStore

logger = get_logger(__name__)


class CoachingQueries:
    def __init__(
        self,
        remote: RemoteDataClient,
        *,
        cache: Optional[QueryCache] = None,
        clients: Optional[ClientStore] = None,
        workouts: Optional[WorkoutStore] = None,
    ):
        self.remote = remote
        self.cache = cache or QueryCache()
        self.client_store = clients or ClientStore()
        self.workout_store = workouts or WorkoutStore()

    # ----- profile --------------------------------------------------------

    async def profile(self, user_id: str) -> Optional[Profile]:
        return await self.cache.fetch(
            keys.profile(user_id),
            lambda: profile_service.get_profile(self.remote, user_id=user_id),
        )

    # ----- clients --------------------------------------------------------

    async def _load_clients(self, coach_id: str) -> list[Client]:
        self.client_store.set_loading(True)
        try:
            result = await client_service.list_clients(self.remote, coach_id=coach_id)
        finally:
            self.client_store.set_loading(False)
        self.client_store.set_all(result)
        return result

    async def clients(self, coach_id: str) -> list[Client]:
        return await self.cache.fetch(
            keys.clients(coach_id), lambda: self._load_clients(coach_id)
        )

    async def client(self, client_id: str) -> Optional[Client]:
        return await self.cache.fetch(
            keys.client(client_id),
            lambda: client_service.get_client(self.remote, client_id=client_id),
        )

    async def client_progress(self, client_id: str) -> ClientProgress:
        return await self.cache.fetch(
            keys.client_progress(client_id),
            lambda: client_service.get_client_progress(self.remote, client_id=client_id),
        )

    def prefetch_client(self, client_id: str) -> asyncio.Task:
        """Warm the client detail view ahead of navigation."""
        return self.cache.prefetch(
            keys.client(client_id),
            lambda: client_service.get_client(self.remote, client_id=client_id),
        )

    async def create_client(self, coach_id: str, data: ClientCreate) -> Client:
        return await self.cache.mutate(
            lambda: client_service.create_client(
                self.remote, coach_id=coach_id, data=data
            ),
            invalidates=lambda client: [
                keys.clients(coach_id),
                keys.client(client.id),
            ],
            on_success=self.client_store.add,
        )

    async def update_client(self, client_id: str, data: ClientUpdate) -> Client:
        return await self.cache.mutate(
            lambda: client_service.update_client(
                self.remote, client_id=client_id, data=data
            ),
            invalidates=lambda client: [
                keys.client(client.id),
                keys.clients(client.coach_id),
            ],
            on_success=self.client_store.add,
        )

    async def delete_client(self, client_id: str, coach_id: str) -> None:
        await self.cache.mutate(
            lambda: client_service.delete_client(self.remote, client_id=client_id),
            invalidates=[
                keys.client(client_id),
                keys.clients(coach_id),
                keys.sessions(client_id),
                keys.client_feedbacks(client_id),
            ],
            on_success=lambda _: self.client_store.remove(client_id),
        )

    # ----- workouts -------------------------------------------------------

    async def _load_workouts(self, coach_id: str) -> list[Workout]:
        self.workout_store.workouts.set_loading(True)
        try:
            result = await workout_service.list_workouts(self.remote, coach_id=coach_id)
        finally:
            self.workout_store.workouts.set_loading(False)
        self.workout_store.workouts.set_all(result)
        return result

    async def workouts(self, coach_id: str) -> list[Workout]:
        return await self.cache.fetch(
            keys.workouts(coach_id), lambda: self._load_workouts(coach_id)
        )

    async def workout_stats(self, coach_id: str) -> WorkoutStats:
        return await self.cache.fetch(
            keys.workout_stats(coach_id),
            lambda: workout_service.get_workout_stats(self.remote, coach_id=coach_id),
        )

    async def _load_exercises(self, user_id: str) -> list[Exercise]:
        result = await workout_service.list_exercises(self.remote, user_id=user_id)
        self.workout_store.exercises.set_all(result)
        return result

    async def exercises(self, user_id: str) -> list[Exercise]:
        return await self.cache.fetch(
            keys.exercises(user_id), lambda: self._load_exercises(user_id)
        )

    async def create_workout(
        self,
        coach_id: str,
        data: WorkoutCreate,
        exercises: Sequence[WorkoutExerciseInput] = (),
    ) -> Workout:
        return await self.cache.mutate(
            lambda: workout_service.create_workout(
                self.remote, coach_id=coach_id, data=data, exercises=exercises
            ),
            # ``("workouts", coach_id)`` also covers the stats key.
            invalidates=[keys.workouts(coach_id)],
            on_success=self.workout_store.workouts.add,
        )

    async def update_workout(self, workout_id: str, data: WorkoutUpdate) -> Workout:
        return await self.cache.mutate(
            lambda: workout_service.update_workout(
                self.remote, workout_id=workout_id, data=data
            ),
            invalidates=lambda workout: [keys.workouts(workout.created_by)],
            on_success=self.workout_store.workouts.add,
        )

    async def reorder_workout(
        self, workout_id: str, association_ids: Sequence[str]
    ) -> Workout:
        return await self.cache.mutate(
            lambda: workout_service.reorder_workout_exercises(
                self.remote, workout_id=workout_id, association_ids=association_ids
            ),
            invalidates=lambda workout: [keys.workouts(workout.created_by)],
            on_success=self.workout_store.workouts.add,
        )

    async def delete_workout(self, workout_id: str, coach_id: str) -> None:
        await self.cache.mutate(
            lambda: workout_service.delete_workout(self.remote, workout_id=workout_id),
            # Scheduled sessions may point at the deleted workout.
            invalidates=[keys.workouts(coach_id), keys.all_sessions()],
            on_success=lambda _: self.workout_store.workouts.remove(workout_id),
        )

    # ----- sessions -------------------------------------------------------

    async def sessions(self, client_id: str) -> list[Session]:
        return await self.cache.fetch(
            keys.sessions(client_id),
            lambda: session_service.list_sessions(self.remote, client_id=client_id),
        )

    def _session_keys(self, session: Session) -> list:
        return [keys.sessions(session.client_id), keys.client_progress(session.client_id)]

    async def schedule_session(self, data: SessionCreate) -> Session:
        return await self.cache.mutate(
            lambda: session_service.schedule_session(self.remote, data=data),
            invalidates=self._session_keys,
            on_success=self.workout_store.sessions.add,
        )

    async def complete_session(
        self, session_id: str, feedback: Optional[SessionFeedback] = None
    ) -> Session:
        return await self.cache.mutate(
            lambda: session_service.mark_completed(
                self.remote, session_id=session_id, feedback=feedback
            ),
            invalidates=self._session_keys,
            on_success=self.workout_store.sessions.add,
        )

    async def miss_session(self, session_id: str) -> Session:
        return await self.cache.mutate(
            lambda: session_service.mark_missed(self.remote, session_id=session_id),
            invalidates=self._session_keys,
            on_success=self.workout_store.sessions.add,
        )

    async def reprogram_session(self, session_id: str, new_date: date) -> Session:
        return await self.cache.mutate(
            lambda: session_service.reprogram(
                self.remote, session_id=session_id, new_date=new_date
            ),
            invalidates=self._session_keys,
            on_success=self.workout_store.sessions.add,
        )

    # ----- feedback -------------------------------------------------------

    async def coach_feedbacks(
        self, coach_id: str, status: Optional[FeedbackStatusEnum] = None
    ) -> list[WeeklyFeedback]:
        return await self.cache.fetch(
            keys.coach_feedbacks(coach_id, status.value if status else "all"),
            lambda: feedback_service.list_coach_feedbacks(
                self.remote, coach_id=coach_id, status=status
            ),
        )

    async def client_feedbacks(self, client_id: str) -> list[WeeklyFeedback]:
        return await self.cache.fetch(
            keys.client_feedbacks(client_id),
            lambda: feedback_service.list_client_feedbacks(
                self.remote, client_id=client_id
            ),
        )

    async def feedback_stats(self, coach_id: str) -> FeedbackStats:
        return await self.cache.fetch(
            keys.feedback_stats(coach_id),
            lambda: feedback_service.get_coach_stats(self.remote, coach_id=coach_id),
        )

    async def feedback_templates(self, coach_id: str) -> list[FeedbackTemplate]:
        return await self.cache.fetch(
            keys.feedback_templates(coach_id),
            lambda: feedback_service.list_templates(self.remote, coach_id=coach_id),
        )

    def _feedback_keys(self, feedback: WeeklyFeedback) -> list:
        return [
            keys.coach_feedback_scope(feedback.coach_id),
            keys.client_feedbacks(feedback.client_id),
            keys.client_progress(feedback.client_id),
        ]

    async def submit_feedback(
        self, feedback_id: str, responses: Sequence[FeedbackResponse]
    ) -> WeeklyFeedback:
        return await self.cache.mutate(
            lambda: feedback_service.submit_responses(
                self.remote, feedback_id=feedback_id, responses=responses
            ),
            invalidates=self._feedback_keys,
        )

    async def save_feedback_draft(
        self, feedback_id: str, responses: Sequence[FeedbackResponse]
    ) -> WeeklyFeedback:
        return await self.cache.mutate(
            lambda: feedback_service.save_draft_responses(
                self.remote, feedback_id=feedback_id, responses=responses
            ),
            invalidates=self._feedback_keys,
        )

    async def send_weekly_feedbacks(
        self,
        coach_id: str,
        template_id: str,
        client_ids: Sequence[str],
        week_start: date,
        week_end: date,
    ) -> list[WeeklyFeedback]:
        return await self.cache.mutate(
            lambda: feedback_service.create_and_send_weekly_feedbacks(
                self.remote,
                coach_id=coach_id,
                template_id=template_id,
                client_ids=client_ids,
                week_start=week_start,
                week_end=week_end,
            ),
            invalidates=[keys.coach_feedback_scope(coach_id)]
            + [keys.client_feedbacks(client_id) for client_id in client_ids],
        )

    # ----- progress photos ------------------------------------------------

    async def progress_photos(self, client_id: str) -> list[ProgressPhoto]:
        return await self.cache.fetch(
            keys.progress_photos(client_id),
            lambda: progress_photo_service.list_progress_photos(
                self.remote, client_id=client_id
            ),
        )

    async def upload_progress_photo(
        self,
        client_id: str,
        upload: UploadFile,
        description: Optional[str] = None,
        taken_on: Optional[date] = None,
    ) -> ProgressPhoto:
        return await self.cache.mutate(
            lambda: progress_photo_service.upload_progress_photo(
                self.remote,
                client_id=client_id,
                upload=upload,
                description=description,
                taken_on=taken_on,
            ),
            invalidates=[keys.progress_photos(client_id)],
        )

    async def delete_progress_photo(self, photo_id: str, client_id: str) -> None:
        await self.cache.mutate(
            lambda: progress_photo_service.delete_progress_photo(
                self.remote, photo_id=photo_id
            ),
            invalidates=[keys.progress_photos(client_id)],
        )

    # ----- nutrition ------------------------------------------------------

    async def nutrition(self, client_id: str, day: date) -> NutritionStats:
        return await self.cache.fetch(
            keys.nutrition(client_id, day),
            lambda: nutrition_service.get_daily_stats(
                self.remote, client_id=client_id, day=day
            ),
        )

    async def add_nutrition_entry(self, data: NutritionEntryCreate) -> NutritionEntry:
        return await self.cache.mutate(
            lambda: nutrition_service.create_entry(self.remote, data=data),
            invalidates=[keys.nutrition_scope(data.client_id)],
        )

    async def delete_nutrition_entry(self, entry_id: str, client_id: str) -> None:
        await self.cache.mutate(
            lambda: nutrition_service.delete_entry(self.remote, entry_id=entry_id),
            invalidates=[keys.nutrition_scope(client_id)],
        )

    async def add_water_glass(self, client_id: str, day: Optional[date] = None):
        return await self.cache.mutate(
            lambda: nutrition_service.add_water_glass(
                self.remote, client_id=client_id, day=day
            ),
            invalidates=[keys.nutrition_scope(client_id)],
        )

    # ----- conversations --------------------------------------------------

    async def conversations(
        self, user_id: str, role: SenderTypeEnum
    ) -> list[Conversation]:
        return await self.cache.fetch(
            keys.conversations(user_id),
            lambda: message_service.get_conversations(
                self.remote, user_id=user_id, role=role
            ),
        )

    async def open_conversation(self, client_id: str, coach_id: str) -> Conversation:
        return await self.cache.mutate(
            lambda: message_service.create_conversation(
                self.remote, client_id=client_id, coach_id=coach_id
            ),
            invalidates=[keys.conversations(coach_id), keys.conversations(client_id)],
        )

    async def messages(self, conversation_id: str) -> list[Message]:
        return await self.cache.fetch(
            keys.messages(conversation_id),
            lambda: message_service.get_messages(
                self.remote, conversation_id=conversation_id
            ),
        )

    async def send_message(self, data: MessageCreate) -> Message:
        # The preview on every participant's conversation list moves too.
        return await self.cache.mutate(
            lambda: message_service.send_message(self.remote, data=data),
            invalidates=[keys.messages(data.conversation_id), keys.all_conversations()],
        )

    async def mark_message_read(self, message_id: str, conversation_id: str) -> None:
        await self.cache.mutate(
            lambda: message_service.mark_as_read(self.remote, message_id=message_id),
            invalidates=[keys.messages(conversation_id)],
        )

    # ----- voice messages -------------------------------------------------

    async def voice_messages(self, conversation_id: str) -> list[VoiceMessage]:
        return await self.cache.fetch(
            keys.voice_messages(conversation_id),
            lambda: voice_message_service.list_voice_messages(
                self.remote, conversation_id=conversation_id
            ),
        )

    async def send_voice_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_type: SenderTypeEnum,
        upload: UploadFile,
        duration_seconds: float,
    ) -> VoiceMessage:
        return await self.cache.mutate(
            lambda: voice_message_service.send_voice_message(
                self.remote,
                conversation_id=conversation_id,
                sender_id=sender_id,
                sender_type=sender_type,
                upload=upload,
                duration_seconds=duration_seconds,
            ),
            invalidates=[keys.messages(conversation_id), keys.all_conversations()],
        )
