"""Coaching Service schemas package.

Re-exports all schemas so that callers use a single import namespace:
``from services.coaching_service.schemas import Workout``.
"""

from services.coaching_service.schemas.client import (  # noqa: F401
    Client,
    ClientCreate,
    ClientProgress,
    ClientUpdate,
    InvitationStatusEnum,
    LevelEnum,
)
from services.coaching_service.schemas.feedback import (  # noqa: F401
    FeedbackQuestion,
    FeedbackQuestionInput,
    FeedbackResponse,
    FeedbackStats,
    FeedbackStatusEnum,
    FeedbackTemplate,
    FeedbackTemplateCreate,
    FeedbackTemplateUpdate,
    QuestionTypeEnum,
    WeeklyFeedback,
    WeeklyTrendPoint,
)
from services.coaching_service.schemas.media import (  # noqa: F401
    ProgressPhoto,
    ProgressPhotoUpdate,
    SenderTypeEnum,
    UploadFile,
    VoiceMessage,
)
from services.coaching_service.schemas.message import (  # noqa: F401
    Conversation,
    Message,
    MessageCreate,
    MessageTypeEnum,
)
from services.coaching_service.schemas.nutrition import (  # noqa: F401
    HydrationRecord,
    MealTypeEnum,
    NutritionComment,
    NutritionEntry,
    NutritionEntryCreate,
    NutritionEntryUpdate,
    NutritionGoals,
    NutritionProgress,
    NutritionStats,
)
from services.coaching_service.schemas.profile import (  # noqa: F401
    Profile,
    ProfileUpdate,
    RoleEnum,
    SubscriptionStatusEnum,
)
from services.coaching_service.schemas.session import (  # noqa: F401
    Session,
    SessionCreate,
    SessionFeedback,
    SessionStatusEnum,
)
from services.coaching_service.schemas.workout import (  # noqa: F401
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
