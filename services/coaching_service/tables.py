"""Backend table names used by the coaching services."""

PROFILES = "profiles"
CLIENTS = "clients"
EXERCISES = "exercises"
WORKOUTS = "workouts"
WORKOUT_EXERCISES = "workout_exercises"
SESSIONS = "sessions"
FEEDBACK_TEMPLATES = "feedback_templates"
FEEDBACK_QUESTIONS = "feedback_questions"
WEEKLY_FEEDBACKS = "feedbacks_hebdomadaires"
PROGRESS_PHOTOS = "photos_progression"
CONVERSATIONS = "conversations"
MESSAGES = "messages"
NUTRITION_ENTRIES = "nutrition_entries"
NUTRITION_COMMENTS = "nutrition_comments"
NUTRITION_GOALS = "nutrition_goals"
HYDRATION = "hydration_tracking"
