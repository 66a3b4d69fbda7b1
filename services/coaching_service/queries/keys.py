"""
Query keys: the entity family followed by its scoping ids.

Invalidation matches by tuple prefix, so ``("client", id)`` also covers
``("client", id, "progress")``.
"""

from datetime import date

QueryKey = tuple


def profile(user_id: str) -> QueryKey:
    return ("profile", user_id)


def clients(coach_id: str) -> QueryKey:
    return ("clients", coach_id)


def client(client_id: str) -> QueryKey:
    return ("client", client_id)


def client_progress(client_id: str) -> QueryKey:
    return ("client", client_id, "progress")


def workouts(coach_id: str) -> QueryKey:
    return ("workouts", coach_id)


def workout_stats(coach_id: str) -> QueryKey:
    return ("workouts", coach_id, "stats")


def exercises(user_id: str) -> QueryKey:
    return ("exercises", user_id)


def sessions(client_id: str) -> QueryKey:
    return ("sessions", client_id)


def all_sessions() -> QueryKey:
    return ("sessions",)


def coach_feedbacks(coach_id: str, status: str = "all") -> QueryKey:
    return ("feedbacks", "coach", coach_id, status)


def coach_feedback_scope(coach_id: str) -> QueryKey:
    return ("feedbacks", "coach", coach_id)


def feedback_stats(coach_id: str) -> QueryKey:
    return ("feedbacks", "coach", coach_id, "stats")


def feedback_templates(coach_id: str) -> QueryKey:
    return ("feedback-templates", coach_id)


def client_feedbacks(client_id: str) -> QueryKey:
    return ("feedbacks", "client", client_id)


def progress_photos(client_id: str) -> QueryKey:
    return ("progress-photos", client_id)


def nutrition(client_id: str, day: date) -> QueryKey:
    return ("nutrition", client_id, day.isoformat())


def nutrition_scope(client_id: str) -> QueryKey:
    return ("nutrition", client_id)


def conversations(user_id: str) -> QueryKey:
    return ("conversations", user_id)


def all_conversations() -> QueryKey:
    return ("conversations",)


def messages(conversation_id: str) -> QueryKey:
    return ("messages", conversation_id)


def voice_messages(conversation_id: str) -> QueryKey:
    return ("messages", conversation_id, "voice")
