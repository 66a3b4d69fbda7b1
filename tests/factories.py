"""
Row factories for seeding the in-memory backend.

Every factory returns a plain dict shaped like the backend row. Override any
field via kwargs.

Usage:
    coach = ProfileFactory.coach(subscription_plan="elite")
    remote.seed(tables.PROFILES, coach)
"""

import uuid
from datetime import date, datetime, timedelta, timezone

from jose import jwt

from libs.common.plan_limits import snapshot

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@test.com"


def make_token(secret: str, sub=None, role="authenticated", user_metadata=None) -> str:
    """Access token shaped like the ones the auth service issues."""
    claims = {
        "role": role,
        "email": _unique_email() if sub else None,
        "user_metadata": user_metadata or {},
        "exp": int((_now() + timedelta(hours=1)).timestamp()),
    }
    if sub:
        claims["sub"] = sub
    return jwt.encode(claims, secret, algorithm="HS256")


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class ProfileFactory:
    @staticmethod
    def coach(**overrides) -> dict:
        plan = overrides.pop("subscription_plan", "warm_up")
        defaults = {
            "id": _uuid(),
            "email": _unique_email(),
            "first_name": "Paul",
            "last_name": "Coach",
            "role": "coach",
            "subscription_plan": plan,
            "subscription_status": "active",
            "plan_limits": snapshot(plan),
            "created_at": (_now() - timedelta(days=60)).isoformat(),
        }
        defaults.update(overrides)
        return defaults

    @staticmethod
    def client(**overrides) -> dict:
        defaults = {
            "id": _uuid(),
            "email": _unique_email(),
            "first_name": "Marie",
            "last_name": "Client",
            "role": "client",
            "created_at": (_now() - timedelta(days=60)).isoformat(),
        }
        defaults.update(overrides)
        return defaults


# ---------------------------------------------------------------------------
# Coaching
# ---------------------------------------------------------------------------


class ClientFactory:
    @staticmethod
    def create(coach_id=None, **overrides) -> dict:
        defaults = {
            "id": _uuid(),
            "coach_id": coach_id or _uuid(),
            "first_name": "Marie",
            "last_name": "Dupont",
            "contact": _unique_email(),
            "level": "Débutant",
            "objective": "Perte de poids",
            "needs_attention": False,
            "poids_depart": 80.0,
            "poids_objectif": 70.0,
            "poids_actuel": 76.5,
        }
        defaults.update(overrides)
        return defaults


class ExerciseFactory:
    @staticmethod
    def create(created_by=None, **overrides) -> dict:
        defaults = {
            "id": _uuid(),
            "name": f"Exercise {uuid.uuid4().hex[:4]}",
            "theme": "Force",
            "created_by": created_by,
            "is_custom": created_by is not None,
            "is_public": created_by is None,
        }
        defaults.update(overrides)
        return defaults


class SessionFactory:
    @staticmethod
    def create(client_id=None, workout_id=None, **overrides) -> dict:
        defaults = {
            "id": _uuid(),
            "client_id": client_id or _uuid(),
            "workout_id": workout_id or _uuid(),
            "scheduled_date": date.today().isoformat(),
            "status": "scheduled",
        }
        defaults.update(overrides)
        return defaults


class FeedbackTemplateFactory:
    @staticmethod
    def create(coach_id=None, **overrides) -> dict:
        defaults = {
            "id": _uuid(),
            "coach_id": coach_id or _uuid(),
            "name": "Bilan hebdomadaire",
            "is_active": True,
        }
        defaults.update(overrides)
        return defaults


class FeedbackQuestionFactory:
    @staticmethod
    def create(template_id, order_index=0, **overrides) -> dict:
        defaults = {
            "id": _uuid(),
            "template_id": template_id,
            "question_text": f"Question {order_index + 1}",
            "question_type": "text",
            "order_index": order_index,
            "required": True,
        }
        defaults.update(overrides)
        return defaults


class WeeklyFeedbackFactory:
    @staticmethod
    def create(coach_id, client_id, template_id, **overrides) -> dict:
        today = _now().date()
        monday = today - timedelta(days=today.weekday())
        defaults = {
            "id": _uuid(),
            "coach_id": coach_id,
            "client_id": client_id,
            "template_id": template_id,
            "week_start": monday.isoformat(),
            "week_end": (monday + timedelta(days=6)).isoformat(),
            "status": "sent",
            "sent_at": _now().isoformat(),
            "responses": [],
        }
        defaults.update(overrides)
        return defaults
