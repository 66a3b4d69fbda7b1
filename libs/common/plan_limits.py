"""
Subscription plan limits and feature gating.

Pure lookups with no backend access. The table is code-defined and immutable;
a profile only ever holds a snapshot copied at subscription time.
"""

from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Literal, Mapping, Optional, Union

from libs.common.errors import AuthorizationError, NotFoundError

PlanKey = Literal["warm_up", "transformationnel", "elite"]
LimitedResource = Literal["clients", "workouts", "exercises"]

UNLIMITED = -1

# Statuses that grant access to coach features
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


@dataclass(frozen=True)
class PlanLimits:
    max_clients: int
    timeline_weeks: int
    max_workouts: int
    max_exercises: int
    features: tuple[str, ...]

    def limit_for(self, resource: LimitedResource) -> int:
        return {
            "clients": self.max_clients,
            "workouts": self.max_workouts,
            "exercises": self.max_exercises,
        }[resource]

    def snapshot(self) -> dict:
        """JSON-ready copy stored on the coach profile."""
        data = asdict(self)
        data["features"] = list(self.features)
        return data


_BASE_PAGES = (
    "dashboard",
    "clients",
    "messages",
    "feedbacks-hebdomadaires",
    "workouts",
    "exercices",
)

PLAN_LIMITS: Mapping[str, PlanLimits] = MappingProxyType(
    {
        "warm_up": PlanLimits(
            max_clients=15,
            timeline_weeks=1,
            max_workouts=15,
            max_exercises=30,
            features=(
                "basic_dashboard",
                "basic_messaging",
                "simple_calendar",
                "basic_client_dashboard",
                "basic_settings_notifications",
            ),
        ),
        "transformationnel": PlanLimits(
            max_clients=50,
            timeline_weeks=4,
            max_workouts=50,
            max_exercises=100,
            features=(
                "advanced_dashboard",
                "voice_messaging",
                "nutrition_tracking",
                "advanced_feedbacks",
                "progress_photos_history",
                "trophies",
                "shared_resources",
                "payment_retries",
            ),
        ),
        "elite": PlanLimits(
            max_clients=100,
            timeline_weeks=52,
            max_workouts=UNLIMITED,
            max_exercises=UNLIMITED,
            features=(
                "ai_nutrition",
                "financial_dashboard",
                "advanced_automation",
                "full_calendar_integration",
                "premium_resources_exports",
                "priority_support",
                "advanced_gamification",
                "theme_customization",
            ),
        ),
    }
)

PLAN_PAGES: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "warm_up": frozenset(_BASE_PAGES),
        "transformationnel": frozenset(
            _BASE_PAGES + ("calendar", "nutrition", "trophies", "billing")
        ),
        "elite": frozenset(
            _BASE_PAGES
            + (
                "calendar",
                "nutrition",
                "trophies",
                "billing",
                "color-customizer",
                "settings",
            )
        ),
    }
)

PLAN_LABELS = {
    "warm_up": "Warm-Up",
    "transformationnel": "Transformationnel",
    "elite": "Elite",
}

# Plans are cumulative: each tier includes the features of the ones below it.
PLAN_ORDER: tuple[str, ...] = ("warm_up", "transformationnel", "elite")


def get_plan_limits(plan: str) -> PlanLimits:
    try:
        return PLAN_LIMITS[plan]
    except KeyError:
        raise NotFoundError(f"Unknown subscription plan: {plan}") from None


def plan_features(plan: str) -> frozenset[str]:
    """All features available on ``plan``, including lower tiers."""
    get_plan_limits(plan)
    included = PLAN_ORDER[: PLAN_ORDER.index(plan) + 1]
    return frozenset(
        feature for key in included for feature in PLAN_LIMITS[key].features
    )


def has_feature(plan: Optional[str], feature: str) -> bool:
    if not plan or plan not in PLAN_LIMITS:
        return False
    return feature in plan_features(plan)


def has_page_access(page_id: str, plan: Optional[str]) -> bool:
    """
    Check whether a page is included in the plan.

    An unknown plan falls back to the warm-up page list; no plan at all
    grants nothing.
    """
    if not plan:
        return False
    allowed = PLAN_PAGES.get(plan, PLAN_PAGES["warm_up"])
    return page_id in allowed


def is_unlimited(value: int) -> bool:
    return value < 0


def format_limit(value: int) -> str:
    return "Illimité" if is_unlimited(value) else str(value)


def check_limit(
    limits: Union[PlanLimits, Mapping], resource: LimitedResource, current_count: int
) -> None:
    """
    Raise ``AuthorizationError`` when creating one more ``resource`` would
    exceed the plan ceiling.

    ``limits`` may be a ``PlanLimits`` or the snapshot dict stored on a
    profile.
    """
    if isinstance(limits, PlanLimits):
        ceiling = limits.limit_for(resource)
    else:
        ceiling = int(limits.get(f"max_{resource}", UNLIMITED))

    if is_unlimited(ceiling):
        return
    if current_count >= ceiling:
        raise AuthorizationError(
            f"Limite de {resource} atteinte pour votre pack ({ceiling})",
            code="plan_limit_reached",
        )


def is_active_subscription_status(status: Optional[str]) -> bool:
    return bool(status) and status in ACTIVE_SUBSCRIPTION_STATUSES


def plan_for_price_id(price_id: str, price_ids: Mapping[str, str]) -> str:
    """Resolve a Stripe price id to a plan key using the configured mapping."""
    try:
        return price_ids[price_id]
    except KeyError:
        raise NotFoundError(f"Unknown price id: {price_id}") from None


def snapshot(plan: str) -> dict:
    return get_plan_limits(plan).snapshot()
