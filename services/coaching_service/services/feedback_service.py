"""
Weekly feedback questionnaires.

Templates own ordered questions. A weekly feedback is a per-client instance of
a template for one Monday-to-Sunday week, moving through
``draft -> sent -> in_progress -> completed``. Responses are stored as a JSON
list on the feedback row, in the order the client submitted them.
"""

from datetime import date, timedelta
from typing import Optional, Sequence

from libs.common.datetime_utils import utc_now
from libs.common.datetime_utils import week_end as sunday_of
from libs.common.datetime_utils import week_start as monday_of
from libs.common.errors import CoachingError, FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq, in_
from services.coaching_service import tables
from services.coaching_service.schemas import (
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

logger = get_logger(__name__)

DEFAULT_DEADLINE_DAYS = 7
TREND_WEEKS = 8

# Statuses in which the client may still answer
_ANSWERABLE = {
    FeedbackStatusEnum.SENT,
    FeedbackStatusEnum.IN_PROGRESS,
    FeedbackStatusEnum.COMPLETED,
}


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def _question_rows(
    template_id: str, questions: Sequence[FeedbackQuestionInput]
) -> list[dict]:
    return [
        {
            **question.model_dump(mode="json", exclude_none=True),
            "template_id": template_id,
            "order_index": position,
        }
        for position, question in enumerate(questions)
    ]


async def _attach_questions(
    remote: RemoteDataClient, template_rows: list[dict]
) -> list[FeedbackTemplate]:
    if not template_rows:
        return []
    ids = [row["id"] for row in template_rows]
    question_rows = await remote.fetch_all(
        tables.FEEDBACK_QUESTIONS, in_("template_id", ids), order_by="order_index"
    )
    grouped: dict[str, list[FeedbackQuestion]] = {tid: [] for tid in ids}
    for row in question_rows:
        grouped[row["template_id"]].append(FeedbackQuestion.model_validate(row))
    return [
        FeedbackTemplate.model_validate(
            {
                **row,
                "questions": sorted(grouped[row["id"]], key=lambda q: q.order_index),
            }
        )
        for row in template_rows
    ]


async def create_template(
    remote: RemoteDataClient, *, coach_id: str, data: FeedbackTemplateCreate
) -> FeedbackTemplate:
    row = data.model_dump(mode="json", exclude={"questions"}, exclude_none=True)
    row["coach_id"] = coach_id
    template = await remote.insert_one(tables.FEEDBACK_TEMPLATES, row)

    if data.questions:
        try:
            await remote.insert(
                tables.FEEDBACK_QUESTIONS, _question_rows(template["id"], data.questions)
            )
        except CoachingError:
            logger.warning(
                "Adding questions to template %s failed, removing the template",
                template["id"],
            )
            try:
                await remote.delete(tables.FEEDBACK_TEMPLATES, eq("id", template["id"]))
            except CoachingError:
                logger.exception(
                    "Could not remove template %s after a failed create", template["id"]
                )
            raise

    logger.info(
        "Created feedback template %s with %d question(s)",
        template["id"],
        len(data.questions),
    )
    templates = await _attach_questions(remote, [template])
    return templates[0]


async def list_templates(
    remote: RemoteDataClient, *, coach_id: str
) -> list[FeedbackTemplate]:
    rows = await remote.fetch_all(
        tables.FEEDBACK_TEMPLATES,
        eq("coach_id", coach_id),
        eq("is_active", True),
        order_by="created_at",
        descending=True,
    )
    return await _attach_questions(remote, rows)


async def get_template(
    remote: RemoteDataClient, *, template_id: str
) -> Optional[FeedbackTemplate]:
    row = await remote.fetch_maybe(tables.FEEDBACK_TEMPLATES, eq("id", template_id))
    if row is None:
        return None
    templates = await _attach_questions(remote, [row])
    return templates[0]


async def update_template(
    remote: RemoteDataClient, *, template_id: str, data: FeedbackTemplateUpdate
) -> FeedbackTemplate:
    values = data.model_dump(mode="json", exclude={"questions"}, exclude_unset=True)
    values["updated_at"] = utc_now().isoformat()
    rows = await remote.update(tables.FEEDBACK_TEMPLATES, values, eq("id", template_id))
    if not rows:
        raise NotFoundError(f"Feedback template {template_id} not found")

    if data.questions is not None:
        await remote.delete(tables.FEEDBACK_QUESTIONS, eq("template_id", template_id))
        if data.questions:
            await remote.insert(
                tables.FEEDBACK_QUESTIONS, _question_rows(template_id, data.questions)
            )

    templates = await _attach_questions(remote, rows[:1])
    return templates[0]


async def delete_template(remote: RemoteDataClient, *, template_id: str) -> None:
    await remote.delete(tables.FEEDBACK_QUESTIONS, eq("template_id", template_id))
    rows = await remote.delete(tables.FEEDBACK_TEMPLATES, eq("id", template_id))
    if not rows:
        raise NotFoundError(f"Feedback template {template_id} not found")


# ---------------------------------------------------------------------------
# Weekly feedbacks
# ---------------------------------------------------------------------------


def _sent_values(deadline_days: int) -> dict:
    now = utc_now()
    return {
        "status": FeedbackStatusEnum.SENT.value,
        "sent_at": now.isoformat(),
        "deadline": (now + timedelta(days=deadline_days)).isoformat(),
    }


async def get_feedback(
    remote: RemoteDataClient, *, feedback_id: str
) -> Optional[WeeklyFeedback]:
    row = await remote.fetch_maybe(tables.WEEKLY_FEEDBACKS, eq("id", feedback_id))
    return WeeklyFeedback.model_validate(row) if row else None


async def create_weekly_feedback(
    remote: RemoteDataClient,
    *,
    coach_id: str,
    client_id: str,
    template_id: str,
    week_start: date,
    week_end: Optional[date] = None,
) -> WeeklyFeedback:
    """Create a draft for the week containing ``week_start``."""
    start = monday_of(week_start)
    row = {
        "coach_id": coach_id,
        "client_id": client_id,
        "template_id": template_id,
        "week_start": start.isoformat(),
        "week_end": (week_end or sunday_of(start)).isoformat(),
        "status": FeedbackStatusEnum.DRAFT.value,
        "responses": [],
    }
    created = await remote.insert_one(tables.WEEKLY_FEEDBACKS, row)
    return WeeklyFeedback.model_validate(created)


async def send_feedback(
    remote: RemoteDataClient,
    *,
    feedback_id: str,
    deadline_days: int = DEFAULT_DEADLINE_DAYS,
) -> WeeklyFeedback:
    rows = await remote.update(
        tables.WEEKLY_FEEDBACKS, _sent_values(deadline_days), eq("id", feedback_id)
    )
    if not rows:
        raise NotFoundError(f"Weekly feedback {feedback_id} not found")
    return WeeklyFeedback.model_validate(rows[0])


async def create_and_send_weekly_feedbacks(
    remote: RemoteDataClient,
    *,
    coach_id: str,
    template_id: str,
    client_ids: Sequence[str],
    week_start: date,
    week_end: date,
    deadline_days: int = DEFAULT_DEADLINE_DAYS,
) -> list[WeeklyFeedback]:
    """
    Send one feedback per client for the given week, aligned to Monday and
    Sunday.

    The template must belong to the coach and every client must be one of the
    coach's clients; nothing is written otherwise.
    """
    if not client_ids:
        raise FieldValidationError("Sélectionnez au moins un client", field="client_ids")

    template = await remote.fetch_maybe(
        tables.FEEDBACK_TEMPLATES, eq("id", template_id), eq("coach_id", coach_id)
    )
    if template is None:
        raise NotFoundError(f"Feedback template {template_id} not found")

    clients = await remote.fetch_all(
        tables.CLIENTS, in_("id", list(client_ids)), eq("coach_id", coach_id), columns="id"
    )
    missing = set(client_ids) - {row["id"] for row in clients}
    if missing:
        raise NotFoundError(f"Clients not found: {', '.join(sorted(missing))}")

    start, end = monday_of(week_start), sunday_of(week_end)
    sent = _sent_values(deadline_days)
    rows = [
        {
            "coach_id": coach_id,
            "client_id": client_id,
            "template_id": template_id,
            "week_start": start.isoformat(),
            "week_end": end.isoformat(),
            "responses": [],
            **sent,
        }
        for client_id in client_ids
    ]
    created = await remote.insert(tables.WEEKLY_FEEDBACKS, rows)
    logger.info(
        "Sent %d weekly feedback(s) for week %s from template %s",
        len(created),
        start,
        template_id,
    )
    return [WeeklyFeedback.model_validate(row) for row in created]


async def list_client_feedbacks(
    remote: RemoteDataClient, *, client_id: str
) -> list[WeeklyFeedback]:
    rows = await remote.fetch_all(
        tables.WEEKLY_FEEDBACKS,
        eq("client_id", client_id),
        order_by="week_start",
        descending=True,
    )
    return [WeeklyFeedback.model_validate(row) for row in rows]


async def list_coach_feedbacks(
    remote: RemoteDataClient,
    *,
    coach_id: str,
    status: Optional[FeedbackStatusEnum] = None,
) -> list[WeeklyFeedback]:
    filters = [eq("coach_id", coach_id)]
    if status is not None:
        filters.append(eq("status", FeedbackStatusEnum(status).value))
    rows = await remote.fetch_all(
        tables.WEEKLY_FEEDBACKS, *filters, order_by="week_start", descending=True
    )
    return [WeeklyFeedback.model_validate(row) for row in rows]


def compute_score(
    responses: Sequence[FeedbackResponse],
) -> Optional[float]:
    """
    Percentage score from the 1-10 scale answers; ``None`` when there are none.
    """
    values = []
    for item in responses:
        if item.question_type != QuestionTypeEnum.SCALE_1_10.value:
            continue
        try:
            values.append(float(item.response))
        except (TypeError, ValueError):
            continue
    if not values:
        return None
    return round(sum(values) / len(values) * 10, 1)


async def _validate_responses(
    remote: RemoteDataClient,
    feedback: WeeklyFeedback,
    responses: Sequence[FeedbackResponse],
    *,
    require_all: bool,
) -> list[FeedbackResponse]:
    """
    Check the answers against the template and return them with the question
    text and type taken from the template rows.
    """
    if feedback.status not in _ANSWERABLE:
        raise FieldValidationError(
            "Ce feedback n'a pas encore été envoyé", field="status"
        )

    questions = await remote.fetch_all(
        tables.FEEDBACK_QUESTIONS, eq("template_id", feedback.template_id)
    )
    known = {q["id"]: q for q in questions}
    checked: list[FeedbackResponse] = []
    seen: set[str] = set()
    for item in responses:
        question = known.get(item.question_id)
        if question is None:
            raise FieldValidationError(
                f"Question inconnue : {item.question_id}", field="responses"
            )
        if item.question_id in seen:
            raise FieldValidationError(
                f"Question en double : {item.question_id}", field="responses"
            )
        seen.add(item.question_id)
        checked.append(
            item.model_copy(
                update={
                    "question_text": question["question_text"],
                    "question_type": question["question_type"],
                }
            )
        )

    if require_all:
        answered = {
            item.question_id
            for item in responses
            if item.response not in ("", None, [])
        }
        for question in questions:
            if question.get("required", True) and question["id"] not in answered:
                raise FieldValidationError(
                    f"Réponse obligatoire manquante : {question['question_text']}",
                    field="responses",
                )
    return checked


def _stamp(responses: Sequence[FeedbackResponse]) -> list[dict]:
    now = utc_now()
    return [
        item.model_copy(update={"created_at": item.created_at or now}).model_dump(
            mode="json"
        )
        for item in responses
    ]


async def submit_responses(
    remote: RemoteDataClient,
    *,
    feedback_id: str,
    responses: Sequence[FeedbackResponse],
) -> WeeklyFeedback:
    """
    Record the client's answers and complete the feedback.

    Allowed from ``sent`` and ``in_progress``; submitting again on a
    ``completed`` feedback replaces the answers.
    """
    feedback = await get_feedback(remote, feedback_id=feedback_id)
    if feedback is None:
        raise NotFoundError(f"Weekly feedback {feedback_id} not found")
    responses = await _validate_responses(
        remote, feedback, responses, require_all=True
    )

    values = {
        "status": FeedbackStatusEnum.COMPLETED.value,
        "completed_at": utc_now().isoformat(),
        "responses": _stamp(responses),
        "score": compute_score(responses),
        "updated_at": utc_now().isoformat(),
    }
    rows = await remote.update(tables.WEEKLY_FEEDBACKS, values, eq("id", feedback_id))
    if not rows:
        raise NotFoundError(f"Weekly feedback {feedback_id} not found")
    logger.info(
        "Weekly feedback %s completed with %d response(s)", feedback_id, len(responses)
    )
    return WeeklyFeedback.model_validate(rows[0])


async def save_draft_responses(
    remote: RemoteDataClient,
    *,
    feedback_id: str,
    responses: Sequence[FeedbackResponse],
) -> WeeklyFeedback:
    feedback = await get_feedback(remote, feedback_id=feedback_id)
    if feedback is None:
        raise NotFoundError(f"Weekly feedback {feedback_id} not found")
    if feedback.status == FeedbackStatusEnum.COMPLETED:
        raise FieldValidationError("Ce feedback est déjà terminé", field="status")
    responses = await _validate_responses(
        remote, feedback, responses, require_all=False
    )

    rows = await remote.update(
        tables.WEEKLY_FEEDBACKS,
        {
            "status": FeedbackStatusEnum.IN_PROGRESS.value,
            "responses": _stamp(responses),
            "updated_at": utc_now().isoformat(),
        },
        eq("id", feedback_id),
    )
    if not rows:
        raise NotFoundError(f"Weekly feedback {feedback_id} not found")
    return WeeklyFeedback.model_validate(rows[0])


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0


def build_stats(
    feedbacks: Sequence[WeeklyFeedback], *, today: Optional[date] = None
) -> FeedbackStats:
    """Completion and score statistics plus an eight-week trend ending this week."""
    today = today or utc_now().date()
    sent = [f for f in feedbacks if f.status != FeedbackStatusEnum.DRAFT]
    completed = [f for f in feedbacks if f.status == FeedbackStatusEnum.COMPLETED]
    scores = [f.score for f in completed if f.score]

    current_monday = monday_of(today)
    trend = []
    for weeks_back in range(TREND_WEEKS - 1, -1, -1):
        start = current_monday - timedelta(weeks=weeks_back)
        week_items = [f for f in feedbacks if f.week_start == start]
        week_scores = [
            f.score
            for f in week_items
            if f.status == FeedbackStatusEnum.COMPLETED and f.score
        ]
        trend.append(
            WeeklyTrendPoint(
                week=start,
                sent=sum(1 for f in week_items if f.status != FeedbackStatusEnum.DRAFT),
                completed=sum(
                    1 for f in week_items if f.status == FeedbackStatusEnum.COMPLETED
                ),
                score=round(_average(week_scores), 1),
            )
        )

    return FeedbackStats(
        total_sent=len(sent),
        total_completed=len(completed),
        completion_rate=round(len(completed) / len(sent) * 100) if sent else 0,
        average_score=round(_average(scores)),
        weekly_trend=trend,
    )


async def get_coach_stats(
    remote: RemoteDataClient, *, coach_id: str, today: Optional[date] = None
) -> FeedbackStats:
    feedbacks = await list_coach_feedbacks(remote, coach_id=coach_id)
    return build_stats(feedbacks, today=today)
