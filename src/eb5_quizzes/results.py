"""Attempt history shown on the results tab."""
import logging

from eb5_quizzes.models import AttemptSummary, QuizAttemptRecord, QuizTopic, from_epoch_millis

logger = logging.getLogger(__name__)


def build_attempt_history(
    attempts: list[QuizAttemptRecord], quizzes: list[QuizTopic]
) -> list[AttemptSummary]:
    """Attempts for quizzes still in the catalog, most recent first."""
    quizzes_by_id = {quiz.id: quiz for quiz in quizzes}
    history = []
    for record in attempts:
        quiz = quizzes_by_id.get(record.quiz_id)
        if quiz is None:
            logger.debug("Dropping attempt %s for unknown quiz %s", record.id, record.quiz_id)
            continue
        history.append(AttemptSummary(
            id=record.id,
            title=quiz.title,
            quiz_id=record.quiz_id,
            track_id=record.track_id,
            best_score=record.score,
            total_questions=record.total_questions,
            level=record.level,
            duration_min=record.duration_minutes,
            completed_at=from_epoch_millis(record.completed_at),
        ))
    return sorted(history, key=lambda summary: summary.completed_at, reverse=True)
