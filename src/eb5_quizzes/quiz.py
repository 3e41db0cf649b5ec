"""Per-quiz view state and quiz attempt recording."""
import logging
import time
import uuid
from typing import Optional

from eb5_quizzes.models import (
    QuizAttemptRecord, QuizInProgressState, QuizProgress, QuizTopic, QuizUi,
    from_epoch_millis,
)

logger = logging.getLogger(__name__)


def quiz_tags(quiz: QuizTopic) -> tuple[str, ...]:
    """Goal tags followed by free-form tags, duplicates removed."""
    return tuple(dict.fromkeys(quiz.goal_tags + quiz.tags))


def build_quiz_ui(
    quiz: QuizTopic,
    progress: Optional[QuizProgress],
    in_progress: Optional[QuizInProgressState],
    is_saved: bool,
) -> QuizUi:
    best_score = progress.best_score if progress is not None else None
    if progress is not None and progress.last_attempt_timestamp > 0:
        last_attempt_at = from_epoch_millis(progress.last_attempt_timestamp)
    elif in_progress is not None:
        last_attempt_at = from_epoch_millis(in_progress.updated_at)
    else:
        last_attempt_at = None
    return QuizUi(
        id=quiz.id,
        title=quiz.title,
        category=quiz.category,
        format=quiz.format,
        level=quiz.level,
        duration_min=quiz.duration_minutes,
        questions_count=quiz.question_count,
        tags=quiz_tags(quiz),
        best_score=best_score,
        passed=best_score is not None and best_score >= quiz.question_count,
        last_attempt_at=last_attempt_at,
        in_progress=in_progress is not None,
        is_saved=is_saved,
    )


def build_quiz_uis(quizzes, quiz_progress, quiz_in_progress, saved_quiz_ids) -> list[QuizUi]:
    return [
        build_quiz_ui(
            quiz,
            quiz_progress.get(quiz.id),
            quiz_in_progress.get(quiz.id),
            quiz.id in saved_quiz_ids,
        )
        for quiz in quizzes
    ]


def now_millis() -> int:
    return int(time.time() * 1000)


def record_quiz_result(store, quiz: QuizTopic, score: int, timestamp: Optional[int] = None) -> QuizAttemptRecord:
    """Persist a finished attempt: progress, attempt history, and clear the in-progress marker."""
    timestamp = timestamp if timestamp is not None else now_millis()
    store.update_quiz_result(quiz.id, score, timestamp)
    record = QuizAttemptRecord(
        id=str(uuid.uuid4()),
        quiz_id=quiz.id,
        track_id=quiz.track_ids[0] if quiz.track_ids else None,
        score=score,
        total_questions=quiz.question_count,
        level=quiz.level,
        duration_minutes=quiz.duration_minutes,
        completed_at=timestamp,
    )
    store.append_quiz_attempt(record)
    clear_quiz_progress(store, quiz.id)
    logger.info("Recorded %s: %d/%d", quiz.id, score, quiz.question_count)
    return record


def save_quiz_progress(store, state: QuizInProgressState) -> None:
    store.update_quiz_in_progress(state.quiz_id, state)


def clear_quiz_progress(store, quiz_id: str) -> None:
    store.update_quiz_in_progress(quiz_id, None)
