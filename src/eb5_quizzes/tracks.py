"""Track progress, certificate eligibility and earned certificates."""
from typing import Optional

from eb5_quizzes.models import MIN_INSTANT, CertificateUi, QuizTrack, QuizUi, TrackUi


def build_track_ui(track: QuizTrack, quizzes_by_id: dict[str, QuizUi]) -> Optional[TrackUi]:
    """Return the TrackUi for ``track``, or None when none of its quizzes exist."""
    members = [quizzes_by_id[quiz_id] for quiz_id in track.quiz_ids if quiz_id in quizzes_by_id]
    if not members:
        return None
    completed = sum(
        1 for quiz in members
        if quiz.best_score is not None and quiz.questions_count > 0
        and quiz.best_score >= quiz.questions_count
    )
    duration = track.estimated_duration_minutes
    if duration <= 0:
        duration = sum(quiz.duration_min for quiz in members)
    return TrackUi(
        id=track.id,
        title=track.title,
        description=track.description,
        quiz_ids=tuple(quiz.id for quiz in members),
        estimated_duration_min=duration,
        completed=completed,
        total=len(members),
        certificate_available=completed == len(members),
    )


def build_track_uis(tracks, quizzes: list[QuizUi]) -> list[TrackUi]:
    quizzes_by_id = {quiz.id: quiz for quiz in quizzes}
    result = []
    for track in tracks:
        track_ui = build_track_ui(track, quizzes_by_id)
        if track_ui is not None:
            result.append(track_ui)
    return result


def build_certificates(tracks: list[TrackUi], quizzes: list[QuizUi]) -> list[CertificateUi]:
    """One certificate per fully completed track, most recently earned first."""
    quizzes_by_id = {quiz.id: quiz for quiz in quizzes}
    certificates = []
    for track in tracks:
        if not track.certificate_available:
            continue
        attempts = [
            quizzes_by_id[quiz_id].last_attempt_at for quiz_id in track.quiz_ids
            if quizzes_by_id[quiz_id].last_attempt_at is not None
        ]
        certificates.append(CertificateUi(track.id, track.title, max(attempts) if attempts else None))
    return sorted(certificates, key=lambda c: c.completed_at or MIN_INSTANT, reverse=True)
