from datetime import datetime, timezone

from conftest import make_quiz_ui
from eb5_quizzes.models import QuizTrack
from eb5_quizzes.tracks import build_certificates, build_track_ui, build_track_uis


def _track(track_id, quiz_ids, minutes=0):
    return QuizTrack(
        id=track_id, title=f"Track {track_id}", description="", quiz_ids=tuple(quiz_ids),
        category="Basics", estimated_duration_minutes=minutes,
    )


def test_completion_counts_only_full_scores():
    quizzes = {
        "a": make_quiz_ui("a", questions_count=5, best_score=5),
        "b": make_quiz_ui("b", questions_count=10, best_score=3),
    }
    track = build_track_ui(_track("t", ["a", "b"]), quizzes)
    assert track.completed == 1
    assert track.total == 2
    assert not track.certificate_available


def test_certificate_when_all_members_complete():
    quizzes = {
        "a": make_quiz_ui("a", questions_count=2, best_score=2),
        "b": make_quiz_ui("b", questions_count=3, best_score=3),
    }
    track = build_track_ui(_track("t", ["a", "b"]), quizzes)
    assert track.certificate_available


def test_missing_members_are_skipped():
    quizzes = {"a": make_quiz_ui("a", duration_min=4)}
    track = build_track_ui(_track("t", ["a", "gone"]), quizzes)
    assert track.quiz_ids == ("a",)
    assert track.total == 1


def test_track_without_known_quizzes_is_omitted():
    assert build_track_ui(_track("t", ["gone"]), {}) is None
    assert build_track_uis([_track("t", ["gone"])], []) == []


def test_duration_falls_back_to_member_sum():
    quizzes = {"a": make_quiz_ui("a", duration_min=4), "b": make_quiz_ui("b", duration_min=7)}
    assert build_track_ui(_track("t", ["a", "b"]), quizzes).estimated_duration_min == 11
    assert build_track_ui(_track("t", ["a", "b"], minutes=20), quizzes).estimated_duration_min == 20


def test_certificates_most_recent_first():
    early = datetime(2024, 3, 1, tzinfo=timezone.utc)
    late = datetime(2024, 4, 1, tzinfo=timezone.utc)
    quizzes = [
        make_quiz_ui("a", best_score=2, last_attempt_at=early),
        make_quiz_ui("b", best_score=2, last_attempt_at=late),
        make_quiz_ui("c", best_score=2, last_attempt_at=early),
        make_quiz_ui("d", best_score=1),
    ]
    tracks = build_track_uis(
        [_track("first", ["a"]), _track("second", ["b", "c"]), _track("open", ["d"])], quizzes
    )
    certificates = build_certificates(tracks, quizzes)
    assert [c.track_id for c in certificates] == ["second", "first"]
    assert certificates[0].completed_at == late
