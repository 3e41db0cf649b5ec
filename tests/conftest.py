import json

import pytest

from eb5_quizzes.config import AppConfig
from eb5_quizzes.content import ContentStore
from eb5_quizzes.context import AppContext
from eb5_quizzes.models import QuizQuestion, QuizTopic, QuizUi
from eb5_quizzes.preferences import PreferencesStore, dispatch_inline
from eb5_quizzes.telemetry import Telemetry


class RecordingTelemetry(Telemetry):
    def __init__(self):
        self.events = []

    def log_event(self, name, params=None):
        self.events.append((name, params or {}))

    def names(self):
        return [name for name, _ in self.events]


class RecordingDispatcher:
    """Write dispatcher that remembers each write before running it inline."""

    def __init__(self):
        self.descriptions = []

    def __call__(self, write, description):
        self.descriptions.append(description)
        dispatch_inline(write, description)


def make_quiz(quiz_id, category="Basics", questions=2, level="L", **kwargs):
    return QuizTopic(
        id=quiz_id,
        title=kwargs.pop("title", f"Quiz {quiz_id}"),
        category=category,
        subcategory=kwargs.pop("subcategory", ""),
        level=level,
        questions=tuple(
            QuizQuestion(f"Question {n}?", ("yes", "no"), 0) for n in range(questions)
        ),
        **kwargs,
    )


def make_quiz_ui(quiz_id, **overrides):
    fields = dict(
        id=quiz_id, title=f"Quiz {quiz_id}", category="Basics", format="Multi", level="M",
        duration_min=5, questions_count=2, tags=(), best_score=None, passed=False,
        last_attempt_at=None, in_progress=False, is_saved=False,
    )
    fields.update(overrides)
    return QuizUi(**fields)


def quiz_json(quiz_id, category="Basics", level="L", **extra):
    raw = {
        "id": quiz_id,
        "title": f"Quiz {quiz_id}",
        "category": category,
        "level": level,
        "questions": [
            {"question": "First?", "options": ["a", "b"], "correctAnswerIndex": 0},
            {"question": "Second?", "options": ["a", "b", "c"], "correctAnswerIndex": 2},
        ],
    }
    raw.update(extra)
    return raw


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_preferences.db")
    return db_path


@pytest.fixture
def content_dir(tmp_path):
    """Content directory with one English quiz ``Q1`` and a legacy Korean list."""
    root = tmp_path / "content"
    (root / "en").mkdir(parents=True)
    (root / "ko").mkdir()
    (root / "en" / "eb5_quizzes.json").write_text(json.dumps({"quizzes": [quiz_json("Q1")]}))
    (root / "ko" / "eb5_quizzes.json").write_text(json.dumps([quiz_json("K1", category="기초")]))
    return str(root)


@pytest.fixture
def make_context(tmp_db, content_dir):
    def build(**config):
        return AppContext(
            config=AppConfig(db_path=tmp_db, content_dir=content_dir, **config),
            preferences=PreferencesStore(tmp_db),
            content=ContentStore(content_dir),
            telemetry=RecordingTelemetry(),
            dispatch_write=RecordingDispatcher(),
        )
    return build


@pytest.fixture
def context(make_context):
    return make_context()
