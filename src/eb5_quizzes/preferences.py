"""Durable key-value preferences: quiz progress, saved quizzes, attempts and settings.

Values are typed (bool, int or str) and stored one row per key. Every write
commits before observers are handed a fresh ``PreferencesSnapshot``.
"""
import json
import logging
import sqlite3
from datetime import datetime
from typing import Callable, Optional

from eb5_quizzes.config import normalize_language
from eb5_quizzes.db import DEFAULT_DB_PATH, get_connection, init_db
from eb5_quizzes.models import (
    PreferencesSnapshot, QuizAttemptRecord, QuizInProgressState, QuizProgress,
)
from eb5_quizzes.observable import Observable, Subscription

logger = logging.getLogger(__name__)

LANGUAGE_KEY = "language"
QUIZ_BEST_PREFIX = "quiz:bestScore:"
QUIZ_LAST_ATTEMPT_PREFIX = "quiz:lastAttempt:"
QUIZ_LAST_SCORE_PREFIX = "quiz:lastScore:"
QUIZ_SAVED_PREFIX = "quiz:saved:"
QUIZ_ATTEMPTS_KEY = "quiz:attempts"
QUIZ_PROGRESS_STATE_KEY = "quiz:progress"
MAX_ATTEMPT_ENTRIES = 50

Value = bool | int | str


class PreferencesError(Exception):
    """A preferences write could not be persisted."""


def _encode(value: Value) -> tuple[str, str]:
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return "bool", "1" if value else "0"
    if isinstance(value, int):
        return "int", str(value)
    return "str", str(value)


def _decode(kind: str, raw: str) -> Value:
    if kind == "bool":
        return raw == "1"
    if kind == "int":
        return int(raw)
    return raw


def _attempt_to_dict(record: QuizAttemptRecord) -> dict:
    return {
        "id": record.id,
        "quizId": record.quiz_id,
        "trackId": record.track_id,
        "score": record.score,
        "totalQuestions": record.total_questions,
        "level": record.level,
        "durationMinutes": record.duration_minutes,
        "completedAt": record.completed_at,
    }


def _attempt_from_dict(raw: dict) -> QuizAttemptRecord:
    return QuizAttemptRecord(
        id=str(raw["id"]),
        quiz_id=str(raw["quizId"]),
        track_id=raw.get("trackId"),
        score=int(raw["score"]),
        total_questions=int(raw["totalQuestions"]),
        level=str(raw["level"]),
        duration_minutes=int(raw["durationMinutes"]),
        completed_at=int(raw["completedAt"]),
    )


def _state_to_dict(state: QuizInProgressState) -> dict:
    return {
        "quizId": state.quiz_id,
        "currentIndex": state.current_index,
        "score": state.score,
        "startedAt": state.started_at,
        "updatedAt": state.updated_at,
    }


def _state_from_dict(raw: dict) -> QuizInProgressState:
    return QuizInProgressState(
        quiz_id=str(raw["quizId"]),
        current_index=int(raw.get("currentIndex", 0)),
        score=int(raw.get("score", 0)),
        started_at=int(raw.get("startedAt", 0)),
        updated_at=int(raw.get("updatedAt", 0)),
    )


def _decode_list(raw: Optional[Value], parse: Callable[[dict], object], key: str) -> list:
    """Decode a JSON list stored under ``key``; corrupt data reads as empty."""
    if not isinstance(raw, str):
        return []
    try:
        return [parse(item) for item in json.loads(raw)]
    except (ValueError, KeyError, TypeError):
        logger.warning("Ignoring unreadable %s preference", key, exc_info=True)
        return []


def _as_int(value: Optional[Value]) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def parse_snapshot(values: dict[str, Value]) -> PreferencesSnapshot:
    """Build a snapshot from the raw key/value mapping."""
    quiz_progress = {}
    saved = set()
    settings = {}
    for key, value in values.items():
        if key.startswith(QUIZ_BEST_PREFIX):
            quiz_id = key[len(QUIZ_BEST_PREFIX):]
            quiz_progress[quiz_id] = QuizProgress(
                best_score=_as_int(value),
                last_score=_as_int(values.get(QUIZ_LAST_SCORE_PREFIX + quiz_id)),
                last_attempt_timestamp=_as_int(values.get(QUIZ_LAST_ATTEMPT_PREFIX + quiz_id)),
            )
        elif key.startswith(QUIZ_SAVED_PREFIX):
            quiz_id = key[len(QUIZ_SAVED_PREFIX):]
            if value is True and quiz_id.strip():
                saved.add(quiz_id)
        elif ":" not in key and isinstance(value, str):
            settings[key] = value

    attempts = _decode_list(values.get(QUIZ_ATTEMPTS_KEY), _attempt_from_dict, QUIZ_ATTEMPTS_KEY)
    states = _decode_list(values.get(QUIZ_PROGRESS_STATE_KEY), _state_from_dict, QUIZ_PROGRESS_STATE_KEY)
    return PreferencesSnapshot(
        language=normalize_language(settings.get(LANGUAGE_KEY)),
        quiz_progress=quiz_progress,
        saved_quiz_ids=frozenset(saved),
        quiz_attempts=tuple(attempts),
        quiz_in_progress={state.quiz_id: state for state in states},
        settings=settings,
    )


class PreferencesStore:
    """SQLite-backed preferences with push notification of snapshots."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        init_db(db_path)
        self._changes: Observable[PreferencesSnapshot] = Observable()

    def observe(self, callback: Callable[[PreferencesSnapshot], None]) -> Subscription:
        return self._changes.observe(callback)

    def _read_all(self, conn: sqlite3.Connection) -> dict[str, Value]:
        rows = conn.execute("SELECT key, kind, value FROM preferences").fetchall()
        return {row["key"]: _decode(row["kind"], row["value"]) for row in rows}

    def snapshot(self) -> PreferencesSnapshot:
        conn = get_connection(self.db_path)
        values = self._read_all(conn)
        conn.close()
        return parse_snapshot(values)

    def _edit(self, transform: Callable[[dict[str, Value]], dict[str, Optional[Value]]]) -> None:
        """Apply ``transform`` to the current values in one transaction.

        ``transform`` returns the keys to change; a value of None deletes the key.
        """
        now = datetime.now().isoformat()
        try:
            conn = get_connection(self.db_path)
            try:
                with conn:
                    updates = transform(self._read_all(conn))
                    for key, value in updates.items():
                        if value is None:
                            conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
                            continue
                        kind, text = _encode(value)
                        conn.execute(
                            """INSERT INTO preferences (key, kind, value, updated_at) VALUES (?, ?, ?, ?)
                            ON CONFLICT(key) DO UPDATE SET kind=excluded.kind, value=excluded.value,
                            updated_at=excluded.updated_at""",
                            (key, kind, text, now),
                        )
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PreferencesError(f"Could not write preferences: {exc}") from exc
        try:
            snapshot = self.snapshot()
        except sqlite3.Error as exc:
            raise PreferencesError(f"Preferences written but could not be re-read: {exc}") from exc
        self._changes.notify(snapshot)

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        conn = get_connection(self.db_path)
        row = conn.execute(
            "SELECT value FROM preferences WHERE key = ? AND kind = 'str'", (key,)
        ).fetchone()
        conn.close()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str) -> None:
        self._edit(lambda current: {key: value})

    def set_language(self, language: str) -> None:
        self.set_setting(LANGUAGE_KEY, normalize_language(language))

    def update_quiz_result(self, quiz_id: str, score: int, timestamp: int) -> None:
        def transform(current):
            best = _as_int(current.get(QUIZ_BEST_PREFIX + quiz_id))
            return {
                QUIZ_BEST_PREFIX + quiz_id: max(best, score),
                QUIZ_LAST_SCORE_PREFIX + quiz_id: score,
                QUIZ_LAST_ATTEMPT_PREFIX + quiz_id: timestamp,
            }
        self._edit(transform)

    def set_quiz_saved(self, quiz_id: str, saved: bool) -> None:
        self._edit(lambda current: {QUIZ_SAVED_PREFIX + quiz_id: saved})

    def append_quiz_attempt(self, record: QuizAttemptRecord, max_entries: int = MAX_ATTEMPT_ENTRIES) -> None:
        def transform(current):
            attempts = _decode_list(current.get(QUIZ_ATTEMPTS_KEY), _attempt_from_dict, QUIZ_ATTEMPTS_KEY)
            attempts = (attempts + [record])[-max_entries:]
            return {QUIZ_ATTEMPTS_KEY: json.dumps([_attempt_to_dict(a) for a in attempts])}
        self._edit(transform)

    def update_quiz_in_progress(self, quiz_id: str, state: Optional[QuizInProgressState]) -> None:
        """Store or clear (``state=None``) the in-progress marker for a quiz."""
        def transform(current):
            states = _decode_list(current.get(QUIZ_PROGRESS_STATE_KEY), _state_from_dict, QUIZ_PROGRESS_STATE_KEY)
            by_quiz = {s.quiz_id: s for s in states}
            if state is None:
                by_quiz.pop(quiz_id, None)
            else:
                by_quiz[quiz_id] = state
            if not by_quiz:
                return {QUIZ_PROGRESS_STATE_KEY: None}
            return {QUIZ_PROGRESS_STATE_KEY: json.dumps([_state_to_dict(s) for s in by_quiz.values()])}
        self._edit(transform)


def dispatch_inline(write: Callable[[], None], description: str) -> None:
    """Run a preferences write now; a failure is reported here and not raised to the caller."""
    try:
        write()
    except PreferencesError:
        logger.warning("Preferences write failed (%s); in-memory state kept", description, exc_info=True)
