"""Load localized quiz catalogs from JSON content files.

Each language lives in ``<content_dir>/<language>/eb5_quizzes.json``, holding
either ``{"quizzes": [...], "tracks": [...]}`` or a legacy bare list of
quizzes. Raw JSON is turned into typed records here so nothing loosely typed
reaches the aggregator.
"""
import json
import logging
from pathlib import Path
from typing import Any, Callable

from eb5_quizzes.config import DEFAULT_CONTENT_DIR, DEFAULT_LANGUAGE, normalize_language
from eb5_quizzes.models import QuizCatalog, QuizQuestion, QuizTopic, QuizTrack
from eb5_quizzes.observable import Observable, Subscription

logger = logging.getLogger(__name__)

CATALOG_FILENAME = "eb5_quizzes.json"


class CatalogError(ValueError):
    """Catalog content is missing required fields or breaks an invariant."""


def _strings(raw: Any) -> tuple[str, ...]:
    return tuple(str(item) for item in (raw or []))


def question_from_dict(raw: dict[str, Any]) -> QuizQuestion:
    return QuizQuestion(
        question=str(raw["question"]),
        options=_strings(raw.get("options")),
        correct_answer_index=int(raw["correctAnswerIndex"]),
    )


def quiz_from_dict(raw: dict[str, Any]) -> QuizTopic:
    summary = raw.get("summary")
    return QuizTopic(
        id=str(raw["id"]),
        title=str(raw["title"]),
        summary=str(summary) if summary is not None else None,
        category=str(raw["category"]),
        subcategory=str(raw.get("subcategory", "")),
        track_ids=_strings(raw.get("trackIds")),
        goal_tags=_strings(raw.get("goalTags")),
        format=str(raw.get("format", "Multi")),
        level=str(raw.get("level", "M")).upper(),
        duration_minutes=int(raw.get("durationMinutes", 5)),
        tags=_strings(raw.get("tags")),
        questions=tuple(question_from_dict(q) for q in raw.get("questions", [])),
    )


def track_from_dict(raw: dict[str, Any]) -> QuizTrack:
    goal_tag = raw.get("goalTag")
    return QuizTrack(
        id=str(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description", "")),
        quiz_ids=_strings(raw.get("quizIds")),
        estimated_duration_minutes=int(raw.get("estimatedDurationMinutes") or 0),
        goal_tag=str(goal_tag) if goal_tag is not None else None,
        category=str(raw.get("category", "")),
    )


def catalog_from_json(raw: Any) -> QuizCatalog:
    """Build a catalog from decoded JSON, accepting the legacy bare-list layout."""
    if not isinstance(raw, (list, dict)):
        raise CatalogError(f"Unexpected catalog root of type {type(raw).__name__}")
    try:
        if isinstance(raw, list):
            quizzes = tuple(quiz_from_dict(q) for q in raw)
            tracks = ()
        else:
            quizzes = tuple(quiz_from_dict(q) for q in raw.get("quizzes", []))
            tracks = tuple(track_from_dict(t) for t in raw.get("tracks", []))
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"Malformed catalog: {exc!r}") from exc

    seen = set()
    for quiz in quizzes:
        if quiz.id in seen:
            raise CatalogError(f"Duplicate quiz id: {quiz.id}")
        seen.add(quiz.id)
    return QuizCatalog(quizzes=quizzes, tracks=tracks)


def load_catalog_file(path: Path) -> QuizCatalog:
    return catalog_from_json(json.loads(path.read_text(encoding="utf-8-sig")))


class ContentStore:
    """Per-language catalog source with an in-memory cache.

    A language whose content cannot be read falls back to English; if English
    fails too the result is an empty catalog, which callers treat as "use the
    seed catalog".
    """

    def __init__(self, content_dir: str = DEFAULT_CONTENT_DIR):
        self.content_dir = Path(content_dir)
        self._cache: dict[str, QuizCatalog] = {}
        self._changes: Observable[QuizCatalog] = Observable()

    def observe(self, callback: Callable[[QuizCatalog], None]) -> Subscription:
        return self._changes.observe(callback)

    def _load(self, language: str) -> QuizCatalog:
        return load_catalog_file(self.content_dir / language / CATALOG_FILENAME)

    def catalog(self, language: str) -> QuizCatalog:
        language = normalize_language(language)
        if language in self._cache:
            return self._cache[language]
        try:
            catalog = self._load(language)
        except (OSError, ValueError) as exc:
            if language != DEFAULT_LANGUAGE:
                logger.warning("No usable %s quiz content (%s); using %s", language, exc, DEFAULT_LANGUAGE)
                try:
                    catalog = self._load(DEFAULT_LANGUAGE)
                except (OSError, ValueError):
                    logger.exception("Fallback %s quiz content could not be loaded", DEFAULT_LANGUAGE)
                    catalog = QuizCatalog()
            else:
                logger.exception("Quiz content for %s could not be loaded", language)
                catalog = QuizCatalog()
        logger.info("Loaded %d quizzes and %d tracks for %s", len(catalog.quizzes), len(catalog.tracks), language)
        self._cache[language] = catalog
        return catalog

    def publish(self, language: str) -> QuizCatalog:
        """Load the catalog for ``language`` and push it to observers."""
        catalog = self.catalog(language)
        self._changes.notify(catalog)
        return catalog
