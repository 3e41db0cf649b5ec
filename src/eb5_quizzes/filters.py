"""Filter chips, filter toggling, and the filter/sort/group engine for the quiz list."""
import logging
from dataclasses import replace
from typing import Iterable

from eb5_quizzes.models import (
    LEVEL_LABELS, MIN_INSTANT, DurationRange, FilterChipState, FilterGroup, QuizFilterUi,
    QuizFilters, QuizSortOption, QuizTopic, QuizUi,
)

logger = logging.getLogger(__name__)


DURATION_BUCKETS = {
    "duration_short": DurationRange(0, 5),
    "duration_medium": DurationRange(6, 10),
    "duration_long": DurationRange(11, None),
}
DURATION_LABELS = {
    "duration_short": "≤5 min",
    "duration_medium": "6–10 min",
    "duration_long": "10+ min",
}
LEVEL_CHIPS = {"level_l": "L", "level_m": "M", "level_h": "H"}
SORT_CHIPS = {
    "sort_recommended": QuizSortOption.RECOMMENDED,
    "sort_inprogress": QuizSortOption.IN_PROGRESS_FIRST,
    "sort_newest": QuizSortOption.NEWEST,
    "sort_difficulty": QuizSortOption.DIFFICULTY,
}
SORT_LABELS = {
    QuizSortOption.RECOMMENDED: "Recommended",
    QuizSortOption.IN_PROGRESS_FIRST: "In-progress first",
    QuizSortOption.NEWEST: "Newest",
    QuizSortOption.DIFFICULTY: "Difficulty",
}
GOAL_LABELS = {
    "deal_ready": "Deal-ready",
    "source_funds": "Source of Funds",
    "compliance": "Compliance",
}
GOAL_PREFIX = "goal_"
FORMAT_PREFIX = "format_"
LEVEL_ORDER = {"L": 0, "M": 1, "H": 2}


# --- Chips ---


def goal_label(tag: str) -> str:
    return GOAL_LABELS.get(tag, tag.replace("_", " ").capitalize())


def build_filter_chips(quizzes: Iterable[QuizTopic], filters: QuizFilters) -> QuizFilterUi:
    """Chips for the current catalog, with selection flags mirroring ``filters``."""
    quizzes = list(quizzes)
    goals = dict.fromkeys(tag for quiz in quizzes for tag in quiz.goal_tags)
    formats = dict.fromkeys(quiz.format for quiz in quizzes)
    return QuizFilterUi(
        goals=tuple(
            FilterChipState(GOAL_PREFIX + tag, goal_label(tag), tag in filters.goals)
            for tag in goals
        ),
        durations=tuple(
            FilterChipState(chip_id, DURATION_LABELS[chip_id], filters.duration == bucket)
            for chip_id, bucket in DURATION_BUCKETS.items()
        ),
        formats=tuple(
            FilterChipState(FORMAT_PREFIX + fmt.lower(), fmt, fmt.lower() in filters.formats)
            for fmt in formats
        ),
        levels=tuple(
            FilterChipState(chip_id, LEVEL_LABELS[level], level in filters.levels)
            for chip_id, level in LEVEL_CHIPS.items()
        ),
        sorts=tuple(
            FilterChipState(chip_id, SORT_LABELS[option], filters.sort == option)
            for chip_id, option in SORT_CHIPS.items()
        ),
    )


def _toggle_single(selected: frozenset, value: str) -> frozenset:
    """At most one value per group: re-selecting clears, a new value replaces."""
    return frozenset() if value in selected else frozenset({value})


def toggle_filter(filters: QuizFilters, group: FilterGroup, chip_id: str) -> QuizFilters:
    if group is FilterGroup.GOAL and chip_id.startswith(GOAL_PREFIX):
        return replace(filters, goals=_toggle_single(filters.goals, chip_id[len(GOAL_PREFIX):]))
    if group is FilterGroup.FORMAT and chip_id.startswith(FORMAT_PREFIX):
        return replace(filters, formats=_toggle_single(filters.formats, chip_id[len(FORMAT_PREFIX):].lower()))
    if group is FilterGroup.LEVEL and chip_id in LEVEL_CHIPS:
        return replace(filters, levels=_toggle_single(filters.levels, LEVEL_CHIPS[chip_id]))
    if group is FilterGroup.DURATION and chip_id in DURATION_BUCKETS:
        bucket = DURATION_BUCKETS[chip_id]
        return replace(filters, duration=None if filters.duration == bucket else bucket)
    if group is FilterGroup.SORT and chip_id in SORT_CHIPS:
        return replace(filters, sort=SORT_CHIPS[chip_id])
    logger.debug("Ignoring unknown %s chip %r", group.value, chip_id)
    return filters


# --- Engine ---


def _attempt_timestamp(quiz: QuizUi) -> float:
    return (quiz.last_attempt_at or MIN_INSTANT).timestamp()


def sort_quizzes(quizzes: list[QuizUi], sort: QuizSortOption) -> list[QuizUi]:
    if sort is QuizSortOption.IN_PROGRESS_FIRST:
        return sorted(quizzes, key=lambda q: (not q.in_progress, -_attempt_timestamp(q)))
    if sort is QuizSortOption.NEWEST:
        return list(reversed(quizzes))
    if sort is QuizSortOption.DIFFICULTY:
        return sorted(quizzes, key=lambda q: (LEVEL_ORDER.get(q.level.upper(), len(LEVEL_ORDER)), q.title.casefold()))
    return sorted(
        quizzes,
        key=lambda q: (not q.is_saved, not q.in_progress, q.passed, -_attempt_timestamp(q)),
    )


def group_by_category(quizzes: Iterable[QuizUi]) -> dict[str, list[QuizUi]]:
    groups: dict[str, list[QuizUi]] = {}
    for quiz in quizzes:
        groups.setdefault(quiz.category, []).append(quiz)
    return {category: groups[category] for category in sorted(groups, key=str.casefold)}


def filter_quizzes(quizzes: Iterable[QuizUi], filters: QuizFilters) -> list[QuizUi]:
    result = list(quizzes)
    if filters.goals:
        result = [q for q in result if filters.goals.intersection(q.tags)]
    if filters.duration is not None:
        result = [q for q in result if q.duration_min in filters.duration]
    if filters.formats:
        result = [q for q in result if q.format.lower() in filters.formats]
    if filters.levels:
        levels = {level.upper() for level in filters.levels}
        result = [q for q in result if q.level.upper() in levels]
    return result


def apply_filters(quizzes: list[QuizUi], filters: QuizFilters) -> dict[str, list[QuizUi]]:
    """Filter, sort and group by category.

    When the filters leave nothing but the source has quizzes, the whole
    source list is shown instead of an empty screen.
    """
    filtered = filter_quizzes(quizzes, filters)
    if not filtered and quizzes:
        logger.debug("Filters matched no quizzes; showing all %d", len(quizzes))
        filtered = list(quizzes)
    return group_by_category(sort_quizzes(filtered, filters.sort))
