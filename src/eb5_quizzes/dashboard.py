"""Category and overall quiz progress."""
from eb5_quizzes.models import CategoryProgress, ProgressOverview, QuizUi


def get_progress_label(fraction: float) -> str:
    if fraction >= 0.8:
        return "READY"
    elif fraction >= 0.5:
        return "ON TRACK"
    elif fraction > 0:
        return "GETTING STARTED"
    return "NOT STARTED"


def get_progress_color(fraction: float) -> str:
    if fraction >= 0.8:
        return "green"
    elif fraction >= 0.5:
        return "yellow"
    elif fraction > 0:
        return "dark_orange"
    return "red"


def is_completed(quiz: QuizUi) -> bool:
    return (
        quiz.questions_count > 0
        and quiz.best_score is not None
        and quiz.best_score >= quiz.questions_count
    )


def get_category_progress(quizzes: list[QuizUi]) -> list[CategoryProgress]:
    """Completed/total per category; categories keyed as-is, listed case-insensitively."""
    groups: dict[str, list[QuizUi]] = {}
    for quiz in quizzes:
        groups.setdefault(quiz.category, []).append(quiz)
    return [
        CategoryProgress(
            category=category,
            completed=sum(1 for quiz in groups[category] if is_completed(quiz)),
            total=len(groups[category]),
        )
        for category in sorted(groups, key=str.casefold)
    ]


def get_overall_progress(categories: list[CategoryProgress]) -> ProgressOverview:
    # Summed from the category rows so the two views always agree.
    return ProgressOverview(
        completed=sum(row.completed for row in categories),
        total=sum(row.total for row in categories),
    )
