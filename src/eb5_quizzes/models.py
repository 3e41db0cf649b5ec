"""Data classes for the quiz catalog, learner progress and derived view state."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

LEVEL_LABELS = {"L": "Beginner", "M": "Intermediate", "H": "Advanced"}
# Sorts before every real attempt time.
MIN_INSTANT = datetime.min.replace(tzinfo=timezone.utc)


# --- Catalog records ---


@dataclass(frozen=True)
class QuizQuestion:
    question: str
    options: tuple[str, ...]
    correct_answer_index: int

    def __post_init__(self):
        if len(self.options) < 2:
            raise ValueError(f"Question {self.question!r} needs at least two options")
        if not 0 <= self.correct_answer_index < len(self.options):
            raise ValueError(
                f"Question {self.question!r} has correct index {self.correct_answer_index} "
                f"outside {len(self.options)} options"
            )


@dataclass(frozen=True)
class QuizTopic:
    id: str
    title: str
    category: str
    subcategory: str
    questions: tuple[QuizQuestion, ...]
    summary: Optional[str] = None
    track_ids: tuple[str, ...] = ()
    goal_tags: tuple[str, ...] = ()
    format: str = "Multi"
    level: str = "M"
    duration_minutes: int = 5
    tags: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.questions:
            raise ValueError(f"Quiz {self.id!r} has no questions")

    @property
    def question_count(self) -> int:
        return len(self.questions)


@dataclass(frozen=True)
class QuizTrack:
    id: str
    title: str
    description: str
    quiz_ids: tuple[str, ...]
    category: str
    estimated_duration_minutes: int = 0
    goal_tag: Optional[str] = None


@dataclass(frozen=True)
class QuizCatalog:
    quizzes: tuple[QuizTopic, ...] = ()
    tracks: tuple[QuizTrack, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.quizzes


# --- Persisted progress records ---


@dataclass(frozen=True)
class QuizProgress:
    best_score: int = 0
    last_score: int = 0
    last_attempt_timestamp: int = 0  # ms since epoch, 0 = never


@dataclass(frozen=True)
class QuizInProgressState:
    quiz_id: str
    current_index: int = 0
    score: int = 0
    started_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True)
class QuizAttemptRecord:
    id: str
    quiz_id: str
    score: int
    total_questions: int
    level: str
    duration_minutes: int
    completed_at: int
    track_id: Optional[str] = None


@dataclass(frozen=True)
class PreferencesSnapshot:
    language: str = "en"
    quiz_progress: dict[str, QuizProgress] = field(default_factory=dict)
    saved_quiz_ids: frozenset[str] = frozenset()
    quiz_attempts: tuple[QuizAttemptRecord, ...] = ()
    quiz_in_progress: dict[str, QuizInProgressState] = field(default_factory=dict)
    settings: dict[str, str] = field(default_factory=dict)


def from_epoch_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


# --- Derived view state ---


class QuizzesTab(Enum):
    TRACKS = "Tracks"
    ALL = "All"
    RESULTS = "Results"


class QuizSortOption(Enum):
    RECOMMENDED = "Recommended"
    IN_PROGRESS_FIRST = "InProgressFirst"
    NEWEST = "Newest"
    DIFFICULTY = "Difficulty"


class FilterGroup(Enum):
    GOAL = "Goal"
    DURATION = "Duration"
    FORMAT = "Format"
    LEVEL = "Level"
    SORT = "Sort"


@dataclass(frozen=True)
class DurationRange:
    """Inclusive minute range; ``maximum`` of None means unbounded."""

    minimum: int
    maximum: Optional[int] = None

    def __contains__(self, minutes: int) -> bool:
        if minutes < self.minimum:
            return False
        return self.maximum is None or minutes <= self.maximum


@dataclass(frozen=True)
class QuizFilters:
    goals: frozenset[str] = frozenset()
    duration: Optional[DurationRange] = None
    formats: frozenset[str] = frozenset()
    levels: frozenset[str] = frozenset()
    sort: QuizSortOption = QuizSortOption.RECOMMENDED


@dataclass(frozen=True)
class QuizUi:
    id: str
    title: str
    category: str
    format: str
    level: str
    duration_min: int
    questions_count: int
    tags: tuple[str, ...]
    best_score: Optional[int]
    passed: bool
    last_attempt_at: Optional[datetime]
    in_progress: bool
    is_saved: bool

    @property
    def level_label(self) -> str:
        return LEVEL_LABELS.get(self.level.upper(), self.level)

    @property
    def estimated_duration_label(self) -> str:
        return f"{self.duration_min} min · {self.questions_count} Q · {self.format}"

    def cta_label(self) -> str:
        if self.in_progress:
            return "Resume"
        if self.best_score is not None:
            return "Retake"
        return "Start"

    def last_attempt_relative(self, now: Optional[datetime] = None) -> str:
        if self.last_attempt_at is None:
            return ""
        now = now or datetime.now(timezone.utc)
        days = (now - self.last_attempt_at) // timedelta(days=1)
        if days <= 0:
            return "Last attempt: today"
        if days == 1:
            return "Last attempt: 1 day ago"
        if days < 7:
            return f"Last attempt: {days} days ago"
        attempt = self.last_attempt_at
        return f"Last attempt: {attempt:%b} {attempt.day}, {attempt.year}"


@dataclass(frozen=True)
class TrackUi:
    id: str
    title: str
    description: str
    quiz_ids: tuple[str, ...]
    estimated_duration_min: int
    completed: int
    total: int
    certificate_available: bool

    @property
    def progress_fraction(self) -> float:
        return 0.0 if self.total == 0 else self.completed / self.total

    @property
    def duration_label(self) -> str:
        return f"{self.estimated_duration_min} min · {self.total} quizzes"

    def cta_label(self) -> str:
        if self.completed == 0:
            return "Start track"
        if self.completed < self.total:
            return "Continue"
        return "View track"


@dataclass(frozen=True)
class AttemptSummary:
    id: str
    title: str
    quiz_id: Optional[str]
    track_id: Optional[str]
    best_score: int
    total_questions: int
    level: str
    duration_min: int
    completed_at: datetime

    def best_score_label(self) -> str:
        return f"{self.best_score}/{self.total_questions}"

    def completed_date_label(self) -> str:
        local = self.completed_at.astimezone()
        hour = local.hour % 12 or 12
        return f"{local:%b} {local.day}, {local.year}, {hour}:{local:%M %p}"


@dataclass(frozen=True)
class CertificateUi:
    track_id: str
    title: str
    completed_at: Optional[datetime] = None

    def completed_label(self) -> str:
        if self.completed_at is None:
            return ""
        local = self.completed_at.astimezone()
        return f"{local:%b} {local.day}, {local.year}"


@dataclass(frozen=True)
class CategoryProgress:
    category: str
    completed: int
    total: int

    @property
    def fraction(self) -> float:
        return 0.0 if self.total == 0 else self.completed / self.total


@dataclass(frozen=True)
class ProgressOverview:
    completed: int = 0
    total: int = 0

    @property
    def fraction(self) -> float:
        return 0.0 if self.total == 0 else self.completed / self.total


@dataclass(frozen=True)
class FilterChipState:
    id: str
    label: str
    selected: bool = False


@dataclass(frozen=True)
class QuizFilterUi:
    goals: tuple[FilterChipState, ...] = ()
    durations: tuple[FilterChipState, ...] = ()
    formats: tuple[FilterChipState, ...] = ()
    levels: tuple[FilterChipState, ...] = ()
    sorts: tuple[FilterChipState, ...] = ()


@dataclass(frozen=True)
class QuizzesUiState:
    tab: QuizzesTab = QuizzesTab.TRACKS
    resume_quizzes: tuple[QuizUi, ...] = ()
    tracks: tuple[TrackUi, ...] = ()
    all_quizzes: dict[str, list[QuizUi]] = field(default_factory=dict)
    filters: QuizFilters = QuizFilters()
    filter_chips: QuizFilterUi = QuizFilterUi()
    results: tuple[AttemptSummary, ...] = ()
    certificates: tuple[CertificateUi, ...] = ()
    category_progress: tuple[CategoryProgress, ...] = ()
    overall_progress: ProgressOverview = ProgressOverview()
    is_filter_sheet_visible: bool = False

    @property
    def has_resume(self) -> bool:
        return bool(self.resume_quizzes)

    @property
    def has_tracks(self) -> bool:
        return bool(self.tracks)

    @property
    def has_results(self) -> bool:
        return bool(self.results)

    @property
    def has_certificates(self) -> bool:
        return bool(self.certificates)
