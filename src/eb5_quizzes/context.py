"""Explicit collaborator bundle handed to the aggregator and the front end."""
from dataclasses import dataclass, field
from typing import Callable

from eb5_quizzes.config import AppConfig
from eb5_quizzes.content import ContentStore
from eb5_quizzes.models import QuizCatalog
from eb5_quizzes.preferences import PreferencesStore, dispatch_inline
from eb5_quizzes.seed import default_catalog
from eb5_quizzes.telemetry import Telemetry

WriteDispatcher = Callable[[Callable[[], None], str], None]


@dataclass
class AppContext:
    config: AppConfig
    preferences: PreferencesStore
    content: ContentStore
    telemetry: Telemetry = field(default_factory=Telemetry)
    seed_catalog: QuizCatalog = field(default_factory=default_catalog)
    # Runs preferences writes without the caller waiting on or handling the outcome.
    dispatch_write: WriteDispatcher = dispatch_inline


def build_context(config: AppConfig) -> AppContext:
    return AppContext(
        config=config,
        preferences=PreferencesStore(config.db_path),
        content=ContentStore(config.content_dir),
    )
