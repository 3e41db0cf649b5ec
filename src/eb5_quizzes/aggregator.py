"""Quiz catalog aggregator: the single owner of the quizzes screen state.

Catalog snapshots, preferences snapshots and user intents all pass through
one queue and are handled one at a time, in arrival order. Every handler ends
with a full, synchronous rebuild of ``QuizzesUiState`` from the source
collections; a rebuild that fails leaves the previous state in place.
"""
import logging
from collections import deque
from typing import Callable, Optional

from eb5_quizzes.catalog import CatalogResolver
from eb5_quizzes.context import AppContext
from eb5_quizzes.dashboard import get_category_progress, get_overall_progress
from eb5_quizzes.filters import apply_filters, build_filter_chips, toggle_filter
from eb5_quizzes.models import (
    MIN_INSTANT, FilterGroup, PreferencesSnapshot, QuizCatalog, QuizFilters,
    QuizzesTab, QuizzesUiState,
)
from eb5_quizzes.observable import Observable, Subscription
from eb5_quizzes.quiz import build_quiz_uis
from eb5_quizzes.results import build_attempt_history
from eb5_quizzes.tracks import build_certificates, build_track_uis

logger = logging.getLogger(__name__)

TAB_SETTING_KEY = "quizzes_tab"


def parse_tab(value: Optional[str]) -> QuizzesTab:
    try:
        return QuizzesTab(value)
    except ValueError:
        return QuizzesTab.TRACKS


class QuizzesAggregator:
    def __init__(self, context: AppContext):
        self.context = context
        self._resolver = CatalogResolver(context.seed_catalog)
        self._external = QuizCatalog()
        # forget the accepted catalog on the next successful rebuild
        self._reset_catalog = False
        self._snapshot = PreferencesSnapshot()
        self._language: Optional[str] = None
        self._filters = QuizFilters()
        self._tab = QuizzesTab.TRACKS
        self._filter_sheet_visible = False
        # quiz id -> saved flag shown before the store confirms the write
        self._saved_overrides: dict[str, bool] = {}
        self._state = QuizzesUiState()
        self._states: Observable[QuizzesUiState] = Observable()
        self._pending: deque[Callable[[], None]] = deque()
        self._draining = False
        self._subscriptions: list[Subscription] = []

    @property
    def state(self) -> QuizzesUiState:
        return self._state

    @property
    def catalog(self) -> QuizCatalog:
        """The resolved catalog the current state was built from."""
        return self._resolver.current

    @property
    def language(self) -> Optional[str]:
        return self._language

    def observe(self, callback: Callable[[QuizzesUiState], None]) -> Subscription:
        return self._states.observe(callback)

    # --- lifecycle ---

    def start(self) -> None:
        self._submit(self._start)

    def _start(self) -> None:
        preferences = self.context.preferences
        snapshot = preferences.snapshot()
        pinned = self.context.config.language
        self._snapshot = snapshot
        self._language = pinned or snapshot.language
        self._tab = parse_tab(snapshot.settings.get(TAB_SETTING_KEY))
        self._subscriptions = [
            preferences.observe(self.on_preferences_changed),
            self.context.content.observe(self.on_catalog_changed),
        ]
        self._recompute()
        if pinned and pinned != snapshot.language:
            self.context.dispatch_write(lambda: preferences.set_language(pinned), f"language={pinned}")
        self.context.content.publish(self._language)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    # --- snapshot updates ---

    def on_catalog_changed(self, catalog: QuizCatalog) -> None:
        def handle():
            self._external = catalog
            self._recompute()
        self._submit(handle)

    def on_preferences_changed(self, snapshot: PreferencesSnapshot) -> None:
        def handle():
            language_changed = snapshot.language != self._snapshot.language
            self._snapshot = snapshot
            self._saved_overrides = {
                quiz_id: saved for quiz_id, saved in self._saved_overrides.items()
                if (quiz_id in snapshot.saved_quiz_ids) != saved
            }
            if language_changed and snapshot.language != self._language:
                logger.info("Language changed to %s; loading its catalog", snapshot.language)
                self._language = snapshot.language
                self._reset_catalog = True
                self._external = QuizCatalog()
                self._recompute()
                self.context.content.publish(snapshot.language)
            else:
                self._recompute()
        self._submit(handle)

    # --- intents ---

    def select_tab(self, tab: QuizzesTab) -> None:
        def handle():
            if tab == self._tab:
                return
            self._tab = tab
            self._log_event("quizzes_tab_view", tab=tab.value)
            self._recompute()
            preferences = self.context.preferences
            self.context.dispatch_write(
                lambda: preferences.set_setting(TAB_SETTING_KEY, tab.value), f"{TAB_SETTING_KEY}={tab.value}"
            )
        self._submit(handle)

    def toggle_filter_chip(self, group: FilterGroup, chip_id: str) -> None:
        def handle():
            self._filters = toggle_filter(self._filters, group, chip_id)
            self._log_event("quizzes_filter_apply", filters=self._filters)
            self._recompute()
        self._submit(handle)

    def reset_filters(self) -> None:
        def handle():
            self._filters = QuizFilters()
            self._recompute()
        self._submit(handle)

    def toggle_saved(self, quiz_id: str, is_saved: bool) -> None:
        def handle():
            self._saved_overrides[quiz_id] = is_saved
            self._recompute()
            preferences = self.context.preferences
            self.context.dispatch_write(
                lambda: preferences.set_quiz_saved(quiz_id, is_saved), f"saved {quiz_id}={is_saved}"
            )
        self._submit(handle)

    def set_filter_sheet_visible(self, visible: bool) -> None:
        def handle():
            self._filter_sheet_visible = visible
            self._recompute()
        self._submit(handle)

    def record_primary_cta_click(self, quiz_id: str, cta_label: str) -> None:
        self._submit(lambda: self._log_event("quiz_card_cta_click", quizId=quiz_id, cta=cta_label))

    def record_resume_click(self, quiz_id: str) -> None:
        self._submit(lambda: self._log_event("quizzes_resume_click", quizId=quiz_id))

    def record_track_open(self, track_id: str) -> None:
        self._submit(lambda: self._log_event("quizzes_track_open", trackId=track_id))

    def record_certificate_download(self, track_id: str) -> None:
        self._submit(lambda: self._log_event("results_certificate_download", trackId=track_id))

    def record_certificate_share(self, track_id: str) -> None:
        self._submit(lambda: self._log_event("results_certificate_share", trackId=track_id))

    # --- internals ---

    def _log_event(self, name: str, **params) -> None:
        self.context.telemetry.log_event(name, params)

    def _submit(self, handler: Callable[[], None]) -> None:
        """Queue ``handler``; run the queue unless a handler is already running."""
        self._pending.append(handler)
        if self._draining:
            return
        self._draining = True
        try:
            while self._pending:
                try:
                    self._pending.popleft()()
                except Exception:
                    logger.exception("Quiz intent failed; continuing with queued intents")
        finally:
            self._draining = False

    def _saved_ids(self) -> set[str]:
        saved = set(self._snapshot.saved_quiz_ids)
        for quiz_id, is_saved in self._saved_overrides.items():
            if is_saved:
                saved.add(quiz_id)
            else:
                saved.discard(quiz_id)
        return saved

    def _build_state(self, catalog: QuizCatalog) -> QuizzesUiState:
        snapshot = self._snapshot
        quizzes = build_quiz_uis(
            catalog.quizzes, snapshot.quiz_progress, snapshot.quiz_in_progress, self._saved_ids()
        )
        tracks = build_track_uis(catalog.tracks, quizzes)
        categories = get_category_progress(quizzes)
        resume = sorted(
            (quiz for quiz in quizzes if quiz.in_progress),
            key=lambda quiz: quiz.last_attempt_at or MIN_INSTANT,
            reverse=True,
        )
        return QuizzesUiState(
            tab=self._tab,
            resume_quizzes=tuple(resume),
            tracks=tuple(tracks),
            all_quizzes=apply_filters(quizzes, self._filters),
            filters=self._filters,
            filter_chips=build_filter_chips(catalog.quizzes, self._filters),
            results=tuple(build_attempt_history(snapshot.quiz_attempts, catalog.quizzes)),
            certificates=tuple(build_certificates(tracks, quizzes)),
            category_progress=tuple(categories),
            overall_progress=get_overall_progress(categories),
            is_filter_sheet_visible=self._filter_sheet_visible,
        )

    def _recompute(self) -> None:
        catalog, accepted = self._resolver.choose(self._external, reset=self._reset_catalog)
        try:
            state = self._build_state(catalog)
        except Exception:
            logger.exception("Rebuilding quiz state failed; keeping the previous state")
            return
        self._resolver.commit(catalog, accepted)
        self._reset_catalog = False
        self._state = state
        self._states.notify(state)

    def find_quiz(self, quiz_id: str):
        """Look up a quiz in the resolved catalog, or None."""
        return next((quiz for quiz in self.catalog.quizzes if quiz.id == quiz_id), None)
