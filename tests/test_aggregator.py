import logging
from unittest.mock import patch

from conftest import RecordingTelemetry, make_quiz
from eb5_quizzes.aggregator import QuizzesAggregator
from eb5_quizzes.config import AppConfig
from eb5_quizzes.content import ContentStore
from eb5_quizzes.context import AppContext
from eb5_quizzes.models import FilterGroup, ProgressOverview, QuizCatalog, QuizInProgressState, QuizzesTab
from eb5_quizzes.preferences import PreferencesError, PreferencesStore, dispatch_inline
from eb5_quizzes.quiz import record_quiz_result, save_quiz_progress
from eb5_quizzes.seed import default_catalog


def _started(context):
    aggregator = QuizzesAggregator(context)
    aggregator.start()
    return aggregator


def _all_ids(state):
    return [quiz.id for group in state.all_quizzes.values() for quiz in group]


def _quiz(state, quiz_id):
    return next(q for group in state.all_quizzes.values() for q in group if q.id == quiz_id)


def test_start_loads_external_catalog(context):
    aggregator = _started(context)
    assert _all_ids(aggregator.state) == ["Q1"]
    assert aggregator.language == "en"
    assert aggregator.state.tab is QuizzesTab.TRACKS


def test_seed_catalog_shown_before_content_arrives(context):
    aggregator = QuizzesAggregator(context)
    with patch.object(context.content, "publish"):
        aggregator.start()
    seed_ids = sorted(q.id for q in default_catalog().quizzes)
    assert sorted(_all_ids(aggregator.state)) == seed_ids
    assert aggregator.state.has_tracks


def test_untouched_quiz_then_save(context):
    aggregator = _started(context)
    quiz = _quiz(aggregator.state, "Q1")
    assert quiz.best_score is None
    assert not quiz.passed
    assert not quiz.in_progress
    assert quiz.last_attempt_at is None
    assert quiz.cta_label() == "Start"

    aggregator.toggle_saved("Q1", True)

    assert _quiz(aggregator.state, "Q1").is_saved
    assert context.dispatch_write.descriptions == ["saved Q1=True"]
    assert context.preferences.snapshot().saved_quiz_ids == {"Q1"}


def test_failed_save_keeps_optimistic_state(context, caplog):
    context.dispatch_write = dispatch_inline
    aggregator = _started(context)

    with patch.object(context.preferences, "set_quiz_saved", side_effect=PreferencesError("disk full")):
        with caplog.at_level(logging.WARNING):
            aggregator.toggle_saved("Q1", True)
    assert _quiz(aggregator.state, "Q1").is_saved
    assert "saved Q1=True" in caplog.text

    context.preferences.set_setting("unrelated", "value")
    assert _quiz(aggregator.state, "Q1").is_saved


def test_external_unsave_is_reflected(context):
    aggregator = _started(context)
    aggregator.toggle_saved("Q1", True)
    context.preferences.set_quiz_saved("Q1", False)
    assert not _quiz(aggregator.state, "Q1").is_saved


def test_progress_updates_recompute_state(context):
    aggregator = _started(context)
    context.preferences.update_quiz_result("Q1", 2, 1_700_000_000_000)
    quiz = _quiz(aggregator.state, "Q1")
    assert quiz.passed
    assert quiz.cta_label() == "Retake"
    assert aggregator.state.overall_progress.completed == 1


def test_empty_catalog_after_real_one_is_ignored(context):
    aggregator = _started(context)
    aggregator.on_catalog_changed(QuizCatalog())
    assert _all_ids(aggregator.state) == ["Q1"]


def test_new_catalog_replaces_previous(context):
    aggregator = _started(context)
    aggregator.on_catalog_changed(QuizCatalog(quizzes=(make_quiz("Q2"), make_quiz("Q3"))))
    assert sorted(_all_ids(aggregator.state)) == ["Q2", "Q3"]


def test_select_tab_persists_and_logs(context):
    aggregator = _started(context)
    aggregator.select_tab(QuizzesTab.RESULTS)
    aggregator.select_tab(QuizzesTab.RESULTS)

    assert aggregator.state.tab is QuizzesTab.RESULTS
    assert context.telemetry.events == [("quizzes_tab_view", {"tab": "Results"})]
    assert context.preferences.get_setting("quizzes_tab") == "Results"

    aggregator.close()
    assert _started(context).state.tab is QuizzesTab.RESULTS


def test_filter_chip_updates_filters_and_chips(context):
    aggregator = _started(context)
    aggregator.toggle_filter_chip(FilterGroup.LEVEL, "level_m")
    state = aggregator.state
    assert state.filters.levels == {"M"}
    assert [chip.selected for chip in state.filter_chips.levels] == [False, True, False]
    # nothing at level M, so the full list stays visible
    assert _all_ids(state) == ["Q1"]
    assert context.telemetry.names() == ["quizzes_filter_apply"]

    aggregator.reset_filters()
    assert not any(chip.selected for chip in aggregator.state.filter_chips.levels)


def test_filter_sheet_visibility(context):
    aggregator = _started(context)
    aggregator.set_filter_sheet_visible(True)
    assert aggregator.state.is_filter_sheet_visible
    aggregator.set_filter_sheet_visible(False)
    assert not aggregator.state.is_filter_sheet_visible


def test_telemetry_only_intents(context):
    aggregator = _started(context)
    before = aggregator.state
    aggregator.record_primary_cta_click("Q1", "Start")
    aggregator.record_resume_click("Q1")
    aggregator.record_track_open("t1")
    aggregator.record_certificate_download("t1")
    aggregator.record_certificate_share("t1")
    assert context.telemetry.events == [
        ("quiz_card_cta_click", {"quizId": "Q1", "cta": "Start"}),
        ("quizzes_resume_click", {"quizId": "Q1"}),
        ("quizzes_track_open", {"trackId": "t1"}),
        ("results_certificate_download", {"trackId": "t1"}),
        ("results_certificate_share", {"trackId": "t1"}),
    ]
    assert aggregator.state is before


def test_intents_raised_during_a_handler_run_afterwards(context):
    aggregator = _started(context)
    seen = []
    during = []

    def on_state(state):
        seen.append(state.is_filter_sheet_visible)
        if len(seen) == 1:
            aggregator.set_filter_sheet_visible(True)
            during.append(aggregator.state.is_filter_sheet_visible)

    aggregator.observe(on_state)
    aggregator.reset_filters()
    assert during == [False]
    assert seen == [False, True]


def test_failed_recompute_keeps_previous_state(context, caplog):
    aggregator = _started(context)
    before = aggregator.state
    with patch("eb5_quizzes.aggregator.apply_filters", side_effect=RuntimeError("boom")):
        with caplog.at_level(logging.ERROR):
            aggregator.toggle_filter_chip(FilterGroup.LEVEL, "level_h")
    assert aggregator.state is before
    assert "keeping the previous state" in caplog.text

    aggregator.toggle_filter_chip(FilterGroup.LEVEL, "level_l")
    assert aggregator.state.filters.levels == {"L"}


def test_failed_recompute_keeps_previous_catalog(context, caplog):
    aggregator = _started(context)
    with patch("eb5_quizzes.aggregator.apply_filters", side_effect=RuntimeError("boom")):
        with caplog.at_level(logging.ERROR):
            aggregator.on_catalog_changed(QuizCatalog(quizzes=(make_quiz("Q2"),)))
    assert _all_ids(aggregator.state) == ["Q1"]
    assert aggregator.find_quiz("Q1") is not None
    assert aggregator.find_quiz("Q2") is None
    assert [q.id for q in aggregator.catalog.quizzes] == ["Q1"]

    aggregator.reset_filters()
    assert _all_ids(aggregator.state) == ["Q2"]
    assert aggregator.find_quiz("Q2") is not None


def test_failing_observer_does_not_strand_queued_intents(context, caplog):
    aggregator = _started(context)
    calls = []

    def on_state(state):
        calls.append(state)
        if len(calls) == 1:
            aggregator.set_filter_sheet_visible(True)
            raise RuntimeError("observer broke")

    aggregator.observe(on_state)
    with caplog.at_level(logging.ERROR):
        aggregator.reset_filters()
    assert aggregator.state.is_filter_sheet_visible
    assert "Quiz intent failed" in caplog.text

    aggregator.set_filter_sheet_visible(False)
    assert not aggregator.state.is_filter_sheet_visible


def test_language_change_reloads_catalog(context):
    aggregator = _started(context)
    context.preferences.set_language("ko")
    assert aggregator.language == "ko"
    assert _all_ids(aggregator.state) == ["K1"]


def test_pinned_language_is_stored(make_context):
    context = make_context(language="ko")
    aggregator = _started(context)
    assert aggregator.language == "ko"
    assert _all_ids(aggregator.state) == ["K1"]
    assert context.preferences.snapshot().language == "ko"
    assert context.dispatch_write.descriptions == ["language=ko"]


def test_close_stops_updates(context):
    aggregator = _started(context)
    aggregator.close()
    context.preferences.set_quiz_saved("Q1", True)
    assert not _quiz(aggregator.state, "Q1").is_saved


def test_resume_list_and_results(context):
    aggregator = _started(context)
    save_quiz_progress(context.preferences, QuizInProgressState("Q1", current_index=1, updated_at=5_000))
    assert [q.id for q in aggregator.state.resume_quizzes] == ["Q1"]

    record_quiz_result(context.preferences, aggregator.find_quiz("Q1"), 1, timestamp=9_000)
    state = aggregator.state
    assert not state.has_resume
    assert [r.quiz_id for r in state.results] == ["Q1"]
    assert state.results[0].best_score_label() == "1/2"


def test_empty_seed_and_empty_content_give_empty_state(tmp_db, tmp_path):
    empty_dir = str(tmp_path / "empty")
    context = AppContext(
        config=AppConfig(db_path=tmp_db, content_dir=empty_dir),
        preferences=PreferencesStore(tmp_db),
        content=ContentStore(empty_dir),
        telemetry=RecordingTelemetry(),
        seed_catalog=QuizCatalog(),
    )
    aggregator = _started(context)
    state = aggregator.state
    assert state.all_quizzes == {}
    assert state.tracks == ()
    assert state.results == ()
    assert state.certificates == ()
    assert state.category_progress == ()
    assert state.resume_quizzes == ()
    assert state.overall_progress == ProgressOverview(0, 0)
    assert aggregator.catalog.is_empty
