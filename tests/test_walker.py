"""SessionWalker tests: transitions, branching, reconstruction and analytics.

All tests run against small synthetic scripts written to tmp_path (see
conftest.make_store) except the smoke tests at the bottom, which walk the
packaged scripts.
"""

import pytest

from stepwork.classifier import AnswerClassifier, QuestionContext
from stepwork.exceptions import HistoryMismatch, InvalidStep, StepAlreadyComplete
from stepwork.models.session import Classification
from stepwork.walker import SessionWalker, WalkerState, walk

from conftest import question

SUBSTANTIVE = "Last Friday I promised my wife I'd be home by six and I was not"
BREAKTHROUGH = "I realize now that I've been avoiding this for years"


class CountingClassifier(AnswerClassifier):
    """Classifier spy: records every call, flags nothing."""

    def __init__(self):
        self.calls = 0

    def classify(self, answer: str, context: QuestionContext) -> Classification:
        self.calls += 1
        return Classification()


@pytest.fixture
def branching_store(make_store):
    """q1 branches on 'never'; q2 plain; q3 last.  q1 also has a plain follow-up."""
    return make_store(step1=[
        question(
            "q1", 1,
            follow_up={"text": "Tell me more about that."},
            conditional_follow_up=[
                {"trigger_pattern": r"\bnever\b", "text": "What stopped you from trying?"},
                {"trigger_pattern": r"\bnever|always\b", "text": "Second match, never used."},
            ],
        ),
        question("q2", 2),
        question(
            "q3", 3,
            conditional_follow_up=[{"trigger_pattern": r"\bhide\b", "text": "Hide from whom?"}],
        ),
    ])


@pytest.fixture
def marker_store(make_store):
    """q2 carries the completion marker; q3 is optional and never reached."""
    return make_store(step1=[
        question("q1", 1),
        question(
            "q2", 2, completion_marker=True,
            conditional_follow_up=[{"trigger_pattern": ".*", "text": "Never asked."}],
        ),
        question("q3", 3, is_required=False),
    ])


# =====================================================================
# Linear progression
# =====================================================================


class TestLinearWalk:

    def test_fresh_walker_awaits_first_question(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        assert w.state is WalkerState.AWAITING_ANSWER
        assert w.current_question.id == "q1"
        assert w.history == []

    def test_completes_exactly_on_last_answer(self, three_question_store):
        w = SessionWalker(three_question_store, 1)
        results = [w.process_answer(SUBSTANTIVE) for _ in range(3)]
        assert [r.should_complete for r in results] == [False, False, True], (
            "should_complete must flip exactly on the 3rd answer"
        )
        assert results[-1].next_question is None
        assert w.state is WalkerState.STEP_COMPLETE
        assert w.is_complete

    def test_end_to_end_example(self, three_question_store):
        """q1 'ok' → red flag; q2 reflective; q3 completes with 3 turns counted."""
        w = SessionWalker(three_question_store, "step1")
        assert w.current_question.id == "q1"

        r1 = w.process_answer("ok")
        assert r1.next_question.id == "q2"
        assert r1.has_red_flags is True
        assert r1.is_breakthrough is False
        assert r1.should_complete is False

        r2 = w.process_answer(BREAKTHROUGH)
        assert r2.next_question.id == "q3"
        assert r2.has_red_flags is False
        assert r2.should_complete is False

        r3 = w.process_answer("It cost me my marriage and most of my savings")
        assert r3.next_question is None
        assert r3.should_complete is True
        assert w.get_analytics().questions_completed == 3

    def test_answer_after_completion_rejected(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        for _ in range(3):
            w.process_answer(SUBSTANTIVE)
        with pytest.raises(StepAlreadyComplete):
            w.process_answer(SUBSTANTIVE)
        assert len(w.history) == 3, "Rejected answer must not be recorded"

    def test_blank_answer_rejected_without_recording(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        with pytest.raises(ValueError):
            w.process_answer("   ")
        assert w.history == []
        assert w.current_question.id == "q1"

    def test_non_string_answer_rejected(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        with pytest.raises(TypeError):
            w.process_answer(42)
        assert w.history == []

    def test_answer_is_trimmed_in_history(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        w.process_answer(f"  {SUBSTANTIVE}\n")
        assert w.history[0].answer_text == SUBSTANTIVE

    @pytest.mark.parametrize("bad_step", ["step4", "one", 0, True])
    def test_invalid_step(self, three_question_store, bad_step):
        with pytest.raises(InvalidStep):
            SessionWalker(three_question_store, bad_step)


# =====================================================================
# Completion marker
# =====================================================================


class TestCompletionMarker:

    def test_marker_completes_immediately(self, marker_store):
        w = SessionWalker(marker_store, "step1")
        w.process_answer(SUBSTANTIVE)
        assert w.current_question.is_final, "Marker question is presented as final"
        result = w.process_answer(SUBSTANTIVE)
        assert result.should_complete is True
        assert result.next_question is None

    def test_marker_wins_over_conditional_follow_up(self, marker_store):
        w = SessionWalker(marker_store, "step1")
        w.process_answer(SUBSTANTIVE)
        result = w.process_answer("anything matches the catch-all trigger here")
        assert result.should_complete, "Completion marker must take precedence over branching"
        assert w.state is WalkerState.STEP_COMPLETE


# =====================================================================
# Conditional branching
# =====================================================================


class TestBranching:

    def test_trigger_presents_follow_up(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        result = w.process_answer("I have never tried to stop before this year")
        nq = result.next_question
        assert w.state is WalkerState.BRANCHING
        assert nq.id == "q1:follow_up"
        assert nq.is_follow_up is True
        assert nq.order is None, "Ad hoc follow-ups have no order"
        assert nq.text == "What stopped you from trying?", "First matching trigger wins"
        assert result.should_complete is False

    def test_trigger_is_case_insensitive(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        w.process_answer("NEVER, not once in all these years")
        assert w.state is WalkerState.BRANCHING

    def test_follow_up_answer_resumes_after_parent(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        w.process_answer("I have never tried to stop before this year")
        # Matches the parent's trigger again: no nested branching
        result = w.process_answer("I never believed it was a real problem for me")
        assert result.next_question.id == "q2"
        assert w.state is WalkerState.AWAITING_ANSWER
        assert w.history[1].question_id == "q1:follow_up"
        assert w.history[1].is_follow_up is True

    def test_no_trigger_moves_on(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        result = w.process_answer(SUBSTANTIVE)
        assert result.next_question.id == "q2"

    def test_follow_up_on_last_question_then_complete(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        w.process_answer(SUBSTANTIVE)
        w.process_answer(SUBSTANTIVE)
        r = w.process_answer("I hide the receipts from everyone at home")
        assert r.should_complete is False
        assert r.next_question.id == "q3:follow_up"
        r = w.process_answer("Mostly from my partner and my parents")
        assert r.should_complete is True
        assert r.next_question is None

    def test_follow_ups_count_as_completed_questions(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        w.process_answer("I have never tried to stop before this year")
        w.process_answer(SUBSTANTIVE)
        assert w.get_analytics().questions_completed == 2


# =====================================================================
# Plain follow-up prompt
# =====================================================================


class TestFollowUpPrompt:

    def test_prompt_surfaced_after_vague_answer(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        result = w.process_answer("fine")
        assert result.has_red_flags
        assert result.follow_up_prompt == "Tell me more about that."
        assert result.next_question.id == "q2", "Plain follow-up never moves the cursor"

    def test_no_prompt_after_substantive_answer(self, branching_store):
        w = SessionWalker(branching_store, "step1")
        assert w.process_answer(SUBSTANTIVE).follow_up_prompt is None

    def test_no_prompt_when_question_has_none(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        assert w.process_answer("fine").follow_up_prompt is None


# =====================================================================
# Classification & analytics
# =====================================================================


class TestAnalytics:

    def test_red_flag_and_breakthrough_signals(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        assert w.process_answer("fine").has_red_flags
        assert w.process_answer(BREAKTHROUGH).is_breakthrough

    def test_counts(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        w.process_answer("fine")
        w.process_answer("ok")
        w.process_answer(BREAKTHROUGH)
        a = w.get_analytics()
        assert a.questions_completed == 3
        assert a.red_flags_encountered == 2
        assert a.breakthrough_moments == 1
        assert a.step_worked == "step1"

    def test_get_analytics_is_pure(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        w.process_answer("fine")
        assert w.get_analytics() == w.get_analytics()
        assert len(w.history) == 1

    def test_current_phase_tracks_cursor(self, store):
        w = SessionWalker(store, "step1")
        assert w.get_analytics().current_phase == "recognition"

    def test_questions_completed_equals_calls(self, store):
        w = SessionWalker(store, "step2")
        calls = 0
        while not w.is_complete:
            w.process_answer(SUBSTANTIVE)
            calls += 1
            assert w.get_analytics().questions_completed == calls


# =====================================================================
# Reconstruction from history
# =====================================================================


class TestReconstruction:

    ANSWERS = [
        "I have never tried to stop before this year",
        "Because I did not think it was that bad",
        "fine",
        BREAKTHROUGH,
    ]

    @pytest.mark.parametrize("cut", range(0, 4))
    def test_reconstruct_then_answer_matches_uninterrupted(self, branching_store, cut):
        live = SessionWalker(branching_store, "step1")
        for a in self.ANSWERS[:cut]:
            live.process_answer(a)

        rebuilt = SessionWalker.from_history(branching_store, "step1", live.dump_history())
        assert rebuilt.state is live.state
        assert rebuilt.current_question == live.current_question
        assert rebuilt.get_analytics() == live.get_analytics()

        expected = live.process_answer(self.ANSWERS[cut])
        actual = rebuilt.process_answer(self.ANSWERS[cut])
        assert actual.next_question == expected.next_question
        assert actual.should_complete == expected.should_complete

    def test_reconstruction_does_not_reclassify(self, three_question_store):
        live = SessionWalker(three_question_store, "step1")
        live.process_answer("fine")
        live.process_answer(BREAKTHROUGH)

        spy = CountingClassifier()
        rebuilt = SessionWalker.from_history(
            three_question_store, "step1", live.dump_history(), classifier=spy,
        )
        assert spy.calls == 0, "Stored classifications must be reused"
        a = rebuilt.get_analytics()
        assert a.red_flags_encountered == 1
        assert a.breakthrough_moments == 1

    def test_reconstruct_completed_walk(self, three_question_store):
        live = SessionWalker(three_question_store, "step1")
        for _ in range(3):
            live.process_answer(SUBSTANTIVE)
        rebuilt = SessionWalker.from_history(three_question_store, "step1", live.history)
        assert rebuilt.is_complete
        assert rebuilt.current_question is None
        with pytest.raises(StepAlreadyComplete):
            rebuilt.process_answer(SUBSTANTIVE)

    def test_history_out_of_sync_with_script(self, three_question_store):
        history = [{"question_id": "q2", "question_text": "?", "answer_text": SUBSTANTIVE}]
        with pytest.raises(HistoryMismatch):
            SessionWalker.from_history(three_question_store, "step1", history)

    def test_history_past_completion(self, three_question_store):
        live = SessionWalker(three_question_store, "step1")
        for _ in range(3):
            live.process_answer(SUBSTANTIVE)
        history = live.dump_history() + [live.dump_history()[-1]]
        with pytest.raises(HistoryMismatch):
            SessionWalker.from_history(three_question_store, "step1", history)

    def test_empty_history_is_fresh(self, three_question_store):
        for history in (None, []):
            w = SessionWalker.from_history(three_question_store, "step1", history)
            assert w.current_question.id == "q1"

    def test_dump_history_is_json_ready(self, three_question_store):
        w = SessionWalker(three_question_store, "step1")
        w.process_answer("fine")
        dumped = w.dump_history()[0]
        assert isinstance(dumped["timestamp"], str)
        assert dumped["classification"] == {
            "is_vague": True, "is_breakthrough": False, "safety_concern": False,
        }


# =====================================================================
# Pure walk()
# =====================================================================


class TestWalkFunction:

    def test_walk_does_not_mutate_input(self, three_question_store):
        history, first = walk(three_question_store, "step1", [], SUBSTANTIVE)
        assert first.next_question.id == "q2"
        snapshot = list(history)

        history2, second = walk(three_question_store, "step1", history, "fine")
        assert history == snapshot, "Input history must not be modified"
        assert len(history2) == 2
        assert second.has_red_flags


# =====================================================================
# Packaged scripts smoke tests
# =====================================================================


class TestPackagedWalks:

    @pytest.mark.parametrize("step", ["step1", "step2", "step3"])
    def test_each_step_walks_to_completion(self, store, step):
        w = SessionWalker(store, step)
        for _ in range(100):
            if w.is_complete:
                break
            w.process_answer(SUBSTANTIVE)
        assert w.is_complete, f"{step} did not complete"

    def test_step3_ends_at_marker(self, store):
        w = SessionWalker(store, "step3")
        while not w.is_complete:
            w.process_answer(SUBSTANTIVE)
        assert w.history[-1].question_id == "s3_practice_03"

    def test_packaged_trigger_branches(self, store):
        w = SessionWalker(store, "step1")
        r = w.process_answer("I told myself I would only play on the weekend")
        assert r.next_question.id == "s1_recognition_01:follow_up"
