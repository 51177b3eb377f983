"""Tests for the pure workflow reducer."""

import pytest
from conftest import ANALYSIS, FEEDBACK, IDEA, QUESTIONS

from noviq.errors import ValidationError
from noviq.schemas import FeedbackBatch, QuestionBatch
from noviq.workflow import (
    AnswerSelected,
    FeedbackAdvanced,
    FeedbackFailed,
    FeedbackReceived,
    FeedbackRequested,
    Phase,
    QuestionsFailed,
    QuestionsReceived,
    SubmitFailed,
    SubmitStarted,
    SubmitSucceeded,
    WorkflowSession,
    reduce,
)


def run(session, *events):
    for event in events:
        session = reduce(session, event)
    return session


@pytest.fixture
def with_feedback():
    return run(WorkflowSession(prompt=IDEA), FeedbackRequested(), FeedbackReceived(FeedbackBatch(**FEEDBACK)))


@pytest.fixture
def answering(with_feedback):
    return run(
        with_feedback,
        QuestionsReceived(QuestionBatch(**QUESTIONS)),
        *[FeedbackAdvanced()] * len(FEEDBACK["feedback"]),
    )


def answer_all(session):
    for q in session.questions:
        session = reduce(session, AnswerSelected(q.id, q.options[0]))
    return session


class TestFeedbackStage:
    def test_fresh_session_is_idle(self):
        assert WorkflowSession(prompt=IDEA).phase is Phase.IDLE

    def test_request_then_receive(self):
        session = reduce(WorkflowSession(prompt=IDEA), FeedbackRequested())
        assert session.phase is Phase.AWAITING_FEEDBACK

        session = reduce(session, FeedbackReceived(FeedbackBatch(**FEEDBACK)))
        assert session.phase is Phase.PRESENTING_FEEDBACK
        assert session.current_feedback == FEEDBACK["feedback"][0]

    def test_needs_more_info_forced_true(self):
        batch = FeedbackBatch(feedback=FEEDBACK["feedback"], needsMoreInfo=False)
        session = reduce(WorkflowSession(prompt=IDEA), FeedbackReceived(batch))
        assert session.needs_more_info is True

    def test_failure_is_error(self):
        session = run(WorkflowSession(prompt=IDEA), FeedbackRequested(), FeedbackFailed("AI request failed: Overloaded"))
        assert session.phase is Phase.ERROR
        assert session.error_message == "AI request failed: Overloaded"

    def test_retry_clears_error(self):
        session = run(WorkflowSession(prompt=IDEA), FeedbackFailed("boom"), FeedbackRequested())
        assert session.phase is Phase.AWAITING_FEEDBACK

    def test_paging_one_at_a_time(self, with_feedback):
        session = run(with_feedback, FeedbackAdvanced(), FeedbackAdvanced())
        assert session.feedback_index == 2
        assert session.phase is Phase.PRESENTING_FEEDBACK
        assert not session.on_last_feedback

    def test_advance_without_feedback_rejected(self):
        with pytest.raises(ValidationError):
            reduce(WorkflowSession(prompt=IDEA), FeedbackAdvanced())


class TestQuestionsStage:
    def test_early_questions_are_buffered(self, with_feedback):
        session = reduce(with_feedback, QuestionsReceived(QuestionBatch(**QUESTIONS)))
        assert session.phase is Phase.PRESENTING_FEEDBACK
        assert len(session.questions) == 4

    def test_paging_done_before_questions_waits(self, with_feedback):
        session = run(with_feedback, *[FeedbackAdvanced()] * 4)
        assert session.show_questions
        assert session.phase is Phase.AWAITING_QUESTIONS

    def test_questions_failure_surfaces_after_paging(self, with_feedback):
        session = reduce(with_feedback, QuestionsFailed("No questions received"))
        assert session.phase is Phase.PRESENTING_FEEDBACK

        session = run(session, *[FeedbackAdvanced()] * 4)
        assert session.phase is Phase.ERROR
        assert session.error_message == "No questions received"

    def test_questions_then_answers(self, answering):
        assert answering.phase is Phase.PRESENTING_QUESTIONS
        session = reduce(answering, AnswerSelected("q1", "Tourists"))
        assert session.phase is Phase.COLLECTING_ANSWERS


class TestAnswers:
    def test_reselect_overwrites(self, answering):
        session = run(answering, AnswerSelected("q2", "Pastries"), AnswerSelected("q2", "Drinks"))
        assert list(session.answers) == ["q2"]
        assert session.answers["q2"].selected == "Drinks"
        assert session.answers["q2"].question == "How will the shop mainly make money?"

    def test_unknown_question_rejected(self, answering):
        with pytest.raises(ValidationError):
            reduce(answering, AnswerSelected("q9", "Drinks"))

    def test_option_must_belong_to_question(self, answering):
        with pytest.raises(ValidationError):
            reduce(answering, AnswerSelected("q1", "Drinks"))

    def test_submit_unavailable_until_every_question_answered(self, answering):
        session = answering
        for q in answering.questions:
            assert not session.can_submit
            session = reduce(session, AnswerSelected(q.id, q.options[-1]))
        assert session.can_submit


class TestSubmission:
    def test_incomplete_submit_rejected(self, answering):
        session = reduce(answering, AnswerSelected("q1", "Tourists"))
        with pytest.raises(ValidationError):
            reduce(session, SubmitStarted())

    def test_success_completes(self, answering):
        session = run(answer_all(answering), SubmitStarted())
        assert session.phase is Phase.SUBMITTING
        assert not session.can_submit

        session = reduce(session, SubmitSucceeded(ANALYSIS))
        assert session.phase is Phase.COMPLETE
        assert session.result == ANALYSIS

    def test_failure_returns_to_answers(self, answering):
        complete = answer_all(answering)
        session = run(complete, SubmitStarted(), SubmitFailed("Failed to submit answers: timeout"))
        assert session.phase is Phase.COLLECTING_ANSWERS
        assert session.answers == complete.answers
        assert session.submit_error == "Failed to submit answers: timeout"
        assert session.can_submit

    def test_no_second_submission_after_completion(self, answering):
        session = run(answer_all(answering), SubmitStarted(), SubmitSucceeded(ANALYSIS))
        with pytest.raises(ValidationError):
            reduce(session, SubmitStarted())


def test_snapshot_keeps_only_durable_fields(answering):
    session = run(answering, AnswerSelected("q1", "Tourists"), QuestionsFailed("ignored"))
    snapshot = session.snapshot()

    assert "questions_error" not in snapshot
    restored = WorkflowSession.restore(snapshot)
    assert restored.feedback == session.feedback
    assert restored.questions == session.questions
    assert restored.answers == session.answers
    assert restored.questions_error is None
