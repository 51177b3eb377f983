"""Workflow state for one idea run.

A :class:`WorkflowSession` is an immutable value. Every change goes through
:func:`reduce`, which takes the current session and an event and returns the
next session. The controller persists :meth:`WorkflowSession.snapshot` after
each transition so a reload can pick up where the user left off.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from noviq.errors import ValidationError
from noviq.schemas import Answer, FeedbackBatch, FollowUpQuestion, QuestionBatch

# Fields written to the durable store. Everything else is per-process.
PERSISTED_FIELDS = {
    "prompt",
    "feedback",
    "feedback_index",
    "needs_more_info",
    "questions",
    "answers",
    "show_questions",
}


class Phase(str, Enum):
    IDLE = "idle"
    AWAITING_FEEDBACK = "awaiting_feedback"
    PRESENTING_FEEDBACK = "presenting_feedback"
    AWAITING_QUESTIONS = "awaiting_questions"
    PRESENTING_QUESTIONS = "presenting_questions"
    COLLECTING_ANSWERS = "collecting_answers"
    SUBMITTING = "submitting"
    COMPLETE = "complete"
    ERROR = "error"


class WorkflowSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str
    feedback: Tuple[str, ...] = ()
    feedback_index: int = 0
    needs_more_info: bool = False
    questions: Tuple[FollowUpQuestion, ...] = ()
    answers: Dict[str, Answer] = {}
    show_questions: bool = False

    feedback_pending: bool = False
    questions_pending: bool = False
    submitting: bool = False
    error: Optional[str] = None
    questions_error: Optional[str] = None
    submit_error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None

    @property
    def phase(self) -> Phase:
        if self.result is not None:
            return Phase.COMPLETE
        if self.submitting:
            return Phase.SUBMITTING
        if self.error:
            return Phase.ERROR
        if not self.feedback:
            return Phase.AWAITING_FEEDBACK if self.feedback_pending else Phase.IDLE
        if not self.show_questions:
            return Phase.PRESENTING_FEEDBACK
        if not self.questions:
            return Phase.ERROR if self.questions_error else Phase.AWAITING_QUESTIONS
        if not self.answers:
            return Phase.PRESENTING_QUESTIONS
        return Phase.COLLECTING_ANSWERS

    @property
    def current_feedback(self) -> Optional[str]:
        if not self.feedback:
            return None
        return self.feedback[self.feedback_index]

    @property
    def on_last_feedback(self) -> bool:
        return bool(self.feedback) and self.feedback_index >= len(self.feedback) - 1

    @property
    def is_complete(self) -> bool:
        """Every question in the batch has an answer."""
        return bool(self.questions) and all(q.id in self.answers for q in self.questions)

    @property
    def can_submit(self) -> bool:
        return self.is_complete and not self.submitting and self.result is None

    @property
    def error_message(self) -> Optional[str]:
        if self.error:
            return self.error
        if self.show_questions and not self.questions:
            return self.questions_error
        return None

    def snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", include=PERSISTED_FIELDS)

    @classmethod
    def restore(cls, data: Dict[str, Any]) -> "WorkflowSession":
        return cls.model_validate({k: v for k, v in data.items() if k in PERSISTED_FIELDS})


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class FeedbackRequested:
    pass


@dataclass(frozen=True)
class FeedbackReceived:
    batch: FeedbackBatch


@dataclass(frozen=True)
class FeedbackFailed:
    message: str


@dataclass(frozen=True)
class QuestionsRequested:
    pass


@dataclass(frozen=True)
class QuestionsReceived:
    batch: QuestionBatch


@dataclass(frozen=True)
class QuestionsFailed:
    message: str


@dataclass(frozen=True)
class FeedbackAdvanced:
    pass


@dataclass(frozen=True)
class AnswerSelected:
    question_id: str
    option: str


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitSucceeded:
    analysis: Dict[str, Any]


@dataclass(frozen=True)
class SubmitFailed:
    message: str


def reduce(session: WorkflowSession, event) -> WorkflowSession:
    """Apply one event. Raises ValidationError for events the state forbids."""
    update: Dict[str, Any]

    if isinstance(event, FeedbackRequested):
        update = {"feedback_pending": True, "error": None}

    elif isinstance(event, FeedbackReceived):
        # questions are always collected, whatever the model said
        update = {
            "feedback": tuple(event.batch.feedback),
            "feedback_index": 0,
            "needs_more_info": True,
            "feedback_pending": False,
            "error": None,
        }

    elif isinstance(event, FeedbackFailed):
        update = {"feedback_pending": False, "error": event.message}

    elif isinstance(event, QuestionsRequested):
        update = {"questions_pending": True, "questions_error": None}

    elif isinstance(event, QuestionsReceived):
        update = {
            "questions": tuple(event.batch.questions),
            "questions_pending": False,
            "questions_error": None,
        }

    elif isinstance(event, QuestionsFailed):
        update = {"questions_pending": False, "questions_error": event.message}

    elif isinstance(event, FeedbackAdvanced):
        if not session.feedback:
            raise ValidationError("no feedback to advance through")
        if session.on_last_feedback:
            update = {"show_questions": session.needs_more_info}
        else:
            update = {"feedback_index": session.feedback_index + 1}

    elif isinstance(event, AnswerSelected):
        question = next((q for q in session.questions if q.id == event.question_id), None)
        if question is None:
            raise ValidationError(f"unknown question {event.question_id!r}")
        if event.option not in question.options:
            raise ValidationError(f"{event.option!r} is not an option for {event.question_id!r}")
        answers = dict(session.answers)
        answers[question.id] = Answer(question=question.question, selected=event.option)
        update = {"answers": answers}

    elif isinstance(event, SubmitStarted):
        if session.result is not None:
            raise ValidationError("workflow already complete")
        if not session.is_complete:
            raise ValidationError("every question needs an answer before submitting")
        update = {"submitting": True, "submit_error": None}

    elif isinstance(event, SubmitSucceeded):
        update = {"submitting": False, "result": event.analysis}

    elif isinstance(event, SubmitFailed):
        update = {"submitting": False, "submit_error": event.message}

    else:
        raise TypeError(f"unknown workflow event {event!r}")

    return session.model_copy(update=update)
