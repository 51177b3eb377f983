import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as SchemaError

from noviq.client import NoviqClient
from noviq.errors import NoviqError, ValidationError
from noviq.llm_service import parse_feedback, parse_questions
from noviq.prompts import FEEDBACK_SYSTEM_PROMPT, QUESTIONS_SYSTEM_PROMPT
from noviq.session_store import SessionStore
from noviq.workflow import (
    AnswerSelected,
    FeedbackAdvanced,
    FeedbackFailed,
    FeedbackReceived,
    FeedbackRequested,
    Phase,
    QuestionsFailed,
    QuestionsReceived,
    QuestionsRequested,
    SubmitFailed,
    SubmitStarted,
    SubmitSucceeded,
    WorkflowSession,
    reduce,
)

logger = logging.getLogger(__name__)


class WorkflowController:
    """Drives one idea through feedback, follow-up questions and analysis.

    The session is persisted after every transition once feedback exists, so
    constructing a controller for the same prompt later resumes without
    repeating the feedback or questions calls. The store is cleared when the
    run completes or is abandoned.

    Nothing is retried automatically; :meth:`retry` and
    :meth:`refresh_questions` are the user's explicit recovery actions.
    """

    def __init__(
        self,
        api: NoviqClient,
        store: SessionStore,
        prompt: str,
        user_id: Optional[str] = None,
    ):
        if not prompt or not prompt.strip():
            raise ValidationError("a business idea is required")
        self._api = api
        self._store = store
        self.user_id = user_id
        self._questions_task: Optional[asyncio.Task] = None
        self._abandoned = False
        self.session = self._restore(prompt)

    def _restore(self, prompt: str) -> WorkflowSession:
        data = self._store.load()
        if data:
            try:
                session = WorkflowSession.restore(data)
            except SchemaError as e:
                logger.warning(f"Ignoring corrupt workflow session: {e.error_count()} problem(s)")
                session = None
            if session is not None and session.prompt == prompt:
                logger.info(
                    f"Resuming workflow at {session.phase.value} "
                    f"({len(session.feedback)} feedback, {len(session.questions)} questions)"
                )
                return session
            self._store.clear()
        return WorkflowSession(prompt=prompt)

    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def result(self) -> Optional[Dict[str, Any]]:
        return self.session.result

    def _apply(self, event, persist: bool = True) -> WorkflowSession:
        self.session = reduce(self.session, event)
        # nothing worth resuming until stage 1 has produced feedback
        if persist and not self._abandoned and self.session.feedback and self.session.result is None:
            self._store.save(self.session.snapshot())
        logger.debug(f"{type(event).__name__} -> {self.session.phase.value}")
        return self.session

    # ------------------------------------------------------------------
    # Stages 1 and 2
    # ------------------------------------------------------------------
    async def start(self) -> WorkflowSession:
        if self.session.feedback:
            if not self.session.questions:
                self._launch_questions()
            return self.session
        await self._fetch_feedback()
        return self.session

    async def _fetch_feedback(self) -> None:
        self._apply(FeedbackRequested())
        try:
            data = await self._api.complete(self.session.prompt, FEEDBACK_SYSTEM_PROMPT)
            batch = parse_feedback(data)
        except NoviqError as e:
            logger.error(f"Error getting feedback: {e.message}")
            self._apply(FeedbackFailed(e.message))
            return

        self._apply(FeedbackReceived(batch))
        if not self._abandoned:
            self._launch_questions()

    def _launch_questions(self) -> None:
        if self._questions_task is not None and not self._questions_task.done():
            return
        self._questions_task = asyncio.create_task(self._fetch_questions())

    async def _fetch_questions(self) -> None:
        self._apply(QuestionsRequested())
        try:
            data = await self._api.complete(self.session.prompt, QUESTIONS_SYSTEM_PROMPT)
            batch = parse_questions(data)
        except NoviqError as e:
            logger.error(f"Error getting questions: {e.message}")
            self._apply(QuestionsFailed(e.message))
            return
        self._apply(QuestionsReceived(batch))

    async def wait_for_questions(self) -> WorkflowSession:
        if self._questions_task is not None:
            await self._questions_task
        return self.session

    async def retry(self) -> WorkflowSession:
        """Re-issue whichever stage left the workflow in ``ERROR``."""
        if self.session.error:
            await self._fetch_feedback()
        elif self.session.questions_error and not self.session.questions:
            await self.refresh_questions()
        return self.session

    async def refresh_questions(self) -> WorkflowSession:
        if not self.session.feedback:
            raise ValidationError("questions are requested after feedback")
        if not self.session.questions:
            self._launch_questions()
        return await self.wait_for_questions()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def next_feedback(self) -> WorkflowSession:
        return self._apply(FeedbackAdvanced())

    def select_answer(self, question_id: str, option: str) -> WorkflowSession:
        return self._apply(AnswerSelected(question_id, option))

    async def submit(self) -> Optional[Dict[str, Any]]:
        """Stage 3. Returns the analysis, or None if suppressed or failed."""
        if self.session.submitting:
            logger.info("Submission already in flight, ignoring")
            return None

        self._apply(SubmitStarted(), persist=False)
        try:
            analysis = await self._api.submit_answers(self.session.prompt, self.session.answers, self.user_id)
        except NoviqError as e:
            if self._abandoned:
                return None
            logger.error(f"Submit answers error: {e.message}")
            self._apply(SubmitFailed(f"Failed to submit answers: {e.message}"))
            return None

        if self._abandoned:
            logger.info("Workflow abandoned during submission, dropping the analysis")
            return None
        self._apply(SubmitSucceeded(analysis), persist=False)
        self._store.clear()
        return analysis

    async def abandon(self) -> None:
        """User left the workflow: drop in-flight work and the saved session.

        A submission still in flight is not cancelled on the server, but its
        outcome is ignored and nothing is written back to the store.
        """
        self._abandoned = True
        if self._questions_task is not None and not self._questions_task.done():
            self._questions_task.cancel()
            try:
                await self._questions_task
            except asyncio.CancelledError:
                pass
        self._store.clear()
