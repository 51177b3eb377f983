import json
import logging
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError as SchemaError

from noviq.config import Settings, StageProfile
from noviq.errors import MalformedResponseError, TransportError, UpstreamError, ValidationError
from noviq.prompts import ANALYSIS_SYSTEM_PROMPT, format_answers, format_idea
from noviq.schemas import AnalysisPayload, Answer, FeedbackBatch, QuestionBatch

logger = logging.getLogger(__name__)


class AIGateway:
    """Stateless proxy in front of the Anthropic Messages API.

    Every call is a single non-streaming request. The reply's text is
    expected to be a JSON document; it is parsed and handed back as-is.
    Nothing is retried here.
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = settings
        self._client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)
        logger.info(
            "AIGateway initialized (conversation=%s, analysis=%s)",
            settings.conversation.model,
            settings.analysis.model,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # 🔹 LOW LEVEL GENERATION
    # ------------------------------------------------------------------
    async def _generate(
        self,
        prompt: str,
        system_prompt: str,
        profile: StageProfile,
    ) -> str:
        """
        Call the Messages API and return the first text block of the reply.
        """
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self._settings.require_api_key(),
            "anthropic-version": self._settings.anthropic_version,
        }

        payload = {
            "model": profile.model,
            "max_tokens": profile.max_tokens,
            "system": system_prompt,
            "messages": [
                {"role": "user", "content": prompt},
            ],
        }

        try:
            response = await self._client.post(
                self._settings.anthropic_base_url,
                headers=headers,
                json=payload,
            )
        except httpx.RequestError as e:
            logger.error(f"LLM Connection Failed: {e!r}")
            raise TransportError(f"Error communicating with LLM: {e!r}") from e

        if response.is_error:
            message = self._provider_message(response)
            logger.error(f"LLM API Error: {response.status_code} {message}")
            raise UpstreamError(f"AI request failed: {message}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("Provider reply is not JSON") from e

        if not isinstance(data, dict):
            raise MalformedResponseError("Provider reply is not a JSON object")

        for block in data.get("content") or []:
            if not isinstance(block, dict):
                raise MalformedResponseError("Provider reply has a malformed content block")
            if block.get("type") == "text":
                return block.get("text", "")

        raise MalformedResponseError("Provider reply has no text content")

    @staticmethod
    def _provider_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or "Unknown error"
        error = body.get("error") if isinstance(body, dict) else None
        if not error:
            return "Unknown error"
        if isinstance(error, dict):
            return error.get("message") or "Unknown error"
        return str(error)

    # ------------------------------------------------------------------
    # 🔹 UTIL: SAFE JSON EXTRACTION
    # ------------------------------------------------------------------
    def _extract_json_object(self, text: str) -> Dict[str, Any]:
        start = text.find("{")
        if start == -1:
            raise ValueError("No JSON object found in response")

        depth = 0
        for i in range(start, len(text)):
            if text[i] == "{":
                depth += 1
            elif text[i] == "}":
                depth -= 1
                if depth == 0:
                    return json.loads(text[start : i + 1])

        raise ValueError("Unbalanced JSON braces")

    def _parse(self, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

        # fenced or chatty replies: take the first balanced object
        try:
            return self._extract_json_object(text)
        except ValueError as e:
            logger.error(f"Reply parse failed: {e} | {text[:200]}")
            raise MalformedResponseError(f"AI reply is not valid JSON: {e}") from e

    # ------------------------------------------------------------------
    # 🔹 STAGES
    # ------------------------------------------------------------------
    async def complete(self, prompt: str, system_prompt: str) -> Any:
        """Feedback and questions stages: the caller picks the instruction."""
        if not prompt or not prompt.strip():
            raise ValidationError("prompt must not be empty")

        text = await self._generate(
            format_idea(prompt),
            system_prompt=system_prompt,
            profile=self._settings.conversation,
        )
        return self._parse(text)

    async def analyze(self, prompt: str, answers: Mapping[str, Answer]) -> Dict[str, Any]:
        """Final analysis stage. Returns the validated payload as the provider sent it."""
        if not prompt or not prompt.strip():
            raise ValidationError("prompt must not be empty")

        text = await self._generate(
            format_answers(prompt, {qid: answer.model_dump() for qid, answer in answers.items()}),
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            profile=self._settings.analysis,
        )
        data = self._parse(text)
        parse_analysis(data)
        return data


# ----------------------------------------------------------------------
# 🔹 STAGE PARSERS
# ----------------------------------------------------------------------
def parse_feedback(data: Any) -> FeedbackBatch:
    return _validate(FeedbackBatch, data, "feedback")


def parse_questions(data: Any) -> QuestionBatch:
    return _validate(QuestionBatch, data, "questions")


def parse_analysis(data: Any) -> AnalysisPayload:
    return _validate(AnalysisPayload, data, "analysis")


def _validate(model, data: Any, stage: str):
    if isinstance(data, dict) and data.get("error"):
        raise MalformedResponseError(str(data["error"]))
    try:
        return model.model_validate(data)
    except SchemaError as e:
        logger.error(f"{stage} payload rejected: {e.errors()}")
        raise MalformedResponseError(f"Malformed {stage} response: {e.error_count()} problem(s)") from e
