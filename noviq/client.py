import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from noviq.errors import MalformedResponseError, TransportError, UpstreamError
from noviq.schemas import Answer

logger = logging.getLogger(__name__)


class NoviqClient:
    """Async client for the Noviq HTTP API, used by the workflow controller."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "NoviqClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request to {path} failed: {e!r}")
            raise TransportError(f"Could not reach Noviq API: {e!r}") from e

        if response.is_error:
            raise UpstreamError(
                f"Server error ({response.status_code}): {self._error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Failed to parse response: {response.text[:100]}...") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] or "Unknown error"
        if isinstance(data, dict):
            return data.get("detail") or data.get("error") or "Unknown error"
        return "Unknown error"

    async def complete(self, prompt: str, system_prompt: str) -> Any:
        data = await self._request("POST", "/api/ai", json={"prompt": prompt, "systemPrompt": system_prompt})
        if isinstance(data, dict) and data.get("error"):
            raise UpstreamError(str(data["error"]))
        return data

    async def submit_answers(
        self,
        prompt: str,
        answers: Mapping[str, Answer],
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {
            "prompt": prompt,
            "answers": {qid: answer.model_dump() for qid, answer in answers.items()},
            "userId": user_id,
        }
        data = await self._request("POST", "/api/answers", json=body)
        if not isinstance(data, dict) or not data.get("success") or not data.get("analysis"):
            raise MalformedResponseError("Submission reply carried no analysis")
        return data["analysis"]

    async def latest_analysis(self, user_id: str) -> Optional[Dict[str, Any]]:
        data = await self._request("GET", "/api/analyses", params={"userId": user_id})
        return data.get("analysis") if data.get("success") else None

    async def all_analyses(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        params = {"userId": user_id} if user_id else {}
        data = await self._request("GET", "/api/analyses/all", params=params)
        if data.get("error"):
            logger.warning(f"Analyses list degraded: {data['error']}")
        return data.get("analyses", [])
