"""Shared test fixtures: canned stage payloads, a fake LLM provider, and a
fake Noviq API for driving the workflow controller without HTTP.
"""

import copy
import json

import httpx
import mongomock
import pytest
from fastapi.testclient import TestClient

from noviq.config import Settings
from noviq.llm_service import AIGateway
from noviq.main import create_app
from noviq.prompts import ANALYSIS_SYSTEM_PROMPT, QUESTIONS_SYSTEM_PROMPT
from noviq.session_store import SessionStore

IDEA = "open a pistachio coffee shop in Amsterdam"

FEEDBACK = {
    "feedback": [
        "Pistachio lattes are a fresh twist Amsterdam cafes have not claimed.",
        "Specialty coffee spending in the Netherlands keeps climbing every year.",
        "Tourists and locals alike hunt for photogenic, signature drinks.",
        "A single-ingredient theme gives your brand instant recognition.",
    ],
    "needsMoreInfo": True,
}

QUESTIONS = {
    "questions": [
        {
            "id": "q1",
            "question": "Who will buy your pistachio coffee most often?",
            "category": "target_market",
            "options": ["Students", "Office workers", "Tourists", "Families"],
        },
        {
            "id": "q2",
            "question": "How will the shop mainly make money?",
            "category": "revenue_model",
            "options": ["Drinks", "Pastries", "Beans to take home", "Catering"],
        },
        {
            "id": "q3",
            "question": "What makes your shop special?",
            "category": "unique_value",
            "options": ["Homemade pistachio paste", "Interior design", "Location", "Price"],
        },
        {
            "id": "q4",
            "question": "How much money can you start with?",
            "category": "resources_needed",
            "options": ["Under 20k", "20k-50k", "50k-100k", "Over 100k"],
        },
    ]
}

ANALYSIS = {
    "offline_analysis": {
        "executive_summary": {
            "viability_score": 68,
            "headline": "A niche concept with strong tourist appeal and thin margins.",
            "key_points": ["Distinctive product", "High rent in the centre", "Seasonal demand"],
        },
        "radar_chart": {
            "categories": ["Market Demand", "Competition", "Profitability", "Scalability", "Founder Fit"],
            "values": [75, 50, 55, 45, 70],
        },
        "revenue_projection": {
            "timeline": ["Year 1", "Year 2", "Year 3", "Year 4"],
            "values": [90000, 150000, 190000, 220000],
            "unit": "EUR",
        },
        "startup_costs": {
            "categories": ["Equipment", "Rent deposit", "Renovation", "Marketing", "Inventory"],
            "values": [25000, 18000, 30000, 6000, 4000],
            "unit": "EUR",
        },
        "timeline": {
            "phases": ["Research", "Setup", "Launch", "Growth"],
            "durations": [2, 4, 1, 5],
            "milestones": [{"title": "Lease signed", "month": 3, "phase": "Setup"}],
        },
        "swot": {
            "strengths": ["Memorable product"],
            "weaknesses": ["Single theme"],
            "opportunities": ["Wholesale paste"],
            "threats": ["Copycats"],
        },
    },
    "research_query": "pistachio coffee demand Amsterdam",
}


def anthropic_reply(payload, status_code=200):
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(status_code, json={"content": [{"type": "text", "text": text}]})


class FakeProvider:
    """httpx.MockTransport handler standing in for the Messages API.

    Replies are chosen from the request's system prompt. ``fail`` queues one
    error response for a stage.
    """

    def __init__(self):
        self.replies = {"feedback": FEEDBACK, "questions": QUESTIONS, "analysis": ANALYSIS}
        self.failures = {}
        self.requests = []

    @staticmethod
    def stage_of(body):
        if body["system"] == QUESTIONS_SYSTEM_PROMPT:
            return "questions"
        if body["system"] == ANALYSIS_SYSTEM_PROMPT:
            return "analysis"
        return "feedback"

    def fail(self, stage, status_code=529, message="Overloaded"):
        self.failures[stage] = httpx.Response(
            status_code, json={"type": "error", "error": {"type": "overloaded_error", "message": message}}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        stage = self.stage_of(body)
        self.requests.append((stage, request))
        if stage in self.failures:
            return self.failures.pop(stage)
        return anthropic_reply(self.replies[stage])

    def stages(self):
        return [stage for stage, _ in self.requests]


class FakeApi:
    """Duck-typed NoviqClient that answers from canned payloads."""

    def __init__(self):
        self.replies = {"feedback": FEEDBACK, "questions": QUESTIONS}
        self.analysis = ANALYSIS
        self.failures = {}
        self.calls = []
        self.submit_gate = None

    async def complete(self, prompt, system_prompt):
        stage = "questions" if system_prompt == QUESTIONS_SYSTEM_PROMPT else "feedback"
        self.calls.append((stage, prompt, system_prompt))
        if stage in self.failures:
            raise self.failures.pop(stage)
        return copy.deepcopy(self.replies[stage])

    async def submit_answers(self, prompt, answers, user_id=None):
        self.calls.append(("submit", prompt, dict(answers)))
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if "submit" in self.failures:
            raise self.failures.pop("submit")
        return copy.deepcopy(self.analysis)

    def stages(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def settings():
    return Settings(anthropic_api_key="test-key")


@pytest.fixture
def db():
    return mongomock.MongoClient()["noviq"]


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def gateway(settings, provider):
    return AIGateway(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider)))


@pytest.fixture
def app(settings, gateway, db):
    return create_app(settings, gateway=gateway, db=db)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def session_store(tmp_path):
    return SessionStore(str(tmp_path / "browser"))
