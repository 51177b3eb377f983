from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

FEEDBACK_COUNT = 4
MIN_QUESTIONS, MAX_QUESTIONS = 3, 5
MIN_OPTIONS, MAX_OPTIONS = 2, 5

QuestionCategory = Literal[
    "target_market",
    "revenue_model",
    "unique_value",
    "resources_needed",
    "personal_fit",
]


# ----------------------------------------------------------------------
# Stage payloads (what the LLM is asked to return)
# ----------------------------------------------------------------------
class FeedbackBatch(BaseModel):
    feedback: List[str] = Field(..., min_length=FEEDBACK_COUNT, max_length=FEEDBACK_COUNT)
    needsMoreInfo: bool = True

    @field_validator("feedback")
    @classmethod
    def _no_blank_items(cls, items: List[str]) -> List[str]:
        if any(not item.strip() for item in items):
            raise ValueError("feedback items must be non-empty")
        return items


class FollowUpQuestion(BaseModel):
    id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    category: QuestionCategory
    options: List[str] = Field(..., min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)


class QuestionBatch(BaseModel):
    questions: List[FollowUpQuestion] = Field(..., min_length=MIN_QUESTIONS, max_length=MAX_QUESTIONS)

    @field_validator("questions")
    @classmethod
    def _unique_ids(cls, questions: List[FollowUpQuestion]) -> List[FollowUpQuestion]:
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError("question ids must be unique within a batch")
        return questions


class ExecutiveSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    viability_score: float = Field(..., ge=0, le=100)
    headline: str = Field(..., min_length=1)
    key_points: List[str] = []


class RadarChart(BaseModel):
    categories: List[str]
    values: List[float]


class RevenueProjection(BaseModel):
    timeline: List[str]
    values: List[float]
    unit: str = ""


class StartupCosts(BaseModel):
    categories: List[str]
    values: List[float]
    unit: str = ""


class Milestone(BaseModel):
    title: str
    month: float
    phase: str


class Timeline(BaseModel):
    phases: List[str]
    durations: List[float]
    milestones: List[Milestone] = []


class Swot(BaseModel):
    strengths: List[str] = []
    weaknesses: List[str] = []
    opportunities: List[str] = []
    threats: List[str] = []


class OfflineAnalysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    executive_summary: ExecutiveSummary
    radar_chart: Optional[RadarChart] = None
    revenue_projection: Optional[RevenueProjection] = None
    startup_costs: Optional[StartupCosts] = None
    timeline: Optional[Timeline] = None
    swot: Optional[Swot] = None


class AnalysisPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    offline_analysis: OfflineAnalysis
    research_query: Optional[str] = None


# ----------------------------------------------------------------------
# Workflow values
# ----------------------------------------------------------------------
class Answer(BaseModel):
    question: str = Field(..., description="Snapshot of the question text.")
    selected: str


# ----------------------------------------------------------------------
# HTTP bodies
# ----------------------------------------------------------------------
class AIRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1, description="The user's business idea.")
    system_prompt: str = Field(..., alias="systemPrompt", min_length=1)


class AnswersRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=1)
    answers: Dict[str, Answer] = Field(..., description="Map of question id to the user's answer.")
    user_id: Optional[str] = Field(None, alias="userId")


class AnswersResponse(BaseModel):
    success: bool = True
    analysis: Dict[str, Any]


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    prompt: Optional[str] = None


class ChartSeries(BaseModel):
    labels: List[str]
    values: List[float]
    unit: str = ""


class DashboardCard(BaseModel):
    id: Optional[str]
    business_idea: str
    created_at: Optional[str]
    viability_score: Optional[float] = None
    headline: Optional[str] = None
    key_points: List[str] = []
    radar: Optional[ChartSeries] = None
    revenue: Optional[ChartSeries] = None
    costs: Optional[ChartSeries] = None
    total_startup_cost: Optional[float] = None
    total_months: Optional[float] = None


class DashboardData(BaseModel):
    user_id: Optional[str]
    count: int
    average_viability: Optional[float] = None
    analyses: List[DashboardCard]
