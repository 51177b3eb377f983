import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from noviq.config import Settings
from noviq.dashboard import build_dashboard, debug_flags
from noviq.errors import ConfigurationError, DuplicateUserError, NoviqError
from noviq.llm_service import AIGateway
from noviq.schemas import AIRequest, AnswersRequest, AnswersResponse, DashboardData, RegisterRequest
from noviq.store import AnalysisStore, UserStore, connect, describe, get_database, serialize

# Configure Logging
logging.basicConfig(level=Settings.from_env().log_level)
logger = logging.getLogger("Noviq")

router = APIRouter(prefix="/api")


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------
def get_gateway(request: Request) -> AIGateway:
    return request.app.state.gateway


def get_db(request: Request) -> Database:
    db = request.app.state.db
    if db is None:
        raise ConfigurationError("DATABASE_URL environment variable is not set.")
    return db


def get_analysis_store(db: Database = Depends(get_db)) -> AnalysisStore:
    return AnalysisStore(db)


def get_user_store(db: Database = Depends(get_db)) -> UserStore:
    return UserStore(db)


# ----------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------
@router.post("/ai")
async def ai_proxy(body: AIRequest, gateway: AIGateway = Depends(get_gateway)):
    """
    Stage-agnostic completion: the system prompt decides whether the reply
    is a feedback batch or a question batch.
    """
    try:
        result = await gateway.complete(body.prompt, body.system_prompt)
    except NoviqError as e:
        logger.error(f"AI Error: {e.message}")
        return JSONResponse({"error": "Failed to process AI request", "detail": e.message}, status_code=500)
    return JSONResponse(result)


@router.post("/answers", response_model=AnswersResponse)
async def submit_answers(
    body: AnswersRequest,
    gateway: AIGateway = Depends(get_gateway),
    store: AnalysisStore = Depends(get_analysis_store),
):
    """
    Final stage: analyze the idea with the user's answers, then store it.
    Nothing is written unless the analysis parsed and validated.
    """
    logger.info(f"Processing answers request for user {body.user_id} ({len(body.answers)} answers)")
    try:
        analysis = await gateway.analyze(body.prompt, body.answers)
        await run_in_threadpool(store.save, body.user_id, body.prompt, body.answers, analysis)
    except NoviqError as e:
        logger.error(f"Answer submission error: {e.message}")
        return JSONResponse({"error": f"Failed to process answers: {e.message}"}, status_code=500)

    return AnswersResponse(success=True, analysis=analysis)


@router.get("/analyses")
def latest_analysis(request: Request, user_id: Optional[str] = Query(None, alias="userId")):
    if not user_id:
        return {"success": False, "message": "No analysis found"}

    try:
        record = AnalysisStore(get_db(request)).get_latest(user_id)
    except NoviqError as e:
        logger.error(f"Error fetching analysis: {e.message}")
        return {"success": False, "message": "Error fetching analysis"}

    if not record:
        return {"success": False, "message": "No analysis found"}
    return {"success": True, "analysis": serialize(record)}


@router.get("/analyses/all")
def all_analyses(request: Request, user_id: Optional[str] = Query(None, alias="userId")):
    """Never fails: read errors degrade to an empty list with an ``error`` field."""
    if not user_id:
        logger.info("No user ID provided, returning empty array")
        return {"success": True, "analyses": []}

    try:
        records = AnalysisStore(get_db(request)).get_all(user_id)
    except NoviqError as e:
        logger.error(f"Error fetching analyses: {e.message}")
        return {"success": True, "analyses": [], "error": e.message}

    logger.info(f"Found {len(records)} analyses for user {user_id}")
    analyses = []
    for record in records:
        item = serialize(record)
        item["_debug"] = debug_flags(item)
        analyses.append(item)
    return {"success": True, "analyses": analyses}


@router.get("/dashboard", response_model=DashboardData)
def dashboard(request: Request, user_id: Optional[str] = Query(None, alias="userId")):
    records = []
    if user_id:
        try:
            records = AnalysisStore(get_db(request)).get_all(user_id)
        except NoviqError as e:
            logger.error(f"Dashboard read failed: {e.message}")
    return build_dashboard(user_id, [serialize(r) for r in records])


@router.post("/register", status_code=201)
def register(body: RegisterRequest, users: UserStore = Depends(get_user_store)):
    try:
        users.register(body.name, body.email, body.password, body.prompt)
    except DuplicateUserError as e:
        return JSONResponse({"message": e.message}, status_code=400)
    except NoviqError as e:
        logger.error(f"Registration error: {e.message}")
        return JSONResponse({"message": "Internal server error"}, status_code=500)
    return {"message": "User created successfully"}


@router.get("/test-db")
def test_db(request: Request) -> Dict[str, Any]:
    try:
        info = describe(get_db(request))
    except NoviqError as e:
        return {"success": False, "error": e.message}
    return {"success": True, **info}


# ----------------------------------------------------------------------
# Application
# ----------------------------------------------------------------------
def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[AIGateway] = None,
    db: Optional[Database] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        app.state.gateway = gateway or AIGateway(settings)
        app.state.db = db
        if db is None and settings.database_url:
            client = connect(settings)
            app.state.db = get_database(client, settings)
        elif db is None:
            logger.warning("DATABASE_URL is not set; storage endpoints will fail")

        yield

        if gateway is None:
            await app.state.gateway.aclose()
        if client is not None:
            client.close()

    app = FastAPI(title="Noviq", version="1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NoviqError)
    async def noviq_error_handler(request: Request, exc: NoviqError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse({"error": exc.message}, status_code=500)

    app.include_router(router)
    return app


app = create_app()
