"""
api/app.py — FastAPI server for the symptom assessment
Run: uvicorn api.app:app --reload --port 8000
"""

import uuid
import time
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from assessment import config
from assessment.areas import compute_areas
from assessment.catalog import list_categories
from assessment.diagnosis import DiagnosisEngine
from assessment.errors import (
    AssessmentError,
    GenerationError,
    InputValidationError,
    PhaseError,
    ProfileError,
)
from assessment.llm import CompletionClient, GroqCompletionClient
from assessment.models import DiagnosisMatch, Phase, QuestionBatch, parse_responses
from assessment.questions import QuestionOrchestrator
from assessment.session import AssessmentSession

logger = logging.getLogger("assessment.api")

# ─────────────────────────────────────────────
# State
# ─────────────────────────────────────────────

completion_client: Optional[CompletionClient] = None
profile_client:    Optional[CompletionClient] = None

# sessions stores: { session_id: {"session": AssessmentSession, "lock": Lock, "last_active": float} }
sessions: dict[str, dict] = {}


def _evict_old_sessions():
    """Remove sessions idle for more than SESSION_TTL_SECONDS."""
    now = time.time()
    to_delete = [
        sid for sid, data in sessions.items()
        if now - data["last_active"] > config.SESSION_TTL_SECONDS
    ]
    for sid in to_delete:
        del sessions[sid]
    if to_delete:
        logger.info(f"Evicted {len(to_delete)} idle sessions.")


def _clients():
    if completion_client is None:
        raise HTTPException(503, "Language model client is not configured.")
    return completion_client, profile_client or completion_client


def _orchestrator() -> QuestionOrchestrator:
    client, _ = _clients()
    return QuestionOrchestrator(client)


def _engine() -> DiagnosisEngine:
    _, client = _clients()
    return DiagnosisEngine(client)


# ─────────────────────────────────────────────
# Lifespan
# ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    global completion_client, profile_client

    # ── Validate API key early ──
    if not config.GROQ_API_KEY:
        raise RuntimeError(
            "GROQ_API_KEY is not set. "
            "Add it to your environment or .env file."
        )

    completion_client = GroqCompletionClient(config.GROQ_API_KEY)
    profile_client = GroqCompletionClient(
        config.GROQ_API_KEY, temperature=config.PROFILE_TEMPERATURE
    )
    logger.info(f"Groq clients ready (model={config.GROQ_MODEL}).")

    yield  # app runs here

    # ── Shutdown cleanup ──
    sessions.clear()
    logger.info("Sessions cleared on shutdown.")


# ─────────────────────────────────────────────
# FastAPI app
# ─────────────────────────────────────────────

app = FastAPI(title="Symptom Assessment API", version="1.0.0", lifespan=lifespan)

allow_origins = (
    ["*"]
    if config.ALLOWED_ORIGINS in {"*", ""}
    else [o.strip() for o in config.ALLOWED_ORIGINS.split(",") if o.strip()]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = {
    InputValidationError: 400,
    PhaseError:           409,
    GenerationError:      502,
    ProfileError:         502,
}


@app.exception_handler(AssessmentError)
async def assessment_error_handler(request: Request, exc: AssessmentError):
    status = _STATUS_BY_ERROR.get(type(exc), 500)
    if status >= 500:
        logger.error(f"{request.url.path}: {exc.kind}: {exc.detail}")
    return JSONResponse(status_code=status, content={"error": exc.kind, "detail": exc.detail})


# ─────────────────────────────────────────────
# Request / Response Models
# ─────────────────────────────────────────────

class NewSessionResponse(BaseModel):
    session_id: str
    message: str


class StartRequest(BaseModel):
    category: str
    symptom: str


class AnswerRequest(BaseModel):
    answer: str


class BackRequest(BaseModel):
    index: int


class RestoreRequest(BaseModel):
    category: Optional[str] = None
    symptom: Optional[str] = None
    responses: Optional[List[Any]] = None
    phase: Optional[str] = None
    last_diagnosis: Optional[List[Any]] = None


class QuestionView(BaseModel):
    text: str
    options: List[str]


class SessionView(BaseModel):
    session_id: str
    phase: str
    category: Optional[str] = None
    symptom: Optional[str] = None
    question: Optional[QuestionView] = None
    responses_count: int = 0
    progress: int = 0
    assessed_areas: dict = {}
    diagnosis: Optional[List[DiagnosisMatch]] = None


class QuestionsRequest(BaseModel):
    category: Optional[str] = None
    selection: Optional[str] = None
    previousResponses: Optional[List[Any]] = None
    isPhase2: bool = False


class DiagnoseRequest(BaseModel):
    responses: Optional[List[Any]] = None


class DiagnoseResponse(BaseModel):
    diagnoses: List[DiagnosisMatch] = Field(default_factory=list)


# ─────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────

def _entry(session_id: str) -> dict:
    if session_id not in sessions:
        raise HTTPException(
            404,
            "Session not found or expired. Create a new one with POST /session/new"
        )
    entry = sessions[session_id]
    entry["last_active"] = time.time()
    return entry


def _view(session_id: str, session: AssessmentSession) -> SessionView:
    s = session.state
    q = session.current_question()
    return SessionView(
        session_id=session_id,
        phase=s.phase.value,
        category=s.category,
        symptom=s.symptom,
        question=QuestionView(text=q.text, options=q.options) if q else None,
        responses_count=len(s.responses),
        progress=session.progress_percent(),
        assessed_areas=compute_areas(s.responses).as_dict(),
        diagnosis=s.last_diagnosis,
    )


def _run_locked(session_id: str, fn):
    """One in-flight request per session; a second concurrent one gets 409."""
    entry = _entry(session_id)
    lock: threading.Lock = entry["lock"]
    if not lock.acquire(blocking=False):
        raise HTTPException(409, "A request for this session is already in progress.")
    try:
        fn(entry["session"])
        return _view(session_id, entry["session"])
    finally:
        lock.release()


# ─────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────

@app.get("/")
def health():
    return {
        "status": "ok",
        "service": "Symptom Assessment API",
        "active_sessions": len(sessions),
    }


@app.get("/categories")
def categories():
    return {"categories": list_categories()}


@app.post("/session/new", response_model=NewSessionResponse)
def new_session():
    _evict_old_sessions()

    if len(sessions) >= config.MAX_SESSIONS:
        raise HTTPException(
            503,
            "Server is at capacity. Please try again in a few minutes."
        )

    session_id = str(uuid.uuid4())
    session = AssessmentSession(orchestrator=_orchestrator(), engine=_engine())
    sessions[session_id] = {
        "session": session,
        "lock": threading.Lock(),
        "last_active": time.time(),
    }

    return NewSessionResponse(
        session_id=session_id,
        message=(
            "Welcome! This questionnaire helps you describe your symptoms. "
            "It is not a diagnosis. Always consult a licensed professional.\n\n"
            "To get started: choose a category and the symptom that fits best."
        ),
    )


@app.post("/session/{session_id}/start", response_model=SessionView)
def start(session_id: str, req: StartRequest):
    return _run_locked(session_id, lambda s: s.start(req.category, req.symptom))


@app.post("/session/{session_id}/answer", response_model=SessionView)
def answer(session_id: str, req: AnswerRequest):
    return _run_locked(session_id, lambda s: s.answer(req.answer))


@app.post("/session/{session_id}/back", response_model=SessionView)
def go_back(session_id: str, req: BackRequest):
    return _run_locked(session_id, lambda s: s.go_back(req.index))


@app.post("/session/{session_id}/diagnose", response_model=SessionView)
def diagnose(session_id: str):
    return _run_locked(session_id, lambda s: s.diagnose())


@app.get("/session/{session_id}/state", response_model=SessionView)
def get_state(session_id: str):
    entry = _entry(session_id)
    return _view(session_id, entry["session"])


@app.get("/session/{session_id}/snapshot")
def get_snapshot(session_id: str):
    return _entry(session_id)["session"].snapshot()


@app.post("/session/{session_id}/restore", response_model=SessionView)
def restore(session_id: str, req: RestoreRequest):
    return _run_locked(session_id, lambda s: s.restore(req.model_dump()))


@app.get("/session/{session_id}/report")
def get_report(session_id: str):
    session: AssessmentSession = _entry(session_id)["session"]
    return {"session_id": session_id, "report": session.report()}


@app.delete("/session/{session_id}/diagnosis", response_model=SessionView)
def discard_diagnosis(session_id: str):
    return _run_locked(session_id, lambda s: s.discard_diagnosis())


@app.delete("/session/{session_id}")
def clear_session(session_id: str):
    sessions.pop(session_id, None)
    return {"status": "cleared"}


# ─────────────────────────────────────────────
# Stateless routes
# ─────────────────────────────────────────────

@app.post("/questions", response_model=QuestionBatch, response_model_by_alias=True,
          response_model_exclude_none=True)
def questions(req: QuestionsRequest):
    if not req.category or not req.selection:
        raise InputValidationError("Missing required fields")
    previous = parse_responses(req.previousResponses)
    phase = Phase.DETAILED if req.isPhase2 else Phase.INITIAL
    return _orchestrator().generate_next_questions(req.category, req.selection, previous, phase)


@app.post("/diagnose", response_model=DiagnoseResponse)
def diagnose_transcript(req: DiagnoseRequest):
    if not req.responses:
        raise InputValidationError("Responses array is required")
    transcript = parse_responses(req.responses)
    return DiagnoseResponse(diagnoses=_engine().compute_diagnosis(transcript))
