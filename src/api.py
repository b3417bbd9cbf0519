"""
HTTP surface for the analysis pipeline, design tools and assistant.

create_app(deps, history) returns a FastAPI app with every route under /api.
Handlers are plain (sync) functions; FastAPI runs them in its threadpool,
so the blocking LLM client is used as is.

Endpoints:
    POST   /api/generate       preliminary analysis (one focus or full run) or conceptual design
    POST   /api/simulate       simplified structural simulation of a design
    POST   /api/chat           one assistant round-trip over a client-held transcript
    POST   /api/explain        concept explanation at a chosen level
    POST   /api/speech         text to a wav data URI
    GET    /api/history        all entries, most-recent-first
    GET    /api/history/{id}   one entry
    PATCH  /api/history/{id}   attach conceptualDesign / simulation
    DELETE /api/history        clear history
    GET    /api/health         liveness and model info

Every error body is {"error": "<message>"}.
"""

from typing import Any

from fastapi import APIRouter, Body, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from assistant import complete_chat
from history import HistoryStore
from llm import LLMError
from logging_utils import get_logger
from state import InvalidInputError
from steps import (
    Dependencies,
    analyze_focus,
    explain_concept,
    generate_conceptual_design,
    simulate_structural_analysis,
)
from workflow import PipelineFailedError, analyze_project

logger = get_logger(__name__)

ANALYSIS_TYPES = ("preliminary", "conceptualDesign")


# ===================================================================
# Request helpers
# ===================================================================

def _text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _require(payload: dict[str, Any], key: str, message: str) -> str:
    value = _text(payload, key)
    if not value:
        raise InvalidInputError(message)
    return value


# ===================================================================
# Routes
# ===================================================================

def build_router(deps: Dependencies, history: HistoryStore) -> APIRouter:
    """Create the /api routes bound to one set of dependencies and one history store."""
    router = APIRouter()

    @router.post("/generate")
    def generate(payload: dict[str, Any] = Body(...)):
        analysis_type = _require(payload, "analysisType", "Analysis type is required")
        if analysis_type not in ANALYSIS_TYPES:
            raise InvalidInputError("Invalid analysis type")
        location = _text(payload, "projectLocation")

        if analysis_type == "preliminary":
            description = _require(
                payload, "projectDescription",
                "Project description is required for preliminary analysis",
            )
            focus = _text(payload, "analysisFocus")
            if focus:
                context = payload.get("context") or {}
                if not isinstance(context, dict):
                    raise InvalidInputError("Context must be an object")
                return analyze_focus(description, location, focus, context, deps)

            _, entry = analyze_project(description, location, deps, history=history, verbose=False)
            return entry.to_dict()

        # conceptualDesign
        description = _require(
            payload, "projectDescription",
            "Project description is required for conceptual design",
        )
        building_code = _require(payload, "buildingCode", "Building code is required")
        design = generate_conceptual_design(description, location, building_code, deps)
        return design.model_dump(by_alias=True)

    @router.post("/simulate")
    def simulate(payload: dict[str, Any] = Body(...)):
        result = simulate_structural_analysis(payload, deps)
        return result.model_dump(by_alias=True)

    @router.post("/chat")
    def chat(payload: dict[str, Any] = Body(...)):
        project_context = payload.get("projectContext") or {}
        if not isinstance(project_context, dict):
            raise InvalidInputError("Project context must be an object")
        reply = complete_chat(project_context, payload.get("history"), deps)
        return {"reply": reply}

    @router.post("/explain")
    def explain(payload: dict[str, Any] = Body(...)):
        explanation = explain_concept(
            _text(payload, "topic"),
            _text(payload, "level"),
            _text(payload, "goal"),
            deps,
        )
        return explanation.model_dump(by_alias=True)

    @router.post("/speech")
    def speech(payload: dict[str, Any] = Body(...)):
        text = _require(payload, "text", "Text is required")
        return {"audio": deps.llm.synthesize_speech(text)}

    @router.get("/history")
    def list_history():
        return [entry.to_dict() for entry in history.list()]

    @router.get("/history/{entry_id}")
    def get_history_entry(entry_id: str):
        entry = history.select(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"History entry {entry_id} not found")
        return entry.to_dict()

    @router.patch("/history/{entry_id}")
    def patch_history_entry(entry_id: str, payload: dict[str, Any] = Body(...)):
        entry = history.update_entry(entry_id, payload)
        return {"entry": entry.to_dict() if entry is not None else None}

    @router.delete("/history")
    def clear_history():
        return {"removed": history.clear()}

    @router.get("/health")
    def health():
        return {
            "status": "ok",
            "analysisModel": deps.config.llm.analysis_model,
            "chatModel": deps.config.llm.chat_model,
            "historyEntries": len(history),
        }

    return router


# ===================================================================
# Error mapping
# ===================================================================

def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def install_error_handlers(app: FastAPI) -> None:
    """Map the exception taxonomy onto status codes with an {"error": ...} body."""

    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(request: Request, exc: InvalidInputError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_bad_body(request: Request, exc: RequestValidationError):
        return _error(400, "Request body must be a JSON object")

    @app.exception_handler(PipelineFailedError)
    async def handle_pipeline_failure(request: Request, exc: PipelineFailedError):
        logger.error(f"{request.url.path}: {exc}")
        failed_step = exc.state.failed_step.value if exc.state.failed_step else None
        return _error(500, str(exc), failedStep=failed_step)

    @app.exception_handler(LLMError)
    async def handle_llm_error(request: Request, exc: LLMError):
        logger.error(f"{request.url.path}: {exc}")
        status = exc.status_code if exc.status_code and 400 <= exc.status_code < 600 else 500
        return _error(status, str(exc) or "An internal error occurred")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))


def create_app(deps: Dependencies, history: HistoryStore) -> FastAPI:
    """
    Build the application.

    Usage:
        app = create_app(deps, HistoryStore(JsonFileStorage(path)))
        uvicorn.run(app, host="127.0.0.1", port=8000)
    """
    app = FastAPI(title="Structura", description="Construction engineering analysis assistant")
    app.include_router(build_router(deps, history), prefix="/api")
    install_error_handlers(app)
    return app
