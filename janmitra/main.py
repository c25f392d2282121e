import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, File, Form, Request, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from janmitra.assistant import AssistantRouter
from janmitra.config import settings
from janmitra.errors import (
    ExternalServiceError,
    ExternalServiceUnavailable,
    InputError,
    JanMitraError,
    MediaStorageFailure,
    PersistenceFailure,
)
from janmitra.intake import ImageUpload, IntakeService
from janmitra.llm_client import GeminiClient
from janmitra.logging_utils import RequestLoggingMiddleware, attach_log_data, setup_logging
from janmitra.media import UPLOADS_URL_PREFIX, LocalMediaStore
from janmitra.metrics import (
    get_metrics,
    get_metrics_content_type,
    record_chat_reply,
    record_report_outcome,
)
from janmitra.query import QueryService
from janmitra.schemas import (
    ChatRequest,
    ChatResponse,
    CountResponse,
    ErrorResponse,
    HealthResponse,
    IssueResponse,
    ReportResponse,
)
from janmitra.storage import IssueRepository, check_db_health, get_issue_repository, init_db
from janmitra.utils import cancel_on_disconnect


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# The static mount below needs the directory to exist at import time
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: create tables, set up the media store and the model client
    - Shutdown: close the model client's connection pool
    """
    init_db()
    app.state.media_store = LocalMediaStore(settings.UPLOAD_DIR)
    app.state.model_client = GeminiClient.from_settings(settings)
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; chat fallback will fail")
    yield
    await app.state.model_client.aclose()


app = FastAPI(
    title="JanMitra Civic API",
    description="Civic issue reporting with ticket tracking and a chat assistant",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(UPLOADS_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


# =============================================================================
# Error Handlers
# =============================================================================

@app.exception_handler(JanMitraError)
async def handle_app_error(request: Request, exc: JanMitraError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.warning(f"Request validation failed: {errors}")
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": detail})


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# =============================================================================
# Dependencies
# =============================================================================

def get_media_store(request: Request) -> LocalMediaStore:
    return request.app.state.media_store


def get_model_client(request: Request) -> GeminiClient:
    return request.app.state.model_client


def get_intake_service(
    repository: IssueRepository = Depends(get_issue_repository),
    media_store: LocalMediaStore = Depends(get_media_store),
) -> IntakeService:
    return IntakeService(repository, media_store)


def get_query_service(repository: IssueRepository = Depends(get_issue_repository)) -> QueryService:
    return QueryService(repository)


def get_assistant_router(model_client: GeminiClient = Depends(get_model_client)) -> AssistantRouter:
    return AssistantRouter(model_client)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness check - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness check - returns 200 only if:
    1. GEMINI_API_KEY is set (non-empty)
    2. DB is reachable and the issues table exists

    Otherwise returns 503 (Service Unavailable).
    """
    if not settings.GEMINI_API_KEY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason="GEMINI_API_KEY not configured")

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Report Routes
# =============================================================================

@app.post(
    "/api/report",
    response_model=ReportResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Image missing"},
        500: {"model": ErrorResponse, "description": "Image or database write failed"},
    }
)
async def submit_report(
    request: Request,
    image: Annotated[Optional[UploadFile], File()] = None,
    description: Annotated[Optional[str], Form()] = None,
    category: Annotated[Optional[str], Form()] = None,
    lat: Annotated[Optional[str], Form()] = None,
    lon: Annotated[Optional[str], Form()] = None,
    intake: IntakeService = Depends(get_intake_service),
) -> ReportResponse:
    """
    Submit a photographed civic issue.

    Multipart form fields:
        - image: the photo (required)
        - description, category: optional text
        - lat, lon: optional, parsed as numbers when present
    """
    upload = None
    if image is not None:
        upload = ImageUpload(data=await image.read(), filename=image.filename)

    try:
        submission = await intake.submit_issue(
            upload,
            description=description,
            category=category,
            lat=lat,
            lon=lon,
        )
    except InputError:
        record_report_outcome("invalid_input")
        attach_log_data(request, result="invalid_input")
        raise
    except PersistenceFailure:
        record_report_outcome("db_error")
        attach_log_data(request, result="db_error")
        raise
    except MediaStorageFailure:
        record_report_outcome("storage_error")
        attach_log_data(request, result="storage_error")
        raise

    record_report_outcome("created")
    attach_log_data(request, result="created", ticket_id=submission.ticket_id)

    return ReportResponse(
        id=submission.id,
        ticket_id=submission.ticket_id,
        image_url=submission.image_url,
    )


@app.get(
    "/api/reports",
    response_model=list[IssueResponse],
    responses={500: {"model": ErrorResponse}},
)
def list_reports(queries: QueryService = Depends(get_query_service)) -> list[IssueResponse]:
    """All reported issues, most recent first."""
    return [IssueResponse.from_issue(issue) for issue in queries.list_issues()]


@app.get(
    "/api/count",
    response_model=CountResponse,
    responses={500: {"model": ErrorResponse}},
)
def count_reports(queries: QueryService = Depends(get_query_service)) -> CountResponse:
    return CountResponse(count=queries.count_issues())


# =============================================================================
# Chat Route
# =============================================================================

@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Message missing"},
        500: {"model": ErrorResponse, "description": "Model service unreachable"},
    }
)
async def chat(
    request: Request,
    body: Optional[ChatRequest] = None,
    router: AssistantRouter = Depends(get_assistant_router),
) -> ChatResponse:
    """
    Answer a citizen's chat message.

    Common intents get a canned reply; everything else is answered by the
    generative model. Model-side errors are passed through with their status.
    """
    message = body.message if body is not None else None

    try:
        reply = await cancel_on_disconnect(request, router.reply(message))
    except InputError:
        record_chat_reply("invalid_input")
        raise
    except ExternalServiceError as e:
        record_chat_reply("model_error")
        attach_log_data(request, result="model_error", model_status=e.status_code)
        raise
    except ExternalServiceUnavailable:
        record_chat_reply("unavailable")
        attach_log_data(request, result="unavailable")
        raise

    record_chat_reply(reply.source)
    attach_log_data(request, reply_source=reply.source, rule=reply.rule)

    return ChatResponse(reply=reply.text)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
