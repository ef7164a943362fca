"""FastAPI service exposing detection and redaction as stateless endpoints.

* ``POST /detect`` uploads an image and returns candidate regions.
* ``POST /redact`` uploads an image plus the (possibly edited) detection list
  and style, and returns the redacted PNG.

Nothing is persisted between requests. The redaction endpoints are plain
``def`` handlers, so the detector call and the Pillow work run in FastAPI's
threadpool instead of on the event loop. Swagger UI (``/docs``) documents each
endpoint.

Run locally::

    uvicorn guardvision.api:app --host 127.0.0.1 --port 8000

Or via the CLI::

    guardvision api --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .compositor import export_redacted
from .detector import DetectionClient, build_detector
from .errors import CompositionError, DetectionServiceError, InputError
from .health import run_readiness_checks
from .imaging import load_image
from .logging import get_logger
from .models import RawDetection, RedactionStyle
from .settings import Settings, get_settings
from .store import DetectionStore

settings: Settings = get_settings()
logger = get_logger(__name__)


class DetectionOut(BaseModel):
    """A detection as returned to clients."""

    id: str
    label: str
    confidence: float
    box_2d: List[float]
    selected: bool = True


class DetectResponse(BaseModel):
    file: str
    width: int
    height: int
    detections: List[DetectionOut]


class RedactItem(RawDetection):
    """A detection submitted for redaction; ``selected`` defaults to true."""

    selected: bool = True


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessCheckModel(BaseModel):
    name: str
    status: Literal["pass", "warn", "fail"]
    detail: Optional[str] = None
    required: bool


class ReadyResponse(BaseModel):
    ready: bool
    checks: List[ReadinessCheckModel] = Field(default_factory=list)


_redact_items = TypeAdapter(List[RedactItem])


app = FastAPI(
    title="GuardVision API",
    description="Detect sensitive regions in images and export redacted copies.",
    version="0.1.0",
    openapi_tags=[
        {"name": "health", "description": "Service health and readiness probes."},
        {"name": "redaction", "description": "Detection and redaction endpoints."},
    ],
)

if settings.cors_origins:
    allow_origins = ["*"] if "*" in settings.cors_origins else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(InputError)
async def _input_error(_: Request, exc: InputError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(DetectionServiceError)
async def _detection_error(_: Request, exc: DetectionServiceError) -> JSONResponse:
    logger.warning("detection service error", {"error": str(exc)})
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


@app.exception_handler(CompositionError)
async def _composition_error(_: Request, exc: CompositionError) -> JSONResponse:
    logger.error("composition error", {"error": str(exc)})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)}
    )


def get_detector() -> DetectionClient:
    return build_detector(settings)


health_router = APIRouter(tags=["health"])
redaction_router = APIRouter(tags=["redaction"])


@health_router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse()


@health_router.get("/livez", response_model=HealthResponse)
def livez() -> HealthResponse:
    return HealthResponse(status="ok")


@health_router.get("/readyz", response_model=ReadyResponse)
def readyz():
    checks = run_readiness_checks(settings)
    ready = all(not (c.required and c.status == "fail") for c in checks)
    response = ReadyResponse(
        ready=ready,
        checks=[
            ReadinessCheckModel(
                name=c.name, status=c.status, detail=c.detail, required=c.required
            )
            for c in checks
        ],
    )
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response.model_dump())


@redaction_router.post("/detect", response_model=DetectResponse)
def detect(
    file: UploadFile = File(...),
    detector: DetectionClient = Depends(get_detector),
) -> DetectResponse:
    img, label = load_image(file.file.read(), file.filename or "image.png")
    store = DetectionStore()
    store.replace_all(detector.detect(img))
    return DetectResponse(
        file=label,
        width=img.width,
        height=img.height,
        detections=[DetectionOut(**det.to_dict()) for det in store],
    )


@redaction_router.post(
    "/redact",
    responses={200: {"content": {"image/png": {}}}},
    response_class=Response,
)
def redact(
    file: UploadFile = File(...),
    detections: str = Form("[]", description="JSON array of {label, confidence, box_2d, selected}"),
    fill_color: str = Form("#000000"),
    fill_opacity: float = Form(1.0),
) -> Response:
    try:
        style = RedactionStyle.from_hex(fill_color, fill_opacity)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    try:
        items = _redact_items.validate_json(detections or "[]")
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="`detections` must be a JSON array of {label, confidence, box_2d}",
        ) from exc

    img, label = load_image(file.file.read(), file.filename or "image.png")
    store = DetectionStore()
    for det, item in zip(store.replace_all(items), items):
        store.set_selected(det.identity, item.selected)
    result = export_redacted(img, store.list(), style, label)
    return Response(
        content=result.data,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


app.include_router(health_router)
app.include_router(redaction_router)


def run(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    """Launch the API server via ``uvicorn``."""

    import uvicorn

    uvicorn.run(
        "guardvision.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=log_level,
    )
