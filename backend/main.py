import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from api.days import router as days_router
from api.goals import router as goals_router
from api.journal import router as journal_router
from api.presets import router as presets_router
from api.progress import router as progress_router
from api.settings import router as settings_router
from api.summaries import router as summaries_router
from api.transactions import router as transactions_router
from services.day_plan_service import DayPlanSealedError
from services.save_queue import SaveQueueRegistry
from storage.errors import NotAuthenticatedError, StorageError, StorageNotConfiguredError
from storage.factory import build_storage_factory

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

settings.validate_security_configuration()

app = FastAPI(title=settings.APP_NAME, version="1.0.0")
app.state.storage_factory = build_storage_factory(settings)
app.state.save_queues = SaveQueueRegistry()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    if not settings.SECURITY_HEADERS_ENABLED:
        return response
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = settings.SECURITY_CSP
    return response


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(StorageNotConfiguredError)
async def storage_not_configured_handler(request: Request, exc: StorageNotConfiguredError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(DayPlanSealedError)
async def day_sealed_handler(request: Request, exc: DayPlanSealedError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# Routers
app.include_router(presets_router, prefix="/api")
app.include_router(days_router, prefix="/api")
app.include_router(summaries_router, prefix="/api")
app.include_router(progress_router, prefix="/api")
app.include_router(journal_router, prefix="/api")
app.include_router(goals_router, prefix="/api")
app.include_router(transactions_router, prefix="/api")
app.include_router(settings_router, prefix="/api")


@app.get("/api/health")
def health_check():
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "storage": app.state.storage_factory.backend,
    }


# Serve frontend static files (in production)
static_dir = Path(__file__).parent / "static"
if static_dir.exists():
    app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")
