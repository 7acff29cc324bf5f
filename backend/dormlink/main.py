"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dormlink.config import settings
from dormlink.database import Base, engine
from dormlink.errors import OutingError

# Import routers
from dormlink.routers import outings, guardian, gate

# Import all models so Base.metadata knows about them
from dormlink.models.outing_request import OutingRequest          # noqa: F401
from dormlink.models.outing_transition import OutingTransition    # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Dormlink Outing Passes",
    description="Outing-pass approval workflow: guardian consent, faculty authorization, QR pass, gate scans",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(outings.router, prefix="/api/outings", tags=["Outings"])
app.include_router(guardian.router, prefix="/api/guardian", tags=["Guardian"])
app.include_router(gate.router, prefix="/api/gate", tags=["Gate"])


@app.exception_handler(OutingError)
async def outing_error_handler(request: Request, exc: OutingError):
    """Map workflow errors to JSON responses with a stable error code."""
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.error)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": exc.error})


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
