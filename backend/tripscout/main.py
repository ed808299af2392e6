import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tripscout.config import settings
from tripscout.exceptions import ConfigurationError, InvalidQueryError

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(os.environ.get("TRIPSCOUT_LOG_DIR", Path(__file__).resolve().parent.parent / "logs"))
_LOG_DIR.mkdir(parents=True, exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "tripscout.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from tripscout.routers import search
from tripscout.services.search_orchestrator import TravelSearchEngine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = getattr(app.state, "engine", None)
    owns_engine = engine is None
    if owns_engine:
        engine = TravelSearchEngine(settings)
        app.state.engine = engine
    logger.info(
        f"Search engine ready (amadeus={settings.has_amadeus}, rapidapi={settings.has_rapidapi}, "
        f"redis={'on' if settings.redis_url else 'off'})"
    )

    yield

    if owns_engine:
        await engine.close()
        logger.info("Search engine closed")


app = FastAPI(
    title="TripScout",
    description="Travel search aggregation across flight, rail, bus and lodging providers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


app.include_router(search.router, prefix="/api", tags=["search"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "tripscout"}
