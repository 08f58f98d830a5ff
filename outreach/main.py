import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.ai.providers import available_providers
from .domain.ai.router import router as ai_router
from .domain.emails.router import router as emails_router
from .domain.mailbox.router import router as gmail_router
from .domain.tracking.router import router as tracking_router
from .errors import OutreachError, RateLimitExceeded

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables ready")

    providers = available_providers()
    if providers:
        logger.info(f"🤖 AI providers configured: {', '.join(p.value for p in providers)}")
    else:
        logger.warning("⚠️ No AI provider API keys configured - draft generation will fail")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Outreach API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(OutreachError)
async def outreach_exception_handler(request: Request, exc: OutreachError):
    """Typed pipeline errors -> {"detail", "code"} with the error's status"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")

    content = {"detail": exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitExceeded) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raw exception instance
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


# CORS Configuration
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(ai_router)
app.include_router(emails_router)
app.include_router(gmail_router)
app.include_router(tracking_router)


@app.get("/health")
async def health():
    return {"status": "ok", "providers": [p.value for p in available_providers()]}
