import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import Base, engine
from .domain.availability import router as availability_router
from .domain.bookings import router as bookings_router
from .domain.calendar import router as calendar_router
from .domain.contracts import public_router as contracts_public_router
from .domain.contracts import router as contracts_router
from .domain.orders import admin_router as orders_admin_router
from .domain.orders import cron_router
from .domain.orders import router as orders_router
from .domain.payments import router as webhooks_router
from .domain.quotes import public_router as quotes_public_router
from .domain.quotes import router as quotes_router
from .domain.settings import router as settings_router
from .errors import register_exception_handlers

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
    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Bakehouse API", version="1.0.0", lifespan=lifespan)

register_exception_handlers(app)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    errors = exc.errors()
    for error in errors:
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: missing Authorization header")
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

    message = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()) if part != 'body')}: {error.get('msg')}"
        for error in errors
    )
    logger.warning(f"Validation error for {request.url.path}: {message}")
    return JSONResponse(status_code=422, content={"detail": message})


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Public
app.include_router(availability_router)
app.include_router(bookings_router)
app.include_router(orders_router)
app.include_router(quotes_public_router)
app.include_router(contracts_public_router)
app.include_router(webhooks_router)

# Staff
app.include_router(orders_admin_router)
app.include_router(quotes_router)
app.include_router(contracts_router)
app.include_router(calendar_router)
app.include_router(settings_router)

# Scheduled jobs
app.include_router(cron_router)


@app.get("/")
def root():
    return {"message": "Bakehouse API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
