from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import logging
import time
import uuid

from .config import settings
from .database import create_tables, SessionLocal
from .models.bed import Bed, BedStatus, BedType
from .services.exceptions import SchedulingError, NotFoundError, InvalidWindowError, ConflictError
from .services.reconciliation_scheduler import start_reconciliation_scheduler, stop_reconciliation_scheduler
from .utils.logging_config import setup_logging, set_request_context, clear_request_context, get_logger

from .routers import beds, bookings, availability, health

logger = logging.getLogger(__name__)
request_logger = get_logger("app.requests")

DEFAULT_BEDS = [
    {"bed_number": "S1", "display_name": "Bed S1", "grid_row": 1, "grid_col": 1,
     "bed_type": BedType.STANDARD.value, "hourly_rate": 1500, "description": "Standard therapy bed"},
    {"bed_number": "S2", "display_name": "Bed S2", "grid_row": 1, "grid_col": 2,
     "bed_type": BedType.STANDARD.value, "hourly_rate": 1500, "description": "Standard therapy bed"},
    {"bed_number": "S3", "display_name": "Bed S3", "grid_row": 1, "grid_col": 3,
     "bed_type": BedType.VIP.value, "hourly_rate": 2000, "description": "VIP therapy bed with premium amenities"},
]


def seed_default_beds():
    """Create the default floor layout on an empty database"""
    db = SessionLocal()
    try:
        if db.query(Bed).count() == 0:
            for bed_data in DEFAULT_BEDS:
                db.add(Bed(status=BedStatus.AVAILABLE.value, **bed_data))
            db.commit()
            logger.info(f"Seeded {len(DEFAULT_BEDS)} default beds")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, json_format=settings.log_json)

    logger.info(f"Starting oxyspa-backend ({settings.environment})")

    create_tables()
    if settings.seed_default_beds:
        seed_default_beds()

    if settings.reconciler_enabled:
        start_reconciliation_scheduler()
    else:
        logger.warning("Reconciler disabled, bed statuses will not refresh automatically")

    yield

    logger.info("Shutting down oxyspa-backend...")
    stop_reconciliation_scheduler()


# Create FastAPI app
app = FastAPI(
    title="Oxyspa Bed Scheduling API",
    description="Therapy bed availability, bookings and lifecycle reconciliation",
    version="1.0.0",
    lifespan=lifespan
)


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        started = time.time()
        try:
            response = await call_next(request)
            request_logger.api_request(
                request.method, request.url.path, response.status_code,
                duration_ms=round((time.time() - started) * 1000, 2)
            )
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


# ================================
# Domain error handlers
# ================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)}
    )


@app.exception_handler(InvalidWindowError)
async def invalid_window_handler(request: Request, exc: InvalidWindowError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)}
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=jsonable_encoder({
            "detail": {
                "message": str(exc),
                "conflicts": exc.conflicts
            }
        })
    )


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)}
    )


# Include routers
app.include_router(beds.router)
app.include_router(bookings.router)
app.include_router(availability.router)
app.include_router(health.router)


@app.get("")
@app.get("/")
async def root():
    return {
        "message": "Oxyspa bed scheduling API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running"
    }
