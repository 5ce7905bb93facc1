"""GymCourt API application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gymcourt.core.config import settings
from gymcourt.routes import admin, pricing, profile, reservations, schedule
from gymcourt.schemas import ConflictOut
from gymcourt.services.booking_rules import BookingViolation, ReservationConflict
from gymcourt.services.pricing import PricingConfigurationError
from gymcourt.services.timeutil import ValidationError

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Booking rules that map to something other than 422
VIOLATION_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "court_conflict": status.HTTP_409_CONFLICT,
    "status_transition": status.HTTP_400_BAD_REQUEST,
    "invalid_scope": status.HTTP_400_BAD_REQUEST,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("%s starting (timezone=%s)", settings.app_name, settings.timezone)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url=f"{settings.api_prefix}/docs",
    openapi_url=f"{settings.api_prefix}/openapi.json",
    lifespan=lifespan,
)

# CORS - permissive in dev, explicit origins in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(ReservationConflict)
async def reservation_conflict_handler(request: Request, exc: ReservationConflict):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": {
                "rule": exc.rule,
                "message": exc.message,
                "conflicts": [ConflictOut.model_validate(c).model_dump(mode="json") for c in exc.conflicts],
            }
        },
    )


@app.exception_handler(BookingViolation)
async def booking_violation_handler(request: Request, exc: BookingViolation):
    return JSONResponse(
        status_code=VIOLATION_STATUS.get(exc.rule, status.HTTP_422_UNPROCESSABLE_ENTITY),
        content={"detail": {"rule": exc.rule, "message": exc.message}},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": [{"field": exc.field, "message": exc.message}]},
    )


@app.exception_handler(PricingConfigurationError)
async def pricing_configuration_handler(request: Request, exc: PricingConfigurationError):
    logger.error("Pricing catalog incomplete: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Pricing is not configured for this time. Please contact the front desk."},
    )


# Mount routes
app.include_router(schedule.router, prefix=settings.api_prefix)
app.include_router(pricing.router, prefix=settings.api_prefix)
app.include_router(reservations.router, prefix=settings.api_prefix)
app.include_router(profile.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("gymcourt.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
