# stay_ledger/main.py

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stay_ledger.config import ALLOWED_ORIGINS, DATABASE_URL, DEBUG
from stay_ledger.db.engine import create_db_engine
from stay_ledger.logging_config import setup_logging
from stay_ledger.middleware import RequestIDMiddleware
from stay_ledger.routes.health import router as health_router
from stay_ledger.routes.metrics import router as metrics_router
from stay_ledger.routes.payments import router as payments_router
from stay_ledger.routes.reservations import router as reservations_router
from stay_ledger.routes.summaries import router as summaries_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Stay Ledger API",
    description="Reservation pricing, payment ledger and lifecycle service",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(reservations_router, tags=["Reservations"])
app.include_router(payments_router, tags=["Payments"])
app.include_router(summaries_router, tags=["Summaries"])


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed requests are answered with 400 and the list of problems."""
    logger.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "errorCode": "VALIDATION_ERROR",
                "message": "Invalid request",
                "errors": jsonable_encoder(exc.errors()),
            }
        },
    )


@app.on_event("startup")
def startup_event() -> None:
    """Create the shared engine (connection pool)."""
    logger.info("FastAPI application starting up...")
    app.state.engine = create_db_engine(DATABASE_URL, echo=DEBUG)
    logger.info("FastAPI application initialized")


@app.on_event("shutdown")
def shutdown_event() -> None:
    """Dispose the engine and close pooled connections."""
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        engine.dispose()
        app.state.engine = None
    logger.info("FastAPI application shut down")
