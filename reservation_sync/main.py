import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reservation_sync.config import ALLOWED_ORIGINS
from reservation_sync.logging_config import setup_logging
from reservation_sync.middleware import RequestIDMiddleware
from reservation_sync.routes.health import router as health_router
from reservation_sync.routes.metrics import router as metrics_router
from reservation_sync.routes.properties import router as properties_router
from reservation_sync.routes.review_items import router as review_items_router
from reservation_sync.routes.sync import router as sync_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Reservation Sync API",
    description="Reconciles calendar feed bookings with reservation confirmation emails",
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
app.include_router(sync_router, tags=["Sync"])
app.include_router(review_items_router, tags=["Review"])
app.include_router(properties_router, tags=["Calendar"])

logger.info("app_initialized", origins=ALLOWED_ORIGINS)
