"""
FastAPI application entry point for the Habit Heroes entitlements API.

The session gateway in front of this app authenticates parents and forwards
the user record in a trusted header; UserContextMiddleware attaches it to
request.state. Requests without one are treated as signed-out visitors.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import subscription
from src.entitlements.errors import EntitlementConfigError
from src.entitlements.loader import get_entitlement_loader
from src.platform.user_context import UserContextMiddleware, get_user_context

# Configure structured logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Habit Heroes entitlements API")

    # Load the plan catalog up front so config errors surface in deploy logs
    app.state.plan_catalog_ready = False
    try:
        loader = get_entitlement_loader()
        app.state.plan_catalog_ready = True
        logger.info(
            "Plan catalog loaded",
            extra={
                "plans": [plan.plan_id for plan in loader.get_all_plans()],
                "free_tier_max_habits": loader.get_free_tier_limits().max_habits,
            },
        )
    except (FileNotFoundError, EntitlementConfigError) as e:
        logger.error("Plan catalog could not be loaded", extra={"error": str(e)})

    yield

    # Shutdown
    logger.info("Shutting down Habit Heroes entitlements API")


# Create FastAPI app
app = FastAPI(
    title="Habit Heroes Entitlements API",
    description="Subscription status and premium feature gating for Habit Heroes",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware (configure for your frontend domain)
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach the signed-in user forwarded by the session gateway
user_context_middleware = UserContextMiddleware()
app.middleware("http")(user_context_middleware)


@app.get("/health", tags=["health"])
async def health():
    """Liveness check (no user lookup)."""
    return {
        "status": "ok",
        "plan_catalog_ready": getattr(app.state, "plan_catalog_ready", False),
    }


# Include subscription routes
app.include_router(subscription.router)


# Global exception handler for unexpected errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    user_id = "anonymous"
    user_ctx = get_user_context(request)
    if user_ctx is not None:
        user_id = user_ctx.user_id

    logger.error(
        "Unhandled exception",
        extra={
            "user_id": user_id,
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
