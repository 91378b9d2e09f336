"""
FastAPI Application Entry Point

Wires the link rotation service together:
- Logging for the linkrotator package and the access-log middleware
- slowapi limits on the authoring endpoints
- The redirect RateLimiter, opened on startup and closed on shutdown
- Routes: health checks first, then the API router whose last route is
  the catch-all redirect ``GET /{rule_id}``

Run with: uvicorn linkrotator.main:app
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from linkrotator.api import endpoints
from linkrotator.core.limiter_manager import initialize_rate_limiter, shutdown_rate_limiter
from linkrotator.core.rate_limit import limiter
from linkrotator.core.setting import EnvSettingsOptions, settings
from linkrotator.middleware.logging import add_logging_middleware, configure_logging

configure_logging(settings.LOG_LEVEL)

# Interactive docs are not served in production
show_docs = settings.ENV_SETTING != EnvSettingsOptions.production

app = FastAPI(
    title="Link Rotation Service",
    description="Weighted probabilistic redirects with per-client admission control",
    version="1.0.0",
    docs_url="/docs" if show_docs else None,
    redoc_url="/redoc" if show_docs else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Registered before the router; otherwise GET /health would be read as a rule id
@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Link Rotation Service",
        "version": app.version,
        "rate_limit_backend": settings.RATE_LIMIT_BACKEND.value,
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


app.include_router(endpoints.router, tags=["Link Rotation"])


@app.on_event("startup")
async def startup_event():
    await initialize_rate_limiter()


@app.on_event("shutdown")
async def shutdown_event():
    await shutdown_rate_limiter()
