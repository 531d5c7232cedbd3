"""ManagerOS FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from manageros.config import APP_VERSION, settings

# ── Logging ───────────────────────────────────────────────────────────────────
# Ensure manageros.* loggers are visible in container output.
logging.basicConfig(
    level=logging.DEBUG if settings.manageros_debug else logging.INFO,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
# Quiet down noisy third-party loggers
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    from manageros.db.session import init_db
    from manageros.tasks.workers import start_scheduler

    await init_db()
    if settings.scheduler_enabled:
        start_scheduler()

    yield

    from manageros.db.session import close_db
    from manageros.tasks.workers import stop_scheduler

    stop_scheduler()
    await close_db()


app = FastAPI(
    title="ManagerOS",
    description="Management operating system for engineering managers",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from manageros.api.errors import setup_exception_handlers  # noqa: E402

setup_exception_handlers(app)

# Register API routes
from manageros.api.routes import organization, people, teams, initiatives, tasks  # noqa: E402
from manageros.api.routes import meetings, feedback, onboarding, tolerance  # noqa: E402
from manageros.api.routes import notes, notifications, integrations, cron  # noqa: E402
from manageros.mcp import server as mcp_server  # noqa: E402

app.include_router(organization.router, prefix="/api", tags=["Organization"])
app.include_router(people.router, prefix="/api", tags=["People"])
app.include_router(teams.router, prefix="/api", tags=["Teams"])
app.include_router(initiatives.router, prefix="/api", tags=["Initiatives"])
app.include_router(tasks.router, prefix="/api", tags=["Tasks"])
app.include_router(meetings.router, prefix="/api", tags=["Meetings"])
app.include_router(feedback.router, prefix="/api", tags=["Feedback"])
app.include_router(notes.router, prefix="/api", tags=["Notes"])
app.include_router(onboarding.router, prefix="/api", tags=["Onboarding"])
app.include_router(tolerance.router, prefix="/api", tags=["Tolerance Rules"])
app.include_router(notifications.router, prefix="/api", tags=["Notifications"])
app.include_router(integrations.router, prefix="/api", tags=["Integrations"])
app.include_router(cron.router, prefix="/api", tags=["Cron"])
app.include_router(mcp_server.router, prefix="/api", tags=["MCP"])
app.include_router(mcp_server.well_known_router, tags=["MCP"])


@app.get("/health")
async def health():
    return {"status": "healthy", "version": APP_VERSION, "env": settings.manageros_env}
