import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ghd_backend.api.routes import events, issues, settings, token, users
from ghd_backend.core.config import get_settings
from ghd_backend.core.errors import GHDError, ghd_exception_handler
from ghd_backend.core.state import AppState, build_app_state
from ghd_backend.services.github_service import GithubService

logger = logging.getLogger(__name__)


def attach_state(app: FastAPI, state: AppState, service: GithubService | None = None) -> GithubService:
    service = service or GithubService(state)
    app.state.ghd = state
    app.state.service = service
    return service


def create_app(state: AppState | None = None, service: GithubService | None = None) -> FastAPI:
    """
    With no state, the lifespan opens the configured database itself. The
    process entrypoint and tests pass a prepared state instead.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: AppState | None = None
        if getattr(app.state, "ghd", None) is None:
            owned = await build_app_state()
            attach_state(app, owned)
        yield
        if owned is not None:
            await owned.engine.dispose()

    app = FastAPI(
        title="ghd API",
        description="Local command surface for the ghd desktop companion",
        version="0.1.0",
        lifespan=lifespan,
    )

    if state is not None:
        attach_state(app, state, service)

    app.add_exception_handler(GHDError, ghd_exception_handler)

    app_settings = state.settings if state is not None else get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(token.router, prefix="/token", tags=["token"])
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(issues.router, prefix="/issues", tags=["issues"])
    app.include_router(settings.router, prefix="/settings", tags=["settings"])
    app.include_router(events.router, prefix="/events", tags=["events"])

    return app


app = create_app()
