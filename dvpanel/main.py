import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dvpanel.config import Settings, settings as default_settings
from dvpanel.di import build_container
from dvpanel.errors import PanelError
from dvpanel.routers import files, settings as settings_router, snapshots

logger = logging.getLogger(__name__)

_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "base-uri 'self'; "
    "frame-ancestors 'self'; "
    "object-src 'none'"
)


def _apply_security_headers(request: Request, response) -> None:
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Cross-Origin-Resource-Policy", "same-origin")

    content_type = response.headers.get("content-type", "").lower()
    if "text/html" in content_type:
        response.headers.setdefault("Content-Security-Policy", _CONTENT_SECURITY_POLICY)

    # File contents and snapshots must never sit in shared caches.
    if (request.url.path or "/").startswith("/api"):
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.setdefault("Pragma", "no-cache")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    s = app_settings or default_settings
    logging.getLogger("dvpanel").setLevel(s.log_level.upper())
    is_production = s.environment.strip().lower() in {"prod", "production"}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Fails fast (ConfigurationError) when the installation code is missing.
        container = build_container(s)
        app.state.container = container
        if s.owner_username and s.owner_password:
            container.users.ensure_owner(s.owner_username, s.owner_password)
        logger.info("DVPanel file manager root: %s", container.files.jail.base_dir)
        container.activity.log_event("System", "System", "PANEL_STARTED", "INFO")
        yield

    app = FastAPI(
        title=s.app_name,
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )

    @app.exception_handler(PanelError)
    async def _panel_error_handler(request: Request, exc: PanelError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.message})

    @app.middleware("http")
    async def _security_middleware(request: Request, call_next):
        response = await call_next(request)
        _apply_security_headers(request, response)
        return response

    @app.get("/api/ping")
    def ping():
        return {"status": "ok"}

    app.include_router(files.router)
    app.include_router(snapshots.router)
    app.include_router(settings_router.router)
    return app


app = create_app()
