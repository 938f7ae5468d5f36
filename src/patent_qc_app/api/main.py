"""FastAPI application setup."""

from fastapi import FastAPI

from patent_qc_app.api.routers import checks, health
from patent_qc_app.config.logging import configure_logging
from patent_qc_app.config.settings import AppSettings, get_settings

configure_logging(json_logs=get_settings().log_json, level=get_settings().log_level)


def create_app() -> FastAPI:
    """Application factory to wire routes and dependencies."""
    settings: AppSettings = get_settings()

    app = FastAPI(
        title="Patent Formal Check Service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(health.router)
    app.include_router(checks.router)

    @app.get("/config", include_in_schema=False)
    def show_runtime_configuration() -> dict[str, str | int | bool]:
        """Return non-sensitive runtime settings for smoke testing."""
        return settings.snapshot()

    return app


app = create_app()
