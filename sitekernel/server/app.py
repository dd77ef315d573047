from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import FileResponse

from sitekernel.core.admission import AdmissionController
from sitekernel.core.completion import CompletionClient
from sitekernel.core.hub import HubClient
from sitekernel.core.publish import PublishWorkflow
from sitekernel.models.config import AppConfig
from sitekernel.server.errors import install_error_handlers
from sitekernel.utils.config import get_api_key, get_config, get_project_root
from sitekernel.utils.logging import get_logger, setup_logging


logger = get_logger("app")


# Global state
_completion_client: CompletionClient | None = None
_hub_client: HubClient | None = None
_publish_workflow: PublishWorkflow | None = None
_admission: AdmissionController | None = None
_app_config: AppConfig | None = None


def get_completion_client() -> CompletionClient:
    """Get completion client instance."""
    if _completion_client is None:
        raise RuntimeError("Completion client not initialized")
    return _completion_client


def get_hub_client() -> HubClient:
    """Get Hub client instance."""
    if _hub_client is None:
        raise RuntimeError("Hub client not initialized")
    return _hub_client


def get_publish_workflow() -> PublishWorkflow:
    if _publish_workflow is None:
        raise RuntimeError("Publish workflow not initialized")
    return _publish_workflow


def get_admission() -> AdmissionController:
    if _admission is None:
        raise RuntimeError("Admission controller not initialized")
    return _admission


def get_app_config() -> AppConfig:
    """Get application config."""
    if _app_config is None:
        raise RuntimeError("App config not initialized")
    return _app_config


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    global _completion_client, _hub_client, _publish_workflow, _admission, _app_config

    # Startup
    _app_config = get_config()
    setup_logging(_app_config.logging)
    logger.info("Starting site kernel...")

    try:
        api_key = get_api_key()
    except ValueError as e:
        logger.warning(f"{e} - generation requests will be refused")
        api_key = None

    _completion_client = CompletionClient(
        api_key=api_key,
        config=_app_config.completion,
    )
    _hub_client = HubClient(config=_app_config.hub)
    _publish_workflow = PublishWorkflow(
        hub=_hub_client,
        app_url=_app_config.hub.app_url,
    )
    _admission = AdmissionController(
        max_concurrent_per_client=_app_config.admission.max_concurrent_per_client,
    )

    logger.info(
        f"Completions via {_app_config.completion.base_url}, "
        f"default model {_app_config.defaults.model}"
    )

    yield

    # Shutdown
    logger.info("Shutting down site kernel...")
    await _completion_client.close()
    await _hub_client.close()
    logger.info("Server stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Site Kernel",
        description="AI site builder backend: streamed page generation and Space publishing",
        version="0.1.0",
        lifespan=lifespan,
    )

    install_error_handlers(app)

    # Import and include routers
    from sitekernel.api.routes import auth, generation, publish, remix

    config = get_config()

    app.include_router(generation.router, prefix=config.server.api_prefix)
    app.include_router(publish.router, prefix=config.server.api_prefix)
    app.include_router(remix.router, prefix=config.server.api_prefix)
    app.include_router(auth.router, prefix=config.server.api_prefix)
    app.include_router(auth.oauth_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "completion_configured": (
                _completion_client.is_configured if _completion_client else False
            ),
        }

    # Built client application
    static_dir = Path(config.server.static_dir)
    if not static_dir.is_absolute():
        static_dir = get_project_root() / static_dir

    if (static_dir / "index.html").is_file():
        root = static_dir.resolve()

        @app.get("/{file_path:path}", include_in_schema=False)
        async def client_app(file_path: str):
            """Serve the client bundle, falling back to index.html for client routes."""
            candidate = (root / file_path).resolve()
            if file_path and candidate.is_file() and root in candidate.parents:
                return FileResponse(candidate)
            return FileResponse(root / "index.html")
    else:
        logger.warning(f"No client bundle at {static_dir}, serving the API only")

    return app
