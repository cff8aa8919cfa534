import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from blocksafe.api.middleware.logging import RequestLoggingMiddleware
from blocksafe.api.routes.sanitize import router as sanitize_router
from blocksafe.config import Settings, get_settings
from blocksafe.core.detector import FileFormatDetector
from blocksafe.core.format_loader import load_format_definitions
from blocksafe.core.registry import ProcessorRegistry
from blocksafe.services.sanitizer import SanitizationService

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API with formats loaded from ``settings.formats_path``.

    Raises:
        FormatConfigError: If the formats file exists but is invalid.
    """
    settings = settings or get_settings()

    definitions = load_format_definitions(settings.formats_path)
    registry = ProcessorRegistry(
        definitions,
        default_max_block_length=settings.default_max_block_length,
        read_chunk_size=settings.read_chunk_size,
        write_chunk_size=settings.write_chunk_size,
    )
    failed = registry.validate()
    if failed:
        logger.error("Misconfigured formats will be rejected at upload time: %s", failed)

    app = FastAPI(
        title="BlockSafe API",
        description="Streaming validation and sanitization of block-structured files",
        version="1.0.0",
        docs_url="/v1/docs",
        openapi_url="/v1/openapi.json",
        debug=settings.debug,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(sanitize_router)
    app.mount("/metrics", make_asgi_app())

    app.state.settings = settings
    app.state.registry = registry
    app.state.sanitizer = SanitizationService(FileFormatDetector(definitions), registry)

    @app.get("/healthz", tags=["health"])
    async def health_check() -> JSONResponse:
        return JSONResponse({"status": "ok", "formats": len(app.state.registry)})

    logger.info(
        "BlockSafe API ready: environment=%s formats=%d",
        settings.environment,
        len(registry),
    )
    return app


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = create_app()
