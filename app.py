"""
app.py - Annotation server FastAPI application

Two endpoints: ``/ping`` for liveness and ``/`` for annotation. Everything
else about a request (annotators, input and output formats) comes from the
``properties`` query parameter.
"""
import asyncio
import sys
from contextlib import asynccontextmanager
from functools import partial
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import start_http_server

from annotation_service import AnnotationService
from annotators.spacy_pipeline import build_pipeline
from config import Settings, settings
from exceptions import AnnotationServerError, single_line
from logger import get_logger
from metrics import track_request
from middleware import RequestIDMiddleware
from pipeline_cache import PipelineBuilder, PipelineCache
from properties import EffectiveConfiguration
from serializers.registry import SerializerRegistry, get_registry

logger = get_logger(__name__)

PONG = "pong\n"


async def run_cache_cleanup(pipeline_cache: PipelineCache, interval: int):
    """Periodically drop expired pipelines"""
    while True:
        await asyncio.sleep(interval)
        try:
            pipeline_cache.clear_expired()
        except Exception as e:
            logger.error(f"Pipeline cache cleanup failed: {e}")


async def annotation_error_handler(request: Request, exc: AnnotationServerError):
    request_id = getattr(request.state, "request_id", "unknown")
    if exc.is_client_error:
        logger.warning(f"Rejected request {request_id}: {exc.message}")
    else:
        logger.error(f"Request {request_id} failed: {exc.message}")
    return PlainTextResponse(single_line(exc.message), status_code=exc.status_code)


async def general_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(f"Unhandled exception in request {request_id}: {exc}", exc_info=True)
    return PlainTextResponse(
        single_line(str(exc) or exc.__class__.__name__),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def create_app(app_settings: Optional[Settings] = None,
               pipeline_builder: Optional[PipelineBuilder] = None,
               registry: Optional[SerializerRegistry] = None) -> FastAPI:
    """
    Build the application and its request-handling components.

    ``pipeline_builder`` replaces the spaCy pipeline factory, which lets tests
    count or fail pipeline construction.
    """
    app_settings = app_settings or settings.raw
    defaults = EffectiveConfiguration(app_settings.default_properties())

    pipeline_cache = PipelineCache(
        pipeline_builder or partial(build_pipeline, max_length=app_settings.max_text_length),
        max_size=app_settings.pipeline_cache_size,
        ttl=app_settings.pipeline_cache_ttl,
        stripes=app_settings.pipeline_cache_stripes,
    )
    service = AnnotationService(
        defaults,
        pipeline_cache,
        registry or get_registry(),
        max_workers=app_settings.annotation_workers,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cleanup_task = asyncio.create_task(
            run_cache_cleanup(pipeline_cache, app_settings.cache_cleanup_interval)
        )
        logger.info(
            f"{app_settings.app_name} v{app_settings.version} started in "
            f"{app_settings.environment} mode with defaults {defaults.to_dict()}"
        )

        yield

        logger.info("Application shutting down gracefully...")
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        service.close()
        pipeline_cache.clear()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=app_settings.app_name,
        version=app_settings.version,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )
    app.state.settings = app_settings
    app.state.service = service
    app.state.pipeline_cache = pipeline_cache

    app.add_middleware(RequestIDMiddleware)
    app.add_exception_handler(AnnotationServerError, annotation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    @app.api_route("/ping", methods=["GET", "POST"])
    async def ping():
        """Liveness check"""
        return PlainTextResponse(PONG)

    @app.api_route("/", methods=["GET", "POST"])
    @track_request("/")
    async def annotate(request: Request):
        """Annotate the request body as configured by the properties query parameter"""
        body = await request.body()
        result = await service.annotate_async(request.url.query, body)
        return Response(content=result.body, media_type=result.content_type)

    return app


app = create_app()


def main(argv: Optional[List[str]] = None):
    """Run the server; an optional single argument selects the port"""
    import uvicorn

    argv = sys.argv[1:] if argv is None else argv
    port = settings.get('port', 9000)
    if argv:
        try:
            port = int(argv[0])
        except ValueError:
            raise SystemExit(f"Invalid port: {argv[0]}")

    if settings.get('enable_metrics'):
        start_http_server(settings.get('metrics_port', 9090))
        logger.info(f"Metrics available on port {settings.get('metrics_port')}")

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
            },
        },
        "root": {
            "level": settings.log_level,
            "handlers": ["default"],
        },
    }

    logger.info(f"{settings.app_name} listening at {settings.host}:{port}")
    # A single process keeps one pipeline cache
    uvicorn.run(app, host=settings.host, port=port, log_config=log_config)


if __name__ == "__main__":
    main()
