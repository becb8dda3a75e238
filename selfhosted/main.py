"""Self-hosted ML Translation Service.

A standalone FastAPI service for English <-> Romance machine translation
using the Helsinki-NLP opus-mt-en-ROMANCE and opus-mt-ROMANCE-en models.

Usage:
    python -m selfhosted.main

Environment Variables:
    MODEL_PATH: Directory holding both model directories (default: /models)
    PORT: Service port (default: 8080)
    HOST: Service host (default: ::)
    WORKERS: Number of workers (default: 1)
    LOG_LEVEL: Logging level (default: info)

    See romance_mt.config.settings.MTSettings for the inference settings
    (MAX_BATCH_SIZE, INFERENCE_TIMEOUT_S, ...).
"""

import logging
import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Literal

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from romance_mt import __version__
from romance_mt.config.settings import MTSettings
from romance_mt.errors import ServiceError, StartupFailure
from romance_mt.services.translation_service import TranslationRequest, TranslationService

# Configuration from environment
PORT = int(os.getenv("PORT", "8080"))
HOST = os.getenv("HOST", "::")
WORKERS = int(os.getenv("WORKERS", "1"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ServiceFactory = Callable[[MTSettings], TranslationService]


# Pydantic models
class TranslateRequest(BaseModel):
    """Single translation request.

    Also accepts the v0 body ``{"text": ..., "fromLanguage": "Italian"}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., description="Text to translate", examples=["Ciao, come stai?"])
    source_lang: str | None = Field(default=None, description="Source language code")
    target_lang: str | None = Field(default=None, description="Target language code")
    from_language: Literal["Italian", "English"] | None = Field(
        default=None,
        alias="fromLanguage",
        description="Source language name (v0 API)",
    )


class BatchTranslateRequest(BaseModel):
    """Batch translation request."""

    texts: list[str] = Field(..., description="Texts to translate")
    source_lang: str | None = Field(default=None, description="Source language code")
    target_lang: str | None = Field(default=None, description="Target language code")


class TranslateResponse(BaseModel):
    """Translation response."""

    translation: str
    source_lang: str
    target_lang: str
    latency_ms: float


class BatchTranslateResponse(BaseModel):
    """Batch translation response."""

    translations: list[str]
    source_lang: str
    target_lang: str
    latency_ms: float


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: str
    retryable: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    directions: dict[str, dict]
    gpu_available: bool
    version: str


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Unsupported direction"},
    500: {"model": ErrorResponse, "description": "Inference error"},
    503: {"model": ErrorResponse, "description": "Overloaded"},
    504: {"model": ErrorResponse, "description": "Timeout"},
}


def create_app(
    settings: MTSettings | None = None,
    service_factory: ServiceFactory = TranslationService.from_settings,
) -> FastAPI:
    """Create the FastAPI application.

    Models are loaded during startup; a :class:`StartupFailure` aborts it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup: Load models
        logger.info("Starting ML service...")
        app_settings = settings or MTSettings.from_env()
        try:
            app.state.service = service_factory(app_settings)
        except StartupFailure as e:
            logger.critical(f"Model loading failed, refusing to serve: {e.message}")
            raise
        yield
        # Shutdown
        logger.info("Shutting down ML service...")
        app.state.service.close()

    app = FastAPI(
        title="Romance ML Translation Service",
        description="English <-> Romance machine translation using opus-mt MarianMT models",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint."""
        health = request.app.state.service.health()
        return HealthResponse(**health, version=__version__)

    @app.post("/translate", response_model=TranslateResponse, responses=ERROR_RESPONSES)
    async def translate_endpoint(body: TranslateRequest, request: Request) -> TranslateResponse:
        """Single text translation endpoint."""
        service: TranslationService = request.app.state.service
        result = await service.handle(
            TranslationRequest(
                texts=[body.text],
                source_lang=body.source_lang or body.from_language,
                target_lang=body.target_lang,
            )
        )
        return TranslateResponse(
            translation=result.translations[0],
            source_lang=result.source_lang,
            target_lang=result.target_lang,
            latency_ms=result.latency_ms,
        )

    @app.post("/batch", response_model=BatchTranslateResponse, responses=ERROR_RESPONSES)
    async def batch_translate_endpoint(
        body: BatchTranslateRequest, request: Request
    ) -> BatchTranslateResponse:
        """Batch translation endpoint."""
        service: TranslationService = request.app.state.service
        result = await service.handle(
            TranslationRequest(
                texts=body.texts,
                source_lang=body.source_lang,
                target_lang=body.target_lang,
            )
        )
        return BatchTranslateResponse(
            translations=result.translations,
            source_lang=result.source_lang,
            target_lang=result.target_lang,
            latency_ms=result.latency_ms,
        )

    return app


def main():
    """Run the service."""
    logger.info(f"Starting server on {HOST}:{PORT}")
    uvicorn.run(
        "selfhosted.main:create_app",
        factory=True,
        host=HOST,
        port=PORT,
        workers=WORKERS,
        log_level=LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
