"""Translation service: the entry point of the inference core.

Validates a request, picks the direction, runs it through the direction's
inference guard and returns a result aligned with the input. Every
per-request failure surfaces as a :class:`~romance_mt.errors.ServiceError`;
nothing is retried here.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import torch

from romance_mt.config.languages import LanguageDirection, get_language_name, resolve_direction
from romance_mt.config.settings import MTSettings
from romance_mt.errors import InferenceError, InvalidRequest, ServiceError
from romance_mt.services.guard import InferenceGuard
from romance_mt.services.registry import DirectionRegistry

logger = logging.getLogger(__name__)


@dataclass
class TranslationRequest:
    """A batch of sentences to translate."""

    texts: list[str]
    source_lang: str | None = None
    target_lang: str | None = None


@dataclass
class TranslationResult:
    """Translations aligned 1:1 with the request texts."""

    translations: list[str]
    direction: LanguageDirection
    source_lang: str
    target_lang: str
    latency_ms: float


@dataclass
class RequestRecord:
    """Per-request observability record."""

    direction: str | None
    batch_size: int
    latency_ms: float
    outcome: str


class TranslationService:
    """Orchestrates validation, routing and guarded inference.

    Attributes:
        settings: Service settings
        registry: Loaded model handles
    """

    def __init__(
        self,
        registry: DirectionRegistry,
        settings: MTSettings,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.inference_workers,
            thread_name_prefix="inference",
        )
        self._guards = {
            direction: InferenceGuard(
                direction,
                registry.replicas(direction),
                self._executor,
                max_queue_depth=settings.max_queue_depth_per_direction,
                timeout_s=settings.inference_timeout_s,
            )
            for direction in registry.directions
        }

    @classmethod
    def from_settings(cls, settings: MTSettings) -> "TranslationService":
        """Load all models and build the service.

        Raises:
            StartupFailure: If any model fails to load
        """
        return cls(DirectionRegistry.load(settings), settings)

    def validate(self, request: TranslationRequest) -> None:
        """Reject malformed requests before any model is touched.

        Raises:
            InvalidRequest: If the batch is empty, too large, all blank or
                contains a text that is too long
        """
        texts = request.texts
        if not texts:
            raise InvalidRequest("At least one text is required")

        if len(texts) > self.settings.max_batch_size:
            raise InvalidRequest(
                f"Batch too large: {len(texts)} texts (max {self.settings.max_batch_size})"
            )

        for text in texts:
            if not isinstance(text, str):
                raise InvalidRequest("Texts must be strings")
            if len(text) > self.settings.max_input_length:
                raise InvalidRequest(
                    f"Text too long: {len(text)} chars (max {self.settings.max_input_length})"
                )

        if not any(text.strip() for text in texts):
            raise InvalidRequest("At least one text must be non-empty")

    async def handle(self, request: TranslationRequest) -> TranslationResult:
        """Translate a request.

        Raises:
            InvalidRequest: If the request is malformed
            UnsupportedDirection: If no model serves the language pair
            Overloaded: If the direction's queue is full
            InferenceTimeout: If inference exceeded its time budget
            InferenceError: If the model failed
        """
        start_time = time.perf_counter()
        direction: LanguageDirection | None = None

        try:
            self.validate(request)
            direction, source_lang, target_lang = resolve_direction(
                request.source_lang,
                request.target_lang,
                self.settings.default_romance_target,
            )
            self.registry.resolve(direction)
            logger.debug(
                f"Translating {len(request.texts)} texts "
                f"{get_language_name(source_lang)} -> {get_language_name(target_lang)}"
            )

            translations = await self._guards[direction].run(
                request.texts,
                target_lang if direction.needs_target_token else None,
            )
        except ServiceError as e:
            self._record(direction, request, start_time, e)
            raise
        except Exception as e:
            error = InferenceError(f"Inference failed: {type(e).__name__}: {e}")
            error.__cause__ = e
            self._record(direction, request, start_time, error)
            raise error from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        self._record(direction, request, start_time)

        return TranslationResult(
            translations=translations,
            direction=direction,
            source_lang=source_lang,
            target_lang=target_lang,
            latency_ms=round(latency_ms, 2),
        )

    async def translate(
        self,
        text: str,
        source_lang: str | None = None,
        target_lang: str | None = None,
    ) -> TranslationResult:
        """Translate a single text."""
        return await self.handle(TranslationRequest([text], source_lang, target_lang))

    def _record(
        self,
        direction: LanguageDirection | None,
        request: TranslationRequest,
        start_time: float,
        error: ServiceError | None = None,
    ) -> RequestRecord:
        record = RequestRecord(
            direction=direction.value if direction else None,
            batch_size=len(request.texts or []),
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            outcome=error.kind if error else "success",
        )
        message = (
            f"translate direction={record.direction} batch_size={record.batch_size} "
            f"latency_ms={record.latency_ms} outcome={record.outcome}"
        )
        if error is None:
            logger.info(message)
        elif isinstance(error, InferenceError):
            logger.error(message, exc_info=error)
        else:
            logger.warning(f"{message} detail={error.message}")
        return record

    def guard(self, direction: LanguageDirection) -> InferenceGuard:
        self.registry.resolve(direction)
        return self._guards[direction]

    def health(self) -> dict[str, Any]:
        """Report loaded directions, device and guard load."""
        directions = {}
        for direction in self.registry.directions:
            handle = self.registry.resolve(direction)
            directions[direction.value] = {
                "model_dir": handle.model_dir,
                "device": handle.device,
                **self._guards[direction].stats(),
            }

        return {
            "status": "healthy" if directions else "unhealthy",
            "directions": directions,
            "gpu_available": torch.cuda.is_available(),
        }

    def close(self) -> None:
        """Stop the worker pool and release the models."""
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        self.registry.close()
