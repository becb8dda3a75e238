"""HTTP client for calling the self-hosted MT service.

Usage:
    from romance_mt.client import MTClient

    async with MTClient("http://localhost:8080") as client:
        result = await client.translate("Hello", "en", "fr")
        print(result.translation)
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx


class MTClientError(Exception):
    """Error from MT client operations.

    ``kind`` and ``retryable`` mirror the service's error body when one
    was returned; transport failures are retryable.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict[str, Any] | None = None,
        kind: str | None = None,
        retryable: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.kind = kind
        self.retryable = retryable
        super().__init__(message)


@dataclass
class TranslationResponse:
    """Response from single translation."""

    translation: str
    source_lang: str
    target_lang: str
    latency_ms: float


@dataclass
class BatchTranslationResponse:
    """Response from batch translation."""

    translations: list[str]
    source_lang: str
    target_lang: str
    latency_ms: float


@dataclass
class HealthResponse:
    """Response from health check."""

    status: str
    directions: dict[str, dict]
    gpu_available: bool
    version: str


class MTClient:
    """HTTP client for the self-hosted MT service.

    Attributes:
        base_url: Base URL of the service
        timeout: Request timeout in seconds

    Example:
        async with MTClient() as client:
            # Single translation
            result = await client.translate("Hello", "en", "fr")

            # Batch translation
            batch = await client.translate_batch(["Ciao", "Grazie"], "it", "en")

            # Health check
            health = await client.health_check()
    """

    DEFAULT_BASE_URL = "http://localhost:8080"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the MT client.

        Args:
            base_url: Base URL of the service. If None, uses DEFAULT_BASE_URL.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "MTClient":
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, ensuring it's initialized."""
        if self._client is None:
            raise RuntimeError(
                "MTClient must be used as an async context manager: "
                "async with MTClient() as client: ..."
            )
        return self._client

    async def _request(self, method: str, path: str, action: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            body = _error_body(e.response)
            raise MTClientError(
                f"{action} failed: {e.response.status_code}",
                status_code=e.response.status_code,
                response=body,
                kind=(body or {}).get("error"),
                retryable=bool((body or {}).get("retryable", False)),
            ) from e
        except httpx.RequestError as e:
            raise MTClientError(f"Request failed: {e}", retryable=True) from e

    async def translate(
        self,
        text: str,
        source_lang: str | None = None,
        target_lang: str | None = None,
    ) -> TranslationResponse:
        """Translate a single text.

        Raises:
            MTClientError: If translation fails
        """
        data = await self._request(
            "POST",
            "/translate",
            "Translation",
            json={"text": text, "source_lang": source_lang, "target_lang": target_lang},
        )
        return TranslationResponse(
            translation=data["translation"],
            source_lang=data["source_lang"],
            target_lang=data["target_lang"],
            latency_ms=data["latency_ms"],
        )

    async def translate_batch(
        self,
        texts: list[str],
        source_lang: str | None = None,
        target_lang: str | None = None,
    ) -> BatchTranslationResponse:
        """Translate a batch of texts.

        Raises:
            MTClientError: If translation fails
        """
        data = await self._request(
            "POST",
            "/batch",
            "Batch translation",
            json={"texts": texts, "source_lang": source_lang, "target_lang": target_lang},
        )
        return BatchTranslationResponse(
            translations=data["translations"],
            source_lang=data["source_lang"],
            target_lang=data["target_lang"],
            latency_ms=data["latency_ms"],
        )

    async def health_check(self) -> HealthResponse:
        """Check health of the MT service.

        Raises:
            MTClientError: If health check fails
        """
        data = await self._request("GET", "/health", "Health check")
        return HealthResponse(
            status=data["status"],
            directions=data["directions"],
            gpu_available=data["gpu_available"],
            version=data["version"],
        )


def _error_body(response: httpx.Response) -> dict[str, Any] | None:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"detail": response.text}


# Convenience function for one-off translations
async def translate(
    text: str,
    source_lang: str | None = None,
    target_lang: str | None = None,
    base_url: str | None = None,
) -> TranslationResponse:
    """Convenience function for single translation.

    Example:
        result = await translate("Hello", "en", "es")
        print(result.translation)
    """
    async with MTClient(base_url=base_url) as client:
        return await client.translate(text, source_lang, target_lang)


# Synchronous wrapper for non-async contexts
def translate_sync(
    text: str,
    source_lang: str | None = None,
    target_lang: str | None = None,
    base_url: str | None = None,
) -> TranslationResponse:
    """Synchronous wrapper for translate."""
    return asyncio.run(translate(text, source_lang, target_lang, base_url))
