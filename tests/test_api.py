"""Tests for the self-hosted FastAPI service.

The translation service is built over fake handles, so no model weights
are needed.
"""

import threading

import pytest
from fastapi.testclient import TestClient

from romance_mt.config.languages import LanguageDirection
from romance_mt.config.settings import MTSettings
from romance_mt.errors import InferenceError, StartupFailure
from romance_mt.services.registry import DirectionRegistry
from romance_mt.services.translation_service import TranslationService
from selfhosted.main import create_app
from tests.conftest import FakeHandle


@pytest.fixture
def api_settings():
    return MTSettings(max_batch_size=4, max_input_length=100, inference_workers=2)


@pytest.fixture
def app_handles():
    return {
        LanguageDirection.EN_ROMANCE: FakeHandle(LanguageDirection.EN_ROMANCE),
        LanguageDirection.ROMANCE_EN: FakeHandle(LanguageDirection.ROMANCE_EN),
    }


@pytest.fixture
def client(api_settings, app_handles):
    def factory(settings):
        registry = DirectionRegistry({d: [h] for d, h in app_handles.items()})
        return TranslationService(registry, settings)

    app = create_app(settings=api_settings, service_factory=factory)
    with TestClient(app) as test_client:
        yield test_client


class TestTranslateEndpoint:
    """Tests for POST /translate."""

    def test_english_to_romance(self, client):
        response = client.post(
            "/translate", json={"text": "Hello world", "source_lang": "en", "target_lang": "fr"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["translation"] == "[fr] Hello world"
        assert data["source_lang"] == "en"
        assert data["target_lang"] == "fr"
        assert data["latency_ms"] >= 0

    def test_v0_from_language(self, client, app_handles):
        """The original body shape with fromLanguage still works."""
        response = client.post("/translate", json={"text": "Ciao, come stai?", "fromLanguage": "Italian"})

        assert response.status_code == 200
        assert response.json()["translation"] == "[en] Ciao, come stai?"
        assert app_handles[LanguageDirection.ROMANCE_EN].calls

    def test_v0_english(self, client):
        response = client.post("/translate", json={"text": "Hello", "fromLanguage": "English"})

        assert response.status_code == 200
        assert response.json()["target_lang"] == "it"

    def test_unknown_from_language_is_rejected(self, client):
        response = client.post("/translate", json={"text": "Hallo", "fromLanguage": "German"})

        assert response.status_code == 422

    def test_empty_text(self, client):
        response = client.post("/translate", json={"text": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"
        assert response.json()["retryable"] is False

    def test_unsupported_direction(self, client):
        response = client.post(
            "/translate", json={"text": "Hallo", "source_lang": "de", "target_lang": "fr"}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "unsupported_direction"

    def test_inference_error(self, client, app_handles):
        app_handles[LanguageDirection.ROMANCE_EN].error = InferenceError("native failure")

        response = client.post("/translate", json={"text": "Ciao", "source_lang": "it"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "inference_error",
            "detail": "native failure",
            "retryable": False,
        }


    def test_untyped_failure_has_error_body(self, client, app_handles):
        """Native exceptions still produce the structured 500 body."""
        app_handles[LanguageDirection.ROMANCE_EN].error = IndexError("index out of range in self")

        response = client.post("/translate", json={"text": "Ciao", "source_lang": "it"})

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["error"] == "inference_error"
        assert "IndexError" in response.json()["detail"]


class TestBatchEndpoint:
    """Tests for POST /batch."""

    def test_batch_alignment(self, client):
        response = client.post(
            "/batch", json={"texts": ["Ciao", "", "Grazie"], "source_lang": "it"}
        )

        assert response.status_code == 200
        assert response.json()["translations"] == ["[en] Ciao", "", "[en] Grazie"]

    def test_empty_batch(self, client):
        response = client.post("/batch", json={"texts": []})

        assert response.status_code == 400

    def test_batch_too_large(self, client):
        response = client.post("/batch", json={"texts": ["Hello"] * 1000})

        assert response.status_code == 400
        assert "Batch too large" in response.json()["detail"]


class TestOverload:
    """Backpressure and timeouts map to 503 and 504."""

    def test_overloaded_and_timeout(self, app_handles):
        gate = threading.Event()
        app_handles[LanguageDirection.ROMANCE_EN].gate = gate
        settings = MTSettings(
            max_queue_depth_per_direction=0, inference_timeout_s=0.2, inference_workers=2
        )

        def factory(s):
            registry = DirectionRegistry({d: [h] for d, h in app_handles.items()})
            return TranslationService(registry, s)

        app = create_app(settings=settings, service_factory=factory)
        with TestClient(app) as client:
            results = {}

            def slow_request():
                results["slow"] = client.post("/translate", json={"text": "Ciao", "source_lang": "it"})

            worker = threading.Thread(target=slow_request)
            worker.start()
            handle = app_handles[LanguageDirection.ROMANCE_EN]
            for _ in range(200):
                if handle.calls:
                    break
                threading.Event().wait(0.005)

            busy = client.post("/translate", json={"text": "Grazie", "source_lang": "it"})
            worker.join()
            gate.set()
            guard = app.state.service.guard(LanguageDirection.ROMANCE_EN)
            for _ in range(400):
                if guard.stats()["idle"] == 1:
                    break
                threading.Event().wait(0.005)

        assert busy.status_code == 503
        assert busy.json()["retryable"] is True
        assert results["slow"].status_code == 504
        assert results["slow"].json()["error"] == "timeout"


class TestHealthAndDocs:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert set(data["directions"]) == {"en-ROMANCE", "ROMANCE-en"}
        assert data["version"]

    def test_openapi(self, client):
        response = client.get("/openapi.json")

        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/translate" in paths
        assert "/batch" in paths


class TestStartup:
    def test_startup_failure_aborts(self, api_settings):
        """A model load failure must stop the app from serving."""

        def failing_factory(settings):
            raise StartupFailure("missing weights")

        app = create_app(settings=api_settings, service_factory=failing_factory)

        with pytest.raises(StartupFailure):
            with TestClient(app):
                pass

    def test_shutdown_releases_models(self, api_settings, app_handles):
        def factory(settings):
            registry = DirectionRegistry({d: [h] for d, h in app_handles.items()})
            return TranslationService(registry, settings)

        with TestClient(create_app(settings=api_settings, service_factory=factory)):
            pass

        assert all(h.closed for h in app_handles.values())
