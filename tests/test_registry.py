"""Tests for DirectionRegistry."""

import pytest

from romance_mt.config.languages import LanguageDirection
from romance_mt.config.settings import MTSettings
from romance_mt.errors import StartupFailure, UnsupportedDirection
from romance_mt.services.registry import DirectionRegistry
from tests.conftest import FakeHandle


class RecordingLoader:
    """Loader that returns fake handles and can fail on one direction."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.loaded = []

    def __call__(self, direction, model_dir, settings):
        if direction is self.fail_on:
            raise OSError(f"no weights in {model_dir}")
        handle = FakeHandle(direction)
        handle.model_dir = model_dir
        self.loaded.append(handle)
        return handle


class TestLoad:
    """Tests for building the registry at startup."""

    def test_loads_all_configured_directions(self):
        loader = RecordingLoader()

        registry = DirectionRegistry.load(MTSettings(model_path="/m"), loader=loader)

        assert set(registry.directions) == set(LanguageDirection)
        assert registry.resolve(LanguageDirection.EN_ROMANCE).model_dir.endswith(
            "opus-mt-en-ROMANCE"
        )

    def test_one_handle_per_concurrent_inference(self):
        """Each allowed concurrent inference gets its own handle."""
        loader = RecordingLoader()
        settings = MTSettings(max_concurrent_inferences_per_direction=3)

        registry = DirectionRegistry.load(settings, loader=loader)

        replicas = registry.replicas(LanguageDirection.ROMANCE_EN)
        assert len(replicas) == 3
        assert len({id(h) for h in replicas}) == 3
        assert registry.resolve(LanguageDirection.ROMANCE_EN) is replicas[0]

    def test_load_failure_is_fatal(self):
        """Any load failure raises StartupFailure and releases loaded handles."""
        loader = RecordingLoader(fail_on=LanguageDirection.ROMANCE_EN)

        with pytest.raises(StartupFailure) as exc_info:
            DirectionRegistry.load(MTSettings(), loader=loader)

        assert exc_info.value.direction is LanguageDirection.ROMANCE_EN
        assert "opus-mt-ROMANCE-en" in exc_info.value.message
        assert loader.loaded and all(h.closed for h in loader.loaded)

    def test_subset_of_directions(self):
        settings = MTSettings(directions=(LanguageDirection.EN_ROMANCE,))

        registry = DirectionRegistry.load(settings, loader=RecordingLoader())

        assert registry.directions == (LanguageDirection.EN_ROMANCE,)
        with pytest.raises(UnsupportedDirection):
            registry.resolve(LanguageDirection.ROMANCE_EN)


class TestResolve:
    """Tests for lookups after startup."""

    def test_resolve_returns_handle(self, registry, handles):
        for direction, handle in handles.items():
            assert registry.resolve(direction) is handle
            assert direction in registry

    def test_resolve_has_no_side_effects(self, registry, handles):
        registry.resolve(LanguageDirection.EN_ROMANCE)

        assert all(not h.calls for h in handles.values())

    def test_mapping_is_read_only(self, registry):
        with pytest.raises(TypeError):
            registry._handles[LanguageDirection.EN_ROMANCE] = ()

    def test_empty_replicas_rejected(self):
        with pytest.raises(ValueError):
            DirectionRegistry({LanguageDirection.EN_ROMANCE: []})

    def test_close_releases_handles(self, registry, handles):
        registry.close()

        assert all(h.closed for h in handles.values())
