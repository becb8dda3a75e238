"""Shared fixtures: instrumented model handles that need no model weights."""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from romance_mt.config.languages import LanguageDirection
from romance_mt.config.settings import MTSettings
from romance_mt.services.registry import DirectionRegistry
from romance_mt.services.translation_service import TranslationService


class FakeHandle:
    """Stands in for ModelHandle and records how it is called.

    Fails the call if it is ever entered while already running, which is
    the single-writer property of a real native session.
    """

    def __init__(self, direction=LanguageDirection.EN_ROMANCE, delay=0.0, gate=None):
        self.direction = direction
        self.model_dir = f"/models/{direction.model_dir}"
        self.device = "cpu"
        self.delay = delay
        self.gate = gate
        self.calls = []
        self.intervals = []
        self.reentered = False
        self.closed = False
        self.error = None
        self._active = 0
        self._lock = threading.Lock()

    def translate(self, batch, target_lang=None):
        with self._lock:
            self._active += 1
            if self._active > 1:
                self.reentered = True
        start = time.monotonic()
        try:
            self.calls.append((list(batch), target_lang))
            if self.gate is not None:
                self.gate.wait(timeout=5)
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            prefix = f"[{target_lang}] " if target_lang else "[en] "
            return [prefix + text if text.strip() else "" for text in batch]
        finally:
            self.intervals.append((start, time.monotonic()))
            with self._lock:
                self._active -= 1

    def close(self):
        self.closed = True


async def wait_until(predicate, timeout=2.0):
    """Poll ``predicate`` from the event loop until it holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def settings():
    return MTSettings(
        max_batch_size=16,
        max_queue_depth_per_direction=4,
        inference_timeout_s=5.0,
        inference_workers=4,
    )


@pytest.fixture
def handles():
    return {
        LanguageDirection.EN_ROMANCE: FakeHandle(LanguageDirection.EN_ROMANCE),
        LanguageDirection.ROMANCE_EN: FakeHandle(LanguageDirection.ROMANCE_EN),
    }


@pytest.fixture
def registry(handles):
    return DirectionRegistry({d: [h] for d, h in handles.items()})


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def service(registry, settings):
    svc = TranslationService(registry, settings)
    yield svc
    svc.close()
