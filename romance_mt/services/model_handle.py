"""Model handle: one MarianMT tokenizer + model pair for one direction.

A handle is created once at startup from local model artifacts and lives
for the process lifetime. ``translate`` is blocking and CPU/GPU bound, so
it must be called from a worker thread, never from the event loop.
"""

import logging
import os
import re
import threading
import time
from collections.abc import Sequence
from typing import Any

import torch
from transformers import AutoModelForSeq2SeqLM, AutoTokenizer

from romance_mt.config.languages import ENGLISH, LanguageDirection
from romance_mt.config.settings import MTSettings
from romance_mt.errors import InferenceError, InvalidRequest, ServiceError, UnsupportedDirection

logger = logging.getLogger(__name__)

# Target language tokens of multi-target Marian models, e.g. ">>fr<<"
TARGET_TOKEN_PATTERN = re.compile(r"^>>([a-z]{2,3}(?:_[A-Za-z]+)?)<<$")


def resolve_device(device: str) -> str:
    """Resolve ``"auto"`` to CUDA when available, otherwise CPU."""
    if device == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return device


def target_languages(tokenizer: Any) -> frozenset[str] | None:
    """Language codes that have a ``>>xx<<`` token in the vocabulary.

    Returns None when the tokenizer does not expose its vocabulary.
    """
    get_vocab = getattr(tokenizer, "get_vocab", None)
    if get_vocab is None:
        return None
    codes = set()
    for token in get_vocab():
        match = TARGET_TOKEN_PATTERN.match(token)
        if match:
            codes.add(match.group(1))
    return frozenset(codes)


def output_token_limit(model: Any, max_output_tokens: int) -> int:
    """Cap generation below the decoder's positional embedding size.

    Marian decoders index learned positions, so generating up to
    ``max_position_embeddings`` tokens fails inside the model instead of
    stopping at the length cap.
    """
    config = getattr(model, "config", None)
    positions = getattr(config, "max_position_embeddings", None)
    if isinstance(positions, int) and positions > 1:
        return min(max_output_tokens, positions - 1)
    return max_output_tokens


class ModelHandle:
    """Owns the tokenizer and the seq2seq model of one direction.

    Attributes:
        direction: Direction served by this handle
        model_dir: Directory the artifacts were loaded from
        device: Device the model lives on
        target_languages: Codes accepted as target, None if unknown
    """

    WARM_UP_TEXT = {
        LanguageDirection.EN_ROMANCE: "Hello",
        LanguageDirection.ROMANCE_EN: "Ciao",
    }

    def __init__(
        self,
        direction: LanguageDirection,
        tokenizer: Any,
        model: Any,
        *,
        model_dir: str = "",
        device: str = "cpu",
        max_input_tokens: int = 512,
        max_output_tokens: int = 256,
        num_beams: int = 4,
    ):
        self.direction = direction
        self.tokenizer = tokenizer
        self.model = model
        self.model_dir = model_dir
        self.device = device
        self.max_input_tokens = max_input_tokens
        self.max_output_tokens = output_token_limit(model, max_output_tokens)
        self.num_beams = num_beams
        self.target_languages = (
            target_languages(tokenizer) if direction.needs_target_token else None
        )
        self._lock = threading.Lock()

    @classmethod
    def from_pretrained(
        cls,
        direction: LanguageDirection,
        model_dir: str,
        settings: MTSettings,
    ) -> "ModelHandle":
        """Load a handle from a local model directory.

        The directory must already contain the weights, ``config.json`` and
        the tokenizer vocabulary; nothing is downloaded here.
        """
        start_time = time.perf_counter()
        device = resolve_device(settings.device)
        logger.info(f"Loading {direction.value} model from {model_dir} on {device}")

        if not os.path.isdir(model_dir):
            raise FileNotFoundError(f"Model directory not found: {model_dir}")

        tokenizer = AutoTokenizer.from_pretrained(model_dir, local_files_only=True)
        model = AutoModelForSeq2SeqLM.from_pretrained(model_dir, local_files_only=True)
        model.to(device)
        model.eval()

        handle = cls(
            direction,
            tokenizer,
            model,
            model_dir=model_dir,
            device=device,
            max_input_tokens=settings.max_input_tokens,
            max_output_tokens=settings.max_output_tokens,
            num_beams=settings.num_beams,
        )
        if handle.max_output_tokens < settings.max_output_tokens:
            logger.warning(
                f"{direction.value}: max_output_tokens capped to {handle.max_output_tokens} "
                f"by the model's position embeddings"
            )
        handle.warm_up()

        load_time = time.perf_counter() - start_time
        logger.info(f"Model {direction.value} loaded in {load_time:.2f}s")
        return handle

    def warm_up(self) -> None:
        """Warm up the model with a dummy translation."""
        target = "it" if self.direction.needs_target_token else None
        self.translate([self.WARM_UP_TEXT[self.direction]], target_lang=target)
        logger.info(f"Model {self.direction.value} warmed up successfully")

    def translate(
        self,
        batch: Sequence[str],
        target_lang: str | None = None,
    ) -> list[str]:
        """Translate a batch of sentences.

        Blank inputs are not sent to the model and come back as ``""``, so
        the result always has the same length as ``batch``.

        Args:
            batch: Sentences to translate
            target_lang: Target language code, required for en -> ROMANCE

        Returns:
            Translations aligned 1:1 with ``batch``

        Raises:
            InvalidRequest: If en -> ROMANCE is called without a target
            UnsupportedDirection: If the model has no token for the target
            InferenceError: If tokenization, generation or decoding fails
        """
        positions = [i for i, text in enumerate(batch) if text and text.strip()]
        if not positions:
            return [""] * len(batch)

        if self.direction.needs_target_token:
            self._check_target(target_lang)

        with self._lock:
            if self.model is None:
                raise InferenceError(f"{self.direction.value} model has been released")
            texts = [batch[i].strip() for i in positions]
            try:
                self._check_representable(texts)
                decoded = self._generate(texts, target_lang)
            except ServiceError:
                raise
            except torch.cuda.OutOfMemoryError as e:
                raise InferenceError(f"Device out of memory: {e}", retryable=True) from e
            except MemoryError as e:
                raise InferenceError("Out of memory during inference", retryable=True) from e
            except Exception as e:
                raise InferenceError(f"Inference failed: {type(e).__name__}: {e}") from e

        results = [""] * len(batch)
        for position, translation in zip(positions, decoded):
            results[position] = translation
        return results

    def _check_target(self, target_lang: str | None) -> None:
        if not target_lang:
            raise InvalidRequest(f"{self.direction.value} requires a target language")
        if self.target_languages is not None and target_lang not in self.target_languages:
            raise UnsupportedDirection(ENGLISH, target_lang)

    def _check_representable(self, texts: list[str]) -> None:
        unk_id = getattr(self.tokenizer, "unk_token_id", None)
        if unk_id is None:
            return
        for text in texts:
            ids = self.tokenizer(text, add_special_tokens=False)["input_ids"]
            if ids and all(token_id == unk_id for token_id in ids):
                raise InferenceError(f"Input cannot be represented by the vocabulary: {text[:50]!r}")

    def _generate(self, texts: list[str], target_lang: str | None) -> list[str]:
        if self.direction.needs_target_token:
            texts = [f">>{target_lang}<< {text}" for text in texts]

        inputs = self.tokenizer(
            texts,
            return_tensors="pt",
            padding=True,
            truncation=True,
            max_length=self.max_input_tokens,
        ).to(self.device)

        with torch.no_grad():
            outputs = self.model.generate(
                **inputs,
                max_new_tokens=self.max_output_tokens,
                num_beams=self.num_beams,
                early_stopping=True,
            )

        self._check_terminated(outputs)

        translations = self.tokenizer.batch_decode(outputs, skip_special_tokens=True)
        translations = [t.strip() for t in translations]

        # Degenerate output never drops a position
        if len(translations) < len(texts):
            translations += [""] * (len(texts) - len(translations))
        return translations[: len(texts)]

    def _check_terminated(self, outputs: Any) -> None:
        eos_id = getattr(self.tokenizer, "eos_token_id", None)
        if eos_id is None:
            return
        for row in outputs.tolist():
            if eos_id not in row[1:]:
                raise InferenceError(
                    f"Generation did not terminate within {self.max_output_tokens} tokens"
                )

    def close(self) -> None:
        """Release the model and tokenizer once any running call has finished."""
        with self._lock:
            self.model = None
            self.tokenizer = None

    def __repr__(self) -> str:
        return f"ModelHandle(direction={self.direction.value!r}, device={self.device!r})"
