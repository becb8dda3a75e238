"""Settings and configuration for the MT service."""

import os
from dataclasses import dataclass, field, fields

from romance_mt.config.languages import LanguageDirection


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class MTSettings:
    """Machine Translation service settings."""

    # Model artifacts
    model_path: str = "/models"
    en_romance_model_dir: str = LanguageDirection.EN_ROMANCE.model_dir
    romance_en_model_dir: str = LanguageDirection.ROMANCE_EN.model_dir
    directions: tuple[LanguageDirection, ...] = (
        LanguageDirection.EN_ROMANCE,
        LanguageDirection.ROMANCE_EN,
    )
    device: str = "auto"  # "auto" picks CUDA when available

    # Request limits
    max_batch_size: int = 16
    max_input_length: int = 512  # characters per text
    default_romance_target: str = "it"

    # Inference configuration
    max_input_tokens: int = 512
    max_output_tokens: int = 256
    num_beams: int = 4

    # Concurrency configuration
    max_concurrent_inferences_per_direction: int = 1
    max_queue_depth_per_direction: int = 32
    inference_timeout_s: float = 30.0
    inference_workers: int = field(default_factory=_default_workers)

    def __post_init__(self) -> None:
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if self.max_concurrent_inferences_per_direction < 1:
            raise ValueError("max_concurrent_inferences_per_direction must be at least 1")
        if self.max_queue_depth_per_direction < 0:
            raise ValueError("max_queue_depth_per_direction cannot be negative")
        if self.inference_timeout_s <= 0:
            raise ValueError("inference_timeout_s must be positive")
        if self.inference_workers < 1:
            raise ValueError("inference_workers must be at least 1")

    def model_dir_for(self, direction: LanguageDirection) -> str:
        """Get full path to the model directory of a direction."""
        if direction is LanguageDirection.EN_ROMANCE:
            return os.path.join(self.model_path, self.en_romance_model_dir)
        return os.path.join(self.model_path, self.romance_en_model_dir)

    @classmethod
    def from_env(cls, environ=None) -> "MTSettings":
        """Build settings from environment variables.

        Each field is read from its upper-cased name (``MAX_BATCH_SIZE``
        for ``max_batch_size``). ``APP_PATH`` is accepted as a fallback for
        ``MODEL_PATH``. Unset variables keep their defaults.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        environ = os.environ if environ is None else environ
        values = {}

        for f in fields(cls):
            if f.name == "directions":
                continue
            raw = environ.get(f.name.upper())
            if raw is None and f.name == "model_path":
                raw = environ.get("APP_PATH")
            if raw is None or raw == "":
                continue
            if f.type in (int, "int"):
                values[f.name] = int(raw)
            elif f.type in (float, "float"):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw

        raw_directions = environ.get("DIRECTIONS")
        if raw_directions:
            values["directions"] = tuple(
                LanguageDirection(d.strip()) for d in raw_directions.split(",") if d.strip()
            )

        return cls(**values)


# Global settings instance
settings = MTSettings()
