"""Direction registry: the fixed map from direction to loaded model handles."""

import logging
from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType

from romance_mt.config.languages import LanguageDirection
from romance_mt.config.settings import MTSettings
from romance_mt.errors import StartupFailure, UnsupportedDirection
from romance_mt.services.model_handle import ModelHandle

logger = logging.getLogger(__name__)

HandleLoader = Callable[[LanguageDirection, str, MTSettings], ModelHandle]


class DirectionRegistry:
    """Read-only mapping of each served direction to its model handles.

    A direction holds one handle per allowed concurrent inference
    (``max_concurrent_inferences_per_direction``); the first one is the
    primary returned by :meth:`resolve`. Built once at startup and never
    modified afterwards, so lookups need no locking.
    """

    def __init__(self, handles: Mapping[LanguageDirection, Sequence[ModelHandle]]):
        for direction, replicas in handles.items():
            if not replicas:
                raise ValueError(f"No model handle for {direction.value}")
        self._handles = MappingProxyType(
            {direction: tuple(replicas) for direction, replicas in handles.items()}
        )

    @classmethod
    def load(
        cls,
        settings: MTSettings,
        loader: HandleLoader = ModelHandle.from_pretrained,
    ) -> "DirectionRegistry":
        """Load every configured direction.

        Raises:
            StartupFailure: If any model fails to load
        """
        handles: dict[LanguageDirection, list[ModelHandle]] = {}

        for direction in settings.directions:
            model_dir = settings.model_dir_for(direction)
            replicas = []
            for _ in range(settings.max_concurrent_inferences_per_direction):
                try:
                    replicas.append(loader(direction, model_dir, settings))
                except Exception as e:
                    logger.error(f"Failed to load {direction.value} model from {model_dir}: {e}")
                    for loaded in handles.values():
                        for handle in loaded:
                            handle.close()
                    for handle in replicas:
                        handle.close()
                    raise StartupFailure(
                        f"Could not load {direction.value} model from {model_dir}: {e}",
                        direction=direction,
                    ) from e
            handles[direction] = replicas

        logger.info(
            f"Loaded directions: {', '.join(d.value for d in handles)} "
            f"({settings.max_concurrent_inferences_per_direction} handle(s) each)"
        )
        return cls(handles)

    @property
    def directions(self) -> tuple[LanguageDirection, ...]:
        return tuple(self._handles)

    def __contains__(self, direction: object) -> bool:
        return direction in self._handles

    def resolve(self, direction: LanguageDirection) -> ModelHandle:
        """Get the primary model handle of a direction.

        Raises:
            UnsupportedDirection: If the direction is not loaded
        """
        return self.replicas(direction)[0]

    def replicas(self, direction: LanguageDirection) -> tuple[ModelHandle, ...]:
        """Get every model handle of a direction."""
        try:
            return self._handles[direction]
        except KeyError:
            source, _, target = direction.value.partition("-")
            raise UnsupportedDirection(source, target) from None

    def close(self) -> None:
        for replicas in self._handles.values():
            for handle in replicas:
                handle.close()
