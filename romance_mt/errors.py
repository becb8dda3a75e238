"""Error taxonomy for the translation inference core.

Every per-request failure is a :class:`ServiceError`. The HTTP layer maps
``status_code`` onto the response and exposes ``retryable`` so callers can
tell "fix your request" from "try again later".
"""


class ServiceError(Exception):
    """Base class for errors returned to translation callers."""

    kind = "service_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, retryable: bool | None = None):
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "detail": self.message,
            "retryable": self.retryable,
        }


class InvalidRequest(ServiceError):
    """Caller input is malformed; not retryable without change."""

    kind = "invalid_request"
    status_code = 400


class UnsupportedDirection(ServiceError):
    """No model serves the requested language pair."""

    kind = "unsupported_direction"
    status_code = 404

    def __init__(self, source_lang: str, target_lang: str):
        self.source_lang = source_lang
        self.target_lang = target_lang
        super().__init__(
            f"Unsupported translation direction: {source_lang} -> {target_lang}"
        )


class Overloaded(ServiceError):
    """The direction's queue is full; retry with backoff."""

    kind = "overloaded"
    status_code = 503
    retryable = True


class InferenceTimeout(ServiceError):
    """The request exceeded its latency budget."""

    kind = "timeout"
    status_code = 504
    retryable = True


class InferenceError(ServiceError):
    """The tokenizer or the model failed on this batch.

    ``retryable`` is set only for failures believed to be transient, such
    as running out of device memory.
    """

    kind = "inference_error"
    status_code = 500


class StartupFailure(Exception):
    """A model could not be loaded; the process must not serve traffic."""

    def __init__(self, message: str, direction=None):
        self.message = message
        self.direction = direction
        super().__init__(message)
