"""Error taxonomy for the evaluation pipeline."""


class EvaluationError(Exception):
    """Base class for errors surfaced by the evaluation pipeline."""


class TransientProviderError(EvaluationError):
    """Provider is rate limiting or overloaded (HTTP 429/503)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(EvaluationError):
    """Provider returned unparseable or truncated JSON."""


class ConfigurationError(EvaluationError):
    """A required provider setting (usually an API key) is missing."""


class ProviderOverloadedError(EvaluationError):
    """Retry budget exhausted on transient provider errors."""

    def __init__(self, message: str = "AI provider is temporarily overloaded. Please try again in a few minutes.") -> None:
        super().__init__(message)


class EvaluationFailedError(EvaluationError):
    """Evaluation could not be completed; carries the underlying message."""


class EvaluationInProgressError(EvaluationError):
    """Another evaluation for the same candidate holds the lease."""


class MissingPrerequisiteError(EvaluationError):
    """Input needed for evaluation (e.g. a job blueprint) is not available."""


class VectorStoreError(Exception):
    """Vector store is unreachable or rejected the request."""


class IndexNotFoundError(VectorStoreError):
    """Requested index or namespace does not exist (404)."""
