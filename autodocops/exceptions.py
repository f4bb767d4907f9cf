"""Error taxonomy shared by the generation and retrieval pipeline"""


class AutoDocOpsError(Exception):
    """Base error carrying a stable, client-facing error kind"""

    kind = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(AutoDocOpsError, ValueError):
    """Raised for empty or malformed input, before any external call"""

    kind = "validation_error"


class UnsupportedCombinationError(ValidationError):
    """Raised when no prompt template exists for an artifact type and language"""

    kind = "unsupported_combination"

    def __init__(self, artifact_type: str, language: str):
        self.artifact_type = artifact_type
        self.language = language
        super().__init__(
            f"No template for artifact type '{artifact_type}' in language '{language}'"
        )


class InvalidTransitionError(ValidationError):
    """Raised when a project status change is not allowed by the lifecycle"""

    kind = "invalid_transition"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition project from '{current}' to '{target}'")


class GenerationFailure(AutoDocOpsError):
    """Base class for failures talking to the generative model"""

    kind = "generation_failure"

    def __init__(self, message: str, status_code: int | None = None, attempts: int = 1):
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(message)


class TransientGenerationFailure(GenerationFailure):
    """Network error, timeout, rate limit or 5xx that persisted through all retries"""

    kind = "transient_generation_failure"


class PermanentGenerationFailure(GenerationFailure):
    """Authentication error or malformed request; never retried"""

    kind = "permanent_generation_failure"


class CacheCorruptionError(AutoDocOpsError):
    """Raised internally when a stored cache value cannot be decoded"""

    kind = "cache_corruption"
