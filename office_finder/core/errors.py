"""Exception taxonomy for the resolution pipeline and its collaborators."""


class OfficeFinderError(RuntimeError):
    """Base class for errors raised by this package."""


class ConfigError(OfficeFinderError):
    """Raised when mandatory configuration is missing."""


class ValidationError(OfficeFinderError):
    """Malformed or incomplete onboarding input; recovered by re-prompting."""

    def __init__(self, field_name: str, message: str = "") -> None:
        super().__init__(message or f"{field_name} must not be empty")
        self.field_name = field_name


class DataSourceError(OfficeFinderError):
    """Semantic index or live search unavailable. Never surfaced to users."""


class FallbackExhausted(OfficeFinderError):
    """Every generic AI provider failed, timed out or gave an unusable answer."""


class ResolutionExhausted(OfficeFinderError):
    """No stage of the pipeline produced a recommendation."""
