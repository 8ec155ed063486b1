"""Custom exceptions for azdoc."""

from typing import Optional


class AzdocError(Exception):
    """Base exception for azdoc errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "cause": str(self.cause) if self.cause else None,
        }


class InputError(AzdocError):
    """The resource inventory could not be read or parsed."""


class NarrativeError(AzdocError):
    """The narrative/insight service failed or returned unusable content."""

    def __init__(self, operation: str, message: str, cause: Optional[Exception] = None):
        super().__init__(f"{operation}: {message}", cause)
        self.operation = operation


class ArtifactWriteError(AzdocError):
    """An output artifact (document, diagram, report) could not be written."""

    def __init__(self, artifact: str, cause: Exception):
        super().__init__(f"failed to write {artifact}: {cause}", cause)
        self.artifact = artifact

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["artifact"] = self.artifact
        return result
