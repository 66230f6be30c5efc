"""Error taxonomy for RecipeShare.

Every failure an engine operation can report to its caller is one of these
kinds. They are raised synchronously and the surrounding unit of work is
rolled back, so a failed call never leaves a partial mutation behind.
"""


class RecipeShareError(Exception):
    """Base class for all domain errors.

    Attributes:
        message: Human-readable description suitable for end users
    """

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(RecipeShareError):
    """Caller identity is missing where an authenticated user is required."""

    default_message = "Must be logged in"


class ValidationFailed(RecipeShareError):
    """Input passed schema checks but is semantically invalid."""

    default_message = "Invalid input"


class NotFound(RecipeShareError):
    """A referenced recipe, user, profile or notification does not exist."""

    default_message = "Not found"


class Forbidden(RecipeShareError):
    """Caller is authenticated but may not act on this row."""

    default_message = "Not allowed"


class UpstreamFailure(RecipeShareError):
    """An external collaborator (LLM API, blob store) failed or returned junk."""

    default_message = "Upstream service failed"


__all__ = [
    "RecipeShareError",
    "Unauthenticated",
    "ValidationFailed",
    "NotFound",
    "Forbidden",
    "UpstreamFailure",
]
