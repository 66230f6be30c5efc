"""Caller identity as supplied by the identity provider.

Authentication itself happens outside this package. The transport hands the
engine either an ``Identity`` or ``None`` for anonymous callers.
"""

from pydantic import BaseModel, ConfigDict, Field

from recipeshare.exceptions import Unauthenticated


class Identity(BaseModel):
    """Authenticated caller.

    Attributes:
        user_id: Stable user ID issued by the identity provider
        name: Display name, when the provider knows one
        email: Email address, when the provider knows one
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    name: str | None = None
    email: str | None = None


def require_user(identity: Identity | None, action: str | None = None) -> str:
    """Return the caller's user ID or raise ``Unauthenticated``.

    Args:
        identity: Caller identity, None when anonymous
        action: Optional phrase appended to the error ("to rate recipe")

    Returns:
        The authenticated user ID
    """
    if identity is None:
        raise Unauthenticated(f"Must be logged in {action}" if action else None)
    return identity.user_id


__all__ = ["Identity", "require_user"]
