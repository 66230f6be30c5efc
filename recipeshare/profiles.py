"""Users, profiles and lazy profile creation.

A profile is created the first time an authenticated user reaches the
engine. Two requests for the same new user may race to create it; the unique
constraint on ``user_id`` lets exactly one insert win, and the loser's unit
of work is re-run, finds the winner's row and returns it.
"""

from sqlmodel import Session

from recipeshare.exceptions import NotFound, ValidationFailed
from recipeshare.identity import Identity
from recipeshare.interfaces import IBlobStore
from recipeshare.logging import logger
from recipeshare.models import ProfileRow, UserRow
from recipeshare.repository import Repository
from recipeshare.schemas import ProfileUpdate
from recipeshare.types import ProfileView
from recipeshare.utils import default_username, suffixed_username

ANONYMOUS_USERNAME = "Anonymous"


def upsert_user(session: Session, identity: Identity) -> UserRow:
    """Mirror the identity provider's account into the users table.

    Name and email are refreshed when the provider reports new values.
    """
    users = Repository(session, UserRow)
    row = users.get(identity.user_id)
    if row is None:
        return users.add(UserRow(id=identity.user_id, name=identity.name, email=identity.email))

    changed = False
    if identity.name is not None and identity.name != row.name:
        row.name = identity.name
        changed = True
    if identity.email is not None and identity.email != row.email:
        row.email = identity.email
        changed = True
    if changed:
        users.add(row)
    return row


def get_profile(session: Session, user_id: str) -> ProfileRow | None:
    return Repository(session, ProfileRow).first_by(user_id=user_id)


def _available_username(profiles: Repository[ProfileRow], base: str) -> str:
    attempt = 1
    candidate = base
    while profiles.exists_by(username=candidate):
        attempt += 1
        candidate = suffixed_username(base, attempt)
    return candidate


def ensure_profile(session: Session, identity: Identity) -> str:
    """Return the caller's profile ID, creating the profile on first call.

    The username is derived from the display name, else the email local
    part, else "User"; a numeric suffix is added when it is already taken.

    Returns:
        Profile ID (the same one on every call for a given user)

    Raises:
        IntegrityError: If a concurrent request created the profile first;
            the unit of work is expected to be re-run
    """
    upsert_user(session, identity)

    profiles = Repository(session, ProfileRow)
    existing = profiles.first_by(user_id=identity.user_id)
    if existing is not None:
        return existing.id

    username = _available_username(profiles, default_username(identity.name, identity.email))
    profile = profiles.add(ProfileRow(user_id=identity.user_id, username=username))
    logger.info(f"👤 Created profile {username!r} for {identity.user_id}")
    return profile.id


def update_profile(session: Session, user_id: str, update: ProfileUpdate) -> ProfileRow:
    """Apply only the fields supplied in ``update``.

    Raises:
        NotFound: If the user has no profile yet
        ValidationFailed: If the new username belongs to someone else
    """
    profiles = Repository(session, ProfileRow)
    profile = profiles.first_by(user_id=user_id)
    if profile is None:
        raise NotFound("Profile not found")

    changes = update.changes()
    username = changes.get("username")
    if username is not None and username != profile.username:
        if profiles.exists_by(username=username):
            raise ValidationFailed("Username already taken")

    for field, value in changes.items():
        setattr(profile, field, value)
    return profiles.add(profile)


def is_admin(session: Session, user_id: str) -> bool:
    profile = get_profile(session, user_id)
    return profile is not None and profile.is_admin


def set_admin(session: Session, user_id: str, value: bool = True) -> ProfileRow:
    """Grant or revoke admin rights. Operator-only; not exposed to callers.

    Raises:
        NotFound: If the user has no profile yet
    """
    profiles = Repository(session, ProfileRow)
    profile = profiles.first_by(user_id=user_id)
    if profile is None:
        raise NotFound("Profile not found")
    profile.is_admin = value
    return profiles.add(profile)


def username_for(session: Session, user_id: str) -> str | None:
    profile = get_profile(session, user_id)
    return profile.username if profile is not None else None


def profile_view(profile: ProfileRow, blob_store: IBlobStore | None = None) -> ProfileView:
    avatar_url = None
    if profile.avatar_ref and blob_store is not None:
        avatar_url = blob_store.get_url(profile.avatar_ref)
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "username": profile.username,
        "bio": profile.bio,
        "avatar_ref": profile.avatar_ref,
        "avatar_url": avatar_url,
        "is_admin": profile.is_admin,
    }


__all__ = [
    "ANONYMOUS_USERNAME",
    "upsert_user",
    "get_profile",
    "ensure_profile",
    "update_profile",
    "is_admin",
    "set_admin",
    "username_for",
    "profile_view",
]
