import logging
import re

from caporslap.domain.game_rules import is_guest
from caporslap.models.schema_models import IdentitySchema
from caporslap.store import KeyValueStore

FID_PATTERN = re.compile(r"^\d+$")


def truncate_address(address: str) -> str:
    """First 6 and last 4 characters. Short ids are shown as they are."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def fallback_identity(user_id: str) -> IdentitySchema:
    if is_guest(user_id):
        return IdentitySchema(user_id=user_id, display_name="Guest")
    return IdentitySchema(user_id=user_id, display_name=truncate_address(user_id))


class IdentityResolver:
    """Maps a user id to a display identity. Implementations may raise on failure."""

    async def resolve(self, user_id: str) -> IdentitySchema:
        raise NotImplementedError


class AddressIdentityResolver(IdentityResolver):
    """Offline resolver: Farcaster ids are labelled, everything else is truncated."""

    async def resolve(self, user_id: str) -> IdentitySchema:
        if FID_PATTERN.match(user_id):
            return IdentitySchema(
                user_id=user_id, display_name=f"FID {user_id}", source="farcaster"
            )
        return fallback_identity(user_id)


class IdentityService:
    def __init__(self, store: KeyValueStore, resolver: IdentityResolver):
        self.store = store
        self.resolver = resolver

    async def resolve(self, user_id: str) -> IdentitySchema:
        """Resolve and cache a user's identity, degrading to the truncated address."""
        try:
            identity = await self.resolver.resolve(user_id)
        except Exception as e:
            logging.warning(f"Identity resolution failed for {user_id}: {e}")
            identity = fallback_identity(user_id)
        await self.store.save_profile(identity)
        return identity

    async def cached(self, user_id: str) -> IdentitySchema:
        """Profile written at the last submission, without calling the resolver."""
        profile = await self.store.get_profile(user_id)
        return profile if profile is not None else fallback_identity(user_id)
