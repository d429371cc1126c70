from typing import Annotated, Optional

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overflow.config import settings
from overflow.database import get_db
from overflow.models.user import User
from overflow.services.page_cache import PageCache

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_redis(request: Request) -> aioredis.Redis:
    """Inject the Redis client from app.state (set during lifespan startup)."""
    return request.app.state.redis


RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]


async def get_page_cache(redis_client: RedisClient) -> PageCache:
    return PageCache(redis_client, settings.page_cache_ttl_seconds)


Cache = Annotated[PageCache, Depends(get_page_cache)]


def get_clerk_id(request: Request) -> Optional[str]:
    """The external user id resolved by IdentityMiddleware, or None when signed out."""
    return getattr(request.state, "clerk_id", None)


ClerkId = Annotated[Optional[str], Depends(get_clerk_id)]


async def get_optional_user(clerk_id: ClerkId, db: DbSession) -> Optional[User]:
    if clerk_id is None:
        return None
    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    return result.scalar_one_or_none()


async def get_current_user(clerk_id: ClerkId, db: DbSession) -> User:
    """Require a signed-in user that has been synced from the identity provider.

    Raises 401 without a session, 403 when the session's user has not been
    created locally yet (the user.created webhook has not arrived).
    """
    if clerk_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = await get_optional_user(clerk_id, db)
    if user is None:
        raise HTTPException(status_code=403, detail="User profile not yet provisioned")
    return user


# Annotated type aliases for clean endpoint signatures
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
