"""Uniform failure policy for service actions.

Every action runs against the caller's AsyncSession. On any exception the
session is rolled back, the failure is logged, and the original exception is
re-raised unchanged so routers can map it to a response.
"""

import functools

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from overflow.exceptions import DomainError

log = structlog.get_logger(__name__)


def action(name: str):
    """Decorate an async service function whose first argument is the session."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(db: AsyncSession, *args, **kwargs):
            try:
                return await fn(db, *args, **kwargs)
            except DomainError as exc:
                await db.rollback()
                log.warning(f"{name}_rejected", error=str(exc), error_type=type(exc).__name__)
                raise
            except Exception:
                await db.rollback()
                log.exception(f"{name}_failed")
                raise

        return wrapper

    return decorator
