from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from overflow.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Async engine for url. SQLite (tests, local runs) gets no pre-ping."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(url, echo=echo, pool_pre_ping=True, pool_size=10, max_overflow=20)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit; services re-query when they need fresh rows
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


engine = build_engine(settings.database_url, echo=settings.debug)
async_session_factory = build_session_factory(engine)


async def get_db():
    """FastAPI dependency: one AsyncSession per request."""
    async with async_session_factory() as session:
        yield session
