from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker

from lubricentro.core.config import settings

Base = declarative_base()


def make_engine(url: str, **kwargs) -> AsyncEngine:
    return create_async_engine(url, future=True, echo=False, **kwargs)


def make_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Left unset in demo mode: there is no remote backend to talk to.
engine: Optional[AsyncEngine] = make_engine(settings.DB_URL) if settings.DB_URL else None
AsyncSessionLocal = make_session_factory(engine) if engine is not None else None


async def init_models(bind: AsyncEngine) -> None:
    from lubricentro.db import models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


