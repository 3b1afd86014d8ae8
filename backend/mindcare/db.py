from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from mindcare.config import settings


class Base(DeclarativeBase):
    pass


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_async_engine(settings.ASYNC_DATABASE_URL, echo=False, **_engine_kwargs(settings.ASYNC_DATABASE_URL))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db():
    async with SessionLocal() as session:
        yield session


async def init_models():
    """Create all tables (local/dev only; production uses alembic)."""
    import mindcare.models  # noqa: F401  populate Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
