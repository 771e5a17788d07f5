from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings

settings = get_settings()

# Booking admission reads counts and then inserts; SERIALIZABLE keeps two
# concurrent requests for the same date from both passing the capacity check.
engine = create_async_engine(
    settings.database_url,
    echo=settings.echo_sql,
    isolation_level=settings.isolation_level,
    pool_pre_ping=True,
    pool_recycle=3600,
    pool_timeout=settings.pool_timeout,
)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
