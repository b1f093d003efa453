from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from driveshare.config import settings


# create async engine
engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# session factory
async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
