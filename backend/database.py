import datetime
import os
from collections.abc import AsyncGenerator

from dotenv import load_dotenv
from sqlalchemy import DateTime, Double, Integer, String
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

load_dotenv()

_DEFAULT_URL = "sqlite:///./finance.db"


def resolve_database_url() -> str:
    """
    Pick the async database URL from the environment.

    DATABASE_URL wins. Otherwise DB_HOST (with DB_USER, DB_PASSWORD, DB_NAME,
    PORT_SQL_DB) selects MySQL, and with neither set a local SQLite file is used.
    """
    raw_url = os.getenv("DATABASE_URL")
    if not raw_url and os.getenv("DB_HOST"):
        port = os.getenv("PORT_SQL_DB")
        return URL.create(
            "mysql+aiomysql",
            username=os.getenv("DB_USER"),
            password=os.getenv("DB_PASSWORD"),
            host=os.getenv("DB_HOST"),
            port=int(port) if port else None,
            database=os.getenv("DB_NAME"),
        ).render_as_string(hide_password=False)

    url = raw_url or _DEFAULT_URL
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+aiomysql://", 1)
    return url


DATABASE_URL = resolve_database_url()

engine = create_async_engine(DATABASE_URL, echo=False)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Expense(Base):
    __tablename__ = "Expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    amount: Mapped[float] = mapped_column(Double)
    date: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow, index=True)


class Income(Base):
    __tablename__ = "Incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    amount: Mapped[float] = mapped_column(Double)
    date: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow, index=True)


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
