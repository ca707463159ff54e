import logging

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_fixed

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """Database connection manager"""

    def __init__(self, database_url: str, echo: bool = False):
        if database_url.startswith("sqlite"):
            # single shared connection so in-memory databases survive across sessions
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                database_url,
                echo=echo,
                pool_size=20,
                max_overflow=0,
                pool_pre_ping=True,
            )
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_tables(self) -> None:
        """Create all tables in database"""
        # models must be imported so their tables are registered on Base.metadata
        from cartqueue.infrastructure import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all tables (for testing)"""
        Base.metadata.drop_all(bind=self.engine)

    @retry(
        stop=stop_after_attempt(5),
        wait=wait_fixed(2),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def wait_until_ready(self) -> None:
        """Ping the database, retrying while it comes up"""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        """Close database connection"""
        self.engine.dispose()
