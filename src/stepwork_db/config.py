"""Database settings for the walk-session store.

Connection parameters come from the environment, either as one
``DATABASE_URL`` (takes precedence) or as ``PG_HOST`` / ``PG_PORT`` /
``PG_USER`` / ``PG_PASSWORD`` / ``PG_DATABASE`` parts.  The same target is
exposed with two drivers: psycopg2 for Alembic, asyncpg for the runtime
engine.  URLs are assembled with SQLAlchemy's ``URL`` so credentials are
escaped correctly.

Pool sizing is read here as well so that ``stepwork_db.engine`` has a
single source of configuration.
"""

import os
from dataclasses import dataclass

from sqlalchemy.engine import URL, make_url

SYNC_DRIVER = "postgresql+psycopg2"
ASYNC_DRIVER = "postgresql+asyncpg"


@dataclass(frozen=True)
class DatabaseSettings:
    """Immutable database configuration read from environment."""

    # Full URL; when set, the individual parts below are ignored
    url: str | None = None

    host: str = "localhost"
    port: int = 5432
    user: str = "stepwork"
    password: str = "stepwork"
    database: str = "stepwork"

    # Pool
    pool_size: int = 5
    max_overflow: int = 10
    # Seconds before a pooled connection is recycled (-1 disables)
    pool_recycle: int = 1800
    echo: bool = False

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        return cls(
            url=os.getenv("DATABASE_URL") or None,
            host=os.getenv("PG_HOST", "localhost"),
            port=int(os.getenv("PG_PORT", "5432")),
            user=os.getenv("PG_USER", "stepwork"),
            password=os.getenv("PG_PASSWORD", "stepwork"),
            database=os.getenv("PG_DATABASE", "stepwork"),
            pool_size=int(os.getenv("PG_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("PG_MAX_OVERFLOW", "10")),
            pool_recycle=int(os.getenv("PG_POOL_RECYCLE", "1800")),
            echo=os.getenv("PG_ECHO", "").lower() in ("1", "true", "yes"),
        )

    def _base_url(self) -> URL:
        if self.url:
            return make_url(self.url)
        return URL.create(
            "postgresql",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def url_for(self, driver: str) -> URL:
        """The configured target with ``driver`` as its drivername."""
        return self._base_url().set(drivername=driver)


def get_sync_url() -> str:
    """psycopg2 connection URL for Alembic, password included."""
    return DatabaseSettings.from_env().url_for(SYNC_DRIVER).render_as_string(
        hide_password=False,
    )


def get_async_url() -> str:
    """asyncpg connection URL for the runtime engine, password included."""
    return DatabaseSettings.from_env().url_for(ASYNC_DRIVER).render_as_string(
        hide_password=False,
    )
