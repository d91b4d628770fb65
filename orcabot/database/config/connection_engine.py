"""
Connection Engine (SQLAlchemy)

Purpose
-------
Centralizes database initialization for the quote service:
- Builds the SQLAlchemy connection URL from environment-backed settings.
- Creates the Engine (connection pool + SQL execution entry point).
- Defines shared MetaData for table and schema objects.
- Exposes a Declarative Base class for ORM models.

Notes
-----
- Uses `URL.create(...)` so credentials never live in code.
- SQLite connections are shared between the request thread and the background
  save task of the chat relay, hence `check_same_thread=False`.
- All ORM models must inherit from `declarativeBase`.
"""


from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import declarative_base
from sqlalchemy.schema import MetaData
from orcabot.database.config.config import settings

# --------------------------------------------------------------------
# Connection URL built from Settings (env / .env).
# --------------------------------------------------------------------
connection_url = URL.create(
    drivername=settings.DB_DRIVER_NAME,   # e.g., "postgresql+psycopg2", "sqlite"
    username=settings.DB_USERNAME,
    password=settings.DB_PASSWORD,
    host=settings.DB_HOST,
    database=settings.DB_DATABASE_NAME
)
"""SQLAlchemy connection URL built from Settings."""

connect_args = {"check_same_thread": False} if settings.DB_DRIVER_NAME.startswith("sqlite") else {}

# --------------------------------------------------------------------
# Engine object: core interface to the database.
# --------------------------------------------------------------------
connection_engine = create_engine(connection_url, connect_args=connect_args, pool_pre_ping=True)
"""Engine object: manages connections, executes SQL and pools connections."""

metadata = MetaData()
"""Schema-level information about tables, constraints and indexes, shared across all models."""

declarativeBase = declarative_base(metadata=metadata)
"""Root class for ORM models."""
