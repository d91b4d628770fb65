"""
Settings and database bootstrap.

Contents:
    - config: `Settings` singleton read from the environment / .env. Besides
      the database keys it carries the LLM gateway, SMTP, S3, JWT and
      frontend settings and `MAX_SESSION_MESSAGES`.
    - connection_engine: Engine built from those settings (PostgreSQL in
      production, sqlite in tests with cross-thread access enabled), the
      shared MetaData and `declarativeBase`.
"""
