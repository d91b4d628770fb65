"""
Configuration — Pydantic v2 Settings (env / .env)
=================================================

Purpose
-------
Centralized, strongly-typed configuration for the quote service:
- Pydantic v2 `BaseSettings` for environment-driven values
- `pydantic-settings` v2 for `.env` loading and model config

Load Order & Behavior
---------------------
- Values are read from the environment; if not present, `.env` is used.
- Missing required fields raise a validation error at import time.
- `extra="ignore"`: unknown env vars are ignored (not an error).
- Database credentials are optional so that file-based drivers (``sqlite``)
  can be configured with only a driver name and a database path.

Usage
-----
from orcabot.database.config.config import settings

llm_model = settings.LLM_MODEL
max_turns = settings.MAX_SESSION_MESSAGES

Security
--------
- Never commit secrets or the `.env` file to source control.
- Prefer runtime environment variables in production (K8s/Secrets Manager/etc.).
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    FRONTEND_URL: str = Field(..., description="Base URL of the frontend client application (CORS origin, quote links).")
    DB_DRIVER_NAME: str = Field(..., description="Database driver (e.g., `postgresql+psycopg2`, `sqlite`).")
    DB_DATABASE_NAME: str = Field(..., description="Name of the database (or file path for sqlite).")
    DB_USERNAME: Optional[str] = Field(None, description="Database username credential.")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password credential.")
    DB_HOST: Optional[str] = Field(None, description="Hostname or IP address of the database server.")
    SECRET_KEY: str = Field(..., description="Secret key shared with the identity provider to verify staff JWTs.")
    ALGORITHM: str = Field("HS256", description="JWT signing algorithm.")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60, description="Lifetime (in minutes) of tokens minted by `create_access_token`.")
    API_KEY: str = Field(..., description="API key of the OpenAI-compatible LLM gateway.")
    LLM_BASE_URL: Optional[str] = Field(None, description="Base URL of the OpenAI-compatible LLM gateway (None = OpenAI).")
    LLM_MODEL: str = Field("gpt-4o-mini", description="Chat model used for both the visit chat and the proposal synthesis.")
    LLM_TEMPERATURE: float = Field(0.4, description="Sampling temperature for the chat model.")
    INIT_MODE: str = Field("runtime", description="`runtime` builds the LLM client and tables at startup; anything else skips it.")
    SENDER_EMAIL: str = Field(..., description="Address used as sender of visit reports.")
    APP_PASSWORD: str = Field(..., description="SMTP password of the sender address.")
    SMTP_HOST: str = Field("smtp.gmail.com", description="SMTP server used for visit reports.")
    SMTP_PORT: int = Field(587, description="SMTP port (STARTTLS).")
    AWS_ACCESS_KEY: str = Field(..., description="AWS access key ID.")
    AWS_SECRET_KEY: str = Field(..., description="AWS secret access key.")
    REGION: str = Field(..., description="AWS region name (e.g., `sa-east-1`).")
    BUCKET_NAME: str = Field(..., description="Bucket that stores visit media.")
    SIGNED_URL_EXPIRES: int = Field(3600, description="Lifetime in seconds of presigned media URLs.")
    MAX_SESSION_MESSAGES: int = Field(200, description="Maximum number of messages a session log may hold.")
    COMPANY_NAME: str = Field("Emive", description="Brand printed on prompts and generated documents.")

# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""
