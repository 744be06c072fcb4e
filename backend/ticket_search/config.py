# @TASK S0-T0.2 - pydantic-settings based search configuration

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Ticket search settings.

    All values are loaded from environment variables.
    A .env file in the backend directory is also supported.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./tickets.db"
    # Explicit backend kind ("sqlite" / "postgresql"); empty derives it from DATABASE_URL
    SEARCH_BACKEND: str = ""

    # --- Pagination ---
    SEARCH_DEFAULT_LIMIT: int = 50
    SEARCH_MAX_LIMIT: int = 100

    # --- Ranking / snippets ---
    SEARCH_TEXT_CONFIG: str = "english"  # PostgreSQL text search configuration
    SNIPPET_START_SEL: str = "<mark>"
    SNIPPET_STOP_SEL: str = "</mark>"
    SNIPPET_ELLIPSIS: str = "..."
    SNIPPET_MAX_WORDS: int = 50
    SNIPPET_MIN_WORDS: int = 25

    # --- Presentation ---
    TICKET_NUMBER_PREFIX: str = "TASK"

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses an async driver (asyncpg / aiosqlite)."""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings singleton."""
    return Settings()
