# @TASK S0-T0.3 - SQLAlchemy 2.x async engine shared by search requests

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ticket_search.config import Settings, get_settings
from ticket_search.constants import BackendKind

settings = get_settings()

engine = create_async_engine(
    settings.async_database_url,
    echo=False,
    pool_pre_ping=True,
)


def get_engine() -> AsyncEngine:
    """FastAPI dependency returning the shared, pooled async engine.

    The search core never owns the pool: every search checks a connection
    out of this engine for the duration of one statement.
    """
    return engine


def resolve_backend_kind(bound: AsyncEngine, app_settings: Settings | None = None) -> BackendKind | str:
    """Decide which backend kind the hosting application runs on.

    ``SEARCH_BACKEND`` wins when set; otherwise the engine's dialect name is
    used. Unknown names are returned as-is so the search service can reject
    them with ``UnsupportedBackendError`` instead of guessing.
    """
    if app_settings is None:
        app_settings = get_settings()
    name = app_settings.SEARCH_BACKEND or bound.dialect.name
    try:
        return BackendKind(name.lower())
    except ValueError:
        return name
