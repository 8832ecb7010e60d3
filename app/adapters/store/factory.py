"""Factory pattern for creating user store instances."""

from pymongo.errors import ConfigurationError

from app.adapters.store.base import AbstractUserStore
from app.adapters.store.in_memory import InMemoryUserStore
from app.adapters.store.mongo import MongoUserStore
from app.core.config import Settings, settings as default_settings
from app.core.errors import ValidationAppError


def create_user_store(settings: Settings | None = None) -> AbstractUserStore:
    """Factory function to instantiate the configured user store.

    Reads ``APP_STORE_BACKEND`` and, for MongoDB, the ``MONGODB_*`` settings.

    Returns:
        AbstractUserStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or MongoDB is not configured.
    """
    cfg = settings or default_settings
    backend = cfg.app.store_backend.lower()

    if backend == "memory":
        return InMemoryUserStore()

    if backend == "mongo":
        try:
            return MongoUserStore.from_settings(cfg.mongo)
        except (ValueError, ConfigurationError) as exc:
            raise ValidationAppError(
                code="store_not_configured",
                message=str(exc),
                details={"hint": "Set MONGODB_URI or use APP_STORE_BACKEND=memory"},
            ) from exc

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: mongo, memory",
    )
