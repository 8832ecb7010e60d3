"""User store adapters - abstract over the document store holding users."""

from app.adapters.store.base import AbstractUserStore
from app.adapters.store.factory import create_user_store
from app.adapters.store.in_memory import InMemoryUserStore
from app.adapters.store.mongo import MongoUserStore

__all__ = [
    "AbstractUserStore",
    "InMemoryUserStore",
    "MongoUserStore",
    "create_user_store",
]
