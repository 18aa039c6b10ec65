"""Database models for hnplus."""

from hnplus.models.database import Base, init_db
from hnplus.models.cache import CacheEntry
from hnplus.models.settings import AppSettings, compare_and_set, seed_defaults

__all__ = [
    "Base",
    "init_db",
    "CacheEntry",
    "AppSettings",
    "compare_and_set",
    "seed_defaults",
]
