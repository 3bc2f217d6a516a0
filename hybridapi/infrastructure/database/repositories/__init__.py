from .cache_repository import SQLAlchemyCacheBackend
from .local_store_repository import SQLAlchemyLocalStore

__all__ = [
    "SQLAlchemyCacheBackend",
    "SQLAlchemyLocalStore",
]
