from .api_cache import ApiCacheModel, ApiCacheTagModel
from .local_record import LocalRecordModel

__all__ = [
    "ApiCacheModel",
    "ApiCacheTagModel",
    "LocalRecordModel",
]
