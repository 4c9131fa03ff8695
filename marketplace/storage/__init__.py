"""Storage package"""

from marketplace.storage.base import BaseStorage
from marketplace.storage.json_storage import JSONStorage


def create_storage(config=None) -> BaseStorage:
    """설정의 storage_backend에 따라 저장소 생성"""
    if config is None:
        from marketplace.config import settings as config

    if config.storage_backend == "supabase":
        from marketplace.storage.supabase_storage import SupabaseStorage

        return SupabaseStorage()

    return JSONStorage(str(config.local_data_path))


__all__ = ["BaseStorage", "JSONStorage", "create_storage"]
