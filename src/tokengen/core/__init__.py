from .kv_cache import KVCache, KVCacheOverflow

__all__ = ["KVCache", "KVCacheOverflow"]
