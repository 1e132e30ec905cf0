"""缓存模块 - 下载去重与产物生命周期

提供:
- 视频 ID 校验
- 产物目录管理
- 下载协调器 (同 ID 单飞)
- 缓存服务层 (get-or-fetch / 状态查询)
- GC 清理 (按时间 + 数量)
- 搜索结果缓存 (TTL + 策略回退)
"""

from tunecache.core.identifier import is_valid_video_id, validate_video_id
from tunecache.cache.artifact_store import Artifact, ArtifactStore, RemoveResult
from tunecache.cache.coordinator import FetchCoordinator
from tunecache.cache.cache_service import ArtifactStatus, CacheService
from tunecache.cache.gc import CacheGC
from tunecache.cache.search_cache import SearchCache

__all__ = [
    "is_valid_video_id",
    "validate_video_id",
    "Artifact",
    "ArtifactStore",
    "RemoveResult",
    "FetchCoordinator",
    "ArtifactStatus",
    "CacheService",
    "CacheGC",
    "SearchCache",
]
