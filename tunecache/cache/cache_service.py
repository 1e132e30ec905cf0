"""缓存服务层

对传输层提供 get-or-fetch 语义：命中直接返回并刷新访问时间，
未命中交给下载协调器，下载完成后再次确认文件存在。
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from tunecache.cache.artifact_store import Artifact, ArtifactStore
from tunecache.cache.coordinator import FetchCoordinator
from tunecache.core.exceptions import StorageInconsistencyError
from tunecache.core.identifier import validate_video_id
from tunecache.core.utils.logger import setup_logger

logger = setup_logger("cache_service")


@dataclass
class ArtifactStatus:
    """产物状态查询结果"""
    id: str
    cached: bool
    downloading: bool

    @property
    def status(self) -> str:
        if self.cached:
            return "ready"
        if self.downloading:
            return "downloading"
        return "not_cached"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "cached": self.cached,
            "downloading": self.downloading,
            "status": self.status,
        }


class CacheService:
    """缓存服务"""

    def __init__(
        self,
        store: ArtifactStore,
        coordinator: FetchCoordinator,
        fetch_wait_timeout: Optional[float] = None,
    ):
        self.store = store
        self.coordinator = coordinator
        self.fetch_wait_timeout = fetch_wait_timeout or None

    def get_or_fetch(self, video_id: Optional[str]) -> Artifact:
        """获取产物，不存在时下载

        Raises:
            ValidationError: ID 缺失或格式不合法
            FetchError: 下载失败
            StorageInconsistencyError: 下载成功但文件缺失
        """
        video_id = validate_video_id(video_id)
        start_time = time.time()

        artifact = self._hit(video_id)
        if artifact is not None:
            logger.info(f"缓存命中: {video_id} 耗时 {(time.time() - start_time) * 1000:.0f}ms")
            return artifact

        self.coordinator.fetch(video_id, wait_timeout=self.fetch_wait_timeout)

        # 下载器是外部进程，再次确认文件确实在预期路径
        artifact = self.store.get(video_id)
        if artifact is None:
            logger.error(f"存储不一致: 下载成功但文件缺失 {video_id}")
            raise StorageInconsistencyError(f"下载后文件不存在: {video_id}")

        logger.info(f"返回产物: {video_id} 耗时 {(time.time() - start_time) * 1000:.0f}ms")
        return artifact

    def status(self, video_id: Optional[str]) -> ArtifactStatus:
        """只读查询，不刷新访问时间"""
        video_id = validate_video_id(video_id)
        return ArtifactStatus(
            id=video_id,
            cached=self.store.exists(video_id),
            downloading=self.coordinator.is_fetching(video_id),
        )

    def _hit(self, video_id: str) -> Optional[Artifact]:
        if not self.store.exists(video_id):
            return None
        try:
            self.store.touch(video_id)
        except FileNotFoundError:
            # 检查后被 GC 删除，按未命中处理
            return None
        return self.store.get(video_id)
