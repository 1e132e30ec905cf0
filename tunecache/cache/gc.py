"""缓存 GC 清理模块

提供:
- 基于时间的清理 (CACHE_MAX_AGE_HOURS)
- 基于数量的清理 (MAX_CACHE_SIZE，按最近访问时间保留最新的 N 个)
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from tunecache.cache.artifact_store import ArtifactStore, RemoveResult
from tunecache.core.utils.logger import setup_logger

logger = setup_logger("cache_gc")

DEFAULT_MAX_COUNT = 100
DEFAULT_MAX_AGE_HOURS = 24
DEFAULT_GC_INTERVAL_SECONDS = 30 * 60


class CacheGC:
    """缓存 GC 管理器"""

    def __init__(
        self,
        store: ArtifactStore,
        max_count: int = DEFAULT_MAX_COUNT,
        max_age_hours: float = DEFAULT_MAX_AGE_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_count = max_count
        self.max_age_seconds = max_age_hours * 3600
        self._clock = clock

        self._stop_event = threading.Event()
        self._gc_thread: Optional[threading.Thread] = None

    def start_background(self, interval: float = DEFAULT_GC_INTERVAL_SECONDS) -> None:
        """启动后台 GC 线程（启动时立即执行一次）"""
        if self._gc_thread and self._gc_thread.is_alive():
            return

        self._stop_event.clear()

        def gc_loop():
            while True:
                try:
                    self.run_gc()
                except Exception as e:
                    logger.error(f"GC 运行失败: {e}")
                if self._stop_event.wait(interval):
                    break

        self._gc_thread = threading.Thread(target=gc_loop, daemon=True, name="cache-gc")
        self._gc_thread.start()
        logger.info(f"缓存 GC 已启动，间隔 {interval} 秒")

    def stop(self) -> None:
        """停止 GC 线程"""
        self._stop_event.set()

    def run_gc(self) -> dict:
        """执行一次 GC

        按 mtime 降序排列，第 i 个产物满足 “超过最大年龄” 或 “i >= 最大数量”
        之一即删除。单个文件删除失败不影响后续清理。

        Returns:
            GC 统计信息
        """
        stats = {
            "scanned": 0,
            "removed": 0,
            "removed_by_age": 0,
            "removed_by_count": 0,
            "failed": 0,
            "missing": 0,
        }

        try:
            artifacts = self.store.list()
        except OSError as e:
            logger.error(f"读取缓存目录失败: {e}")
            return stats

        artifacts.sort(key=lambda a: a.mtime, reverse=True)
        stats["scanned"] = len(artifacts)
        now = self._clock()

        for index, artifact in enumerate(artifacts):
            is_old = (now - artifact.mtime) > self.max_age_seconds
            is_excess = index >= self.max_count
            if not (is_old or is_excess):
                continue

            result = self.store.remove(artifact.id)
            if result is RemoveResult.REMOVED:
                stats["removed"] += 1
                if is_old:
                    stats["removed_by_age"] += 1
                else:
                    stats["removed_by_count"] += 1
            elif result is RemoveResult.MISSING:
                # 列出之后已被其他方删除
                stats["missing"] += 1
            else:
                stats["failed"] += 1

        if stats["removed"] > 0 or stats["failed"] > 0:
            logger.info(
                f"GC 完成: 扫描 {stats['scanned']} 个, 清理 {stats['removed']} 个 "
                f"(过期 {stats['removed_by_age']}, 超量 {stats['removed_by_count']}), "
                f"失败 {stats['failed']} 个"
            )

        return stats

    def get_stats(self) -> dict:
        """获取缓存统计信息"""
        entry_count = len(self.store.list())
        total_size = self.store.total_size()
        return {
            "entry_count": entry_count,
            "max_count": self.max_count,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / 1024 / 1024, 2),
            "max_age_hours": self.max_age_seconds / 3600,
        }
