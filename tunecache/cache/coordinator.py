"""下载协调器

同一视频 ID 任意时刻最多只有一个下载在执行；并发请求挂到同一个 Future 上，
全部观察到相同的结果（成功或同一个异常）。

- 登记在飞记录的 “检查-插入” 在同一把锁内完成
- 记录在 finally 中移除，且早于 Future 完成，失败不会永久占位
- 等待方放弃等待（超时/断开）不会取消下载
- 不自动重试，是否重试由调用方决定
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, List, Optional

from tunecache.cache.artifact_store import Artifact, ArtifactStore
from tunecache.core.exceptions import FetchError, FetchTimeoutError, TuneCacheError
from tunecache.core.fetcher import Fetcher
from tunecache.core.utils.logger import setup_logger

logger = setup_logger("fetch_coordinator")


class FetchCoordinator:
    """按视频 ID 去重的下载协调器"""

    def __init__(
        self,
        store: ArtifactStore,
        fetcher: Fetcher,
        max_workers: int = 4,
    ):
        self.store = store
        self.fetcher = fetcher
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="fetch"
        )
        self._lock = threading.Lock()
        self._in_flight: Dict[str, "Future[Artifact]"] = {}

    def submit(self, video_id: str) -> "Future[Artifact]":
        """获取已有的在飞下载，或登记并启动一个新的下载

        产物已存在时返回一个已完成的 Future，不再下载。
        """
        with self._lock:
            future = self._in_flight.get(video_id)
            if future is not None:
                logger.info(f"等待进行中的下载: {video_id}")
                return future

            # 上一个下载先归档产物再注销记录，锁内看不到记录时产物必然已落盘
            existing = self.store.get(video_id)
            if existing is not None:
                logger.info(f"产物已由之前的下载写入: {video_id}")
                done: "Future[Artifact]" = Future()
                done.set_result(existing)
                return done

            future = Future()
            self._in_flight[video_id] = future
            logger.info(f"开始下载: {video_id}")

        try:
            self._executor.submit(self._run, video_id, future)
        except RuntimeError as e:
            # 线程池已关闭
            self._unregister(video_id, future)
            future.set_exception(FetchError(f"下载线程池不可用: {e}"))
        return future

    def fetch(self, video_id: str, wait_timeout: Optional[float] = None) -> Artifact:
        """阻塞直到该 ID 的下载结束

        Args:
            video_id: 已校验的视频 ID
            wait_timeout: 调用方最长等待秒数；超时只放弃等待，下载继续

        Raises:
            FetchError: 下载失败（所有等待方收到同一异常）
            FetchTimeoutError: 等待超时
        """
        future = self.submit(video_id)
        try:
            return future.result(timeout=wait_timeout)
        except FutureTimeoutError as e:
            logger.warning(f"等待下载超时: {video_id} ({wait_timeout}s)")
            raise FetchTimeoutError(f"等待下载超时: {video_id}") from e

    def is_fetching(self, video_id: str) -> bool:
        with self._lock:
            return video_id in self._in_flight

    def in_flight(self) -> List[str]:
        with self._lock:
            return list(self._in_flight)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)

    def _unregister(self, video_id: str, future: "Future[Artifact]") -> None:
        with self._lock:
            if self._in_flight.get(video_id) is future:
                del self._in_flight[video_id]

    def _run(self, video_id: str, future: "Future[Artifact]") -> None:
        artifact: Optional[Artifact] = None
        error: Optional[BaseException] = None
        try:
            artifact = self.store.write(video_id, self.fetcher.fetch)
        except TuneCacheError as e:
            error = e
        except Exception as e:
            logger.exception(f"下载异常: {video_id}")
            error = FetchError(f"下载异常: {e}")
            error.__cause__ = e
        except BaseException as e:
            # SystemExit 等同样通知等待方
            self._unregister(video_id, future)
            future.set_exception(e)
            raise
        finally:
            self._unregister(video_id, future)

        if error is not None:
            logger.error(f"下载失败: {video_id} ({error})")
            future.set_exception(error)
        else:
            logger.info(f"下载成功: {video_id}")
            future.set_result(artifact)
