"""API 依赖项模块。

进程级共享对象（产物目录、下载协调器、GC、搜索缓存）在这里按配置组装，
路由通过 Depends 获取；测试通过 app.dependency_overrides 注入替身。
"""

from __future__ import annotations

import threading
from typing import Optional

from tunecache.api.settings import (
    get_cache_settings,
    get_search_settings,
    get_ytdlp_settings,
)
from tunecache.cache.artifact_store import ArtifactStore
from tunecache.cache.cache_service import CacheService
from tunecache.cache.coordinator import FetchCoordinator
from tunecache.cache.gc import CacheGC
from tunecache.cache.search_cache import SearchCache
from tunecache.core.fetcher import YtDlpFetcher
from tunecache.core.search import YtDlpSearcher

_lock = threading.Lock()

# 全局单例
_store: Optional[ArtifactStore] = None
_coordinator: Optional[FetchCoordinator] = None
_service: Optional[CacheService] = None
_gc: Optional[CacheGC] = None
_search_cache: Optional[SearchCache] = None


def get_artifact_store() -> ArtifactStore:
    """获取全局 ArtifactStore 实例"""
    global _store
    with _lock:
        if _store is None:
            _store = ArtifactStore(get_cache_settings().cache_dir)
        return _store


def get_fetch_coordinator() -> FetchCoordinator:
    """获取全局 FetchCoordinator 实例"""
    global _coordinator
    store = get_artifact_store()
    with _lock:
        if _coordinator is None:
            ytdlp = get_ytdlp_settings()
            fetcher = YtDlpFetcher(
                ytdlp_path=ytdlp.ytdlp_path,
                cookies_path=ytdlp.cookies_path,
                timeout=ytdlp.download_timeout_seconds,
            )
            _coordinator = FetchCoordinator(
                store,
                fetcher,
                max_workers=get_cache_settings().fetch_workers,
            )
        return _coordinator


def get_cache_service() -> CacheService:
    """获取全局 CacheService 实例"""
    global _service
    store = get_artifact_store()
    coordinator = get_fetch_coordinator()
    with _lock:
        if _service is None:
            _service = CacheService(
                store,
                coordinator,
                fetch_wait_timeout=get_cache_settings().fetch_wait_timeout_seconds,
            )
        return _service


def get_cache_gc() -> CacheGC:
    """获取全局 CacheGC 实例"""
    global _gc
    store = get_artifact_store()
    with _lock:
        if _gc is None:
            settings = get_cache_settings()
            _gc = CacheGC(
                store,
                max_count=settings.max_count,
                max_age_hours=settings.max_age_hours,
            )
        return _gc


def get_search_cache() -> SearchCache:
    """获取全局 SearchCache 实例"""
    global _search_cache
    with _lock:
        if _search_cache is None:
            ytdlp = get_ytdlp_settings()
            search = get_search_settings()
            searcher = YtDlpSearcher(
                ytdlp_path=ytdlp.ytdlp_path,
                cookies_path=ytdlp.cookies_path,
                timeout=ytdlp.search_timeout_seconds,
            )
            _search_cache = SearchCache(
                search.cache_dir,
                primary=searcher.search_library,
                fallback=searcher.search_cli,
                ttl_seconds=search.ttl_seconds,
            )
        return _search_cache


def start_gc_background() -> None:
    """启动后台 GC（启动时立即清理一次）"""
    get_cache_gc().start_background(interval=get_cache_settings().gc_interval_seconds)


def shutdown() -> None:
    """停止 GC 与下载线程池（不等待进行中的下载）"""
    if _gc is not None:
        _gc.stop()
    if _coordinator is not None:
        _coordinator.shutdown(wait=False)
