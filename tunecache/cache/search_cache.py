"""搜索结果缓存

固定 TTL，无数量上限，无请求去重。主策略失败时回退到备用策略，
只有成功的结果才写入缓存。
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from diskcache import Cache

from tunecache.core.exceptions import MissingParameterError, SearchError
from tunecache.core.utils.logger import setup_logger

logger = setup_logger("search_cache")

DEFAULT_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 20
DEFAULT_SEARCH_TTL_SECONDS = 300

SearchStrategy = Callable[[str, int], List[Dict[str, Any]]]


def clamp_limit(limit: Optional[int]) -> int:
    """非法或非正数回退为默认值，上限 20"""
    if not limit or limit <= 0:
        return DEFAULT_SEARCH_LIMIT
    return min(limit, MAX_SEARCH_LIMIT)


def make_search_key(query: str, limit: int) -> str:
    return f"{query.lower()}_{limit}"


class SearchCache:
    """带回退策略的搜索结果缓存"""

    def __init__(
        self,
        cache_dir: Path,
        primary: SearchStrategy,
        fallback: SearchStrategy,
        ttl_seconds: float = DEFAULT_SEARCH_TTL_SECONDS,
    ):
        self._cache = Cache(str(cache_dir))
        self.primary = primary
        self.fallback = fallback
        self.ttl_seconds = ttl_seconds

    def search(
        self,
        query: Optional[str],
        limit: Optional[int] = DEFAULT_SEARCH_LIMIT,
        force_fallback: bool = False,
    ) -> List[Dict[str, Any]]:
        """查询搜索结果（缓存优先）

        Args:
            query: 搜索关键词
            limit: 结果数量
            force_fallback: 跳过主策略，直接使用备用策略

        Raises:
            MissingParameterError: 关键词为空
            SearchError: 两种策略均失败
        """
        if not query or not query.strip():
            raise MissingParameterError("src")

        limit = clamp_limit(limit)
        key = make_search_key(query, limit)
        start_time = time.time()

        cached = self._cache.get(key)
        if cached is not None:
            logger.info(
                f"搜索缓存命中: 返回 {len(cached)} 条 耗时 {(time.time() - start_time) * 1000:.0f}ms"
            )
            return cached

        method = "fallback" if force_fallback else "primary"
        logger.info(f"搜索: \"{query}\" (limit: {limit}, method: {method})")

        try:
            if force_fallback:
                results = self.fallback(query, limit)
            else:
                try:
                    results = self.primary(query, limit)
                except Exception as e:
                    logger.warning(f"主搜索策略失败，使用备用策略: {e}")
                    results = self.fallback(query, limit)
        except SearchError as e:
            logger.error(f"搜索失败: {e}")
            raise
        except Exception as e:
            logger.error(f"搜索失败: {e}")
            raise SearchError(f"搜索失败: {e}") from e

        self._cache.set(key, results, expire=self.ttl_seconds)
        # 顺带清理已过期条目
        self._cache.expire()

        logger.info(f"返回 {len(results)} 条 耗时 {(time.time() - start_time) * 1000:.0f}ms")
        return results

    def clear(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._cache.close()
