"""
应用配置模块，基于 pydantic-settings 实现。

环境变量名沿用部署时的既有名称（CACHE_DIR、MAX_CACHE_SIZE、YTDLP_PATH 等），
使用 lru_cache 保证配置对象在进程生命周期内只实例化一次。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tunecache.config import (
    DEFAULT_ARTIFACT_DIR,
    DEFAULT_COOKIES_PATH,
    DEFAULT_SEARCH_CACHE_DIR,
)


class CacheSettings(BaseSettings):
    """产物缓存配置。"""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    # 产物目录，不存在时启动自动创建
    cache_dir: Path = Field(default=DEFAULT_ARTIFACT_DIR, validation_alias="CACHE_DIR")
    # 最多保留的产物数量
    max_count: int = Field(default=100, ge=1, validation_alias="MAX_CACHE_SIZE")
    # 产物最大年龄（小时），以最近访问时间计算
    max_age_hours: float = Field(default=24, gt=0, validation_alias="CACHE_MAX_AGE_HOURS")
    # GC 间隔（秒）
    gc_interval_seconds: float = Field(
        default=30 * 60, gt=0, validation_alias="CACHE_GC_INTERVAL_SECONDS"
    )
    # 下载线程数
    fetch_workers: int = Field(default=4, ge=1, validation_alias="FETCH_WORKERS")
    # 请求等待下载的最长时间（秒），0 表示一直等待；超时不影响下载本身
    fetch_wait_timeout_seconds: float = Field(
        default=0, ge=0, validation_alias="FETCH_WAIT_TIMEOUT_SECONDS"
    )


class YtDlpSettings(BaseSettings):
    """yt-dlp 调用配置。"""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    ytdlp_path: str = Field(default="yt-dlp", validation_alias="YTDLP_PATH")
    # cookies 文件存在时才会传给 yt-dlp
    cookies_path: Path = Field(default=DEFAULT_COOKIES_PATH, validation_alias="COOKIES_PATH")
    # 下载进程超时（秒），0 表示不限制
    download_timeout_seconds: float = Field(
        default=0, ge=0, validation_alias="YTDLP_DOWNLOAD_TIMEOUT_SECONDS"
    )
    # 搜索进程超时（秒）
    search_timeout_seconds: float = Field(
        default=60, gt=0, validation_alias="YTDLP_SEARCH_TIMEOUT_SECONDS"
    )


class SearchSettings(BaseSettings):
    """搜索结果缓存配置，环境变量前缀为 SEARCH_CACHE_。"""

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_CACHE_", extra="ignore", populate_by_name=True
    )

    ttl_seconds: float = Field(default=300, gt=0)
    cache_dir: Path = Field(
        default=DEFAULT_SEARCH_CACHE_DIR,
        validation_alias=AliasChoices("SEARCH_CACHE_DIR", "SEARCH_CACHE_CACHE_DIR"),
    )


class ServerSettings(BaseSettings):
    """HTTP 服务配置。"""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, ge=1, le=65535, validation_alias="PORT")


# --- 单例工厂函数 ---


@lru_cache
def get_cache_settings() -> CacheSettings:
    return CacheSettings()


@lru_cache
def get_ytdlp_settings() -> YtDlpSettings:
    return YtDlpSettings()


@lru_cache
def get_search_settings() -> SearchSettings:
    return SearchSettings()


@lru_cache
def get_server_settings() -> ServerSettings:
    return ServerSettings()


__all__ = [
    "CacheSettings",
    "SearchSettings",
    "ServerSettings",
    "YtDlpSettings",
    "get_cache_settings",
    "get_search_settings",
    "get_server_settings",
    "get_ytdlp_settings",
]
