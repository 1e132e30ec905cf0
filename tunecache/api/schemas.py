"""API 数据模型定义模块。

定义所有 API 端点的响应体及枚举类型，基于 Pydantic v2 实现序列化与校验。
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# 基础模型
# ---------------------------------------------------------------------------


class ApiModel(BaseModel):
    """所有 API 模型的基类，统一配置序列化行为。

    - extra="forbid": 禁止包含未声明的字段
    - populate_by_name: 允许同时通过字段名和别名赋值
    """

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# 枚举类型
# ---------------------------------------------------------------------------


class ArtifactState(str, Enum):
    """产物的缓存状态。"""

    READY = "ready"              # 已缓存，可直接返回
    DOWNLOADING = "downloading"  # 正在下载
    NOT_CACHED = "not_cached"    # 未缓存且没有进行中的下载


# ---------------------------------------------------------------------------
# 响应模型
# ---------------------------------------------------------------------------


class ErrorResponse(ApiModel):
    """统一错误响应。内部细节不对外暴露。"""

    error: str


class ArtifactStatusResponse(ApiModel):
    """GET /play/status 响应。"""

    id: str
    cached: bool
    downloading: bool
    status: ArtifactState


class SearchResultItem(ApiModel):
    """单条搜索结果。"""

    id: str = Field(..., min_length=11, max_length=11)
    title: str
    author: str
    duration: int = Field(default=0, description="时长（秒）")
    thumbnail: Optional[str] = None


class UptimeResponse(ApiModel):
    uptime: str


class HealthResponse(ApiModel):
    status: str = "ok"
    version: str
