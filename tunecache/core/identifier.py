"""标识符校验模块

视频 ID 固定 11 位，字符集 [a-zA-Z0-9_-]。
校验必须先于任何存储/下载协调器访问。
"""

from __future__ import annotations

import re
from typing import Optional

from tunecache.core.exceptions import InvalidIdentifierError, MissingParameterError

VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")


def is_valid_video_id(video_id: Optional[str]) -> bool:
    return bool(video_id) and VIDEO_ID_PATTERN.fullmatch(video_id) is not None


def validate_video_id(video_id: Optional[str], param: str = "id") -> str:
    """校验并返回视频 ID

    Raises:
        MissingParameterError: 未提供参数
        InvalidIdentifierError: 格式不合法
    """
    if not video_id:
        raise MissingParameterError(param)
    if not is_valid_video_id(video_id):
        raise InvalidIdentifierError()
    return video_id


def youtube_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def default_thumbnail_url(video_id: str) -> str:
    return f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"
