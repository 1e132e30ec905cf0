"""搜索策略模块

两种互为备份的实现：
- 库模式：进程内调用 yt_dlp，flat 提取 ytsearchN: 结果（主策略）
- 命令行模式：调用 yt-dlp 可执行文件 --dump-json（备用策略）
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yt_dlp

from tunecache.core.exceptions import SearchError
from tunecache.core.identifier import default_thumbnail_url, is_valid_video_id
from tunecache.core.utils.logger import setup_logger
from tunecache.core.utils.subprocess_helper import run_process

logger = setup_logger("search")

STDERR_LOG_LIMIT = 2000


def _pick_thumbnail(video: Dict[str, Any]) -> Optional[str]:
    thumbnails = video.get("thumbnails")
    if isinstance(thumbnails, list) and thumbnails:
        widest = sorted(
            thumbnails,
            key=lambda t: (t.get("width") or 0) if isinstance(t, dict) else 0,
            reverse=True,
        )[0]
        if isinstance(widest, dict) and widest.get("url"):
            return widest["url"]
        return None

    thumbnail = video.get("thumbnail")
    if isinstance(thumbnail, str) and thumbnail.startswith("http"):
        return thumbnail

    if video.get("id"):
        return default_thumbnail_url(video["id"])
    return None


def normalize_search_entry(video: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """将 yt-dlp 的视频信息转换为搜索结果，非法条目返回 None"""
    if not isinstance(video, dict):
        return None
    video_id = video.get("id")
    if not isinstance(video_id, str) or not is_valid_video_id(video_id):
        return None

    duration = video.get("duration")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        duration = 0
    else:
        duration = int(duration)

    return {
        "id": video_id,
        "title": video.get("title") or video.get("fulltitle") or "Unknown",
        "author": (
            video.get("channel")
            or video.get("uploader")
            or video.get("uploader_id")
            or "Unknown"
        ),
        "duration": duration,
        "thumbnail": _pick_thumbnail(video),
    }


def parse_dump_json_output(output: str) -> List[Dict[str, Any]]:
    """解析 --dump-json 输出（每行一个 JSON 对象），跳过无法解析的行"""
    results = []
    for line in output.strip().splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            video = json.loads(line)
        except json.JSONDecodeError:
            continue
        entry = normalize_search_entry(video)
        if entry:
            results.append(entry)
    return results


class YtDlpSearcher:
    """基于 yt-dlp 的搜索器"""

    def __init__(
        self,
        ytdlp_path: str = "yt-dlp",
        cookies_path: Optional[Path] = None,
        timeout: float = 60.0,
    ):
        self.ytdlp_path = ytdlp_path
        self.cookies_path = cookies_path
        self.timeout = timeout

    def _cookiefile(self) -> Optional[str]:
        if self.cookies_path and Path(self.cookies_path).exists():
            return str(self.cookies_path)
        return None

    def search_library(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """主策略：进程内 yt_dlp 搜索"""
        ydl_opts = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "extract_flat": "in_playlist",
            "age_limit": 99,
        }
        cookiefile = self._cookiefile()
        if cookiefile:
            ydl_opts["cookiefile"] = cookiefile

        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(f"ytsearch{limit}:{query}", download=False)

        entries = (info or {}).get("entries") or []
        results = []
        for video in entries:
            entry = normalize_search_entry(video)
            if entry:
                results.append(entry)
        return results

    def build_command(self, query: str, limit: int) -> List[str]:
        cmd = [self.ytdlp_path]
        cookiefile = self._cookiefile()
        if cookiefile:
            cmd += ["--cookies", cookiefile]
        cmd += [
            "--age-limit", "99",
            "--no-warnings",
            "--no-check-certificates",
            "--ignore-errors",
            "--dump-json",
            f"ytsearch{limit}:{query}",
        ]
        return cmd

    def search_cli(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """备用策略：调用 yt-dlp 可执行文件"""
        cmd = self.build_command(query, limit)
        try:
            result = run_process(cmd, timeout=self.timeout)
        except OSError as e:
            raise SearchError(f"yt-dlp 启动失败: {e}") from e

        if result.timed_out:
            raise SearchError("Search timeout")

        # --ignore-errors 下部分条目失败时返回码非零，只要有输出仍然可用
        if result.returncode != 0 and not result.stdout.strip():
            stderr = result.stderr.strip()[-STDERR_LOG_LIMIT:]
            logger.error(f"yt-dlp 搜索失败 (code {result.returncode}): {stderr}")
            raise SearchError(f"yt-dlp error (code {result.returncode})", detail=stderr)

        return parse_dump_json_output(result.stdout)
