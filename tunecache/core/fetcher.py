"""下载器（Fetcher）模块

Fetcher 负责把某个视频 ID 的音频完整写入指定路径；成功时正常返回，
失败时抛出 FetchError。协调器只依赖该抽象，不关心进程管理。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from tunecache.core.exceptions import FetchError, FetchTimeoutError
from tunecache.core.identifier import youtube_watch_url
from tunecache.core.utils.logger import setup_logger
from tunecache.core.utils.subprocess_helper import run_process

logger = setup_logger("fetcher")

# stderr 写入日志时的最大长度
STDERR_LOG_LIMIT = 2000


class Fetcher(ABC):
    """下载器基类"""

    @abstractmethod
    def fetch(self, video_id: str, dest_path: Path) -> None:
        """下载 video_id 对应的音频到 dest_path

        Raises:
            FetchError: 下载失败
        """


class YtDlpFetcher(Fetcher):
    """调用 yt-dlp 可执行文件下载并转码为 mp3"""

    def __init__(
        self,
        ytdlp_path: str = "yt-dlp",
        cookies_path: Optional[Path] = None,
        timeout: Optional[float] = None,
        audio_format: str = "mp3",
    ):
        self.ytdlp_path = ytdlp_path
        self.cookies_path = cookies_path
        self.timeout = timeout or None
        self.audio_format = audio_format

    def build_command(self, video_id: str, dest_path: Path) -> List[str]:
        # 输出模板使用 %(ext)s，转码完成后 yt-dlp 会落到 <id>.<audio_format>
        output_template = str(dest_path.with_suffix("")) + ".%(ext)s"

        cmd = [self.ytdlp_path]
        if self.cookies_path and Path(self.cookies_path).exists():
            cmd += ["--cookies", str(self.cookies_path)]
        cmd += [
            "--age-limit", "99",
            "--no-check-certificates",
            "-x",
            "--audio-format", self.audio_format,
            "--audio-quality", "0",
            "--no-playlist",
            "--no-write-thumbnail",
            "--concurrent-fragments", "4",
            "--buffer-size", "16K",
            "-o", output_template,
            youtube_watch_url(video_id),
        ]
        return cmd

    def fetch(self, video_id: str, dest_path: Path) -> None:
        cmd = self.build_command(video_id, dest_path)
        logger.info(f"开始下载: {video_id}")

        try:
            result = run_process(cmd, timeout=self.timeout)
        except OSError as e:
            logger.error(f"yt-dlp 启动失败: {e}")
            raise FetchError(f"yt-dlp 启动失败: {e}") from e

        if result.timed_out:
            logger.error(f"下载超时: {video_id} ({self.timeout}s)")
            raise FetchTimeoutError(f"下载超时: {video_id}")

        if result.returncode != 0:
            stderr = result.stderr.strip()[-STDERR_LOG_LIMIT:]
            logger.error(f"yt-dlp 返回码 {result.returncode}: {stderr}")
            raise FetchError(
                f"下载失败 (code {result.returncode})",
                detail=stderr,
            )

        logger.info(f"下载完成: {video_id} 耗时 {result.duration * 1000:.0f}ms")
