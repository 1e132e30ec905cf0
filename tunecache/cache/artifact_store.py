"""产物目录管理模块

缓存目录是扁平结构：每个视频 ID 对应一个 <id>.mp3，目录列表即唯一事实来源，
不维护索引文件。文件 mtime 记录最近访问时间，供 GC 按时间/数量清理。

写入流程：下载器写入 .incoming/<id>/ 下的临时路径，成功后原子移动到最终路径，
因此 exists()/list() 永远看不到写了一半的文件。
"""

from __future__ import annotations

import os
import shutil
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from tunecache.core.exceptions import StorageInconsistencyError
from tunecache.core.utils.logger import setup_logger

logger = setup_logger("artifact_store")

INCOMING_DIR_NAME = ".incoming"

# producer(video_id, dest_path)：负责把完整文件写到 dest_path，失败时抛异常
Producer = Callable[[str, Path], None]


class RemoveResult(str, Enum):
    """remove() 的结果"""

    REMOVED = "removed"
    MISSING = "missing"
    FAILED = "failed"


@dataclass
class Artifact:
    """缓存产物"""
    id: str
    path: Path
    mtime: float

    @property
    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0


class ArtifactStore:
    """产物目录管理器"""

    def __init__(self, base_path: Path, extension: str = "mp3"):
        """
        Args:
            base_path: 缓存目录，不存在时自动创建
            extension: 产物扩展名（不含点）
        """
        self.base_path = Path(base_path)
        self.extension = extension.lstrip(".")
        self.incoming_path = self.base_path / INCOMING_DIR_NAME

        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, video_id: str) -> Path:
        return self.base_path / f"{video_id}.{self.extension}"

    def exists(self, video_id: str) -> bool:
        return self.path_for(video_id).is_file()

    def get(self, video_id: str) -> Optional[Artifact]:
        path = self.path_for(video_id)
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return None
        return Artifact(id=video_id, path=path, mtime=mtime)

    def touch(self, video_id: str) -> None:
        """刷新访问时间，避免热点产物被按时间清理"""
        now = time.time()
        os.utime(self.path_for(video_id), (now, now))

    def list(self) -> List[Artifact]:
        """列出全部产物（不含 .incoming 中的临时文件）"""
        artifacts = []
        for path in self.base_path.glob(f"*.{self.extension}"):
            try:
                stat = path.stat()
            except OSError:
                # 列出与 stat 之间文件可能已被删除
                continue
            if not path.is_file():
                continue
            artifacts.append(Artifact(id=path.stem, path=path, mtime=stat.st_mtime))
        return artifacts

    def remove(self, video_id: str) -> RemoveResult:
        """删除产物，失败只记录日志

        Returns:
            REMOVED: 已删除；MISSING: 文件本就不存在；FAILED: 删除失败
        """
        path = self.path_for(video_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return RemoveResult.MISSING
        except OSError as e:
            logger.warning(f"删除产物失败: {path.name} ({e})")
            return RemoveResult.FAILED
        logger.info(f"删除产物: {path.name}")
        return RemoveResult.REMOVED

    def write(self, video_id: str, producer: Producer) -> Artifact:
        """调用 producer 生成产物并归档到最终路径

        Raises:
            producer 抛出的异常原样向上传递
            StorageInconsistencyError: producer 正常返回但未生成文件
        """
        staging_dir = self.incoming_path / video_id
        # 上次失败残留的临时文件
        if staging_dir.exists():
            shutil.rmtree(staging_dir, ignore_errors=True)
        staging_dir.mkdir(parents=True, exist_ok=True)
        staging_path = staging_dir / self.path_for(video_id).name

        try:
            producer(video_id, staging_path)

            if not staging_path.is_file():
                logger.error(f"下载报告成功但文件不存在: {video_id}")
                raise StorageInconsistencyError(f"下载后文件不存在: {video_id}")

            final_path = self.path_for(video_id)
            os.replace(staging_path, final_path)
            logger.debug(f"产物归档完成: {final_path.name}")
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

        artifact = self.get(video_id)
        if artifact is None:
            logger.error(f"产物归档后丢失: {video_id}")
            raise StorageInconsistencyError(f"产物归档后丢失: {video_id}")
        return artifact

    def total_size(self) -> int:
        return sum(a.size for a in self.list())
