"""测试共享配置

提供内存 Fetcher 替身与产物目录相关 fixture，各测试目录直接复用。
"""

import os
import threading
import time
from pathlib import Path
from typing import List, Optional

import pytest

from tunecache.cache.artifact_store import ArtifactStore
from tunecache.cache.cache_service import CacheService
from tunecache.cache.coordinator import FetchCoordinator
from tunecache.core.exceptions import FetchError
from tunecache.core.fetcher import Fetcher

VIDEO_ID = "AbCdEfGhIjK"
OTHER_VIDEO_ID = "dQw4w9WgXcQ"
FAKE_MP3 = b"ID3\x03\x00\x00\x00fake-mp3-payload"


class StubFetcher(Fetcher):
    """内存替身：记录调用次数，可模拟耗时、失败、成功但不写文件

    gate 未设置时下载会阻塞在 gate 上，便于测试在下载进行中挂入更多请求。
    """

    def __init__(
        self,
        delay: float = 0.0,
        fail: bool = False,
        write: bool = True,
        content: bytes = FAKE_MP3,
        gated: bool = False,
    ):
        self.delay = delay
        self.fail = fail
        self.write = write
        self.content = content
        self.gate = threading.Event()
        if not gated:
            self.gate.set()
        self.started = threading.Event()
        self.calls: List[str] = []
        self.dest_paths: List[Path] = []
        self._lock = threading.Lock()

    def fetch(self, video_id: str, dest_path: Path) -> None:
        with self._lock:
            self.calls.append(video_id)
            self.dest_paths.append(dest_path)
        self.started.set()

        self.gate.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)

        if self.fail:
            raise FetchError("模拟下载失败 (code 1)", detail="ERROR: simulated")
        if self.write:
            dest_path.write_bytes(self.content)

    def call_count(self, video_id: Optional[str] = None) -> int:
        with self._lock:
            if video_id is None:
                return len(self.calls)
            return self.calls.count(video_id)


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def cache_dir(tmp_path) -> Path:
    return tmp_path / "mp3-cache"


@pytest.fixture
def store(cache_dir) -> ArtifactStore:
    return ArtifactStore(cache_dir)


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def coordinator(store, fetcher):
    coordinator = FetchCoordinator(store, fetcher, max_workers=4)
    yield coordinator
    fetcher.gate.set()
    coordinator.shutdown(wait=True)


@pytest.fixture
def service(store, coordinator) -> CacheService:
    return CacheService(store, coordinator)


@pytest.fixture
def make_artifact(store):
    """在缓存目录直接创建产物文件，可指定 mtime"""

    def _make(video_id: str, mtime: Optional[float] = None, content: bytes = FAKE_MP3) -> Path:
        path = store.path_for(video_id)
        path.write_bytes(content)
        if mtime is not None:
            set_mtime(path, mtime)
        return path

    return _make
