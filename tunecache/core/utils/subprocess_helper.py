"""子进程输出流处理工具模块"""

import os
import queue
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..utils.logger import setup_logger

logger = setup_logger("subprocess_helper")


@dataclass
class ProcessResult:
    """子进程执行结果"""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


class StreamReader:
    """通用的子进程输出流读取器"""

    def __init__(self, process: subprocess.Popen):
        """
        初始化流读取器

        Args:
            process: 子进程对象
        """
        self.process = process
        self.output_queue: "queue.Queue[Tuple[str, str]]" = queue.Queue()
        self.threads: List[threading.Thread] = []

    def start_reading(self) -> None:
        """启动异步读取stdout和stderr"""
        for stream, stream_name in (
            (self.process.stdout, "stdout"),
            (self.process.stderr, "stderr"),
        ):
            if not stream:
                continue
            thread = threading.Thread(
                target=self._read_stream,
                args=(stream, stream_name),
                daemon=True,
            )
            thread.start()
            self.threads.append(thread)

    def _read_stream(self, stream, stream_name: str) -> None:
        """读取流并放入队列"""
        try:
            for line in iter(stream.readline, ""):
                if line:
                    self.output_queue.put((stream_name, line))
        except Exception as e:
            logger.debug(f"读取 {stream_name} 结束: {e}")
        finally:
            stream.close()

    def get_output(self, timeout: float = 0.1) -> Optional[Tuple[str, str]]:
        """
        获取输出

        Args:
            timeout: 等待超时时间

        Returns:
            (stream_name, line) 或 None
        """
        try:
            return self.output_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def get_remaining_output(self) -> list:
        """获取队列中剩余的所有输出"""
        output = []
        while not self.output_queue.empty():
            try:
                output.append(self.output_queue.get_nowait())
            except queue.Empty:
                break
        return output

    def is_finished(self) -> bool:
        """两个读取线程均已结束"""
        return all(not t.is_alive() for t in self.threads)

    def join(self, timeout: Optional[float] = None) -> None:
        for t in self.threads:
            t.join(timeout)


def run_process(
    cmd: list,
    timeout: Optional[float] = None,
    stdout_handler: Optional[Callable[[str], None]] = None,
    stderr_handler: Optional[Callable[[str], None]] = None,
    **popen_kwargs,
) -> ProcessResult:
    """
    运行子进程直到结束或超时，收集全部输出

    Args:
        cmd: 命令列表
        timeout: 超时秒数，None 或 0 表示不限制；超时后强制结束进程
        stdout_handler: stdout行处理函数
        stderr_handler: stderr行处理函数
        **popen_kwargs: 传递给subprocess.Popen的额外参数

    Returns:
        ProcessResult

    Raises:
        OSError: 可执行文件不存在或无法启动
    """
    default_kwargs = {
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
        "text": True,
        "encoding": "utf-8",
        "errors": "replace",
        "bufsize": 1,  # 行缓冲
        "creationflags": (
            getattr(subprocess, "CREATE_NO_WINDOW", 0) if os.name == "nt" else 0
        ),
    }
    default_kwargs.update(popen_kwargs)

    start_time = time.time()
    process = subprocess.Popen(cmd, **default_kwargs)

    reader = StreamReader(process)
    reader.start_reading()

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    def dispatch(stream_name: str, line: str) -> None:
        if stream_name == "stdout":
            stdout_lines.append(line)
            if stdout_handler:
                stdout_handler(line)
        else:
            stderr_lines.append(line)
            if stderr_handler:
                stderr_handler(line)

    timed_out = False
    while True:
        if timeout and time.time() - start_time > timeout:
            logger.warning(f"子进程超时 ({timeout}s)，强制结束: {cmd[0]}")
            process.kill()
            timed_out = True
            break

        output = reader.get_output()
        if output:
            dispatch(*output)
            continue

        # 进程已结束且输出已读完
        if process.poll() is not None and reader.is_finished():
            break

    process.wait()
    reader.join(timeout=1)
    for stream_name, line in reader.get_remaining_output():
        dispatch(stream_name, line)

    return ProcessResult(
        returncode=process.returncode,
        stdout="".join(stdout_lines),
        stderr="".join(stderr_lines),
        timed_out=timed_out,
        duration=time.time() - start_time,
    )
