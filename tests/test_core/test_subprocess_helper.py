"""run_process 测试（使用当前解释器作为子进程）"""

import sys

import pytest

from tunecache.core.utils.subprocess_helper import run_process


def _py(code: str) -> list:
    return [sys.executable, "-c", code]


class TestRunProcess:
    def test_collects_output(self):
        result = run_process(_py("import sys; print('out'); print('err', file=sys.stderr)"))

        assert result.ok
        assert result.returncode == 0
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert result.duration > 0

    def test_nonzero_exit(self):
        result = run_process(_py("import sys; sys.exit(3)"))
        assert result.returncode == 3
        assert not result.ok
        assert not result.timed_out

    def test_line_handlers(self):
        lines = []
        run_process(_py("print('a'); print('b')"), stdout_handler=lines.append)
        assert [line.strip() for line in lines] == ["a", "b"]

    def test_timeout_kills_process(self):
        result = run_process(_py("import time; time.sleep(30)"), timeout=0.5)

        assert result.timed_out
        assert not result.ok
        assert result.duration < 10

    def test_missing_executable(self, tmp_path):
        with pytest.raises(OSError):
            run_process([str(tmp_path / "no-such-binary")])
