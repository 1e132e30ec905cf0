"""运行时长格式化测试"""

import time

import pytest

from tunecache.core.uptime import format_uptime, get_uptime


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (0, "0s"),
        (59, "59s"),
        (60, "1m"),
        (61, "1m"),
        (3599, "59m"),
        (3600, "1h"),
        (3660, "1h 1m"),
        (86399, "23h 59m"),
        (86400, "1d 0h"),
        (90061, "1d 1h"),
        (3 * 86400 + 5 * 3600 + 59, "3d 5h"),
    ],
)
def test_format_uptime(seconds, expected):
    assert format_uptime(seconds) == expected


def test_get_uptime():
    assert get_uptime(time.time() - 125) == "2m"
