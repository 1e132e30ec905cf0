"""运行时长统计"""

import time

SERVER_START_TIME = time.time()


def format_uptime(seconds: int) -> str:
    d = seconds // 86400
    h = (seconds % 86400) // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60

    if seconds < 60:
        return f"{s}s"
    if seconds < 86400:
        if h > 0 and m > 0:
            return f"{h}h {m}m"
        if h > 0:
            return f"{h}h"
        return f"{m}m"
    return f"{d}d {h}h"


def get_uptime(start_time: float = SERVER_START_TIME) -> str:
    return format_uptime(int(time.time() - start_time))
