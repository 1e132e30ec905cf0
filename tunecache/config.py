import logging
import os
from pathlib import Path

from dotenv import load_dotenv

VERSION = "v1.0.0"
APP_NAME = "TuneCache"

# 核心路径
ROOT_PATH = Path(__file__).parent.parent

load_dotenv(ROOT_PATH / ".env")

APPDATA_PATH = ROOT_PATH / "AppData"
LOG_PATH = APPDATA_PATH / "logs"
LOG_FILE = LOG_PATH / "app.log"
CACHE_PATH = APPDATA_PATH / "cache"

# 默认产物目录与 yt-dlp 凭证位置（可通过环境变量覆盖，见 api/settings.py）
DEFAULT_ARTIFACT_DIR = ROOT_PATH / "mp3-cache"
DEFAULT_COOKIES_PATH = ROOT_PATH / "yt-cookies" / "cookies.txt"
DEFAULT_SEARCH_CACHE_DIR = CACHE_PATH / "search_results"

# 日志配置
LOG_LEVEL = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# 创建核心路径
for p in [CACHE_PATH, LOG_PATH]:
    p.mkdir(parents=True, exist_ok=True)
