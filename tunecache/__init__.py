"""TuneCache - 音频下载去重与缓存服务"""

from tunecache.config import VERSION

__version__ = VERSION
