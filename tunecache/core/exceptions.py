"""异常定义

API 层据此映射 HTTP 状态码：ValidationError -> 400，其余 -> 500。
对外只暴露 public_message，内部细节（退出码、stderr）仅写入日志。
"""

from typing import Optional


class TuneCacheError(Exception):
    """所有业务异常的基类"""

    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: str = "", *, detail: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.detail = detail


class ValidationError(TuneCacheError):
    """请求参数校验失败"""

    status_code = 400
    public_message = "Invalid request"


class MissingParameterError(ValidationError):
    def __init__(self, param: str):
        super().__init__(f"Parameter '{param}' is required")
        self.param = param
        self.public_message = str(self)


class InvalidIdentifierError(ValidationError):
    public_message = "Invalid YouTube ID"


class FetchError(TuneCacheError):
    """外部下载失败（非零退出、I/O 错误或超时）"""

    public_message = "Failed to download song"


class FetchTimeoutError(FetchError):
    pass


class StorageInconsistencyError(FetchError):
    """下载报告成功，但产物文件不存在"""

    public_message = "File not found after download"


class SearchError(TuneCacheError):
    public_message = "Failed to search songs"
