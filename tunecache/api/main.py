from __future__ import annotations

import re
import uuid
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tunecache.api.dependencies import (
    get_artifact_store,
    get_cache_service,
    get_search_cache,
    shutdown,
    start_gc_background,
)
from tunecache.api.schemas import (
    ArtifactStatusResponse,
    ErrorResponse,
    HealthResponse,
    SearchResultItem,
    UptimeResponse,
)
from tunecache.api.settings import get_server_settings
from tunecache.cache.cache_service import CacheService
from tunecache.cache.search_cache import SearchCache
from tunecache.config import APP_NAME, VERSION
from tunecache.core.exceptions import (
    StorageInconsistencyError,
    TuneCacheError,
    ValidationError,
)
from tunecache.core.uptime import get_uptime
from tunecache.core.utils.logger import setup_logger

AUDIO_MEDIA_TYPE = "audio/mpeg"

app = FastAPI(title=f"{APP_NAME} API", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


logger = setup_logger("api")

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _get_or_create_request_id(request: Request) -> str:
    existing = getattr(request.state, "request_id", None)
    if existing:
        return existing

    request_id = request.headers.get("x-request-id")
    if request_id:
        request.state.request_id = request_id
        return request_id

    request_id = f"req_{uuid.uuid4().hex}"
    request.state.request_id = request_id
    return request_id


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = _get_or_create_request_id(request)
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


@app.exception_handler(TuneCacheError)
async def tunecache_exception_handler(request: Request, exc: TuneCacheError):
    request_id = _get_or_create_request_id(request)
    if isinstance(exc, ValidationError):
        logger.info("rejected request_id=%s reason=%s", request_id, exc)
    elif isinstance(exc, StorageInconsistencyError):
        logger.error("storage_inconsistency request_id=%s error=%s", request_id, exc)
    else:
        logger.error(
            "request_failed request_id=%s error=%s detail=%s",
            request_id,
            exc,
            exc.detail,
        )
    return _error_response(exc.status_code, exc.public_message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    return _error_response(exc.status_code, message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(
        "validation_error request_id=%s errors=%s",
        _get_or_create_request_id(request),
        exc.errors(),
    )
    return _error_response(400, "Invalid request parameters")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = _get_or_create_request_id(request)
    logger.exception("unhandled_exception request_id=%s", request_id, exc_info=exc)
    return _error_response(500, "Internal server error")


@app.on_event("startup")
def _startup() -> None:
    # 确保缓存目录存在，并启动 GC（启动时立即清理一次）
    get_artifact_store()
    start_gc_background()
    logger.info("%s %s started", APP_NAME, VERSION)


@app.on_event("shutdown")
def _shutdown() -> None:
    shutdown()


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    """取开头的整数部分（"3.5" -> 3，"10abc" -> 10），无法解析时返回 None"""
    match = _LEADING_INT.match(raw) if raw is not None else None
    return int(match.group(1)) if match else None


@app.get("/health", response_model=HealthResponse)
def health_check():
    """健康检查端点"""
    return HealthResponse(status="ok", version=VERSION)


@app.get("/uptime", response_model=UptimeResponse)
def uptime():
    """服务运行时长"""
    return UptimeResponse(uptime=get_uptime())


# ============ 音频 ============


@app.get(
    "/play",
    response_class=FileResponse,
    responses={**_ERROR_RESPONSES, 200: {"content": {AUDIO_MEDIA_TYPE: {}}}},
)
def play(
    request: Request,
    video_id: Optional[str] = Query(default=None, alias="id"),
    cache_service: CacheService = Depends(get_cache_service),
):
    """获取音频（缓存优先）

    - 已缓存: 刷新访问时间后直接返回
    - 下载中: 等待同一下载完成
    - 未缓存: 发起下载，完成后返回
    """
    request_id = _get_or_create_request_id(request)
    logger.info("play start request_id=%s id=%s", request_id, video_id)

    artifact = cache_service.get_or_fetch(video_id)

    logger.info("play done request_id=%s id=%s", request_id, artifact.id)
    return FileResponse(artifact.path, media_type=AUDIO_MEDIA_TYPE)


@app.get(
    "/play/status",
    response_model=ArtifactStatusResponse,
    responses=_ERROR_RESPONSES,
)
def play_status(
    video_id: Optional[str] = Query(default=None, alias="id"),
    cache_service: CacheService = Depends(get_cache_service),
):
    """查询缓存状态（只读，不刷新访问时间）"""
    try:
        status = cache_service.status(video_id)
    except ValidationError:
        return _error_response(400, "Invalid ID")
    return ArtifactStatusResponse(**status.to_dict())


# ============ 搜索 ============


@app.get(
    "/search",
    response_model=List[SearchResultItem],
    responses=_ERROR_RESPONSES,
)
def search(
    request: Request,
    src: Optional[str] = None,
    limit: Optional[str] = None,
    ytdlp: Optional[str] = None,
    search_cache: SearchCache = Depends(get_search_cache),
):
    """搜索音频

    默认使用进程内 yt_dlp，失败时回退到 yt-dlp 命令行；ytdlp=true 时直接使用命令行。
    结果按 (关键词小写, limit) 缓存 5 分钟。
    """
    request_id = _get_or_create_request_id(request)
    logger.info("search start request_id=%s src=%s", request_id, src)

    results = search_cache.search(
        src,
        limit=_parse_limit(limit),
        force_fallback=(ytdlp == "true"),
    )
    return [SearchResultItem(**item) for item in results]


def run_server(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> None:
    """启动 API 服务器

    Args:
        host: 监听地址，默认读取 HOST
        port: 监听端口，默认读取 PORT
        reload: 是否启用热重载（开发模式）
    """
    import uvicorn

    settings = get_server_settings()
    uvicorn.run(
        "tunecache.api.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


if __name__ == "__main__":
    run_server()
