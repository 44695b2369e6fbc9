"""
FastAPI 水印宿主服务主入口
为水印编辑器提供文件读取、预览渲染、模板存储与批量导出
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from PIL import Image, UnidentifiedImageError

import config
from models import (
    BatchExportRequest, ConfigState, DeleteTemplateResult, DirectoryResponse,
    ExportSummary, FileNameResponse, LastUsedUpdate, PathList, PreviewRequest,
    PreviewResponse, SaveTemplateRequest, SaveTemplateResult, ThumbnailResponse
)
from services.config_store import ConfigStore, TemplateNotFound
from services.export_service import ProgressBroadcaster, run_batch_export
from services.watermark_service import make_thumbnail, render_preview
from utils.file_handler import expand_paths, get_display_name, list_image_files

# 配置日志
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# 线程池
thread_pool = ThreadPoolExecutor(max_workers=config.MAX_WORKERS)

# 配置存储与进度广播
config_store = ConfigStore(config.CONFIG_FILE)
progress_broadcaster = ProgressBroadcaster()

# 进度流保活间隔 (秒)
KEEP_ALIVE_SECONDS = 15


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info(f"水印宿主服务启动, 配置文件: {config_store.path}")
    yield
    thread_pool.shutdown(wait=False)


app = FastAPI(
    title="水印宿主服务 API",
    description="为水印编辑器提供预览、模板与批量导出",
    version="1.0.0",
    lifespan=lifespan
)

# CORS配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def run_in_pool(func, *args):
    """在线程池中执行同步任务"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(thread_pool, func, *args)


# ---------------------------- 文件选择 ---------------------------- #

@app.get("/api/dialog/files", response_model=PathList, summary="选择文件")
async def select_files():
    """列出导入目录中的图片文件"""
    return PathList(paths=list_image_files(config.IMPORT_DIR))


@app.get("/api/dialog/directory", response_model=PathList, summary="选择文件夹")
async def select_directory():
    """递归列出导入目录中的图片文件"""
    return PathList(paths=list_image_files(config.IMPORT_DIR, recursive=True))


@app.get("/api/dialog/export-directory", response_model=DirectoryResponse, summary="选择导出目录")
async def select_export_directory():
    return DirectoryResponse(path=config.EXPORT_DIR or None)


# ---------------------------- 文件信息 ---------------------------- #

@app.get("/api/files/name", response_model=FileNameResponse, summary="获取文件名")
async def get_file_name(path: str = Query(..., description="文件路径")):
    return FileNameResponse(name=get_display_name(path))


@app.get("/api/files/thumbnail", response_model=ThumbnailResponse, summary="获取缩略图")
async def get_thumbnail(path: str = Query(..., description="文件路径")):
    if not Path(path).is_file():
        raise HTTPException(status_code=404, detail="文件不存在")
    try:
        thumbnail = await run_in_pool(make_thumbnail, path)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise HTTPException(status_code=400, detail=f"无法读取图片: {e}")
    return ThumbnailResponse(thumbnail=thumbnail)


@app.post("/api/files/expand", response_model=PathList, summary="展开拖放路径")
async def expand_dropped_paths(payload: PathList):
    """文件夹递归展开，过滤非图片文件"""
    return PathList(paths=expand_paths(payload.paths))


# ---------------------------- 预览 ---------------------------- #

@app.post("/api/preview", response_model=PreviewResponse, summary="生成水印预览")
async def preview_watermark(payload: PreviewRequest):
    try:
        image = await run_in_pool(render_preview, payload.path, payload.options)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"处理失败: {str(e)}")
    return PreviewResponse(image=image)


# ---------------------------- 配置与模板 ---------------------------- #

@app.get("/api/config/state", response_model=ConfigState, summary="获取模板与上次使用的配置")
async def get_config_state():
    return config_store.load()


@app.put("/api/config/last-used", summary="更新上次使用的配置")
async def update_last_used_options(payload: LastUsedUpdate):
    config_store.update_last_used(payload.options, payload.template_id)
    return {"success": True}


@app.post("/api/templates", response_model=SaveTemplateResult, summary="保存模板")
async def save_template(payload: SaveTemplateRequest):
    try:
        return config_store.save_template(payload.name, payload.options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/api/templates/{template_id}", response_model=DeleteTemplateResult, summary="删除模板")
async def delete_template(template_id: str):
    try:
        return config_store.delete_template(template_id)
    except TemplateNotFound:
        raise HTTPException(status_code=404, detail="模板不存在")


# ---------------------------- 批量导出 ---------------------------- #

@app.post("/api/export", response_model=ExportSummary, summary="批量导出")
async def batch_export(payload: BatchExportRequest):
    """
    批量添加水印并导出

    - 单个文件失败记录在 failures 中，不影响其他文件
    - 每处理完一个文件通过 /api/export/progress 推送进度
    """
    try:
        return await run_batch_export(payload, thread_pool, progress_broadcaster)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("批量导出失败")
        raise HTTPException(status_code=500, detail=f"处理失败: {str(e)}")


@app.get("/api/export/progress", summary="导出进度推送 (SSE)")
async def export_progress(request: Request):
    queue = progress_broadcaster.subscribe()

    async def event_stream():
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    progress = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {progress.model_dump_json(by_alias=True)}\n\n"
        finally:
            progress_broadcaster.unsubscribe(queue)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@app.get("/api/config", summary="获取服务配置")
async def get_config():
    """获取当前服务配置"""
    return {
        "max_file_size": config.MAX_FILE_SIZE,
        "max_file_size_mb": config.MAX_FILE_SIZE / (1024 * 1024),
        "supported_image_formats": sorted(config.SUPPORTED_IMAGE_EXTENSIONS),
        "max_workers": config.MAX_WORKERS,
        "import_dir": str(config.IMPORT_DIR),
        "export_dir": config.EXPORT_DIR or None,
    }


@app.get("/health", summary="健康检查")
async def health_check():
    """服务健康检查"""
    return {"status": "healthy", "service": "watermark-host"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=True
    )
