"""
宿主服务客户端
编辑器通过 HTTP 调用宿主服务，通过 SSE 接收导出进度
"""
import asyncio
import logging
import os
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

import config
from models import (
    BatchExportRequest, ConfigState, DeleteTemplateResult, DirectoryResponse,
    ExportProgress, ExportSummary, FileNameResponse, LastUsedUpdate, PathList,
    PreviewRequest, PreviewResponse, SaveTemplateRequest, SaveTemplateResult,
    ThumbnailResponse, WatermarkOptions
)
from engine.errors import HostCallError, LoadFailure
from engine.host import ProgressCallback, Unsubscribe

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    """从错误响应中取出 detail"""
    try:
        data = response.json()
    except ValueError:
        data = None
    detail = data.get("detail") if isinstance(data, dict) else None
    if isinstance(detail, str) and detail:
        return detail
    return f"宿主服务返回错误: {response.status_code}"


class HostClient:
    """实现编辑器宿主接口的 HTTP 客户端"""

    def __init__(
        self,
        base_url: str = config.HOST_URL,
        timeout: float = config.REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HostClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _call(self, model, method: str, url: str, **kwargs):
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise HostCallError(f"宿主服务不可用: {e}") from e
        if response.is_error:
            raise HostCallError(_error_detail(response))
        if model is None:
            return None
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            raise HostCallError(f"宿主响应格式错误: {e}") from e

    # ---- 文件 ----

    async def select_files(self) -> List[str]:
        result = await self._call(PathList, "GET", "/api/dialog/files")
        return result.paths

    async def select_directory(self) -> List[str]:
        result = await self._call(PathList, "GET", "/api/dialog/directory")
        return result.paths

    async def select_export_directory(self) -> Optional[str]:
        result = await self._call(DirectoryResponse, "GET", "/api/dialog/export-directory")
        return result.path

    async def get_file_name(self, path: str) -> str:
        result = await self._call(FileNameResponse, "GET", "/api/files/name", params={"path": path})
        return result.name

    async def get_thumbnail(self, path: str) -> str:
        result = await self._call(ThumbnailResponse, "GET", "/api/files/thumbnail", params={"path": path})
        return result.thumbnail

    async def resolve_dropped_file_path(self, handle: Any) -> Optional[str]:
        """尽力解析拖放对象的本地路径，无法解析时返回 None"""
        try:
            if isinstance(handle, (str, os.PathLike)):
                return os.fspath(handle) or None
            for attr in ("path", "name"):
                value = getattr(handle, attr, None)
                if isinstance(value, (str, os.PathLike)) and os.fspath(value):
                    return os.fspath(value)
        except (TypeError, ValueError) as e:
            logger.error(f"无法解析拖放文件路径: {e}")
        return None

    async def expand_dropped_paths(self, paths: List[str]) -> List[str]:
        result = await self._call(PathList, "POST", "/api/files/expand", json=PathList(paths=paths).to_wire())
        return result.paths

    async def apply_watermark(self, path: str, options: WatermarkOptions) -> Optional[str]:
        payload = PreviewRequest(path=path, options=options).to_wire()
        result = await self._call(PreviewResponse, "POST", "/api/preview", json=payload)
        return result.image

    # ---- 配置与模板 ----

    async def get_config_state(self) -> ConfigState:
        try:
            return await self._call(ConfigState, "GET", "/api/config/state")
        except HostCallError as e:
            raise LoadFailure(str(e)) from e

    async def save_template(self, name: str, options: WatermarkOptions) -> SaveTemplateResult:
        payload = SaveTemplateRequest(name=name, options=options).to_wire()
        return await self._call(SaveTemplateResult, "POST", "/api/templates", json=payload)

    async def delete_template(self, template_id: str) -> DeleteTemplateResult:
        return await self._call(DeleteTemplateResult, "DELETE", f"/api/templates/{quote(template_id, safe='')}")

    async def update_last_used_options(self, options: WatermarkOptions, template_id: Optional[str]) -> None:
        payload = LastUsedUpdate(options=options, template_id=template_id).to_wire()
        await self._call(None, "PUT", "/api/config/last-used", json=payload)

    # ---- 导出 ----

    async def run_batch_export(self, request: BatchExportRequest) -> ExportSummary:
        # 批量导出耗时不定，不设超时
        return await self._call(ExportSummary, "POST", "/api/export", json=request.to_wire(), timeout=None)

    def subscribe_export_progress(self, callback: ProgressCallback) -> Unsubscribe:
        """订阅导出进度，返回的函数用于取消订阅（需在事件循环中调用）"""
        task = asyncio.get_running_loop().create_task(self._stream_progress(callback))
        return task.cancel

    async def _stream_progress(self, callback: ProgressCallback) -> None:
        try:
            async with self._client.stream("GET", "/api/export/progress", timeout=None) as response:
                if response.is_error:
                    logger.warning(f"导出进度订阅失败: {response.status_code}")
                    return
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    try:
                        payload = ExportProgress.model_validate_json(line[len("data:"):].strip())
                    except ValueError as e:
                        logger.warning(f"无法解析导出进度: {e}")
                        continue
                    callback(payload)
        except httpx.HTTPError as e:
            logger.warning(f"导出进度订阅中断: {e}")
