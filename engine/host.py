"""
宿主接口定义

编辑器只通过异步请求/响应和进度推送与宿主交互，
宿主调用失败时应抛出 HostCallError。
"""
from typing import Any, Callable, List, Optional, Protocol

from models import (
    BatchExportRequest, ConfigState, DeleteTemplateResult, ExportProgress,
    ExportSummary, SaveTemplateResult, WatermarkOptions
)

ProgressCallback = Callable[[ExportProgress], None]
Unsubscribe = Callable[[], Any]


class Host(Protocol):
    async def select_files(self) -> List[str]: ...

    async def select_directory(self) -> List[str]: ...

    async def select_export_directory(self) -> Optional[str]: ...

    async def get_file_name(self, path: str) -> str: ...

    async def get_thumbnail(self, path: str) -> str: ...

    async def resolve_dropped_file_path(self, handle: Any) -> Optional[str]: ...

    async def expand_dropped_paths(self, paths: List[str]) -> List[str]: ...

    async def apply_watermark(self, path: str, options: WatermarkOptions) -> Optional[str]: ...

    async def get_config_state(self) -> ConfigState: ...

    async def save_template(self, name: str, options: WatermarkOptions) -> SaveTemplateResult: ...

    async def delete_template(self, template_id: str) -> DeleteTemplateResult: ...

    async def update_last_used_options(
        self, options: WatermarkOptions, template_id: Optional[str]
    ) -> None: ...

    async def run_batch_export(self, request: BatchExportRequest) -> ExportSummary: ...

    def subscribe_export_progress(self, callback: ProgressCallback) -> Unsubscribe: ...
