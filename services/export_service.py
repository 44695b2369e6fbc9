"""
批量导出服务

逐个文件处理，单个文件失败记录在结果中，不会中断整个批次；
每处理完一个文件向所有订阅者推送一次进度。
"""
import asyncio
import logging
from concurrent.futures import Executor
from pathlib import Path
from typing import Optional, Set

from PIL import Image, UnidentifiedImageError

from models import (
    BatchExportRequest, ExportFailure, ExportOptions, ExportProgress,
    ExportSummary, WatermarkOptions
)
from services.watermark_service import apply_watermark
from utils.file_handler import (
    build_output_filename, check_file_size, ensure_output_dir,
    get_display_name, is_supported_image, resolve_output_format, same_file,
    save_output_file
)

logger = logging.getLogger(__name__)


class FileExportError(Exception):
    """单个文件导出失败"""


class ProgressBroadcaster:
    """导出进度广播"""

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, progress: ExportProgress) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(progress)
            except asyncio.QueueFull:
                logger.warning("进度订阅者处理过慢，丢弃一条进度")


def export_one(
    path: str,
    watermark_options: WatermarkOptions,
    export_options: ExportOptions,
    output_dir: Path,
) -> Path:
    """导出单个文件，失败时抛出 FileExportError"""
    source = Path(path)
    if not source.is_file():
        raise FileExportError("文件不存在")
    if not is_supported_image(source):
        raise FileExportError("不支持的文件类型")
    reason = check_file_size(source)
    if reason:
        raise FileExportError(reason)

    filename = build_output_filename(path, export_options)
    target = output_dir / filename
    if source.resolve() == target.resolve() or same_file(source, target):
        raise FileExportError("导出文件会覆盖原图")

    output_format = resolve_output_format(path, export_options.format)
    try:
        content = apply_watermark(path, watermark_options, output_format)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise FileExportError(f"图片处理失败: {e}") from e

    try:
        return save_output_file(content, output_dir, filename)
    except OSError as e:
        raise FileExportError(f"写入文件失败: {e}") from e


async def run_batch_export(
    request: BatchExportRequest,
    executor: Optional[Executor],
    broadcaster: ProgressBroadcaster,
) -> ExportSummary:
    """执行批量导出；导出目录不可用时抛出 ValueError"""
    export_options = request.export_options.trimmed()
    if not export_options.output_dir:
        raise ValueError("未指定导出目录")
    try:
        output_dir = ensure_output_dir(export_options.output_dir)
    except OSError as e:
        raise ValueError(f"无法创建导出目录: {e}") from e

    loop = asyncio.get_running_loop()
    total = len(request.file_paths)
    success_count = 0
    failures = []
    logger.info(f"开始批量导出 {total} 个文件到 {output_dir}")

    for index, path in enumerate(request.file_paths, start=1):
        try:
            await loop.run_in_executor(
                executor, export_one,
                path, request.watermark_options, export_options, output_dir
            )
            success_count += 1
        except FileExportError as e:
            logger.warning(f"导出失败 {path}: {e}")
            failures.append(ExportFailure(file=get_display_name(path), reason=str(e)))
        broadcaster.publish(ExportProgress(processed=index, total=total, current_file=path))

    logger.info(f"批量导出完成：成功 {success_count} 个，失败 {len(failures)} 个")
    return ExportSummary(
        success_count=success_count,
        failure_count=len(failures),
        failures=failures,
    )
