"""
批量导出流程

状态: idle -> running -> completed | error，完成或出错后可再次开始。
进度推送只在 running 状态下生效，迟到的推送直接忽略。
"""
import logging
from typing import Optional

from models import (
    BatchExportRequest, ExportOptions, ExportProgress, ExportState,
    ExportStatus
)
from engine.errors import HostCallError

logger = logging.getLogger(__name__)

NO_FILES_MESSAGE = "请先添加需要处理的文件"
NO_DESTINATION_MESSAGE = "请选择导出文件夹"
EXPORT_FAILED_MESSAGE = "导出过程中出现错误"


def running_message(processed: int, total: int) -> str:
    return f"正在导出 {processed} / {total}"


def completed_message(success_count: int, failure_count: int) -> str:
    return f"导出完成：成功 {success_count} 个，失败 {failure_count} 个"


class ExportOrchestrator:
    def __init__(self, store, host):
        self._store = store
        self._host = host
        self._unsubscribe = None

    @property
    def status(self) -> ExportStatus:
        return self._store.state.export_status

    @property
    def export_options(self) -> ExportOptions:
        return self._store.state.export_options

    @property
    def is_running(self) -> bool:
        return self.status.state == ExportState.RUNNING

    def _transition(self, status: ExportStatus) -> ExportStatus:
        def mutate(state):
            state.export_status = status

        self._store.commit(mutate)
        return status

    def attach(self) -> None:
        """订阅宿主的导出进度推送"""
        if self._unsubscribe is None:
            self._unsubscribe = self._host.subscribe_export_progress(self.on_progress)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def configure(self, **changes) -> ExportOptions:
        """修改导出配置（前缀/后缀在未启用时也保留）"""
        options = self.export_options.with_changes(**changes)

        def mutate(state):
            state.export_options = options

        self._store.commit(mutate)
        return options

    async def choose_output_dir(self) -> Optional[str]:
        directory = await self._host.select_export_directory()
        if directory:
            self.configure(output_dir=directory)
        return self.export_options.output_dir or None

    def on_progress(self, payload: ExportProgress) -> None:
        current = self.status
        if current.state != ExportState.RUNNING:
            logger.debug(f"忽略非导出状态下的进度: {payload.processed}/{payload.total}")
            return
        self._transition(current.with_changes(
            total=payload.total,
            processed=payload.processed,
            message=running_message(payload.processed, payload.total),
        ))

    async def start(self) -> ExportStatus:
        """使用当前文件队列与配置开始批量导出"""
        if self.is_running:
            logger.warning("已有导出任务在进行中")
            return self.status

        state = self._store.state
        file_paths = [entry.path for entry in state.files]
        if not file_paths:
            return self._transition(ExportStatus(state=ExportState.ERROR, message=NO_FILES_MESSAGE))

        export_options = state.export_options.trimmed()
        if not export_options.output_dir:
            return self._transition(ExportStatus(
                state=ExportState.ERROR,
                total=len(file_paths),
                message=NO_DESTINATION_MESSAGE,
            ))

        request = BatchExportRequest(
            file_paths=file_paths,
            watermark_options=state.options,
            export_options=export_options,
        )
        total = len(file_paths)
        self._transition(ExportStatus(
            state=ExportState.RUNNING,
            total=total,
            processed=0,
            message=running_message(0, total),
        ))
        logger.info(f"开始导出 {total} 个文件到 {export_options.output_dir}")

        try:
            summary = await self._host.run_batch_export(request)
        except HostCallError as e:
            logger.error(f"导出失败: {e}")
            return self._transition(self.status.with_changes(
                state=ExportState.ERROR,
                message=str(e) or EXPORT_FAILED_MESSAGE,
                summary=None,
            ))
        except Exception:
            logger.exception("导出过程中出现未知错误")
            return self._transition(self.status.with_changes(
                state=ExportState.ERROR,
                message=EXPORT_FAILED_MESSAGE,
                summary=None,
            ))

        for line in summary.describe():
            logger.warning(f"导出失败文件 {line}")
        return self._transition(ExportStatus(
            state=ExportState.COMPLETED,
            total=total,
            processed=total,
            message=completed_message(summary.success_count, summary.failure_count),
            summary=summary,
        ))
