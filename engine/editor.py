"""
水印编辑器入口

WatermarkEditor 持有唯一的编辑器状态，把各组件与宿主连接起来：
每次状态提交后调用 reconcile 计算副作用，交给调度器执行。
面向界面的操作在这里把校验错误与宿主错误转换为模板提示消息。
"""
import logging
from typing import Any, Iterable, List, Optional

import config
from models import (
    ExportStatus, FileEntry, MessageKind, PositionMode, WatermarkOptions
)
from engine.errors import WatermarkerError
from engine.export_orchestrator import ExportOrchestrator
from engine.file_queue import FileIngestionQueue
from engine.host import Host
from engine.options_sync import OptionsSync
from engine.position import PositionResolver
from engine.reconcile import (
    ExpireMessage, MoveOverlay, PersistLastUsed, RenderPreview, reconcile
)
from engine.scheduler import EffectScheduler
from engine.state import EditorState, StateStore
from engine.template_manager import TemplateManager

logger = logging.getLogger(__name__)


class WatermarkEditor:
    def __init__(
        self,
        host: Host,
        persist_delay: float = config.PERSIST_DEBOUNCE_SECONDS,
        message_ttl: float = config.TEMPLATE_MESSAGE_SECONDS,
    ):
        self.host = host
        self.store = StateStore()
        self.options = OptionsSync(self.store, host)
        self.position = PositionResolver(self.store, on_commit=self.options.commit_position)
        self.files = FileIngestionQueue(self.store, host)
        self.templates = TemplateManager(self.store, host, self.options)
        self.exporter = ExportOrchestrator(self.store, host)
        self.scheduler = EffectScheduler(
            handlers={
                MoveOverlay: self.position.move_overlay,
                RenderPreview: self._render_preview,
                PersistLastUsed: self.options.persist,
                ExpireMessage: self.templates.expire_message,
            },
            delays={
                PersistLastUsed: persist_delay,
                ExpireMessage: message_ttl,
            },
        )
        self.store.subscribe(self._reconcile)

    @property
    def state(self) -> EditorState:
        return self.store.state

    def _reconcile(self, previous, current) -> None:
        self.scheduler.submit(reconcile(previous, current))

    async def open(self) -> None:
        """订阅导出进度并加载模板配置"""
        self.exporter.attach()
        await self.templates.load()

    async def close(self) -> None:
        """退订进度推送；尚未写入的配置立即写入"""
        self.exporter.detach()
        if self.scheduler.cancel(PersistLastUsed):
            try:
                await self.options.persist()
            except WatermarkerError as e:
                logger.warning(f"保存上次使用的配置失败: {e}")
        self.scheduler.cancel_all()

    async def _render_preview(self, effect: RenderPreview) -> None:
        image = await self.host.apply_watermark(effect.path, effect.options)
        state = self.state
        still_current = (
            state.selected_file is not None
            and state.selected_file.path == effect.path
            and state.options == effect.options
        )
        if not image or not still_current:
            return

        def mutate(state):
            state.preview = image

        self.store.commit(mutate)

    # ---- 文件 ----

    def select_file(self, entry: Optional[FileEntry]) -> None:
        def mutate(state):
            state.selected_file = entry
            state.preview = None

        self.store.commit(mutate)

    async def add_files(self, paths: Iterable[str]) -> List[FileEntry]:
        return await self.files.add(paths)

    async def drop(self, handles: Iterable[Any]) -> List[FileEntry]:
        return await self.files.add_dropped(handles)

    # ---- 水印配置 ----

    def edit(self, **changes) -> WatermarkOptions:
        return self.options.edit(**changes)

    def choose_position(self, value: str) -> WatermarkOptions:
        """位置选择器：九个预设位置或 "custom" """
        if value == PositionMode.CUSTOM:
            self.position.commit_candidate()
            return self.options.options
        return self.options.choose_preset(value)

    # ---- 模板 ----

    def _report(self, error: WatermarkerError) -> None:
        logger.warning(f"模板操作失败: {error}")
        self.templates.notify(MessageKind.ERROR, str(error))

    async def save_template(self, name: str) -> Optional[str]:
        try:
            result = await self.templates.save(name)
        except WatermarkerError as e:
            self._report(e)
            return None
        return result.template_id

    def load_template(self, template_id: Optional[str] = None) -> Optional[WatermarkOptions]:
        try:
            return self.templates.select_load(template_id)
        except WatermarkerError as e:
            self._report(e)
            return None

    async def delete_template(self) -> bool:
        try:
            await self.templates.delete()
        except WatermarkerError as e:
            self._report(e)
            return False
        return True

    # ---- 导出 ----

    async def choose_output_dir(self) -> Optional[str]:
        return await self.exporter.choose_output_dir()

    async def start_export(self) -> ExportStatus:
        return await self.exporter.start()
