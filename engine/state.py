"""
编辑器状态

所有界面相关的状态集中在 EditorState 中，由 StateStore 持有。
每次 commit 之后，订阅者收到 (旧快照, 新快照) 用于协调副作用。
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import config
from models import (
    ExportOptions, ExportStatus, FileEntry, UserMessage, WatermarkOptions,
    WatermarkTemplate
)
from engine.position import CENTER, Point


def default_watermark_options() -> WatermarkOptions:
    return WatermarkOptions(**config.DEFAULT_WATERMARK_OPTIONS)


def default_export_options() -> ExportOptions:
    return ExportOptions(**config.DEFAULT_EXPORT_OPTIONS)


@dataclass
class EditorState:
    config_ready: bool = False
    files: List[FileEntry] = field(default_factory=list)
    selected_file: Optional[FileEntry] = None
    preview: Optional[str] = None
    options: WatermarkOptions = field(default_factory=default_watermark_options)
    applied_template_id: Optional[str] = None
    templates: List[WatermarkTemplate] = field(default_factory=list)
    selected_template_id: Optional[str] = None
    template_message: Optional[UserMessage] = None
    export_options: ExportOptions = field(default_factory=default_export_options)
    export_status: ExportStatus = field(default_factory=ExportStatus)
    overlay: Point = CENTER
    candidate: Point = CENTER
    dragging: bool = False

    def view(self) -> "EditorView":
        return EditorView(
            config_ready=self.config_ready,
            selected_path=self.selected_file.path if self.selected_file else None,
            options=self.options,
            applied_template_id=self.applied_template_id,
            template_message=self.template_message,
        )


@dataclass(frozen=True)
class EditorView:
    """参与副作用协调的状态快照"""
    config_ready: bool
    selected_path: Optional[str]
    options: WatermarkOptions
    applied_template_id: Optional[str]
    template_message: Optional[UserMessage]


Listener = Callable[[EditorView, EditorView], None]


class StateStore:
    """持有编辑器状态，所有修改经由 commit"""

    def __init__(self, state: Optional[EditorState] = None):
        self.state = state or EditorState()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def commit(self, mutate: Callable[[EditorState], None]) -> EditorState:
        previous = self.state.view()
        mutate(self.state)
        current = self.state.view()
        for listener in self._listeners:
            listener(previous, current)
        return self.state
