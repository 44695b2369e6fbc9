"""
状态协调

reconcile 根据状态变化前后的快照计算需要执行的副作用，
本身不做任何 IO，由 EffectScheduler 负责执行。
"""
from dataclasses import dataclass
from typing import List, Optional, Union

from models import PositionMode, UserMessage, WatermarkOptions
from engine.position import Point, resolve_overlay
from engine.state import EditorView


@dataclass(frozen=True)
class MoveOverlay:
    """更新预览层水印位置"""
    point: Point


@dataclass(frozen=True)
class RenderPreview:
    """请求宿主生成预览图"""
    path: str
    options: WatermarkOptions


@dataclass(frozen=True)
class PersistLastUsed:
    """保存上次使用的配置（防抖）"""
    options: WatermarkOptions
    template_id: Optional[str]


@dataclass(frozen=True)
class ExpireMessage:
    """到期清除模板提示消息"""
    message: UserMessage


Effect = Union[MoveOverlay, RenderPreview, PersistLastUsed, ExpireMessage]


def can_render(options: WatermarkOptions) -> bool:
    # 自定义模式但偏移量尚未写入时属于过渡状态，不生成预览
    return not (options.mode == PositionMode.CUSTOM and not options.has_offsets)


def reconcile(previous: EditorView, current: EditorView) -> List[Effect]:
    effects: List[Effect] = []

    placement_changed = (
        previous.selected_path != current.selected_path
        or previous.options != current.options
    )
    if placement_changed:
        effects.append(MoveOverlay(resolve_overlay(current.options, current.selected_path is not None)))
        if current.selected_path is not None and can_render(current.options):
            effects.append(RenderPreview(current.selected_path, current.options))

    persisted_changed = (
        previous.options != current.options
        or previous.applied_template_id != current.applied_template_id
    )
    if current.config_ready and persisted_changed:
        effects.append(PersistLastUsed(current.options, current.applied_template_id))

    if current.template_message is not None and current.template_message is not previous.template_message:
        effects.append(ExpireMessage(current.template_message))

    return effects
