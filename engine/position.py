"""
水印位置计算

预设位置映射到归一化锚点，拖拽坐标限制在单位正方形内。
拖拽过程中只更新临时的候选位置，松开（或取消）时才写入水印配置。
"""
import logging
import math
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, NamedTuple, Optional

from models import PositionMode, PresetPosition, WatermarkOptions

logger = logging.getLogger(__name__)


class Point(NamedTuple):
    """归一化坐标 (0-1)"""
    x: float
    y: float


class Rect(NamedTuple):
    """预览区域在屏幕上的矩形"""
    left: float
    top: float
    width: float
    height: float


CENTER = Point(0.5, 0.5)

PRESET_ANCHORS: Dict[PresetPosition, Point] = {
    PresetPosition.NORTH: Point(0.5, 0.1),
    PresetPosition.NORTHEAST: Point(0.9, 0.1),
    PresetPosition.EAST: Point(0.9, 0.5),
    PresetPosition.SOUTHEAST: Point(0.9, 0.9),
    PresetPosition.SOUTH: Point(0.5, 0.9),
    PresetPosition.SOUTHWEST: Point(0.1, 0.9),
    PresetPosition.WEST: Point(0.1, 0.5),
    PresetPosition.NORTHWEST: Point(0.1, 0.1),
    PresetPosition.CENTER: CENTER,
}


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    if math.isnan(value):
        return lower
    return min(max(value, lower), upper)


def resolve_anchor(options: WatermarkOptions) -> Point:
    """计算水印锚点；自定义模式缺少偏移量时退回预设位置"""
    if options.mode == PositionMode.CUSTOM and options.has_offsets:
        return Point(clamp(options.offset_x), clamp(options.offset_y))
    return PRESET_ANCHORS.get(options.position, CENTER)


def resolve_overlay(options: WatermarkOptions, has_image: bool) -> Point:
    """计算预览层的水印位置，未选择图片时固定为中心"""
    if not has_image:
        return CENTER
    return resolve_anchor(options)


def pointer_to_point(px: float, py: float, rect: Rect) -> Optional[Point]:
    """将指针坐标转换为预览区域内的归一化坐标"""
    if rect.width <= 0 or rect.height <= 0:
        return None
    return Point(
        clamp((px - rect.left) / rect.width),
        clamp((py - rect.top) / rect.height),
    )


def commit_custom(options: WatermarkOptions, point: Point) -> WatermarkOptions:
    """写入自定义位置"""
    return options.with_changes(
        mode=PositionMode.CUSTOM,
        offset_x=clamp(point.x),
        offset_y=clamp(point.y),
    )


def select_preset(options: WatermarkOptions, preset) -> WatermarkOptions:
    """切换到预设位置，丢弃自定义偏移量"""
    return options.with_changes(
        mode=PositionMode.PRESET,
        position=PresetPosition(preset),
        offset_x=None,
        offset_y=None,
    )


class PositionResolver:
    """预览层位置与拖拽手势"""

    def __init__(self, store, on_commit: Callable[[Point], None]):
        self._store = store
        self._on_commit = on_commit
        self._rect: Optional[Rect] = None

    @property
    def overlay(self) -> Point:
        return self._store.state.overlay

    @property
    def candidate(self) -> Point:
        return self._store.state.candidate

    @property
    def dragging(self) -> bool:
        return self._store.state.dragging

    def _place(self, point: Point) -> None:
        def mutate(state):
            state.overlay = point
            state.candidate = point

        self._store.commit(mutate)

    def _set_dragging(self, dragging: bool) -> None:
        def mutate(state):
            state.dragging = dragging

        self._store.commit(mutate)

    def move_overlay(self, effect) -> None:
        """同步预览层与候选位置（配置或所选图片变化后调用）"""
        self._place(effect.point)

    def _track(self, px: float, py: float) -> None:
        point = pointer_to_point(px, py, self._rect)
        if point is not None:
            self._place(point)

    def press(self, px: float, py: float, rect: Rect) -> bool:
        """按下指针，获取拖拽捕获"""
        state = self._store.state
        if state.selected_file is None or state.dragging:
            return False
        self._set_dragging(True)
        self._rect = rect
        self._track(px, py)
        return True

    def move(self, px: float, py: float, rect: Optional[Rect] = None) -> None:
        if not self.dragging:
            return
        if rect is not None:
            self._rect = rect
        self._track(px, py)

    def release(self) -> Optional[Point]:
        """松开或取消指针，释放捕获并提交候选位置"""
        if not self.dragging:
            return None
        self._set_dragging(False)
        self._rect = None
        point = self.candidate
        self._on_commit(point)
        return point

    cancel = release

    @contextmanager
    def drag(self, px: float, py: float, rect: Rect) -> Iterator["PositionResolver"]:
        """拖拽手势，退出时总会提交候选位置"""
        if not self.press(px, py, rect):
            raise RuntimeError("drag capture unavailable")
        try:
            yield self
        finally:
            self.release()

    def commit_candidate(self) -> Point:
        """位置选择器切换到“自定义”时提交最近的候选位置"""
        point = self.candidate
        self._on_commit(point)
        return point
