"""
数据模型定义
"""
import math
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

import config


class WireModel(BaseModel):
    """与宿主通信的模型基类，字段以 camelCase 序列化"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def with_changes(self, **changes):
        """返回修改部分字段后的新实例（重新校验）"""
        return type(self).model_validate({**self.model_dump(), **changes})

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PresetPosition(str, Enum):
    """水印预设位置（九宫格）"""
    NORTH = "north"
    NORTHEAST = "northeast"
    EAST = "east"
    SOUTHEAST = "southeast"
    SOUTH = "south"
    SOUTHWEST = "southwest"
    WEST = "west"
    NORTHWEST = "northwest"
    CENTER = "center"


class PositionMode(str, Enum):
    """水印定位方式"""
    PRESET = "preset"   # 预设位置
    CUSTOM = "custom"   # 拖拽自定义位置


_OFFSET_KEYS = ("offset_x", "offsetX", "offset_y", "offsetY")


class WatermarkOptions(WireModel):
    """水印配置"""
    text: str = Field(default="Hello World", max_length=200, description="水印文字")
    size: int = Field(default=50, ge=10, le=200, description="字体大小(px)")
    color: str = Field(default="#ffffff", pattern=r"^#[0-9a-fA-F]{6}$", description="字体颜色(HEX格式)")
    opacity: int = Field(default=100, ge=0, le=100, description="透明度(0-100)")
    mode: PositionMode = Field(default=PositionMode.PRESET, description="定位方式")
    position: PresetPosition = Field(default=PresetPosition.CENTER, description="预设位置")
    offset_x: Optional[float] = Field(default=None, description="自定义横向位置(0-1)")
    offset_y: Optional[float] = Field(default=None, description="自定义纵向位置(0-1)")

    @model_validator(mode="before")
    @classmethod
    def _normalize_offsets(cls, data):
        # 预设模式下不保留偏移量；自定义模式下偏移量限制在 [0, 1]
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("mode", PositionMode.PRESET) == PositionMode.PRESET:
            for key in _OFFSET_KEYS:
                data.pop(key, None)
            return data
        for key in _OFFSET_KEYS:
            value = data.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = float(value)
                if math.isnan(value):
                    value = 0.0
                data[key] = min(max(value, 0.0), 1.0)
        return data

    @property
    def has_offsets(self) -> bool:
        return self.offset_x is not None and self.offset_y is not None


class NamingMode(str, Enum):
    """导出文件命名规则"""
    ORIGINAL = "original"
    PREFIX = "prefix"
    SUFFIX = "suffix"


class ExportFormat(str, Enum):
    """导出格式"""
    SOURCE = "source"  # 保持原格式
    PNG = "png"
    JPEG = "jpeg"


class ExportOptions(WireModel):
    """导出配置（前缀/后缀在未启用时也会保留）"""
    output_dir: str = Field(default="", description="导出目录")
    naming_mode: NamingMode = Field(default=NamingMode.PREFIX, description="命名规则")
    prefix: str = Field(default="wm_", description="文件名前缀")
    suffix: str = Field(default="_watermarked", description="文件名后缀")
    format: ExportFormat = Field(default=ExportFormat.SOURCE, description="导出格式")

    def trimmed(self) -> "ExportOptions":
        return self.with_changes(
            output_dir=self.output_dir.strip(),
            prefix=self.prefix.strip(),
            suffix=self.suffix.strip(),
        )


class FileEntry(WireModel):
    """待处理文件"""
    path: str
    display_name: str
    thumbnail: str = ""


class WatermarkTemplate(WireModel):
    """水印模板"""
    id: str
    name: str
    created_at: datetime
    options: WatermarkOptions


def sort_templates(items: Iterable[WatermarkTemplate]) -> List[WatermarkTemplate]:
    """按创建时间倒序排列模板"""
    return sorted(items, key=lambda item: item.created_at, reverse=True)


class ExportFailure(WireModel):
    """单个文件导出失败记录"""
    file: str
    reason: str


class ExportSummary(WireModel):
    """批量导出结果"""
    success_count: int = 0
    failure_count: int = 0
    failures: List[ExportFailure] = Field(default_factory=list)

    def describe(self) -> List[str]:
        """逐条列出失败文件"""
        return [f"{failure.file}: {failure.reason}" for failure in self.failures]


class ExportProgress(WireModel):
    """导出进度推送"""
    processed: int
    total: int
    current_file: str = ""


class ExportState(str, Enum):
    """导出状态"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class ExportStatus(WireModel):
    """导出状态快照"""
    state: ExportState = ExportState.IDLE
    total: int = 0
    processed: int = 0
    message: Optional[str] = None
    summary: Optional[ExportSummary] = None


class MessageKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class UserMessage(WireModel):
    """提示消息（模板操作）"""
    kind: MessageKind
    text: str


class ConfigState(WireModel):
    """宿主保存的配置状态"""
    templates: List[WatermarkTemplate] = Field(default_factory=list)
    last_used_options: WatermarkOptions = Field(
        default_factory=lambda: WatermarkOptions(**config.DEFAULT_WATERMARK_OPTIONS)
    )
    last_used_template_id: Optional[str] = None


class SaveTemplateRequest(WireModel):
    """保存模板请求"""
    name: str = Field(..., max_length=100, description="模板名称")
    options: WatermarkOptions


class SaveTemplateResult(WireModel):
    """保存模板响应"""
    templates: List[WatermarkTemplate]
    template_id: str


class DeleteTemplateResult(WireModel):
    """删除模板响应"""
    templates: List[WatermarkTemplate]
    last_used_template_id: Optional[str] = None


class LastUsedUpdate(WireModel):
    """更新上次使用的配置"""
    options: WatermarkOptions
    template_id: Optional[str] = None


class BatchExportRequest(WireModel):
    """批量导出请求"""
    file_paths: List[str]
    watermark_options: WatermarkOptions
    export_options: ExportOptions


class PathList(WireModel):
    paths: List[str] = Field(default_factory=list)


class PreviewRequest(WireModel):
    path: str
    options: WatermarkOptions


class PreviewResponse(WireModel):
    image: Optional[str] = None


class FileNameResponse(WireModel):
    name: str


class ThumbnailResponse(WireModel):
    thumbnail: str


class DirectoryResponse(WireModel):
    path: Optional[str] = None
