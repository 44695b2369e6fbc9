"""
文件处理工具
"""
import base64
import mimetypes
import os
from pathlib import Path
from typing import Iterable, List, Optional

import config
from models import ExportFormat, ExportOptions, NamingMode

# 扩展名对应的 Pillow 保存格式
FORMAT_MAP = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".bmp": "BMP",
    ".webp": "WEBP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}


def get_file_extension(filename: str) -> str:
    """获取文件扩展名"""
    return Path(filename).suffix.lower()


def get_display_name(path: str) -> str:
    """获取显示用的文件名"""
    return Path(path).name


def is_supported_image(path) -> bool:
    """根据扩展名判断是否为支持的图片"""
    return get_file_extension(str(path)) in config.SUPPORTED_IMAGE_EXTENSIONS


def list_image_files(directory, recursive: bool = False) -> List[str]:
    """列出目录中的图片文件（按路径排序）"""
    root = Path(directory)
    if not root.is_dir():
        return []
    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(str(p) for p in candidates if p.is_file() and is_supported_image(p))


def expand_paths(paths: Iterable[str]) -> List[str]:
    """
    展开拖放的路径
    文件夹递归展开，非图片文件被过滤，保持输入顺序
    """
    result = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            result.extend(list_image_files(path, recursive=True))
        elif path.is_file() and is_supported_image(path):
            result.append(str(path))
    return result


def resolve_output_format(source_path: str, export_format: ExportFormat) -> str:
    """确定导出时的 Pillow 格式"""
    if export_format == ExportFormat.PNG:
        return "PNG"
    if export_format == ExportFormat.JPEG:
        return "JPEG"
    return FORMAT_MAP.get(get_file_extension(source_path), "PNG")


def build_output_filename(source_path: str, options: ExportOptions) -> str:
    """
    按命名规则生成导出文件名
    - original: 保持原文件名
    - prefix: 文件名前加前缀
    - suffix: 扩展名前加后缀
    强制导出格式时替换扩展名
    """
    source = Path(source_path)
    stem, ext = source.stem, source.suffix
    if options.format == ExportFormat.PNG:
        ext = ".png"
    elif options.format == ExportFormat.JPEG:
        ext = ".jpg"

    if options.naming_mode == NamingMode.PREFIX:
        stem = f"{options.prefix.strip()}{stem}"
    elif options.naming_mode == NamingMode.SUFFIX:
        stem = f"{stem}{options.suffix.strip()}"
    return f"{stem}{ext}"


def to_data_url(content: bytes, image_format: str) -> str:
    """图片数据转为 data URL"""
    mime = mimetypes.types_map.get(f".{image_format.lower()}", "image/png")
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def ensure_output_dir(directory: str) -> Path:
    """确保导出目录存在"""
    output_dir = Path(directory).expanduser()
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def save_output_file(content: bytes, output_dir: Path, filename: str) -> Path:
    """保存输出文件"""
    output_path = output_dir / filename
    output_path.write_bytes(content)
    return output_path


def same_file(first: Path, second: Path) -> bool:
    """判断两个路径是否指向同一个文件"""
    try:
        return first.exists() and second.exists() and os.path.samefile(first, second)
    except OSError:
        return False


def check_file_size(path: Path) -> Optional[str]:
    """检查文件大小，超出限制时返回原因"""
    if path.stat().st_size > config.MAX_FILE_SIZE:
        return "文件大小超过限制"
    return None
