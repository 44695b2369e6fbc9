"""
水印渲染服务 - 预览、缩略图与导出编码
"""
import io
import glob
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

import config as app_config
from models import WatermarkOptions
from engine.position import resolve_anchor
from utils.file_handler import to_data_url


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """HEX颜色转RGB"""
    hex_color = hex_color.lstrip("#")
    return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))


def hex_to_rgba(hex_color: str, opacity: int) -> Tuple[int, int, int, int]:
    """HEX颜色转RGBA，opacity 取值 0-100"""
    r, g, b = hex_to_rgb(hex_color)
    a = round(opacity * 255 / 100)
    return (r, g, b, a)


# 全局字体路径配置（支持中文）
CHINESE_FONT_PATHS = [
    # Windows
    "C:/Windows/Fonts/msyh.ttc",      # 微软雅黑
    "C:/Windows/Fonts/simhei.ttf",    # 黑体
    "C:/Windows/Fonts/arial.ttf",
    # macOS
    "/System/Library/Fonts/PingFang.ttc",           # 苹方
    "/System/Library/Fonts/STHeiti Light.ttc",      # 华文黑体
    "/Library/Fonts/Arial Unicode.ttf",
    # Linux
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
]


logger = logging.getLogger(__name__)


def _find_cjk_fonts() -> list:
    """动态查找系统中的字体"""
    patterns = [
        "/usr/share/fonts/**/*.otf",
        "/usr/share/fonts/**/*.ttf",
        "/usr/share/fonts/**/*.ttc",
    ]
    found = []
    for pattern in patterns:
        found.extend(glob.glob(pattern, recursive=True))
    logger.debug(f"动态查找到的字体: {found}")
    return found


@lru_cache(maxsize=32)
def get_font(size: int) -> ImageFont.ImageFont:
    """获取字体，优先使用自定义字体与系统中文字体"""
    font_paths = []
    if app_config.CUSTOM_FONT_PATH and Path(app_config.CUSTOM_FONT_PATH).exists():
        font_paths.append(app_config.CUSTOM_FONT_PATH)
    font_paths.extend(CHINESE_FONT_PATHS)
    font_paths.extend(_find_cjk_fonts())

    for font_path in font_paths:
        if not Path(font_path).exists():
            continue
        try:
            # .ttc文件需要指定字体索引
            if font_path.lower().endswith(".ttc"):
                font = ImageFont.truetype(font_path, size, index=0)
            else:
                font = ImageFont.truetype(font_path, size)
            logger.info(f"成功加载字体: {font_path}")
            return font
        except OSError as e:
            logger.error(f"加载字体失败 {font_path}: {e}")
            continue

    # 降级使用默认字体
    logger.warning("未找到可用字体，使用默认字体")
    return ImageFont.load_default()


def open_image(path: str) -> Image.Image:
    """打开图片并按 EXIF 方向校正"""
    with Image.open(path) as img:
        img.load()
        return ImageOps.exif_transpose(img)


def render_watermark(img: Image.Image, options: WatermarkOptions) -> Image.Image:
    """在图片上绘制文字水印，文字中心位于归一化锚点"""
    if img.mode != "RGBA":
        img = img.convert("RGBA")

    text = options.text.strip()
    if not text:
        return img

    watermark_layer = Image.new("RGBA", img.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(watermark_layer)
    font = get_font(options.size)
    color = hex_to_rgba(options.color, options.opacity)

    bbox = draw.textbbox((0, 0), text, font=font)
    text_width = bbox[2] - bbox[0]
    text_height = bbox[3] - bbox[1]

    anchor = resolve_anchor(options)
    x = anchor.x * img.size[0] - text_width / 2 - bbox[0]
    y = anchor.y * img.size[1] - text_height / 2 - bbox[1]
    draw.text((x, y), text, font=font, fill=color)

    return Image.alpha_composite(img, watermark_layer)


def encode_image(img: Image.Image, output_format: str) -> bytes:
    """按格式编码图片，JPEG 需去掉透明通道"""
    if output_format in ("JPEG", "BMP") and img.mode != "RGB":
        img = img.convert("RGB")
    output = io.BytesIO()
    if output_format == "JPEG":
        img.save(output, format=output_format, quality=95)
    else:
        img.save(output, format=output_format)
    return output.getvalue()


def apply_watermark(path: str, options: WatermarkOptions, output_format: str) -> bytes:
    """读取图片、添加水印并编码"""
    img = open_image(path)
    return encode_image(render_watermark(img, options), output_format)


def render_preview(path: str, options: WatermarkOptions) -> Optional[str]:
    """生成预览图 data URL，无法读取图片时返回 None"""
    try:
        img = open_image(path)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as e:
        logger.warning(f"无法生成预览 {path}: {e}")
        return None
    result = render_watermark(img, options)
    result.thumbnail((app_config.PREVIEW_MAX_SIDE, app_config.PREVIEW_MAX_SIDE))
    return to_data_url(encode_image(result, "PNG"), "PNG")


def make_thumbnail(path: str) -> str:
    """生成缩略图 data URL"""
    img = open_image(path)
    img.thumbnail(app_config.THUMBNAIL_SIZE)
    return to_data_url(encode_image(img, "PNG"), "PNG")
