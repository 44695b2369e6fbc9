"""
水印编辑器配置文件
"""
import os
from pathlib import Path

# 宿主服务配置
HOST = os.getenv("WATERMARK_HOST", "127.0.0.1")
PORT = int(os.getenv("WATERMARK_PORT", "9996"))

# 编辑器连接宿主服务的地址
HOST_URL = os.getenv("WATERMARK_HOST_URL", f"http://{HOST}:{PORT}")

# 请求超时 (秒)
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))

# 文件存储配置
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("WATERMARK_DATA_DIR", str(BASE_DIR / "data")))
CONFIG_FILE = DATA_DIR / "watermark_config.json"

# 无界面环境下的文件选择根目录
IMPORT_DIR = Path(os.getenv("WATERMARK_IMPORT_DIR", str(BASE_DIR / "input")))
EXPORT_DIR = os.getenv("WATERMARK_EXPORT_DIR", "")

# 确保目录存在
DATA_DIR.mkdir(parents=True, exist_ok=True)

# 线程池配置
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "4"))

# 支持的文件类型
SUPPORTED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp"}

# 文件大小限制 (50MB)
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(50 * 1024 * 1024)))

# 缩略图与预览尺寸
THUMBNAIL_SIZE = (160, 160)
PREVIEW_MAX_SIDE = int(os.getenv("PREVIEW_MAX_SIDE", "1024"))

# 上次使用配置的防抖写入间隔 (秒)
PERSIST_DEBOUNCE_SECONDS = float(os.getenv("PERSIST_DEBOUNCE_SECONDS", "0.4"))

# 模板提示消息的显示时长 (秒)
TEMPLATE_MESSAGE_SECONDS = float(os.getenv("TEMPLATE_MESSAGE_SECONDS", "3.0"))

# 水印默认配置
DEFAULT_WATERMARK_OPTIONS = {
    "text": "Hello World",
    "size": 50,
    "color": "#ffffff",
    "opacity": 100,
    "mode": "preset",
    "position": "center",
}

# 导出默认配置
DEFAULT_EXPORT_OPTIONS = {
    "output_dir": "",
    "naming_mode": "prefix",
    "prefix": "wm_",
    "suffix": "_watermarked",
    "format": "source",
}

# 自定义字体路径（可选，用于支持特定中文字体）
# 如果设置，将优先使用此字体
CUSTOM_FONT_PATH = os.getenv("CUSTOM_FONT_PATH", "")
