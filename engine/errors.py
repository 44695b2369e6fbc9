"""
编辑器错误类型
"""


class WatermarkerError(Exception):
    """编辑器错误基类"""


class ValidationError(WatermarkerError):
    """本地校验失败（不会调用宿主）"""


class NotSelectedError(ValidationError):
    """未选择模板"""


class TemplateNotFoundError(ValidationError):
    """模板不存在"""


class HostCallError(WatermarkerError):
    """宿主调用失败"""


class LoadFailure(HostCallError):
    """初始配置加载失败"""
