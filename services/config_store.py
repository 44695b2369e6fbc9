"""
配置存储 - 模板与上次使用的水印配置（JSON 文件）
"""
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import config
from models import (
    ConfigState, DeleteTemplateResult, SaveTemplateResult, WatermarkOptions,
    WatermarkTemplate, sort_templates
)

logger = logging.getLogger(__name__)


class TemplateNotFound(KeyError):
    """模板不存在"""


class ConfigStore:
    """JSON 文件存储，读写均加锁"""

    def __init__(self, path: Path = config.CONFIG_FILE):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> ConfigState:
        if not self.path.exists():
            return ConfigState()
        try:
            return ConfigState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.error(f"配置文件损坏，使用默认配置: {e}")
            return ConfigState()

    def _write(self, state: ConfigState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(state.to_wire(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        tmp_path.replace(self.path)

    def load(self) -> ConfigState:
        with self._lock:
            state = self._read()
        return state.with_changes(templates=sort_templates(state.templates))

    def save_template(self, name: str, options: WatermarkOptions) -> SaveTemplateResult:
        """新增模板，并记录为上次使用的模板"""
        name = name.strip()
        if not name:
            raise ValueError("模板名称不能为空")
        template = WatermarkTemplate(
            id=uuid.uuid4().hex,
            name=name,
            created_at=datetime.now(timezone.utc),
            options=options,
        )
        with self._lock:
            state = self._read()
            templates = sort_templates([*state.templates, template])
            self._write(ConfigState(
                templates=templates,
                last_used_options=options,
                last_used_template_id=template.id,
            ))
        logger.info(f"模板已保存: {name} ({template.id})")
        return SaveTemplateResult(templates=templates, template_id=template.id)

    def delete_template(self, template_id: str) -> DeleteTemplateResult:
        """删除模板；删除的是上次使用的模板时清空该记录"""
        with self._lock:
            state = self._read()
            remaining = [item for item in state.templates if item.id != template_id]
            if len(remaining) == len(state.templates):
                raise TemplateNotFound(template_id)
            last_used_id = state.last_used_template_id
            if last_used_id == template_id:
                last_used_id = None
            templates = sort_templates(remaining)
            self._write(ConfigState(
                templates=templates,
                last_used_options=state.last_used_options,
                last_used_template_id=last_used_id,
            ))
        logger.info(f"模板已删除: {template_id}")
        return DeleteTemplateResult(templates=templates, last_used_template_id=last_used_id)

    def update_last_used(self, options: WatermarkOptions, template_id: Optional[str]) -> None:
        """记录上次使用的配置，模板已不存在时不记录模板"""
        with self._lock:
            state = self._read()
            if template_id and not any(item.id == template_id for item in state.templates):
                template_id = None
            self._write(state.with_changes(last_used_options=options, last_used_template_id=template_id))
