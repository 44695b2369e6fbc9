"""
水印模板管理

区分两种模板标识：
  - selected: 模板选择器当前指向的模板
  - applied: 当前水印配置来源的模板（由 OptionsSync 维护）
"""
import logging
from typing import List, Optional

from models import (
    ConfigState, DeleteTemplateResult, MessageKind, SaveTemplateResult,
    UserMessage, WatermarkOptions, WatermarkTemplate, sort_templates
)
from engine.errors import HostCallError, NotSelectedError, TemplateNotFoundError, ValidationError
from engine.options_sync import LoadedFromTemplate, ProvenanceChanged

logger = logging.getLogger(__name__)


def _contains(templates: List[WatermarkTemplate], template_id: Optional[str]) -> bool:
    return bool(template_id) and any(item.id == template_id for item in templates)


def _fallback_id(templates: List[WatermarkTemplate], preferred: Optional[str]) -> Optional[str]:
    """优先使用 preferred，否则取最新的模板"""
    if _contains(templates, preferred):
        return preferred
    return templates[0].id if templates else None


class TemplateManager:
    def __init__(self, store, host, options_sync):
        self._store = store
        self._host = host
        self._options = options_sync

    @property
    def templates(self) -> List[WatermarkTemplate]:
        return list(self._store.state.templates)

    @property
    def selected_template_id(self) -> Optional[str]:
        return self._store.state.selected_template_id

    @property
    def applied_template(self) -> Optional[WatermarkTemplate]:
        return self.find(self._store.state.applied_template_id)

    @property
    def message(self) -> Optional[UserMessage]:
        return self._store.state.template_message

    def find(self, template_id: Optional[str]) -> Optional[WatermarkTemplate]:
        if not template_id:
            return None
        return next((item for item in self._store.state.templates if item.id == template_id), None)

    def notify(self, kind: MessageKind, text: str) -> UserMessage:
        message = UserMessage(kind=kind, text=text)

        def mutate(state):
            state.template_message = message

        self._store.commit(mutate)
        return message

    def expire_message(self, effect) -> None:
        """提示消息到期；期间已被新消息替换时不做处理"""
        if self._store.state.template_message is not effect.message:
            return

        def mutate(state):
            state.template_message = None

        self._store.commit(mutate)

    def _set_templates(self, templates: List[WatermarkTemplate], selected_id: Optional[str]) -> None:
        def mutate(state):
            state.templates = templates
            state.selected_template_id = selected_id

        self._store.commit(mutate)

    async def load(self) -> ConfigState:
        """加载模板与上次使用的配置；失败时降级为空模板列表"""
        try:
            try:
                config_state = await self._host.get_config_state()
            except HostCallError as e:
                logger.warning(f"加载模板配置失败: {e}")
                self._set_templates([], None)
                self._options.apply(ProvenanceChanged(None))
                self.notify(MessageKind.ERROR, "加载模板配置失败")
                return ConfigState(last_used_options=self._options.options)

            templates = sort_templates(config_state.templates)
            last_used_id = config_state.last_used_template_id
            matched_id = last_used_id if _contains(templates, last_used_id) else None
            self._set_templates(templates, _fallback_id(templates, matched_id))
            self._options.apply(LoadedFromTemplate(config_state.last_used_options, matched_id))
            logger.info(f"已加载 {len(templates)} 个模板, 已应用模板: {matched_id}")
            return ConfigState(
                templates=templates,
                last_used_options=config_state.last_used_options,
                last_used_template_id=last_used_id,
            )
        finally:
            def mutate(state):
                state.config_ready = True

            self._store.commit(mutate)

    def select(self, template_id: Optional[str]) -> None:
        """移动模板选择器"""
        if template_id and self.find(template_id) is None:
            raise TemplateNotFoundError("未找到对应模板")

        def mutate(state):
            state.selected_template_id = template_id or None

        self._store.commit(mutate)

    async def save(self, name: str, options: Optional[WatermarkOptions] = None) -> SaveTemplateResult:
        """保存当前配置为模板，新模板同时成为选中与已应用模板"""
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("请填写模板名称")
        snapshot = options or self._options.options

        try:
            result = await self._host.save_template(trimmed, snapshot)
        except HostCallError as e:
            raise HostCallError(str(e) or "保存模板失败") from e

        templates = sort_templates(result.templates)
        self._set_templates(templates, result.template_id)
        self._options.apply(ProvenanceChanged(result.template_id))
        self.notify(MessageKind.SUCCESS, "模板已保存")
        logger.info(f"模板已保存: {trimmed} ({result.template_id})")
        return SaveTemplateResult(templates=templates, template_id=result.template_id)

    def select_load(self, template_id: Optional[str] = None) -> WatermarkOptions:
        """以模板整体替换当前配置，并标记为已应用模板"""
        target = template_id if template_id is not None else self.selected_template_id
        if not target:
            raise NotSelectedError("请选择要加载的模板")
        template = self.find(target)
        if template is None:
            raise TemplateNotFoundError("未找到对应模板")

        if target != self.selected_template_id:
            self.select(target)
        self._options.apply(LoadedFromTemplate(template.options, template.id))
        self.notify(MessageKind.SUCCESS, f"已加载模板：{template.name}")
        return template.options

    async def delete(self, template_id: Optional[str] = None) -> DeleteTemplateResult:
        """删除模板（默认删除选中的模板）

        删除后选择器回退到宿主记录的上次使用模板，其次是最新的模板。
        只有被删除的是选中模板且它同时是已应用模板时，已应用模板才随之回退。
        """
        selected_id = self.selected_template_id
        if not selected_id:
            raise NotSelectedError("请选择要删除的模板")
        target = template_id or selected_id

        try:
            result = await self._host.delete_template(target)
        except HostCallError as e:
            raise HostCallError(str(e) or "删除模板失败") from e

        templates = sort_templates(result.templates)
        fallback_id = _fallback_id(templates, result.last_used_template_id)
        self._set_templates(templates, fallback_id)
        if target == selected_id and self._options.applied_template_id == selected_id:
            self._options.apply(ProvenanceChanged(fallback_id))
        self.notify(MessageKind.SUCCESS, "模板已删除")
        logger.info(f"模板已删除: {target}")
        return DeleteTemplateResult(templates=templates, last_used_template_id=result.last_used_template_id)
