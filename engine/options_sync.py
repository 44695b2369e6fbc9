"""
水印配置同步

配置变化以带标签的状态迁移表示：
  - Edited: 用户直接修改，清除已应用模板
  - LoadedFromTemplate: 由模板（或启动时恢复）整体替换，记录来源模板
  - ProvenanceChanged: 只修改已应用模板（保存 / 删除模板后）
持久化由 reconcile 产生的 PersistLastUsed 副作用驱动，经调度器防抖后写入宿主。
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from models import WatermarkOptions
from engine.position import Point, commit_custom, select_preset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edited:
    options: WatermarkOptions


@dataclass(frozen=True)
class LoadedFromTemplate:
    options: WatermarkOptions
    template_id: Optional[str]


@dataclass(frozen=True)
class ProvenanceChanged:
    template_id: Optional[str]


Transition = Union[Edited, LoadedFromTemplate, ProvenanceChanged]


class OptionsSync:
    def __init__(self, store, host):
        self._store = store
        self._host = host

    @property
    def options(self) -> WatermarkOptions:
        return self._store.state.options

    @property
    def applied_template_id(self) -> Optional[str]:
        return self._store.state.applied_template_id

    def apply(self, transition: Transition) -> WatermarkOptions:
        """唯一的配置修改入口"""
        def mutate(state):
            if isinstance(transition, Edited):
                state.options = transition.options
                state.applied_template_id = None
            elif isinstance(transition, LoadedFromTemplate):
                state.options = transition.options
                state.applied_template_id = transition.template_id
            elif isinstance(transition, ProvenanceChanged):
                state.applied_template_id = transition.template_id
            else:
                raise TypeError(f"未知的配置变更: {transition!r}")

        self._store.commit(mutate)
        return self.options

    def edit(self, **changes) -> WatermarkOptions:
        """直接修改配置字段"""
        return self.apply(Edited(self.options.with_changes(**changes)))

    def commit_position(self, point: Point) -> WatermarkOptions:
        return self.apply(Edited(commit_custom(self.options, point)))

    def choose_preset(self, preset) -> WatermarkOptions:
        return self.apply(Edited(select_preset(self.options, preset)))

    async def persist(self, effect=None) -> None:
        """写入上次使用的配置，以写入时的当前状态为准"""
        state = self._store.state
        if not state.config_ready:
            return
        logger.debug(f"保存上次使用的配置, 模板: {state.applied_template_id}")
        await self._host.update_last_used_options(state.options, state.applied_template_id)
