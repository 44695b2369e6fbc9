"""
副作用调度

每种副作用同一时间最多只有一个待执行任务：新的副作用会取消尚未完成的旧任务
（防抖写入、最新预览优先、消息到期重新计时）。
延迟为 0 的同步处理函数直接执行。
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class EffectScheduler:
    def __init__(self, handlers: Dict[type, Handler], delays: Optional[Dict[type, float]] = None):
        self._handlers = handlers
        self._delays = delays or {}
        self._pending: Dict[type, asyncio.Task] = {}

    def submit(self, effects: Iterable[Any]) -> None:
        for effect in effects:
            self._dispatch(effect)

    def _dispatch(self, effect) -> None:
        kind = type(effect)
        handler = self._handlers[kind]
        delay = self._delays.get(kind, 0.0)
        if delay <= 0 and not inspect.iscoroutinefunction(handler):
            handler(effect)
            return

        self.cancel(kind)
        loop = asyncio.get_running_loop()
        self._pending[kind] = loop.create_task(self._run_later(kind, delay, handler, effect))

    async def _run_later(self, kind: type, delay: float, handler: Handler, effect) -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            result = handler(effect)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"副作用执行失败 {kind.__name__}: {e}")
        finally:
            if self._pending.get(kind) is asyncio.current_task():
                del self._pending[kind]

    def pending(self, kind: type) -> bool:
        task = self._pending.get(kind)
        return task is not None and not task.done()

    def cancel(self, kind: type) -> bool:
        """取消尚未完成的副作用，返回是否确有任务被取消"""
        task = self._pending.pop(kind, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for kind in list(self._pending):
            self.cancel(kind)

    async def drain(self) -> None:
        """等待所有待执行的副作用完成"""
        while self._pending:
            await asyncio.gather(*list(self._pending.values()), return_exceptions=True)
