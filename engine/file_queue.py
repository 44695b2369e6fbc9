"""
待处理文件队列（只追加，不去重）
"""
import asyncio
import logging
from typing import Any, Iterable, List

from models import FileEntry

logger = logging.getLogger(__name__)


class FileIngestionQueue:
    def __init__(self, store, host):
        self._store = store
        self._host = host

    @property
    def entries(self) -> List[FileEntry]:
        return list(self._store.state.files)

    @property
    def paths(self) -> List[str]:
        return [entry.path for entry in self._store.state.files]

    def __len__(self) -> int:
        return len(self._store.state.files)

    async def _resolve(self, path: str) -> FileEntry:
        name, thumbnail = await asyncio.gather(
            self._host.get_file_name(path),
            self._host.get_thumbnail(path),
        )
        return FileEntry(path=path, display_name=name, thumbnail=thumbnail)

    async def add(self, paths: Iterable[str]) -> List[FileEntry]:
        """读取文件名与缩略图后按输入顺序一次性追加

        单个文件读取失败时跳过该文件，其余文件照常加入。
        """
        paths = list(paths or [])
        if not paths:
            return []

        results = await asyncio.gather(
            *(self._resolve(path) for path in paths),
            return_exceptions=True,
        )

        resolved = []
        for path, result in zip(paths, results):
            if isinstance(result, Exception):
                logger.warning(f"无法读取文件信息 {path}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            resolved.append(result)

        if resolved:
            def mutate(state):
                state.files = [*state.files, *resolved]

            self._store.commit(mutate)
            logger.info(f"已添加 {len(resolved)} 个文件")
        return resolved

    async def add_from_files_dialog(self) -> List[FileEntry]:
        return await self.add(await self._host.select_files())

    async def add_from_directory_dialog(self) -> List[FileEntry]:
        return await self.add(await self._host.select_directory())

    async def add_dropped(self, handles: Iterable[Any]) -> List[FileEntry]:
        """处理拖放：解析路径、展开文件夹并过滤非图片文件"""
        handles = list(handles or [])
        resolved = await asyncio.gather(
            *(self._host.resolve_dropped_file_path(handle) for handle in handles)
        )
        valid_paths = [path for path in resolved if path]
        if not valid_paths:
            return []
        image_paths = await self._host.expand_dropped_paths(valid_paths)
        return await self.add(image_paths)
