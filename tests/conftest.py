"""
Shared fixtures for watermark editor tests
"""
import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from PIL import Image

from models import (
    ConfigState, DeleteTemplateResult, ExportProgress, ExportSummary,
    SaveTemplateResult, WatermarkOptions, WatermarkTemplate
)
from engine.errors import HostCallError

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_template(template_id, name=None, minutes=0, **options):
    """Template created `minutes` after BASE_TIME"""
    return WatermarkTemplate(
        id=template_id,
        name=name or f"template {template_id}",
        created_at=BASE_TIME + timedelta(minutes=minutes),
        options=WatermarkOptions(**options),
    )


class FakeHost:
    """In-memory host recording every call"""

    def __init__(self, templates=None, last_used_options=None, last_used_template_id=None):
        self.templates = list(templates or [])
        self.last_used_options = last_used_options or WatermarkOptions()
        self.last_used_template_id = last_used_template_id
        self.calls = []
        self.fail = set()
        self.failing_paths = set()
        self.delays = {}
        self.expansions = {}
        self.dialog_files = []
        self.export_directory = None
        self.preview_image = "data:image/png;base64,cHJldmlldw=="
        self.export_summary = ExportSummary()
        self.export_gate = None
        self.export_requests = []
        self.persisted = []
        self.progress_callbacks = []
        self._counter = 0

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise HostCallError(f"{name} rejected")

    def called(self, name):
        return sum(1 for call, _ in self.calls if call == name)

    async def select_files(self):
        self._record("select_files")
        return list(self.dialog_files)

    async def select_directory(self):
        self._record("select_directory")
        return list(self.dialog_files)

    async def select_export_directory(self):
        self._record("select_export_directory")
        return self.export_directory

    async def get_file_name(self, path):
        self._record("get_file_name", path)
        await asyncio.sleep(self.delays.get(path, 0))
        if path in self.failing_paths:
            raise HostCallError(f"cannot read {path}")
        return Path(path).name

    async def get_thumbnail(self, path):
        self._record("get_thumbnail", path)
        return f"thumb:{path}"

    async def resolve_dropped_file_path(self, handle):
        self._record("resolve_dropped_file_path", handle)
        return handle if isinstance(handle, str) and handle else None

    async def expand_dropped_paths(self, paths):
        self._record("expand_dropped_paths", paths)
        result = []
        for path in paths:
            result.extend(self.expansions.get(path, [path]))
        return result

    async def apply_watermark(self, path, options):
        self._record("apply_watermark", path, options)
        return self.preview_image

    async def get_config_state(self):
        self._record("get_config_state")
        return ConfigState(
            templates=list(self.templates),
            last_used_options=self.last_used_options,
            last_used_template_id=self.last_used_template_id,
        )

    async def save_template(self, name, options):
        self._record("save_template", name, options)
        self._counter += 1
        template = WatermarkTemplate(
            id=f"new-{self._counter}",
            name=name,
            created_at=BASE_TIME + timedelta(days=1, minutes=self._counter),
            options=options,
        )
        # host returns the list unsorted on purpose
        self.templates = [*self.templates, template]
        self.last_used_template_id = template.id
        return SaveTemplateResult(templates=list(self.templates), template_id=template.id)

    async def delete_template(self, template_id):
        self._record("delete_template", template_id)
        self.templates = [item for item in self.templates if item.id != template_id]
        if self.last_used_template_id == template_id:
            self.last_used_template_id = None
        return DeleteTemplateResult(
            templates=list(self.templates),
            last_used_template_id=self.last_used_template_id,
        )

    async def update_last_used_options(self, options, template_id):
        self._record("update_last_used_options", options, template_id)
        self.persisted.append((options, template_id, asyncio.get_running_loop().time()))

    async def run_batch_export(self, request):
        self._record("run_batch_export", request)
        self.export_requests.append(request)
        if self.export_gate is not None:
            await self.export_gate.wait()
        if "run_batch_export_late" in self.fail:
            raise HostCallError("disk full")
        return self.export_summary

    def subscribe_export_progress(self, callback):
        self.progress_callbacks.append(callback)
        return lambda: self.progress_callbacks.remove(callback)

    def push_progress(self, processed, total, current_file="file.jpg"):
        payload = ExportProgress(processed=processed, total=total, current_file=current_file)
        for callback in list(self.progress_callbacks):
            callback(payload)


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def sample_templates():
    """Three templates deliberately out of createdAt order"""
    return [
        make_template("old", "Old", minutes=0, text="old"),
        make_template("newest", "Newest", minutes=20, text="newest"),
        make_template("middle", "Middle", minutes=10, text="middle", mode="custom", offsetX=0.2, offsetY=0.7),
    ]


@pytest.fixture
def image_dir(tmp_path):
    """Directory with two real images, a corrupt image and a text file"""
    directory = tmp_path / "images"
    directory.mkdir()
    Image.new("RGB", (120, 80), color="red").save(directory / "a.jpg")
    Image.new("RGBA", (64, 64), color=(0, 128, 255, 255)).save(directory / "b.png")
    (directory / "broken.jpg").write_bytes(b"not an image")
    (directory / "notes.txt").write_text("hello")
    return directory
