"""
Tests for template loading, saving, loading into the editor and deletion
"""
import asyncio

import pytest

from models import MessageKind, WatermarkOptions
from engine.editor import WatermarkEditor
from engine.errors import (
    HostCallError, NotSelectedError, TemplateNotFoundError, ValidationError
)

from conftest import FakeHost


def ids(templates):
    return [item.id for item in templates]


async def opened(host, **kwargs):
    kwargs.setdefault("message_ttl", 60)
    editor = WatermarkEditor(host, **kwargs)
    await editor.open()
    return editor


@pytest.fixture
def applied_host(sample_templates):
    """Host whose last used template is "middle" """
    middle = next(item for item in sample_templates if item.id == "middle")
    return FakeHost(
        templates=sample_templates,
        last_used_options=middle.options,
        last_used_template_id="middle",
    )


class TestLoad:
    def test_matched_last_used_is_selected_and_applied(self, applied_host):
        async def scenario():
            return await opened(applied_host)

        editor = asyncio.run(scenario())
        assert ids(editor.templates.templates) == ["newest", "middle", "old"]
        assert editor.templates.selected_template_id == "middle"
        assert editor.options.applied_template_id == "middle"
        assert editor.templates.applied_template.name == "Middle"
        assert editor.options.options.offset_x == 0.2
        assert editor.state.config_ready is True

    def test_unknown_last_used_selects_most_recent(self, sample_templates):
        host = FakeHost(
            templates=sample_templates,
            last_used_options=WatermarkOptions(text="ad hoc"),
            last_used_template_id="gone",
        )

        async def scenario():
            return await opened(host)

        editor = asyncio.run(scenario())
        assert editor.templates.selected_template_id == "newest"
        assert editor.options.applied_template_id is None
        assert editor.options.options.text == "ad hoc"

    def test_empty_config(self, host):
        async def scenario():
            return await opened(host)

        editor = asyncio.run(scenario())
        assert editor.templates.templates == []
        assert editor.templates.selected_template_id is None
        assert editor.options.applied_template_id is None
        assert editor.templates.message is None

    def test_load_failure_degrades(self, host):
        host.fail.add("get_config_state")

        async def scenario():
            editor = await opened(host)
            editor.edit(text="still editable")
            return editor

        editor = asyncio.run(scenario())
        assert editor.templates.templates == []
        assert editor.templates.selected_template_id is None
        assert editor.options.applied_template_id is None
        assert editor.state.config_ready is True
        assert editor.templates.message.kind == MessageKind.ERROR
        assert editor.templates.message.text == "加载模板配置失败"
        assert editor.options.options.text == "still editable"


class TestSave:
    def test_blank_name_never_reaches_host(self, host):
        async def scenario():
            editor = await opened(host)
            with pytest.raises(ValidationError):
                await editor.templates.save("   ")
            template_id = await editor.save_template("")
            return editor, template_id

        editor, template_id = asyncio.run(scenario())
        assert template_id is None
        assert host.called("save_template") == 0
        assert editor.templates.message.text == "请填写模板名称"
        assert editor.templates.message.kind == MessageKind.ERROR

    def test_save_selects_and_applies_new_template(self, applied_host):
        async def scenario():
            editor = await opened(applied_host)
            editor.edit(text="brand")
            template_id = await editor.save_template("  Brand  ")
            return editor, template_id

        editor, template_id = asyncio.run(scenario())
        assert template_id == "new-1"
        assert ids(editor.templates.templates) == ["new-1", "newest", "middle", "old"]
        assert editor.templates.selected_template_id == "new-1"
        assert editor.options.applied_template_id == "new-1"
        assert editor.templates.applied_template.name == "Brand"
        assert editor.templates.applied_template.options.text == "brand"
        assert editor.templates.message.text == "模板已保存"

    def test_host_rejection_leaves_state(self, applied_host):
        applied_host.fail.add("save_template")

        async def scenario():
            editor = await opened(applied_host)
            before = (editor.templates.templates, editor.options.options)
            with pytest.raises(HostCallError):
                await editor.templates.save("Brand")
            assert await editor.save_template("Brand") is None
            return editor, before

        editor, before = asyncio.run(scenario())
        assert (editor.templates.templates, editor.options.options) == before
        assert editor.options.applied_template_id == "middle"
        assert editor.templates.message.text == "save_template rejected"


class TestSelectLoad:
    def test_load_replaces_options_and_marks_applied(self, sample_templates):
        host = FakeHost(templates=sample_templates)

        async def scenario():
            editor = await opened(host)
            editor.edit(text="scratch")
            editor.templates.select("middle")
            return editor, editor.load_template()

        editor, options = asyncio.run(scenario())
        middle = next(item for item in sample_templates if item.id == "middle")
        assert options == middle.options
        assert editor.options.options == middle.options
        assert editor.options.applied_template_id == "middle"
        assert editor.templates.message.text == "已加载模板：Middle"

    def test_explicit_id_moves_selector(self, sample_templates):
        host = FakeHost(templates=sample_templates)

        async def scenario():
            editor = await opened(host)
            editor.templates.select_load("old")
            return editor

        editor = asyncio.run(scenario())
        assert editor.templates.selected_template_id == "old"
        assert editor.options.options.text == "old"

    def test_nothing_selected(self, host):
        async def scenario():
            editor = await opened(host)
            with pytest.raises(NotSelectedError):
                editor.templates.select_load()
            assert editor.load_template() is None
            return editor

        editor = asyncio.run(scenario())
        assert editor.templates.message.text == "请选择要加载的模板"

    def test_unknown_template(self, sample_templates):
        host = FakeHost(templates=sample_templates)

        async def scenario():
            editor = await opened(host)
            with pytest.raises(TemplateNotFoundError):
                editor.templates.select_load("missing")
            with pytest.raises(TemplateNotFoundError):
                editor.templates.select("missing")
            return editor

        editor = asyncio.run(scenario())
        assert editor.templates.selected_template_id == "newest"


class TestDelete:
    def test_without_selection_keeps_list(self, sample_templates):
        host = FakeHost(templates=sample_templates)

        async def scenario():
            editor = await opened(host)
            editor.templates.select(None)
            with pytest.raises(NotSelectedError):
                await editor.templates.delete()
            assert await editor.delete_template() is False
            return editor

        editor = asyncio.run(scenario())
        assert host.called("delete_template") == 0
        assert ids(editor.templates.templates) == ["newest", "middle", "old"]
        assert editor.templates.message.text == "请选择要删除的模板"

    def test_deleting_applied_template_reapplies_selection_fallback_not_last_used_only(self, applied_host):
        # applied id takes the selection fallback (host last used, else most recent), never left dangling
        async def scenario():
            editor = await opened(applied_host)
            assert await editor.delete_template() is True
            return editor

        editor = asyncio.run(scenario())
        assert ids(editor.templates.templates) == ["newest", "old"]
        assert editor.templates.selected_template_id == "newest"
        assert editor.options.applied_template_id == "newest"
        assert editor.templates.message.text == "模板已删除"

    def test_deleting_other_template_keeps_applied(self, applied_host):
        async def scenario():
            editor = await opened(applied_host)
            editor.templates.select("old")
            await editor.templates.delete()
            return editor

        editor = asyncio.run(scenario())
        assert ids(editor.templates.templates) == ["newest", "middle"]
        assert editor.templates.selected_template_id == "middle"
        assert editor.options.applied_template_id == "middle"

    def test_deleting_with_ad_hoc_options_keeps_none(self, applied_host):
        async def scenario():
            editor = await opened(applied_host)
            editor.edit(text="changed")
            await editor.templates.delete()
            return editor

        editor = asyncio.run(scenario())
        assert editor.options.applied_template_id is None
        assert editor.options.options.text == "changed"

    def test_host_rejection(self, applied_host):
        applied_host.fail.add("delete_template")

        async def scenario():
            editor = await opened(applied_host)
            with pytest.raises(HostCallError):
                await editor.templates.delete()
            return editor

        editor = asyncio.run(scenario())
        assert ids(editor.templates.templates) == ["newest", "middle", "old"]
        assert editor.options.applied_template_id == "middle"


class TestMessages:
    def test_message_expires(self, host):
        async def scenario():
            editor = await opened(host, message_ttl=0.05)
            await editor.save_template("Quick")
            assert editor.templates.message.text == "模板已保存"
            await asyncio.sleep(0.1)
            return editor

        editor = asyncio.run(scenario())
        assert editor.templates.message is None

    def test_repeated_message_restarts_timer(self, host):
        async def scenario():
            editor = await opened(host, message_ttl=0.08)
            await editor.save_template("")
            await asyncio.sleep(0.05)
            await editor.save_template(" ")
            await asyncio.sleep(0.05)
            shown = editor.templates.message
            await asyncio.sleep(0.08)
            return shown, editor.templates.message

        shown, later = asyncio.run(scenario())
        assert shown is not None and shown.text == "请填写模板名称"
        assert later is None
